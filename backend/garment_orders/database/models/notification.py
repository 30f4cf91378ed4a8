"""
In-app notification model.

Notifications are addressed to a role rather than a user: dispatch resolves
every role granted a permission and writes one unread row per role.
"""

from typing import Optional

from sqlalchemy import Boolean, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from garment_orders.database.base import AppendOnlyModel


class Notification(AppendOnlyModel):
    """
    Role-addressed notification.

    Attributes:
        title: Short headline ("Pedido creado", "Cambio de estado")
        message: Body text
        role: Role name the notification is addressed to
        href: Optional in-app link
        is_read: Read marker
    """

    __tablename__ = "notifications"

    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    href: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (Index("ix_notifications_role_is_read", "role", "is_read"),)
