"""
Role-addressed in-app notifications.

Notifications are addressed by permission name: every role granted the
permission receives one unread row. Dispatch happens after the business
transaction has committed and uses its own session, so a delivery failure
never affects the committed work. Failures are logged and dropped.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from garment_orders.core.config import get_settings
from garment_orders.core.logging import get_logger
from garment_orders.database.connection import get_session_factory
from garment_orders.database.models.notification import Notification
from garment_orders.services.access.permissions import PermissionChecker

logger = get_logger(__name__)


class NotificationService:
    """
    Post-commit notification dispatcher.

    Attributes:
        session_factory: Factory for the dispatcher's own sessions
        enabled: Whether dispatch is active
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        enabled: Optional[bool] = None,
    ) -> None:
        self._session_factory = session_factory
        self.enabled = (
            get_settings().notifications_enabled if enabled is None else enabled
        )

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            self._session_factory = get_session_factory()
        return self._session_factory

    async def notify_permission(
        self,
        permission: str,
        title: str,
        message: str,
        href: Optional[str] = None,
    ) -> int:
        """
        Notify every role holding ``permission``.

        Args:
            permission: Permission name used to resolve recipients
            title: Notification headline
            message: Notification body
            href: Optional in-app link

        Returns:
            Number of notifications written, 0 when disabled or on failure
        """
        if not self.enabled:
            return 0

        try:
            async with self.session_factory() as session:
                roles = await PermissionChecker(session).roles_with_permission(
                    permission
                )
                for role in roles:
                    session.add(
                        Notification(
                            title=title,
                            message=message,
                            role=role,
                            href=href,
                        )
                    )
                await session.commit()
        except Exception as e:
            logger.error(
                "Notification dispatch failed",
                permission=permission,
                title=title,
                error=str(e),
                error_type=type(e).__name__,
            )
            return 0

        logger.info(
            "Notifications dispatched",
            permission=permission,
            title=title,
            recipients=len(roles),
        )
        return len(roles)
