"""
Client and legal status models.

Legal status records are shared by every third-party type (clients,
employees, suppliers, confectionists, packers) and keyed by
``(third_party_type, third_party_id)``; the latest record decides whether the
entity may operate.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SQLEnum,
    Index,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from garment_orders.database.base import BaseModel


class ThirdPartyType(str, enum.Enum):
    EMPLEADO = "EMPLEADO"
    CLIENTE = "CLIENTE"
    CONFECCIONISTA = "CONFECCIONISTA"
    PROVEEDOR = "PROVEEDOR"
    EMPAQUE = "EMPAQUE"


class LegalStatus(str, enum.Enum):
    """
    Compliance status of a third party.

    VIGENTE may operate; EN_REVISION is pending review; RESTRICCION operates
    with limits; BLOQUEADO may not operate.
    """

    VIGENTE = "VIGENTE"
    EN_REVISION = "EN_REVISION"
    RESTRICCION = "RESTRICCION"
    BLOQUEADO = "BLOQUEADO"


class ClientType(str, enum.Enum):
    NACIONAL = "NACIONAL"
    EXTRANJERO = "EXTRANJERO"
    EMPLEADO = "EMPLEADO"

    @property
    def code_prefix(self) -> str:
        return {"NACIONAL": "CN", "EXTRANJERO": "CE", "EMPLEADO": "EM"}[self.value]


class IdentificationType(str, enum.Enum):
    CC = "CC"
    NIT = "NIT"
    CE = "CE"
    PAS = "PAS"
    EMPRESA_EXTERIOR = "EMPRESA_EXTERIOR"


class TaxRegime(str, enum.Enum):
    REGIMEN_COMUN = "REGIMEN_COMUN"
    REGIMEN_SIMPLIFICADO = "REGIMEN_SIMPLIFICADO"
    NO_RESPONSABLE = "NO_RESPONSABLE"


class Client(BaseModel):
    """
    Client placing orders and quotations.

    Attributes:
        client_code: Sequenced code, CN/CE/EM followed by five digits
        client_type: NACIONAL, EXTRANJERO or EMPLEADO
        name: Legal name
        identification_type: CC, NIT, CE, PAS or EMPRESA_EXTERIOR
        identification: Identification number, unique
        is_active: Stored activation flag, projected from legal status
        *_document_url: Uploaded identity and tax documents
    """

    __tablename__ = "clients"

    client_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    client_type: Mapped[ClientType] = mapped_column(
        SQLEnum(ClientType, name="client_type"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    identification_type: Mapped[IdentificationType] = mapped_column(
        SQLEnum(IdentificationType, name="identification_type"), nullable=False
    )
    identification: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    dv: Mapped[Optional[str]] = mapped_column(String(1), nullable=True)
    tax_regime: Mapped[TaxRegime] = mapped_column(
        SQLEnum(TaxRegime, name="tax_regime"), nullable=False
    )
    contact_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    identity_document_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rut_document_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    commerce_chamber_document_url: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True
    )
    passport_document_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tax_certificate_document_url: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True
    )
    company_id_document_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class LegalStatusRecord(BaseModel):
    """Append-only legal status entry for any third party."""

    __tablename__ = "legal_status_records"

    third_party_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    third_party_type: Mapped[ThirdPartyType] = mapped_column(
        SQLEnum(ThirdPartyType, name="third_party_type"), nullable=False
    )
    third_party_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[LegalStatus] = mapped_column(
        SQLEnum(LegalStatus, name="legal_status_status"),
        nullable=False,
        default=LegalStatus.VIGENTE,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_review_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index(
            "ix_legal_status_records_party",
            "third_party_type",
            "third_party_id",
            "created_at",
        ),
    )
