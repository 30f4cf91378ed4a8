"""
Legal status of third parties.

Every third party (client, employee, supplier, confectionist, packer) has an
append-only list of legal status records. The most recent record decides
whether the entity may operate; the stored ``is_active`` flag is only a
projection of it. Edits to identity-critical client fields push the client
back into review automatically.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from garment_orders.core.logging import get_logger
from garment_orders.database.base import utcnow
from garment_orders.database.models.third_party import (
    LegalStatus,
    LegalStatusRecord,
    ThirdPartyType,
)

logger = get_logger(__name__)

SYSTEM_REVIEWER = "SISTEMA"

CRITICAL_FIELDS = (
    "name",
    "identification_type",
    "identification",
    "dv",
    "tax_regime",
    "contact_name",
    "address",
    "identity_document_url",
    "rut_document_url",
    "commerce_chamber_document_url",
    "passport_document_url",
    "tax_certificate_document_url",
    "company_id_document_url",
)

OPERATION_REASONS = {
    LegalStatus.VIGENTE: "Cliente vigente y puede operar",
    LegalStatus.EN_REVISION: "Cliente en revisión, no puede operar",
}
BLOCKED_REASON = "Cliente bloqueado, no puede operar"
UNDEFINED_REASON = "Sin estado jurídico definido"


def _status(value: Any) -> Optional[LegalStatus]:
    if value is None:
        return None
    try:
        return LegalStatus(getattr(value, "value", value))
    except ValueError:
        return None


def project_is_active(latest_status: Any, stored_flag: bool) -> bool:
    """
    Project the operable flag of a third party.

    Without any legal record the stored flag stands; with one, only VIGENTE
    is active.
    """
    status = _status(latest_status)
    if status is None:
        return bool(stored_flag)
    return status is LegalStatus.VIGENTE


def _normalize(value: Any) -> Any:
    value = getattr(value, "value", value)
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def detect_critical_changes(
    current: Mapping[str, Any], changes: Mapping[str, Any]
) -> list[str]:
    """
    List the identity-critical fields a patch actually changes.

    Args:
        current: Stored values keyed by column name
        changes: Patched values; absent keys are untouched

    Returns:
        Changed critical field names, in declaration order
    """
    return [
        name
        for name in CRITICAL_FIELDS
        if name in changes and _normalize(changes[name]) != _normalize(current.get(name))
    ]


@dataclass
class LegalStatusCheck:
    """Outcome of an operability check."""

    status: Optional[LegalStatus]
    can_operate: bool
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value if self.status else None,
            "can_operate": self.can_operate,
            "reason": self.reason,
        }


class LegalStatusService:
    """Reads and appends legal status records inside the caller's transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def latest_record(
        self, third_party_type: ThirdPartyType, third_party_id: uuid.UUID
    ) -> Optional[LegalStatusRecord]:
        result = await self.session.execute(
            select(LegalStatusRecord)
            .where(
                LegalStatusRecord.third_party_type == third_party_type,
                LegalStatusRecord.third_party_id == third_party_id,
            )
            .order_by(
                LegalStatusRecord.created_at.desc(), LegalStatusRecord.id.desc()
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def effective_is_active(
        self,
        third_party_type: ThirdPartyType,
        third_party_id: uuid.UUID,
        stored_flag: bool,
    ) -> bool:
        latest = await self.latest_record(third_party_type, third_party_id)
        return project_is_active(latest.status if latest else None, stored_flag)

    def record(
        self,
        third_party_type: ThirdPartyType,
        third_party_id: uuid.UUID,
        third_party_name: str,
        status: LegalStatus,
        notes: Optional[str] = None,
        reviewed_by: Optional[str] = None,
    ) -> LegalStatusRecord:
        entry = LegalStatusRecord(
            id=uuid.uuid4(),
            third_party_type=third_party_type,
            third_party_id=third_party_id,
            third_party_name=third_party_name,
            status=status,
            notes=notes,
            reviewed_by=reviewed_by,
            last_review_date=utcnow(),
        )
        self.session.add(entry)
        return entry

    def flag_for_review(
        self,
        entity: Any,
        third_party_type: ThirdPartyType,
        third_party_name: str,
        changed_fields: list[str],
    ) -> LegalStatusRecord:
        """
        Deactivate an entity and append an automatic EN_REVISION record.

        Args:
            entity: Mapped third party whose ``is_active`` is cleared
            third_party_type: Type of the third party
            third_party_name: Name stored on the record
            changed_fields: Critical fields that triggered the review

        Returns:
            The pending record
        """
        entity.is_active = False
        logger.info(
            "Third party sent to legal review",
            third_party_type=third_party_type.value,
            third_party_id=str(entity.id),
            changed_fields=changed_fields,
        )
        return self.record(
            third_party_type,
            entity.id,
            third_party_name,
            LegalStatus.EN_REVISION,
            notes=(
                f"Cambios detectados en {len(changed_fields)} campo(s) "
                "requieren revisión jurídica"
            ),
            reviewed_by=SYSTEM_REVIEWER,
        )

    async def check(
        self, third_party_type: ThirdPartyType, third_party_id: uuid.UUID
    ) -> LegalStatusCheck:
        latest = await self.latest_record(third_party_type, third_party_id)
        if latest is None:
            return LegalStatusCheck(status=None, can_operate=False, reason=UNDEFINED_REASON)
        status = _status(latest.status)
        return LegalStatusCheck(
            status=status,
            can_operate=status is LegalStatus.VIGENTE,
            reason=OPERATION_REASONS.get(status, BLOCKED_REASON),
        )
