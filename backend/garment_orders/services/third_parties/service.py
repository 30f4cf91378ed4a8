"""
Client service.

Creates clients with a sequenced client code and their initial legal status,
validates the identity documents their identification type requires, and
sends clients back to legal review when identity-critical data changes.
"""

import uuid
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from garment_orders.core.logging import get_logger
from garment_orders.database.models.third_party import (
    Client,
    ClientType,
    IdentificationType,
    LegalStatus,
    TaxRegime,
    ThirdPartyType,
)
from garment_orders.services.access.permissions import Actor
from garment_orders.services.errors import NotFoundError, ValidationError
from garment_orders.services.orders.code_sequencer import (
    client_code_family,
    insert_with_sequenced_code,
)
from garment_orders.services.orders.repository import translate_integrity_error
from garment_orders.services.third_parties.documents import (
    validate_required_documents,
)
from garment_orders.services.third_parties.legal_status import (
    CRITICAL_FIELDS,
    LegalStatusCheck,
    LegalStatusService,
    detect_critical_changes,
)

logger = get_logger(__name__)

CLIENT_FIELDS = (
    "name",
    "identification_type",
    "identification",
    "dv",
    "tax_regime",
    "contact_name",
    "email",
    "address",
    "city",
    "country",
    "identity_document_url",
    "rut_document_url",
    "commerce_chamber_document_url",
    "passport_document_url",
    "tax_certificate_document_url",
    "company_id_document_url",
)

DOCUMENT_FIELDS = tuple(name for name in CRITICAL_FIELDS if name.endswith("_url"))


def _parse(enum_cls: type, value: Any, field: str):
    try:
        return enum_cls(getattr(value, "value", value))
    except ValueError as e:
        raise ValidationError(f"Valor inválido para {field}", field=field, value=value) from e


def _require_documents(identification_type: Any, values: dict[str, Any]) -> None:
    validation = validate_required_documents(identification_type, values)
    if not validation.is_valid:
        raise ValidationError(
            validation.message,
            field=validation.missing_documents[0].field,
            missing_documents=[doc.label for doc in validation.missing_documents],
        )


class ClientService:
    """Client creation, edits and legal status reads."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.legal_status = LegalStatusService(session)

    async def create_client(self, actor: Actor, payload: Any) -> Client:
        """
        Create a client with its code and an initial VIGENTE legal record.

        Args:
            actor: Authenticated caller
            payload: ``ClientCreate`` request

        Returns:
            The committed client

        Raises:
            ValidationError: Unknown enum value or missing required documents
            ConflictError: Duplicate identification or exhausted code retries
        """
        client_type = _parse(ClientType, payload.client_type, "client_type")
        values = {name: getattr(payload, name) for name in CLIENT_FIELDS}
        values["identification_type"] = _parse(
            IdentificationType, values["identification_type"], "identification_type"
        )
        values["tax_regime"] = _parse(TaxRegime, values["tax_regime"], "tax_regime")
        _require_documents(values["identification_type"], values)

        try:

            def build(code: str) -> Client:
                return Client(
                    id=uuid.uuid4(),
                    client_code=code,
                    client_type=client_type,
                    is_active=True,
                    **values,
                )

            client = await insert_with_sequenced_code(
                self.session,
                Client.client_code,
                client_code_family(client_type.code_prefix),
                build,
            )
            self.legal_status.record(
                ThirdPartyType.CLIENTE,
                client.id,
                client.name,
                LegalStatus.VIGENTE,
                notes="Registro inicial",
                reviewed_by=str(actor.user_id),
            )
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            translated = translate_integrity_error(e, "create_client")
            if translated is e:
                raise
            raise translated from e
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Client created",
            client_id=str(client.id),
            client_code=client.client_code,
            client_type=client_type.value,
        )
        return client

    async def update_client(
        self, actor: Actor, client_id: uuid.UUID, payload: Any
    ) -> Client:
        """
        Patch a client; identity-critical changes trigger a legal review.

        Args:
            actor: Authenticated caller
            client_id: Client to update
            payload: ``ClientUpdate`` request (partial)

        Returns:
            The committed client

        Raises:
            NotFoundError: If the client does not exist
            ValidationError: Unknown enum value or missing required documents
        """
        changes = {
            name: getattr(payload, name)
            for name in payload.model_fields_set
            if name in CLIENT_FIELDS
        }
        if "identification_type" in changes:
            changes["identification_type"] = _parse(
                IdentificationType, changes["identification_type"], "identification_type"
            )
        if "tax_regime" in changes:
            changes["tax_regime"] = _parse(TaxRegime, changes["tax_regime"], "tax_regime")

        try:
            client = await self.session.get(Client, client_id)
            if client is None:
                raise NotFoundError("Cliente no encontrado", client_id=str(client_id))

            current = client.column_values()
            changed_fields = detect_critical_changes(current, changes)
            if "identification_type" in changes or any(
                name in changes for name in DOCUMENT_FIELDS
            ):
                _require_documents(
                    changes.get("identification_type", client.identification_type),
                    {**current, **changes},
                )

            for name, value in changes.items():
                setattr(client, name, value)

            if changed_fields:
                self.legal_status.flag_for_review(
                    client, ThirdPartyType.CLIENTE, client.name, changed_fields
                )
            await self.session.flush()
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            translated = translate_integrity_error(e, "update_client")
            if translated is e:
                raise
            raise translated from e
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Client updated",
            client_id=str(client.id),
            changed_fields=sorted(changes),
            sent_to_review=bool(changed_fields),
            actor_id=str(actor.user_id),
        )
        return client

    async def get_legal_status(self, client_id: uuid.UUID) -> LegalStatusCheck:
        """
        Report whether a client may operate.

        Raises:
            NotFoundError: If the client does not exist
        """
        client = await self.session.get(Client, client_id)
        if client is None:
            raise NotFoundError("Cliente no encontrado", client_id=str(client_id))
        return await self.legal_status.check(ThirdPartyType.CLIENTE, client.id)
