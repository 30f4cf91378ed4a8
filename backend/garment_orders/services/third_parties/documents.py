"""Required identity documents per identification type."""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from garment_orders.database.models.third_party import IdentificationType


@dataclass(frozen=True)
class RequiredDocument:
    field: str
    label: str


REQUIRED_DOCUMENTS: dict[IdentificationType, tuple[RequiredDocument, ...]] = {
    IdentificationType.CC: (
        RequiredDocument("identity_document_url", "Cédula del titular"),
        RequiredDocument("rut_document_url", "RUT"),
    ),
    IdentificationType.NIT: (
        RequiredDocument("rut_document_url", "RUT de la empresa"),
        RequiredDocument("commerce_chamber_document_url", "Cámara de Comercio"),
        RequiredDocument("identity_document_url", "Cédula del representante legal"),
    ),
    IdentificationType.CE: (
        RequiredDocument(
            "identity_document_url", "ID Extranjero (Cédula de Extranjería)"
        ),
        RequiredDocument("passport_document_url", "Pasaporte"),
    ),
    IdentificationType.PAS: (
        RequiredDocument("identity_document_url", "Documento de Identidad"),
        RequiredDocument("passport_document_url", "Pasaporte"),
    ),
    IdentificationType.EMPRESA_EXTERIOR: (
        RequiredDocument("passport_document_url", "Pasaporte del Representante"),
        RequiredDocument("tax_certificate_document_url", "Certificado Tributario"),
        RequiredDocument("company_id_document_url", "ID de la Empresa"),
    ),
}


@dataclass
class DocumentValidation:
    is_valid: bool
    missing_documents: list[RequiredDocument] = field(default_factory=list)

    @property
    def message(self) -> Optional[str]:
        if self.is_valid:
            return None
        return f"{self.missing_documents[0].label} es requerido"


def required_documents(identification_type: Any) -> tuple[RequiredDocument, ...]:
    try:
        key = IdentificationType(getattr(identification_type, "value", identification_type))
    except ValueError:
        return ()
    return REQUIRED_DOCUMENTS.get(key, ())


def validate_required_documents(
    identification_type: Any, urls: Mapping[str, Optional[str]]
) -> DocumentValidation:
    """
    Check that every document required for an identification type is present.

    Args:
        identification_type: CC, NIT, CE, PAS or EMPRESA_EXTERIOR
        urls: Document URLs keyed by column name; blank values count as missing

    Returns:
        Validation result listing the missing documents in requirement order
    """
    missing = [
        document
        for document in required_documents(identification_type)
        if not str(urls.get(document.field) or "").strip()
    ]
    return DocumentValidation(is_valid=not missing, missing_documents=missing)
