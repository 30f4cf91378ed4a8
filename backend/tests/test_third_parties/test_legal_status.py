"""
Tests for required documents and legal status projection.
"""

import pytest

from garment_orders.database.models.third_party import IdentificationType, LegalStatus
from garment_orders.services.third_parties.documents import (
    required_documents,
    validate_required_documents,
)
from garment_orders.services.third_parties.legal_status import (
    LegalStatusCheck,
    detect_critical_changes,
    project_is_active,
)


class TestRequiredDocuments:
    def test_nit_requires_three_documents(self):
        fields = [doc.field for doc in required_documents("NIT")]

        assert fields == [
            "rut_document_url",
            "commerce_chamber_document_url",
            "identity_document_url",
        ]

    def test_unknown_type_requires_nothing(self):
        assert required_documents("OTRO") == ()

    def test_missing_documents_in_requirement_order(self):
        result = validate_required_documents(
            IdentificationType.CC, {"identity_document_url": "  ", "rut_document_url": None}
        )

        assert result.is_valid is False
        assert [doc.label for doc in result.missing_documents] == ["Cédula del titular", "RUT"]
        assert result.message == "Cédula del titular es requerido"

    def test_complete_documents(self):
        result = validate_required_documents(
            "PAS",
            {
                "identity_document_url": "https://files/id.pdf",
                "passport_document_url": "https://files/pas.pdf",
            },
        )

        assert result.is_valid is True
        assert result.message is None


class TestProjectIsActive:
    @pytest.mark.parametrize(
        "status,stored,expected",
        [
            (None, True, True),
            (None, False, False),
            ("VIGENTE", False, True),
            (LegalStatus.EN_REVISION, True, False),
            (LegalStatus.BLOQUEADO, True, False),
            ("RESTRICCION", True, False),
        ],
    )
    def test_projection(self, status, stored, expected):
        assert project_is_active(status, stored) is expected


class TestDetectCriticalChanges:
    def test_only_real_changes_are_reported(self):
        current = {
            "name": "Confecciones Andinas",
            "identification_type": IdentificationType.NIT,
            "identification": "900123456",
            "dv": None,
            "email": "old@confecciones.co",
        }
        changes = {
            "name": "  Confecciones Andinas ",
            "identification_type": "NIT",
            "identification": "900123457",
            "dv": "",
            "email": "new@confecciones.co",
        }

        assert detect_critical_changes(current, changes) == ["identification"]

    def test_document_change_is_critical(self):
        changed = detect_critical_changes(
            {"rut_document_url": "a.pdf"}, {"rut_document_url": "b.pdf"}
        )

        assert changed == ["rut_document_url"]


def test_legal_status_check_to_dict():
    check = LegalStatusCheck(status=LegalStatus.VIGENTE, can_operate=True, reason="ok")

    assert check.to_dict() == {"status": "VIGENTE", "can_operate": True, "reason": "ok"}
