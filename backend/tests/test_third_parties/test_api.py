"""
Integration tests for the client endpoints.
"""

from fastapi import status

API = "/api/v1"

CLIENT_BODY = {
    "client_type": "NACIONAL",
    "name": "Deportes El Campeón",
    "identification_type": "CC",
    "identification": "1020304050",
    "tax_regime": "REGIMEN_SIMPLIFICADO",
    "contact_name": "Andrés Ruiz",
    "email": "andres@deporteselcampeon.co",
    "address": "Carrera 45 # 12-08",
    "identity_document_url": "https://files/cc.pdf",
    "rut_document_url": "https://files/rut.pdf",
}


class TestClientEndpoints:
    async def test_create_and_check_status(self, api_client, auth_headers, advisor_actor, grants):
        created = await api_client.post(
            f"{API}/clients", json=CLIENT_BODY, headers=auth_headers(advisor_actor)
        )

        assert created.status_code == status.HTTP_201_CREATED
        client = created.json()
        assert client["client_code"] == "CN10001"
        assert client["identification_type"] == "CC"

        check = await api_client.get(
            f"{API}/clients/{client['id']}/legal-status", headers=auth_headers(advisor_actor)
        )
        assert check.status_code == status.HTTP_200_OK
        assert check.json() == {
            "status": "VIGENTE",
            "can_operate": True,
            "reason": "Cliente vigente y puede operar",
        }

    async def test_missing_document_is_400(self, api_client, auth_headers, advisor_actor, grants):
        body = {**CLIENT_BODY, "rut_document_url": ""}

        response = await api_client.post(
            f"{API}/clients", json=body, headers=auth_headers(advisor_actor)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "RUT es requerido"

    async def test_invalid_email_is_422(self, api_client, auth_headers, advisor_actor, grants):
        response = await api_client.post(
            f"{API}/clients",
            json={**CLIENT_BODY, "email": "no-es-correo"},
            headers=auth_headers(advisor_actor),
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    async def test_critical_update_blocks_operation(
        self, api_client, auth_headers, advisor_actor, grants
    ):
        created = (
            await api_client.post(
                f"{API}/clients", json=CLIENT_BODY, headers=auth_headers(advisor_actor)
            )
        ).json()

        updated = await api_client.put(
            f"{API}/clients/{created['id']}",
            json={"address": "Calle 1 # 2-3"},
            headers=auth_headers(advisor_actor),
        )
        check = await api_client.get(
            f"{API}/clients/{created['id']}/legal-status", headers=auth_headers(advisor_actor)
        )

        assert updated.status_code == status.HTTP_200_OK
        assert updated.json()["is_active"] is False
        assert check.json()["status"] == "EN_REVISION"
        assert check.json()["can_operate"] is False
