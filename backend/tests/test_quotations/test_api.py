"""
Integration tests for the quotation conversion endpoint.
"""

from uuid import uuid4

from fastapi import status

API = "/api/v1"


class TestConvertQuotationEndpoint:
    async def test_converts_without_body(
        self, api_client, auth_headers, advisor_actor, grants, quotation
    ):
        response = await api_client.post(
            f"{API}/quotations/{quotation.quotation.id}/prefactura",
            headers=auth_headers(advisor_actor),
        )

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["reused"] is False
        assert body["prefactura"]["prefactura_code"] == "PRE10001"
        assert body["prefactura"]["status"] == "PENDIENTE_CONTABILIDAD"
        assert body["order"]["order_code"] == "VN-000001"
        assert body["order"]["order_name"] == "Pedido COT10001"

    async def test_repeat_call_reuses_and_renames(
        self, api_client, auth_headers, advisor_actor, grants, quotation
    ):
        url = f"{API}/quotations/{quotation.quotation.id}/prefactura"
        first = await api_client.post(url, headers=auth_headers(advisor_actor))

        second = await api_client.post(
            url, json={"order_name": "Uniformes finales"}, headers=auth_headers(advisor_actor)
        )

        assert second.status_code == status.HTTP_201_CREATED
        body = second.json()
        assert body["reused"] is True
        assert body["order"]["id"] == first.json()["order"]["id"]
        assert body["order"]["order_name"] == "Uniformes finales"

    async def test_both_permissions_required(
        self, api_client, auth_headers, operario_actor, grants, quotation
    ):
        response = await api_client.post(
            f"{API}/quotations/{quotation.quotation.id}/prefactura",
            headers=auth_headers(operario_actor),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["details"]["permission"] == "EDITAR_COTIZACION"

    async def test_unknown_quotation(self, api_client, auth_headers, admin_actor):
        response = await api_client.post(
            f"{API}/quotations/{uuid4()}/prefactura", headers=auth_headers(admin_actor)
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["code"] == "not_found"
