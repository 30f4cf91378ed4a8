"""
Test suite for the FastAPI application shell.

Covers health endpoints, request correlation, and the rendering of service
and unexpected errors.
"""

import json
import uuid
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import Request, status

from garment_orders.main import global_exception_handler, pipeline_exception_handler
from garment_orders.services.errors import ConflictError


def _request(path: str = "/api/v1/orders") -> Request:
    return Request(
        {
            "type": "http",
            "method": "GET",
            "scheme": "http",
            "server": ("test", 80),
            "path": path,
            "query_string": b"",
            "headers": [],
        }
    )


# ============================================================================
# Health Endpoints
# ============================================================================


class TestHealthEndpoints:
    async def test_health(self, api_client):
        response = await api_client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "healthy"
        assert {"service", "version", "environment"} <= data.keys()

    async def test_live(self, api_client):
        response = await api_client.get("/live")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "alive"

    async def test_ready_when_database_answers(self, api_client):
        with patch(
            "garment_orders.main.check_database_health", AsyncMock(return_value=True)
        ):
            response = await api_client.get("/ready")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["dependencies_ready"] is True
        assert response.json()["database"] == "healthy"

    async def test_not_ready_without_database(self, api_client):
        with patch(
            "garment_orders.main.check_database_health", AsyncMock(return_value=False)
        ):
            response = await api_client.get("/ready")

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["status"] == "not_ready"
        assert response.json()["database"] == "unhealthy"


# ============================================================================
# Request Correlation
# ============================================================================


class TestRequestCorrelation:
    async def test_request_id_is_echoed(self, api_client):
        response = await api_client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    async def test_request_id_is_generated(self, api_client):
        response = await api_client.get("/health")

        assert response.headers["X-Request-ID"]

    async def test_error_body_carries_request_id(
        self, api_client, auth_headers, admin_actor, grants
    ):
        response = await api_client.get(
            f"/api/v1/orders/{uuid.uuid4()}",
            headers={**auth_headers(admin_actor), "X-Request-ID": "req-404"},
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        body = response.json()
        assert body["error"] == "NotFoundError"
        assert body["code"] == "not_found"
        assert body["request_id"] == "req-404"


# ============================================================================
# Exception Handlers
# ============================================================================


class TestExceptionHandlers:
    async def test_pipeline_error_rendering(self):
        error = ConflictError("Pedido vinculado a prefactura", order_id=uuid.UUID(int=7))

        response = await pipeline_exception_handler(_request(), error)

        assert response.status_code == status.HTTP_409_CONFLICT
        body = json.loads(response.body)
        assert body["code"] == "conflict"
        assert body["message"] == "Pedido vinculado a prefactura"
        assert body["details"] == {"order_id": str(uuid.UUID(int=7))}

    async def test_unreachable_database_is_503(self):
        response = await global_exception_handler(
            _request(), ConnectionRefusedError("connect ECONNREFUSED")
        )

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert json.loads(response.body)["code"] == "database_unavailable"

    @pytest.mark.parametrize("exc", [RuntimeError("boom"), KeyError("missing")])
    async def test_unexpected_error_is_500(self, exc):
        response = await global_exception_handler(_request(), exc)

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        body = json.loads(response.body)
        assert body["code"] == "internal_error"
        assert body["message"] == "An unexpected error occurred"
