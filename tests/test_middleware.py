"""Middleware tests: request ID, CORS, error handling."""

import pytest
from httpx import AsyncClient

from conftest import make_token


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    """Request ID is auto-generated when not provided."""
    response = await client.get("/health")
    assert "x-request-id" in response.headers
    assert len(response.headers["x-request-id"]) == 36  # UUID format


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    """Custom request ID is echoed back in response."""
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_cors_preflight(client: AsyncClient) -> None:
    """CORS preflight returns access-control-allow-origin for configured origin."""
    response = await client.options(
        "/health",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert "access-control-allow-origin" in response.headers


@pytest.mark.asyncio
async def test_404_json_format(client: AsyncClient) -> None:
    """404 errors return JSON with detail field."""
    response = await client.get("/nonexistent-endpoint")
    assert response.status_code == 404
    assert "detail" in response.json()


@pytest.mark.asyncio
async def test_missing_token_rejected(client: AsyncClient) -> None:
    response = await client.get("/api/v1/me/gamification")
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_expired_token_is_401(client: AsyncClient) -> None:
    response = await client.get(
        "/api/v1/me/gamification",
        headers={"Authorization": f"Bearer {make_token(expires_in=-30)}"},
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Token has expired"


@pytest.mark.asyncio
async def test_domain_validation_error_is_422(authed_client: AsyncClient) -> None:
    response = await authed_client.put("/api/v1/topics/t-add/progress", json={"percent": 150})
    assert response.status_code == 422
    assert "0..100" in response.json()["detail"]


@pytest.mark.asyncio
async def test_not_found_error_is_404(authed_client: AsyncClient) -> None:
    response = await authed_client.get("/api/v1/subjects/nope/topics")
    assert response.status_code == 404
    assert "nope" in response.json()["detail"]


@pytest.mark.asyncio
async def test_request_validation_error_shape(authed_client: AsyncClient) -> None:
    response = await authed_client.post("/api/v1/topics/t-add/practice/complete", json={"correct": 1})
    assert response.status_code == 422
    assert response.json()["detail"] == "Validation error"


@pytest.mark.asyncio
async def test_oversized_request_id_replaced(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-Id": "x" * 500})
    assert len(response.headers["x-request-id"]) == 36
