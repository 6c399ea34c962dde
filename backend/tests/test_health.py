"""
Tests for the FastAPI application and health endpoint.
"""

import pytest
from unittest.mock import patch, AsyncMock
from httpx import AsyncClient, ASGITransport
from sqlalchemy.exc import IntegrityError

from adspace.models import UserRole
from adspace.services.campaign_service import CampaignService

from conftest import auth_header, make_user


@pytest.mark.anyio
async def test_health_endpoint_healthy():
    """Health endpoint should return healthy when DB is connected."""
    with patch("adspace.main.check_db_connection", new_callable=AsyncMock, return_value=True):
        from adspace.main import app
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/health")
            assert response.status_code == 200
            data = response.json()
            assert data["status"] == "healthy"
            assert data["database"] == "connected"
            assert data["service"] == "AdSpace Marketplace"


@pytest.mark.anyio
async def test_health_endpoint_degraded():
    """Health endpoint should return degraded when DB is disconnected."""
    with patch("adspace.main.check_db_connection", new_callable=AsyncMock, return_value=False):
        from adspace.main import app
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/health")
            assert response.status_code == 200
            data = response.json()
            assert data["status"] == "degraded"
            assert data["database"] == "disconnected"


@pytest.mark.anyio
async def test_unknown_route_uses_error_envelope(client):
    response = await client.get("/v1/does-not-exist")
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["message"]


@pytest.mark.anyio
async def test_protected_route_requires_token(client):
    response = await client.get("/v1/campaigns")
    assert response.status_code == 401
    assert response.json()["success"] is False


@pytest.mark.anyio
async def test_integrity_error_maps_to_conflict(client, db, monkeypatch):
    user = await make_user(db, UserRole.CLIENT)
    await db.commit()

    async def duplicate(*args, **kwargs):
        raise IntegrityError("INSERT INTO campaigns", {}, Exception("duplicate key"))

    monkeypatch.setattr(CampaignService, "list_campaigns", duplicate)
    response = await client.get("/v1/campaigns", headers=auth_header(user))

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "The request conflicts with existing data"


@pytest.mark.anyio
async def test_unexpected_error_returns_500_envelope(db, monkeypatch):
    from adspace.main import app
    user = await make_user(db, UserRole.CLIENT)
    await db.commit()

    async def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(CampaignService, "list_campaigns", broken)
    # The server error middleware re-raises after answering; keep the response instead
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/v1/campaigns", headers=auth_header(user))

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "An internal error occurred"
    assert body["error"] == "boom"
