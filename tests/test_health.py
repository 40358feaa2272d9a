import pytest


@pytest.mark.asyncio
async def test_health_needs_no_identity(client):
    r = await client.get("/v1/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_routes_are_versioned(client):
    r = await client.get("/health")
    assert r.status_code == 404

    r = await client.get("/openapi.json")
    paths = r.json()["paths"]
    assert "/v1/products" in paths
    assert "/v1/internal/checkout/completed" in paths
