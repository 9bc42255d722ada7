# tests/test_portals.py - Portal router tests
import pytest
from httpx import AsyncClient

from tests.conftest import get_auth_headers, make_client


@pytest.mark.asyncio
async def test_create_portal(client: AsyncClient, freelancer):
    """Freelancer creates a portal; accent colour defaults"""
    resp = await client.post(
        "/api/portals",
        json={"subdomain": "Studio-One", "name": "Studio One"},
        headers=get_auth_headers(freelancer),
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["subdomain"] == "studio-one"
    assert data["name"] == "Studio One"
    assert data["accent_color"] == "#6366f1"
    assert data["owner_id"] == freelancer.id
    assert data["client_count"] == 0


@pytest.mark.asyncio
async def test_create_portal_custom_branding(client: AsyncClient, freelancer):
    resp = await client.post(
        "/api/portals",
        json={
            "subdomain": "brand",
            "name": "Brand",
            "logo_url": "https://cdn.example.com/logo.png",
            "accent_color": "#ff0066",
        },
        headers=get_auth_headers(freelancer),
    )
    assert resp.status_code == 200
    assert resp.json()["accent_color"] == "#ff0066"
    assert resp.json()["logo_url"] == "https://cdn.example.com/logo.png"


@pytest.mark.asyncio
async def test_create_portal_duplicate_subdomain(client: AsyncClient, freelancer, other_freelancer, portal):
    """Subdomains are globally unique, across freelancers"""
    resp = await client.post(
        "/api/portals",
        json={"subdomain": portal.subdomain, "name": "Copycat"},
        headers=get_auth_headers(other_freelancer),
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
@pytest.mark.parametrize("subdomain", ["ab", "-lead", "trail-", "has space", "under_score"])
async def test_create_portal_invalid_subdomain(client: AsyncClient, freelancer, subdomain):
    resp = await client.post(
        "/api/portals",
        json={"subdomain": subdomain, "name": "Bad"},
        headers=get_auth_headers(freelancer),
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_create_portal_invalid_accent(client: AsyncClient, freelancer):
    resp = await client.post(
        "/api/portals",
        json={"subdomain": "colour", "name": "Colour", "accent_color": "red"},
        headers=get_auth_headers(freelancer),
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_create_portal_requires_auth(client: AsyncClient):
    resp = await client.post("/api/portals", json={"subdomain": "anon", "name": "Anon"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_list_portals_with_client_counts(client: AsyncClient, db_session, freelancer, other_freelancer, portal):
    """Only the caller's portals are listed, each with its client count"""
    await make_client(db_session, portal, "one@acme.test")
    await make_client(db_session, portal, "two@acme.test")
    await client.post(
        "/api/portals",
        json={"subdomain": "rival", "name": "Rival"},
        headers=get_auth_headers(other_freelancer),
    )

    resp = await client.get("/api/portals", headers=get_auth_headers(freelancer))
    assert resp.status_code == 200
    data = resp.json()
    assert len(data) == 1
    assert data[0]["id"] == portal.id
    assert data[0]["client_count"] == 2


@pytest.mark.asyncio
async def test_get_portal(client: AsyncClient, freelancer, portal, client_record):
    resp = await client.get(f"/api/portals/{portal.id}", headers=get_auth_headers(freelancer))
    assert resp.status_code == 200
    assert resp.json()["client_count"] == 1


@pytest.mark.asyncio
async def test_get_foreign_portal_is_not_found(client: AsyncClient, other_freelancer, portal):
    """Another freelancer's portal is indistinguishable from a missing one"""
    foreign = await client.get(f"/api/portals/{portal.id}", headers=get_auth_headers(other_freelancer))
    missing = await client.get("/api/portals/doesnotexist", headers=get_auth_headers(other_freelancer))
    assert foreign.status_code == 404
    assert missing.status_code == 404
    assert foreign.json()["detail"] == missing.json()["detail"]


@pytest.mark.asyncio
async def test_public_lookup_by_subdomain(client: AsyncClient, portal):
    """Branding lookup needs no credentials and exposes no owner data"""
    resp = await client.get(f"/api/portals/by-subdomain/{portal.subdomain.upper()}")
    assert resp.status_code == 200
    data = resp.json()
    assert data["id"] == portal.id
    assert data["accent_color"] == "#6366f1"
    assert "owner_id" not in data


@pytest.mark.asyncio
async def test_public_lookup_unknown_subdomain(client: AsyncClient):
    resp = await client.get("/api/portals/by-subdomain/nowhere")
    assert resp.status_code == 404
