"""Tests for the rate table endpoints."""

import pytest
from httpx import AsyncClient
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.ext.asyncio import AsyncSession

from auth import create_identity_token
from main import app
from services.document_store import DocumentStore
from tests.conftest import SAMPLE_RATES, admin_token, customer_token, get_auth_headers

NEW_RATES = {
    "hourlyRate": 65,
    "project": {"landing": 25},
    "design": {"custom": 45},
    "modules": {"seo": 10},
}


@pytest.mark.asyncio
async def test_get_rates(client: AsyncClient, seeded_rates: dict):
    """Read endpoint returns the stored document as-is."""
    response = await client.get("/api/rates")
    assert response.status_code == 200
    assert response.json() == SAMPLE_RATES


@pytest.mark.asyncio
async def test_get_rates_not_found(client: AsyncClient):
    """Missing configuration document is a 404 with an error body."""
    response = await client.get("/api/rates")
    assert response.status_code == 404
    data = response.json()
    assert data["message"] == "Not Found"
    assert "not found" in data["error"]


@pytest.mark.asyncio
async def test_rates_method_not_allowed(client: AsyncClient, seeded_rates: dict):
    """Only GET and POST are routed."""
    response = await client.put("/api/rates", json=NEW_RATES)
    assert response.status_code == 405
    data = response.json()
    assert data["message"] == "Method Not Allowed"
    assert "PUT" in data["error"]


@pytest.mark.asyncio
async def test_update_rates_requires_auth(client: AsyncClient, seeded_rates: dict):
    """Writing without a token is a 401."""
    response = await client.post("/api/rates", json=NEW_RATES)
    assert response.status_code == 401
    assert response.json()["message"] == "Unauthorized"


@pytest.mark.asyncio
async def test_update_rates_rejects_bad_token(client: AsyncClient, seeded_rates: dict):
    """A token that fails verification is a 401."""
    response = await client.post(
        "/api/rates", json=NEW_RATES, headers=get_auth_headers("not-a-jwt")
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_update_rates_rejects_expired_token(client: AsyncClient, seeded_rates: dict):
    token = create_identity_token("admin-1", roles=["admin"], expires_minutes=-5)
    response = await client.post("/api/rates", json=NEW_RATES, headers=get_auth_headers(token))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_update_rates_requires_admin(client: AsyncClient, seeded_rates: dict):
    """Authenticated users without the admin role are a 403."""
    response = await client.post(
        "/api/rates", json=NEW_RATES, headers=get_auth_headers(customer_token())
    )
    assert response.status_code == 403
    data = response.json()
    assert data["message"] == "Forbidden"
    assert "Admin access required" in data["error"]


@pytest.mark.asyncio
async def test_update_rates_overwrites_document(
    client: AsyncClient,
    db_session: AsyncSession,
    seeded_rates: dict,
):
    """A save replaces the whole document; omitted keys disappear."""
    response = await client.post(
        "/api/rates", json=NEW_RATES, headers=get_auth_headers(admin_token())
    )
    assert response.status_code == 200
    assert response.json() == {"message": "Rates updated successfully!"}

    stored = await DocumentStore(db_session).get("config", "rates")
    assert stored == NEW_RATES
    assert "corporate" not in stored["project"]


@pytest.mark.asyncio
async def test_update_rates_creates_missing_document(client: AsyncClient):
    response = await client.post(
        "/api/rates", json=NEW_RATES, headers=get_auth_headers(admin_token())
    )
    assert response.status_code == 200

    response = await client.get("/api/rates")
    assert response.json() == NEW_RATES


@pytest.mark.asyncio
async def test_update_rates_preserves_unknown_keys(client: AsyncClient, seeded_rates: dict):
    """Fields this service does not model survive the round trip."""
    payload = {**NEW_RATES, "rushMultiplier": 1.5, "addons": {"hosting": 4}}
    response = await client.post(
        "/api/rates", json=payload, headers=get_auth_headers(admin_token())
    )
    assert response.status_code == 200

    response = await client.get("/api/rates")
    assert response.json() == payload


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {**NEW_RATES, "hourlyRate": -1},
        {**NEW_RATES, "project": {"landing": "lots"}},
        {**NEW_RATES, "modules": {"seo": -0.5}},
        {"project": {"landing": 10}},
        {**NEW_RATES, "surcharge": -1},
        {**NEW_RATES, "note": "x"},
        {**NEW_RATES, "addons": {"hosting": "free"}},
        {**NEW_RATES, "addons": {"hosting": {"monthly": 4}}},
    ],
)
async def test_update_rates_rejects_invalid_values(
    client: AsyncClient,
    db_session: AsyncSession,
    seeded_rates: dict,
    payload: dict,
):
    """Negative or non-numeric values are rejected and nothing is written."""
    response = await client.post(
        "/api/rates", json=payload, headers=get_auth_headers(admin_token())
    )
    assert response.status_code == 422
    assert response.json()["error"]

    assert await DocumentStore(db_session).get("config", "rates") == SAMPLE_RATES


@pytest.mark.asyncio
async def test_create_estimate(client: AsyncClient, seeded_rates: dict):
    """Server-side estimate uses the stored rates."""
    response = await client.post(
        "/api/estimate",
        json={"projectType": "corporate", "designType": "custom", "modules": ["seo", "nope"]},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["total_hours"] == 108
    assert data["total_cost"] == 5400
    assert data["formatted_cost"] == "$5,400"
    assert data["formatted_timeline"] == "2-3 weeks"


@pytest.mark.asyncio
async def test_create_estimate_without_rates(client: AsyncClient):
    response = await client.post("/api/estimate", json={})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_calculator_page(client: AsyncClient, seeded_rates: dict):
    """Calculator page renders options and totals for the query selection."""
    response = await client.get("/", params={"projectType": "landing", "module": ["seo"]})
    assert response.status_code == 200
    assert "$1,400" in response.text
    assert "&lt; 1 week" in response.text


@pytest.mark.asyncio
async def test_calculator_page_unavailable(client: AsyncClient):
    """Without rates the page shows the apology instead of the form."""
    response = await client.get("/")
    assert response.status_code == 404
    assert "couldn't load the calculator settings" in response.text


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_default_rate_limits_are_enforced_by_middleware():
    assert SlowAPIMiddleware in [m.cls for m in app.user_middleware]
    assert app.state.limiter._default_limits
