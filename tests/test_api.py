"""Tests for the FastAPI endpoints."""

import pytest
from httpx import ASGITransport, AsyncClient

from conftest import BASE_USDC, ETH_USDC, SENDER, FakeProvider, make_route
from crosspay.api.app import create_app
from crosspay.routing.aggregator import RouteAggregator
from crosspay.routing.base import ProviderAPIError, ProviderId
from crosspay.web.controllers import quotes as quotes_controller


def quote_body(**overrides) -> dict:
    body = {
        "from_chain": 8453,
        "from_token": BASE_USDC,
        "to_chain": 1,
        "to_token": ETH_USDC,
        "amount": "100",
        "sender_address": SENDER,
    }
    body.update(overrides)
    return body


@pytest.fixture
def aggregator(monkeypatch):
    """Swap the controller's aggregator for in-memory providers."""
    aggregator = RouteAggregator(
        providers=[
            FakeProvider(
                ProviderId.SQUID,
                routes=[make_route(ProviderId.SQUID, to_amount="99700000", estimated_time=60, gas_usd=0.5, fee_usd=0.5)],
            ),
            FakeProvider(
                ProviderId.LIFI,
                routes=[make_route(ProviderId.LIFI, to_amount="99600000", estimated_time=120, gas_usd=0.2, fee_usd=0.1)],
            ),
            FakeProvider(
                ProviderId.ACROSS,
                routes=[make_route(ProviderId.ACROSS, to_amount="99500000", estimated_time=10, gas_usd=0.3, fee_usd=0.5)],
            ),
        ]
    )
    monkeypatch.setattr(quotes_controller._route_service, "_aggregator", aggregator)
    return aggregator


@pytest.fixture
async def client():
    """Create async test client."""
    transport = ASGITransport(app=create_app())
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    @pytest.mark.asyncio
    async def test_health_check(self, client):
        """Test basic health check."""
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "crosspay"

    @pytest.mark.asyncio
    async def test_detailed_health(self, client):
        """Secrets are redacted in the config dump."""
        response = await client.get("/health/detailed")

        assert response.status_code == 200
        data = response.json()
        assert data["config"]["environment"] == "test"
        assert data["config"]["providers"]["squid"] == "***"
        assert "test-integrator" not in response.text


class TestRouteEndpoints:
    """Tests for route quoting endpoints."""

    @pytest.mark.asyncio
    async def test_quote_ranks_routes(self, client, aggregator):
        response = await client.post("/api/v1/routes/quote", json=quote_body())

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert len(data["routes"]) == 3
        assert data["recommended"]["provider"] == "squid"
        assert data["fastest"]["provider"] == "across"
        assert data["cheapest"]["provider"] == "lifi"
        assert data["recommended"]["is_recommended"] is True
        assert data["summary"]["output_difference"] == "100000"
        assert data["summary"]["time_difference"] == -50

    @pytest.mark.asyncio
    async def test_quote_partial_failure(self, client, aggregator):
        aggregator.providers[0].error = ProviderAPIError("Squid Router", 500, "boom")

        response = await client.post("/api/v1/routes/quote", json=quote_body())

        data = response.json()
        assert data["success"] is True
        assert len(data["routes"]) == 2
        assert data["recommended"]["provider"] == "lifi"

    @pytest.mark.asyncio
    async def test_quote_no_routes(self, client, aggregator):
        for provider in aggregator.providers:
            provider.error = ProviderAPIError(provider.name, 503, "down")

        response = await client.post("/api/v1/routes/quote", json=quote_body())

        data = response.json()
        assert data["success"] is False
        assert set(data["errors"]) == {"squid", "lifi", "across"}
        assert data["recommended"] is None

    @pytest.mark.asyncio
    async def test_unknown_token_needs_decimals(self, client, aggregator):
        body = quote_body(from_token="0x9999999999999999999999999999999999999999")

        response = await client.post("/api/v1/routes/quote", json=body)

        data = response.json()
        assert data["success"] is False
        assert "from_decimals" in data["error"]

    @pytest.mark.asyncio
    async def test_amount_must_be_positive(self, client, aggregator):
        response = await client.post("/api/v1/routes/quote", json=quote_body(amount="0"))

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_providers(self, client, aggregator):
        response = await client.get("/api/v1/routes/providers")

        assert response.status_code == 200
        ids = [p["id"] for p in response.json()["providers"]]
        assert ids == ["squid", "lifi", "across"]
