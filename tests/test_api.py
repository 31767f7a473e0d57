"""Tests for the FastAPI endpoints."""

import pytest
from conftest import is_listed, record_transfer
from httpx import ASGITransport, AsyncClient

from tokendesk.api.app import create_app
from tokendesk.config import get_settings
from tokendesk.ledger.database import close_db, get_db, get_engine
from tokendesk.ledger.models import Base

API_KEY = "test-api-key"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
ALICE = "0x1111111111111111111111111111111111111111"
BOB = "0x2222222222222222222222222222222222222222"


@pytest.fixture
async def test_app():
    """Create test application with fresh database."""
    # Create tables in memory database
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    app = create_app()

    yield app

    # Cleanup
    await close_db()


@pytest.fixture
async def client(test_app):
    """Create async test client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def usdc_payload(network: str = "localhost", address: str = USDC) -> dict:
    return {
        "network": network,
        "token": {"tokenAddress": address, "symbol": "USDC", "name": "USD Coin", "decimals": 6},
    }


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    @pytest.mark.asyncio
    async def test_healthz(self, client):
        """Test the liveness probe the bootstrap polls."""
        response = await client.get("/healthz")

        assert response.status_code == 200
        assert response.json() == {"ok": True}

    @pytest.mark.asyncio
    async def test_detailed_health(self, client):
        """Test detailed health check."""
        response = await client.get("/health/detailed")

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["config"]["api_key"] == "***"
        assert data["networks"]["localhost"] == 1337
        assert data["networks"]["matic"] == 137


class TestTokenEndpoints:
    """Tests for network and supported-token endpoints."""

    @pytest.mark.asyncio
    async def test_networks(self, client):
        response = await client.get("/networks")

        assert response.status_code == 200
        assert "localhost" in response.json()
        assert "ethereum" in response.json()

    @pytest.mark.asyncio
    async def test_unsupported_network(self, client):
        response = await client.get("/supported-tokens/dogechain")

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_add_and_list_token(self, client):
        """Test registering a token and reading it back."""
        response = await client.post(
            "/add-supported-token", json=usdc_payload(), headers={"x-api-key": API_KEY}
        )
        assert response.status_code == 200
        assert response.json() == {"created": 1, "skipped": 0}

        response = await client.get("/supported-tokens/LocalHost")
        assert response.status_code == 200
        tokens = response.json()
        assert len(tokens) == 1
        assert tokens[0]["symbol"] == "USDC"
        assert tokens[0]["tokenAddress"] == USDC.lower()
        assert tokens[0]["decimals"] == 6

    @pytest.mark.asyncio
    async def test_add_token_twice_is_skipped(self, client):
        """Test that re-registering the same address (any case) is skipped."""
        headers = {"x-api-key": API_KEY}
        await client.post("/add-supported-token", json=usdc_payload(), headers=headers)

        response = await client.post(
            "/add-supported-token", json=usdc_payload(address=USDC.lower()), headers=headers
        )

        assert response.json() == {"created": 0, "skipped": 1}

    @pytest.mark.asyncio
    async def test_add_token_invalid_address(self, client):
        response = await client.post(
            "/add-supported-token",
            json=usdc_payload(address="0x1234"),
            headers={"x-api-key": API_KEY},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_remove_token(self, client):
        headers = {"x-api-key": API_KEY}
        await client.post("/add-supported-token", json=usdc_payload(), headers=headers)

        response = await client.post(
            "/remove-supported-token", json={"network": "localhost", "token": USDC}, headers=headers
        )

        assert response.json() == {"removed": 1}
        assert (await client.get("/supported-tokens/localhost")).json() == []


class TestApiKey:
    """Tests for admin authentication."""

    @pytest.mark.asyncio
    async def test_missing_key(self, client):
        response = await client.post("/add-supported-token", json=usdc_payload())

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_key(self, client):
        response = await client.post(
            "/add-supported-token", json=usdc_payload(), headers={"x-api-key": "wrong"}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_server_without_key(self, client, monkeypatch):
        """Test that an unset API_KEY is reported as a server error."""
        monkeypatch.setattr(get_settings(), "api_key", "")

        response = await client.post(
            "/blacklist", json={"address": ALICE}, headers={"x-api-key": API_KEY}
        )

        assert response.status_code == 500


class TestBlacklistEndpoints:
    """Tests for blacklist endpoints."""

    @pytest.mark.asyncio
    async def test_blacklist_and_unblacklist(self, client):
        headers = {"x-api-key": API_KEY}

        response = await client.post(
            "/blacklist", json={"address": ALICE, "reason": "phishing"}, headers=headers
        )
        assert response.status_code == 200
        assert response.json() == {"message": "address blacklisted"}

        async with get_db() as session:
            assert await is_listed(session, ALICE)

        response = await client.post("/unblacklist", json={"address": ALICE}, headers=headers)
        assert response.json() == {"removed": 1}

    @pytest.mark.asyncio
    async def test_invalid_address(self, client):
        response = await client.post(
            "/blacklist", json={"address": "not-an-address"}, headers={"x-api-key": API_KEY}
        )

        assert response.status_code == 400


class TestTransactionEndpoints:
    """Tests for the transfer ledger endpoint."""

    async def _record(self, count: int = 2):
        async with get_db() as session:
            for i in range(count):
                await record_transfer(session, ALICE, BOB, USDC, 10**6 * (i + 1), "localhost", f"0x{i:064x}")

    @pytest.mark.asyncio
    async def test_filter_and_order(self, client):
        await self._record(2)

        response = await client.get("/transactions", params={"from": ALICE, "order": "asc"})

        assert response.status_code == 200
        rows = response.json()
        assert [row["amount"] for row in rows] == ["1000000", "2000000"]
        assert rows[0]["toAddress"] == BOB.lower()

    @pytest.mark.asyncio
    async def test_default_order_is_newest_first(self, client):
        await self._record(2)

        rows = (await client.get("/transactions")).json()

        assert [row["amount"] for row in rows] == ["2000000", "1000000"]

    @pytest.mark.asyncio
    async def test_no_match(self, client):
        await self._record(1)

        response = await client.get("/transactions", params={"to": ALICE})

        assert response.json() == []

    @pytest.mark.asyncio
    async def test_invalid_filter(self, client):
        response = await client.get("/transactions", params={"from": "0xnope"})

        assert response.status_code == 400


class TestWalletEndpoint:
    """Tests for the signer address endpoint."""

    @pytest.mark.asyncio
    async def test_wallet_address(self, client, monkeypatch):
        monkeypatch.setattr(
            get_settings(),
            "private_key",
            "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80",
        )

        response = await client.get("/wallet-address")

        assert response.status_code == 200
        assert response.json() == "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

    @pytest.mark.asyncio
    async def test_wallet_address_without_key(self, client, monkeypatch):
        monkeypatch.setattr(get_settings(), "private_key", None)

        response = await client.get("/wallet-address")

        assert response.status_code == 500
        assert "PRIVATE_KEY" in response.json()["detail"]
