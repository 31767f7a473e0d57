"""Tests for readiness polling."""

import asyncio
import time

import httpx
import pytest

from tokendesk.bootstrap.errors import ReadinessTimeoutError
from tokendesk.bootstrap.readiness import http_ok, rpc_chain_id, wait_until_ready


def mock_httpx(monkeypatch, handler):
    """Route every httpx.AsyncClient through ``handler``."""
    real_client = httpx.AsyncClient
    transport = httpx.MockTransport(handler)

    def factory(**kwargs):
        return real_client(transport=transport, **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", factory)


class TestWaitUntilReady:
    """Tests for wait_until_ready."""

    @pytest.mark.asyncio
    async def test_returns_on_kth_attempt_without_extra_sleep(self):
        """Test that the call returns right after the first success."""
        calls = []

        async def check():
            calls.append(time.monotonic())
            return len(calls) >= 3

        await wait_until_ready(check, timeout_seconds=5, interval=0.2, name="thing")
        returned_at = time.monotonic()

        assert len(calls) == 3
        assert returned_at - calls[-1] < 0.1

    @pytest.mark.asyncio
    async def test_exceptions_count_as_not_ready(self):
        """Test that a raising check is retried."""
        calls = []

        async def check():
            calls.append(1)
            if len(calls) == 1:
                raise httpx.ConnectError("refused")
            return True

        await wait_until_ready(check, timeout_seconds=5, interval=0.01)

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_times_out_within_budget(self):
        """Test that an always-failing check raises after roughly the timeout."""

        async def check():
            return False

        started = time.monotonic()
        with pytest.raises(ReadinessTimeoutError) as exc_info:
            await wait_until_ready(check, timeout_seconds=0.3, interval=0.05, name="API")
        elapsed = time.monotonic() - started

        assert 0.3 <= elapsed < 1.0
        assert "API" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_hanging_check_is_cut_off_at_the_deadline(self):
        """Test that a check slower than the whole budget does not extend it."""

        async def check():
            await asyncio.sleep(3)
            return True

        started = time.monotonic()
        with pytest.raises(ReadinessTimeoutError) as exc_info:
            await wait_until_ready(check, timeout_seconds=0.5, interval=0.1, name="fork RPC")
        elapsed = time.monotonic() - started

        assert elapsed < 0.9
        assert "did not answer in time" in str(exc_info.value)


class TestChecks:
    """Tests for the HTTP and JSON-RPC checks."""

    @pytest.mark.asyncio
    async def test_http_ok(self, monkeypatch):
        """Test that http_ok follows the status code."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/healthz":
                return httpx.Response(200, json={"ok": True})
            return httpx.Response(503)

        mock_httpx(monkeypatch, handler)

        assert await http_ok("http://127.0.0.1:4000/healthz")() is True
        assert await http_ok("http://127.0.0.1:4000/down")() is False

    @pytest.mark.asyncio
    async def test_rpc_chain_id_accepts_hex_quantity(self, monkeypatch):
        """Test that eth_chainId answering 0x539 counts as ready."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "0x539"})

        mock_httpx(monkeypatch, handler)

        assert await rpc_chain_id("http://127.0.0.1:8545")() is True

    @pytest.mark.asyncio
    async def test_rpc_chain_id_rejects_errors(self, monkeypatch):
        """Test that a JSON-RPC error is not ready."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "nope"}}
            )

        mock_httpx(monkeypatch, handler)

        assert await rpc_chain_id("http://127.0.0.1:8545")() is False
