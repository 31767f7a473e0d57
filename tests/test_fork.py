"""Tests for the local chain fork."""

import asyncio
import json
from pathlib import Path

import pytest

from tokendesk.bootstrap import fork
from tokendesk.bootstrap.fork import (
    DEFAULT_MNEMONIC,
    ForkHandle,
    ForkManager,
    derive_first_key,
    normalize_private_key,
    read_config_out_key,
)

FIRST_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"


class FakeProcess:
    """Minimal asyncio.subprocess.Process stand-in."""

    def __init__(self):
        self.returncode = None
        self.terminated = 0

    def terminate(self):
        self.terminated += 1
        self.returncode = -15

    def kill(self):
        self.returncode = -9

    async def wait(self):
        return self.returncode


class HangingProcess:
    """A process that only exits when killed."""

    def __init__(self):
        self.returncode = None
        self.killed = 0
        self.waiting = asyncio.Event()
        self._exited = asyncio.Event()

    def kill(self):
        self.killed += 1
        self.returncode = -9
        self._exited.set()

    async def wait(self):
        self.waiting.set()
        await self._exited.wait()
        return self.returncode


class TestNormalizePrivateKey:
    """Tests for private key encodings."""

    def test_hex_string_with_prefix(self):
        assert normalize_private_key(FIRST_KEY) == FIRST_KEY

    def test_hex_string_without_prefix(self):
        assert normalize_private_key(FIRST_KEY[2:]) == FIRST_KEY

    def test_bytes(self):
        assert normalize_private_key(bytes.fromhex(FIRST_KEY[2:])) == FIRST_KEY

    def test_int_list(self):
        assert normalize_private_key(list(bytes.fromhex(FIRST_KEY[2:]))) == FIRST_KEY

    def test_serialized_buffer(self):
        key = {"type": "Buffer", "data": list(bytes.fromhex(FIRST_KEY[2:]))}
        assert normalize_private_key(key) == FIRST_KEY

    def test_unrecognized(self):
        assert normalize_private_key(None) is None
        assert normalize_private_key("") is None
        assert normalize_private_key({"data": "nope"}) is None
        assert normalize_private_key(12345) is None


class TestSigningKey:
    """Tests for locating the fork's first funded account key."""

    def test_derive_from_default_mnemonic(self):
        """Test the well-known first key of the default development wallet."""
        assert derive_first_key(DEFAULT_MNEMONIC) == FIRST_KEY

    def test_read_config_out_private_keys(self, tmp_path):
        path = tmp_path / "fork.json"
        path.write_text(json.dumps({"private_keys": [FIRST_KEY, "0x01"]}))

        assert read_config_out_key(path) == FIRST_KEY

    def test_read_config_out_missing_or_empty(self, tmp_path):
        empty = tmp_path / "empty.json"
        empty.write_text("")

        assert read_config_out_key(tmp_path / "missing.json") is None
        assert read_config_out_key(empty) is None


class TestForkManager:
    """Tests for ForkManager."""

    @pytest.mark.asyncio
    async def test_missing_tool_returns_none(self):
        """Test that a missing executable is not an error."""
        manager = ForkManager(command="tokendesk-no-such-node-binary")

        assert await manager.start() is None

    def test_build_argv(self, tmp_path):
        manager = ForkManager(port=9545, upstream_rpc_url="https://rpc.example")
        argv = manager.build_argv("/usr/bin/anvil", tmp_path / "out.json")

        assert argv[0] == "/usr/bin/anvil"
        assert argv[argv.index("--port") + 1] == "9545"
        assert argv[argv.index("--chain-id") + 1] == "1337"
        assert argv[argv.index("--fork-url") + 1] == "https://rpc.example"
        assert argv[argv.index("--mnemonic") + 1] == DEFAULT_MNEMONIC
        assert manager.rpc_url == "http://127.0.0.1:9545"

    def test_build_argv_without_upstream(self, tmp_path):
        argv = ForkManager(upstream_rpc_url=None).build_argv("anvil", tmp_path / "out.json")

        assert "--fork-url" not in argv

    @pytest.mark.asyncio
    async def test_cancel_during_grace_stops_process(self, monkeypatch):
        """Test that cancelling start() kills the launched fork and removes its config file."""
        process = HangingProcess()
        launched = {}

        async def fake_exec(*argv, **kwargs):
            launched["config_out"] = Path(argv[argv.index("--config-out") + 1])
            return process

        monkeypatch.setattr(fork.shutil, "which", lambda command: "/usr/bin/anvil")
        monkeypatch.setattr(fork.asyncio, "create_subprocess_exec", fake_exec)
        monkeypatch.setattr(fork, "STARTUP_GRACE_SECONDS", 30)

        task = asyncio.create_task(ForkManager().start())
        await asyncio.wait_for(process.waiting.wait(), 5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert process.killed == 1
        assert not launched["config_out"].exists()


class TestForkHandle:
    """Tests for ForkHandle.close."""

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, tmp_path):
        """Test that closing twice stops the process once and removes scratch files."""
        config_out = tmp_path / "fork.json"
        config_out.write_text("{}")
        process = FakeProcess()
        handle = ForkHandle(rpc_url="http://127.0.0.1:8545", process=process, config_out=config_out)

        await handle.close()
        await handle.close()

        assert process.terminated == 1
        assert not handle.is_running
        assert not config_out.exists()
