"""Ephemeral local chain that forks state from a real network.

Runs ``anvil`` (Foundry) as a child process with a deterministic wallet, so
the first pre-funded account is always the same. The fork is optional
infrastructure: when the tool is missing or the port is taken, ``start``
returns None and the service comes up without it.
"""

import asyncio
import json
import logging
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from eth_account import Account

from tokendesk.bootstrap.errors import ForkStartupError

logger = logging.getLogger(__name__)

FORK_CHAIN_ID = 1337
DEFAULT_MNEMONIC = "test test test test test test test test test test test junk"
FIRST_ACCOUNT_PATH = "m/44'/60'/0'/0/0"

# A fork that dies within this window never came up (bad flags, port in use)
STARTUP_GRACE_SECONDS = 0.5
STOP_TIMEOUT_SECONDS = 5.0


def normalize_private_key(key: Any) -> Optional[str]:
    """Render a private key as 0x-prefixed hex.

    Accepts hex strings with or without the prefix, bytes-like values, lists
    of ints and JSON-serialized buffers (``{"type": "Buffer", "data": [...]}``).
    Returns None for anything else.
    """
    if isinstance(key, str):
        key = key.strip()
        if not key:
            return None
        return key if key.lower().startswith("0x") else "0x" + key
    if isinstance(key, (bytes, bytearray, memoryview)):
        return "0x" + bytes(key).hex()
    if isinstance(key, dict) and key.get("type") == "Buffer" and isinstance(key.get("data"), list):
        return "0x" + bytes(key["data"]).hex()
    if isinstance(key, list) and key and all(isinstance(b, int) for b in key):
        return "0x" + bytes(key).hex()
    return None


def derive_first_key(mnemonic: str = DEFAULT_MNEMONIC) -> str:
    """Private key of the first account of a deterministic wallet."""
    Account.enable_unaudited_hdwallet_features()
    account = Account.from_mnemonic(mnemonic, account_path=FIRST_ACCOUNT_PATH)
    return normalize_private_key(bytes(account.key))


def read_config_out_key(path: Path) -> Optional[str]:
    """First private key listed in the node's ``--config-out`` file, if present."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None

    keys = data.get("private_keys") or []
    if keys:
        return normalize_private_key(keys[0])

    accounts = data.get("accounts") or {}
    first = next(iter(accounts.values()), None) if isinstance(accounts, dict) else None
    if isinstance(first, dict):
        return normalize_private_key(first.get("secretKey") or first.get("privateKey"))
    return None


@dataclass
class ForkHandle:
    """A running fork. ``close`` stops it and removes its scratch files."""

    rpc_url: str
    process: Any
    signing_key: Optional[str] = None
    config_out: Optional[Path] = None
    _closed: bool = field(default=False, repr=False)

    @property
    def is_running(self) -> bool:
        return self.process is not None and self.process.returncode is None

    async def close(self) -> None:
        """Stop the fork. Never raises."""
        if self._closed:
            return
        self._closed = True

        try:
            if self.is_running:
                self.process.terminate()
                try:
                    await asyncio.wait_for(self.process.wait(), timeout=STOP_TIMEOUT_SECONDS)
                except asyncio.TimeoutError:
                    logger.warning("Fork did not stop in time; killing it")
                    self.process.kill()
                    await self.process.wait()
            logger.info("Fork stopped")
        except ProcessLookupError:
            pass
        except Exception as e:
            logger.error(f"Failed to stop fork: {e}")

        if self.config_out is not None:
            try:
                self.config_out.unlink(missing_ok=True)
            except OSError as e:
                logger.error(f"Failed to remove {self.config_out}: {e}")


class ForkManager:
    """Starts the local forked chain."""

    def __init__(
        self,
        command: str = "anvil",
        port: int = 8545,
        upstream_rpc_url: Optional[str] = "https://ethereum.publicnode.com",
        mnemonic: str = DEFAULT_MNEMONIC,
        chain_id: int = FORK_CHAIN_ID,
    ):
        self.command = command
        self.port = port
        self.upstream_rpc_url = upstream_rpc_url
        self.mnemonic = mnemonic
        self.chain_id = chain_id

    @property
    def rpc_url(self) -> str:
        return f"http://127.0.0.1:{self.port}"

    async def start(self) -> Optional[ForkHandle]:
        """Start the fork, or log the failure and return None."""
        try:
            return await self._start()
        except Exception as e:
            logger.error(f"Failed to create fork: {e}")
            return None

    def build_argv(self, executable: str, config_out: Path) -> list[str]:
        argv = [
            executable,
            "--port", str(self.port),
            "--chain-id", str(self.chain_id),
            "--mnemonic", self.mnemonic,
            "--config-out", str(config_out),
            "--silent",
        ]
        if self.upstream_rpc_url:
            argv += ["--fork-url", self.upstream_rpc_url]
        return argv

    async def _start(self) -> ForkHandle:
        executable = shutil.which(self.command)
        if executable is None:
            raise ForkStartupError(f"{self.command} is not installed; install Foundry to enable forked dev")

        fd, name = tempfile.mkstemp(prefix="tokendesk-fork-", suffix=".json")
        config_out = Path(name)
        with open(fd, "w", encoding="utf-8"):
            pass

        try:
            process = await asyncio.create_subprocess_exec(
                *self.build_argv(executable, config_out),
                stdout=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            config_out.unlink(missing_ok=True)
            raise ForkStartupError(f"Could not launch {self.command}: {e}") from e

        try:
            returncode = await asyncio.wait_for(process.wait(), timeout=STARTUP_GRACE_SECONDS)
        except asyncio.TimeoutError:
            returncode = None
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
                await process.wait()
            config_out.unlink(missing_ok=True)
            raise
        if returncode is not None:
            config_out.unlink(missing_ok=True)
            raise ForkStartupError(f"{self.command} exited with code {returncode} (port {self.port} in use?)")

        handle = ForkHandle(
            rpc_url=self.rpc_url,
            process=process,
            signing_key=self._signing_key(config_out),
            config_out=config_out,
        )
        logger.info(f"Fork of {self.upstream_rpc_url or 'empty chain'} listening on {handle.rpc_url}")
        return handle

    def _signing_key(self, config_out: Path) -> Optional[str]:
        """Best-effort key of the first pre-funded account."""
        try:
            return read_config_out_key(config_out) or derive_first_key(self.mnemonic)
        except Exception as e:
            logger.warning(f"Could not determine fork signing key: {e}")
            return None
