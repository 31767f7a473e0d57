"""Supported EVM networks."""

from dataclasses import dataclass
from typing import Optional

from tokendesk.config import get_settings


@dataclass(frozen=True)
class NetworkConfig:
    """Configuration for a blockchain network."""

    name: str
    chain_id: int
    rpc_url: str


# Chain IDs; RPC URLs come from settings
CHAIN_IDS = {
    "ethereum": 1,
    "sepolia": 11155111,
    "matic": 137,
    "localhost": 1337,
}


def get_supported_networks() -> list[str]:
    return list(CHAIN_IDS)


def get_network_config(name: str) -> Optional[NetworkConfig]:
    """Look up a network by case-insensitive name."""
    key = name.lower()
    if key not in CHAIN_IDS:
        return None
    return NetworkConfig(name=key, chain_id=CHAIN_IDS[key], rpc_url=get_settings().get_rpc_url(key))


def is_supported_network(name: str) -> bool:
    return isinstance(name, str) and name.lower() in CHAIN_IDS
