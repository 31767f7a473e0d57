"""Request validation helpers shared by the routers."""

import re

from fastapi import HTTPException

from tokendesk.networks import get_supported_networks, is_supported_network

ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_valid_address(value: object) -> bool:
    return isinstance(value, str) and bool(ADDRESS_RE.match(value))


def assert_valid_address(value: object, field: str = "address") -> str:
    """Raise 400 unless ``value`` is a 0x-prefixed 20-byte hex address."""
    if not is_valid_address(value):
        raise HTTPException(status_code=400, detail=f"Invalid {field}")
    return value


def assert_supported_network(value: object) -> str:
    """Raise 400 unless ``value`` names a supported network; returns it lower-cased."""
    if not is_supported_network(value):
        supported = ", ".join(get_supported_networks())
        raise HTTPException(status_code=400, detail=f"Unsupported network. Supported: {supported}")
    return value.lower()
