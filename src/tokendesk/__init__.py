"""tokendesk - ERC-20 token admin service and its bootstrap supervisor."""

__version__ = "0.1.0"
