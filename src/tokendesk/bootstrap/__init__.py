"""Service bootstrap and process supervisor.

Reconciles the schema document, provisions the database, optionally starts a
local chain fork, then runs and supervises the API server.
"""

from tokendesk.bootstrap.errors import (
    BootstrapError,
    CommandError,
    ConfigurationError,
    ForkStartupError,
    ProvisioningError,
    ReadinessTimeoutError,
    SeedError,
)
from tokendesk.bootstrap.options import BootstrapOptions, ChainEnvironment, Provider, RunMode
from tokendesk.bootstrap.supervisor import State, Supervisor

__all__ = [
    "BootstrapError",
    "BootstrapOptions",
    "ChainEnvironment",
    "CommandError",
    "ConfigurationError",
    "ForkStartupError",
    "Provider",
    "ProvisioningError",
    "ReadinessTimeoutError",
    "RunMode",
    "SeedError",
    "State",
    "Supervisor",
]
