"""Errors raised while bootstrapping the service."""

from typing import Optional, Sequence


class BootstrapError(Exception):
    """Base class for bootstrap failures."""


class ConfigurationError(BootstrapError):
    """Required configuration is missing or unsafe for the run mode."""


class CommandError(BootstrapError):
    """An external tool exited with a non-zero status."""

    def __init__(self, argv: Sequence[str], returncode: Optional[int]):
        self.argv = list(argv)
        self.returncode = returncode
        super().__init__(f"{' '.join(self.argv)} exited with code {returncode}")


class ProvisioningError(BootstrapError):
    """The schema could not be applied within the retry budget."""

    def __init__(self, message: str, attempts: int, last_error: Optional[BaseException] = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(message)


class ForkStartupError(BootstrapError):
    """The local chain fork could not be started."""


class ReadinessTimeoutError(BootstrapError):
    """A dependency did not become ready within its time budget."""


class SeedError(BootstrapError):
    """The seed job failed."""
