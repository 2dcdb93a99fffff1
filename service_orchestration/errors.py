"""Exception hierarchy for orchestration operations."""

from __future__ import annotations

from typing import ClassVar


class OrchestrationError(Exception):
    """Base class for every error raised by the orchestrator."""

    prefix: ClassVar[str] = "Other error"

    def __init__(self, detail: object) -> None:
        self.detail = str(detail)
        super().__init__(f"{self.prefix}: {self.detail}")


class ServiceNotFoundError(OrchestrationError):
    """A named service is not known to the orchestrator."""

    prefix = "Service not found"


class ServiceExistsError(OrchestrationError):
    """A service with the same name is already running."""

    prefix = "Service already exists"


class ConfigError(OrchestrationError):
    """A service configuration is invalid or cannot be handled."""

    prefix = "Configuration error"


class NetworkError(OrchestrationError):
    """A network operation failed."""

    prefix = "Network error"


class PackageError(OrchestrationError):
    """A package could not be validated or deployed."""

    prefix = "Package deployment error"


class HealthCheckError(OrchestrationError):
    """A health check could not be carried out."""

    prefix = "Health check error"


class CommandError(OrchestrationError):
    """An external command could not be executed."""

    prefix = "Command execution error"