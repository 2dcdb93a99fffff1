"""Running-service records and the interface every executor implements."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field

from ..config import ServiceConfig
from ..health import HealthStatus


@dataclass
class NetworkInfo:
    """Network details of a running service."""

    ip: str
    hostname: str
    port: int | None = None
    ports: list[int] = field(default_factory=list)


@dataclass
class RunningService:
    """A started instance of a service."""

    name: str
    config: ServiceConfig
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    pid: int | None = None
    container_id: str | None = None
    endpoints: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, str] = field(default_factory=dict)
    network_info: NetworkInfo | None = None


class ServiceExecutor(ABC):
    """Starts, stops and inspects services in one kind of environment."""

    @abstractmethod
    def start(self, config: ServiceConfig) -> RunningService:
        """Start a service from its configuration."""

    @abstractmethod
    def stop(self, service: RunningService) -> None:
        """Stop a running service."""

    @abstractmethod
    def health_check(self, service: RunningService) -> HealthStatus:
        """Report the health of a running service."""

    @abstractmethod
    def get_logs(self, service: RunningService) -> Iterator[str]:
        """Yield log lines of a running service."""

    @abstractmethod
    def can_handle(self, config: ServiceConfig) -> bool:
        """Whether this executor can run the given configuration."""