"""Health checking of services."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any

from .config import HealthCheck
from .errors import CommandError, ConfigError
from .runner import run_command

logger = logging.getLogger(__name__)


class HealthState(Enum):
    """Kinds of health status."""

    HEALTHY = "Healthy"
    UNHEALTHY = "Unhealthy"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class HealthStatus:
    """Health of a service; unhealthy results carry a reason."""

    state: HealthState = HealthState.UNKNOWN
    message: str | None = None

    @classmethod
    def healthy(cls) -> HealthStatus:
        return cls(HealthState.HEALTHY)

    @classmethod
    def unhealthy(cls, message: str) -> HealthStatus:
        return cls(HealthState.UNHEALTHY, message)

    @classmethod
    def unknown(cls) -> HealthStatus:
        return cls(HealthState.UNKNOWN)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"state": self.state.value}
        if self.state is HealthState.UNHEALTHY:
            result["message"] = self.message or ""
        return result

    @classmethod
    def from_dict(cls, data: Any) -> HealthStatus:
        if isinstance(data, str):
            return cls(_health_state(data))
        if not isinstance(data, Mapping):
            raise ConfigError("invalid health status")
        if "state" in data:
            state = _health_state(data["state"])
            if state is HealthState.UNHEALTHY:
                return cls.unhealthy(str(data.get("message", "")))
            return cls(state)
        if len(data) == 1:
            (name, payload), = data.items()
            state = _health_state(name)
            if state is HealthState.UNHEALTHY:
                return cls.unhealthy(str(payload))
            return cls(state)
        raise ConfigError("invalid health status")


def _health_state(name: Any) -> HealthState:
    try:
        return HealthState(name)
    except ValueError:
        raise ConfigError(f"unknown health state: {name!r}") from None


class HealthChecker:
    """Runs health check commands on the local machine."""

    def check_health(self, config: HealthCheck) -> HealthStatus:
        """Run one health check; failures are reported as an unhealthy status."""
        start = time.monotonic()
        logger.debug("Running health check: %s %s", config.command, " ".join(config.args))
        try:
            result = run_command(config.command, config.args)
        except CommandError as exc:
            logger.warning("Health check execution failed: %s", exc)
            return HealthStatus.unhealthy(f"Health check execution failed: {exc}")

        if result.success():
            logger.debug("Health check passed in %.3fs", time.monotonic() - start)
            return HealthStatus.healthy()

        error = f"Health check failed with exit code: {result.code}"
        logger.warning("Health check failed: %s", error)
        return HealthStatus.unhealthy(error)


class HealthMonitor:
    """Tracks a service's health across repeated checks.

    A failure only changes the reported status once ``retries`` consecutive
    checks have failed.
    """

    def __init__(self, config: HealthCheck) -> None:
        self.config = config
        self.consecutive_failures = 0
        self.last_status = HealthStatus.unknown()
        self._checker = HealthChecker()

    def check(self) -> HealthStatus:
        status = self._checker.check_health(self.config)
        if status.state is HealthState.HEALTHY:
            self.consecutive_failures = 0
            self.last_status = status
        elif status.state is HealthState.UNHEALTHY:
            self.consecutive_failures += 1
            if self.consecutive_failures >= self.config.retries:
                self.last_status = status
        else:
            self.last_status = status
        return self.last_status

    def current_status(self) -> HealthStatus:
        return self.last_status

    def interval(self) -> timedelta:
        return timedelta(seconds=self.config.interval)