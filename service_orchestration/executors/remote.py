"""Executor for services on remote hosts."""

from __future__ import annotations

import logging
from collections.abc import Iterator

from ..config import RemoteLanTarget, ServiceConfig, WireguardTarget
from ..errors import ConfigError
from ..health import HealthChecker, HealthStatus
from .base import RunningService, ServiceExecutor

logger = logging.getLogger(__name__)


class RemoteExecutor(ServiceExecutor):
    """Handles services on LAN hosts and WireGuard peers."""

    def __init__(self) -> None:
        self._health_checker = HealthChecker()

    def start(self, config: ServiceConfig) -> RunningService:
        target = config.target
        if isinstance(target, RemoteLanTarget):
            logger.info(
                "Starting remote LAN service: %s on %s@%s",
                config.name,
                target.user,
                target.host,
            )
            metadata = {
                "executor_type": "remote_lan",
                "host": target.host,
                "user": target.user,
            }
        elif isinstance(target, WireguardTarget):
            logger.info(
                "Starting WireGuard service: %s on %s@%s",
                config.name,
                target.user,
                target.host,
            )
            metadata = {
                "executor_type": "wireguard",
                "host": target.host,
                "user": target.user,
                "package": target.package,
            }
        else:
            raise ConfigError(
                "RemoteExecutor can only handle RemoteLan and Wireguard targets"
            )
        return RunningService(name=config.name, config=config, metadata=metadata)

    def stop(self, service: RunningService) -> None:
        logger.info("Stopping remote service: %s", service.name)
        logger.warning("Remote service stopping is not supported for: %s", service.name)

    def health_check(self, service: RunningService) -> HealthStatus:
        return HealthStatus.unknown()

    def get_logs(self, service: RunningService) -> Iterator[str]:
        return iter(())

    def can_handle(self, config: ServiceConfig) -> bool:
        return isinstance(config.target, (RemoteLanTarget, WireguardTarget))