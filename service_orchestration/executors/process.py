"""Executor for services run as local processes."""

from __future__ import annotations

import logging
from collections.abc import Iterator

from ..config import ProcessTarget, ServiceConfig
from ..errors import CommandError, ConfigError
from ..health import HealthChecker, HealthStatus
from ..runner import run_command
from .base import RunningService, ServiceExecutor

logger = logging.getLogger(__name__)


class ProcessExecutor(ServiceExecutor):
    """Runs services as processes on the local machine."""

    def __init__(self) -> None:
        self._health_checker = HealthChecker()

    def start(self, config: ServiceConfig) -> RunningService:
        target = config.target
        if not isinstance(target, ProcessTarget):
            raise ConfigError("ProcessExecutor can only handle Process targets")

        logger.info("Starting process service: %s", config.name)
        logger.debug("Command: %s %s", target.binary, " ".join(target.args))

        run_command(
            target.binary,
            target.args,
            env=target.env(),
            cwd=target.working_dir,
        )
        # The command is run to completion, so no live process id is known.
        pid = 0
        logger.info("Started process service '%s' with PID: %s", config.name, pid)

        return RunningService(
            name=config.name,
            config=config,
            pid=pid,
            metadata={"executor_type": "process"},
        )

    def stop(self, service: RunningService) -> None:
        logger.info("Stopping service: %s", service.name)
        if service.pid is None:
            logger.warning("No PID found for service: %s", service.name)
            return

        pid = str(service.pid)
        try:
            result = run_command("kill", [pid])
        except CommandError as exc:
            logger.warning("Failed to stop service %s: %s", service.name, exc)
            raise

        if result.success():
            logger.info("Successfully stopped service: %s", service.name)
        else:
            logger.warning(
                "Kill command failed for service: %s, trying SIGKILL", service.name
            )
            run_command("kill", ["-9", pid])

    def health_check(self, service: RunningService) -> HealthStatus:
        if service.pid is not None:
            try:
                result = run_command("kill", ["-0", str(service.pid)])
            except CommandError:
                return HealthStatus.unhealthy("Failed to check process")
            if not result.success():
                return HealthStatus.unhealthy("Process not running")

        if service.config.health_check is not None:
            return self._health_checker.check_health(service.config.health_check)
        return HealthStatus.healthy()

    def get_logs(self, service: RunningService) -> Iterator[str]:
        return iter(())

    def can_handle(self, config: ServiceConfig) -> bool:
        return isinstance(config.target, ProcessTarget)