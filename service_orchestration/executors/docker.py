"""Executor for services run as Docker containers."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass

from ..config import DockerTarget, ServiceConfig
from ..errors import ConfigError
from ..health import HealthStatus
from ..runner import CommandResult, run_command
from .base import NetworkInfo, RunningService, ServiceExecutor

logger = logging.getLogger(__name__)

_CONTAINER_PREFIX = "orchestrator-"


@dataclass(frozen=True)
class ContainerState:
    """State of an existing container as reported by ``docker ps``."""

    id: str
    state: str
    status: str
    is_running: bool


def parse_container_state(output: str) -> ContainerState | None:
    """Parse ``ID|State|Status`` output of ``docker ps``; None if nothing usable."""
    text = output.strip()
    if not text:
        return None
    parts = text.split("|")
    if len(parts) < 3:
        return None
    return ContainerState(
        id=parts[0],
        state=parts[1],
        status=parts[2],
        is_running=parts[1] == "running",
    )


def parse_port_output(output: str) -> list[int]:
    """Container ports from ``docker port`` lines such as ``80/tcp -> 0.0.0.0:8080``."""
    ports: list[int] = []
    for line in output.splitlines():
        container_port, sep, _ = line.partition(" -> ")
        if not sep:
            continue
        port_text, slash, _ = container_port.partition("/")
        if not slash:
            continue
        try:
            port = int(port_text)
        except ValueError:
            continue
        if 0 <= port <= 65535:
            ports.append(port)
    return ports


def _docker(*args: str) -> CommandResult:
    return run_command("docker", args)


def _message(result: CommandResult) -> str:
    return (result.output or result.stderr).strip()


class DockerExecutor(ServiceExecutor):
    """Runs services as Docker containers named ``orchestrator-<service>``."""

    def start(self, config: ServiceConfig) -> RunningService:
        target = config.target
        if not isinstance(target, DockerTarget):
            raise ConfigError("DockerExecutor can only handle Docker targets")

        logger.info("Starting Docker service: %s", config.name)
        container_name = f"{_CONTAINER_PREFIX}{config.name}"

        existing = self._detect_existing_container(container_name)
        if existing is not None:
            if existing.is_running:
                logger.info(
                    "Container '%s' is already running (status: %s). Adopting it.",
                    container_name,
                    existing.status,
                )
                return self._adopt_container(existing, config)
            logger.info(
                "Container '%s' exists but is %s (status: %s). Removing it.",
                container_name,
                existing.state,
                existing.status,
            )
            removed = _docker("rm", "-f", existing.id)
            if not removed.success():
                logger.warning("Failed to remove container: %s", _message(removed))

        args = ["run", "-d", "--name", container_name]
        for key, value in target.env().items():
            args += ["-e", f"{key}={value}"]
        for port in target.ports:
            args += ["-p", f"{port}:{port}"]
        for volume in target.volumes:
            args += ["-v", volume]
        args.append(target.image)

        result = _docker(*args)
        if not result.success():
            raise ConfigError(f"Docker run failed: {_message(result)}")

        container_id = result.output.strip()
        logger.info(
            "Started Docker service '%s' with container ID: %s", config.name, container_id
        )

        network_info = self._container_network_info(container_id)
        logger.info(
            "Container '%s' network info: IP=%s, ports=%s",
            config.name,
            network_info.ip,
            network_info.ports,
        )

        return RunningService(
            name=config.name,
            config=config,
            container_id=container_id,
            network_info=network_info,
            metadata={"executor_type": "docker"},
        )

    def stop(self, service: RunningService) -> None:
        logger.info("Stopping Docker service: %s", service.name)
        container_id = service.container_id
        if container_id is None:
            return

        inspected = _docker("inspect", "--format", "{{.State.Status}}", container_id)
        if not inspected.success():
            logger.info("Container %s not found, nothing to stop", container_id[:12])
            return

        status = inspected.output.strip()
        if status in ("exited", "dead"):
            logger.info(
                "Container %s is already stopped (status: %s)", container_id[:12], status
            )
            _docker("rm", "-f", container_id)
            return

        stopped = _docker("stop", container_id)
        if stopped.success():
            _docker("rm", container_id)
            logger.info("Successfully stopped and removed Docker service: %s", service.name)
        else:
            logger.warning("Failed to stop Docker service: %s", service.name)

    def health_check(self, service: RunningService) -> HealthStatus:
        container_id = service.container_id
        if container_id is not None:
            inspected = _docker("inspect", "--format", "{{.State.Running}}", container_id)
            if not inspected.success():
                return HealthStatus.unhealthy("Container not found")
            if inspected.output.strip() != "true":
                return HealthStatus.unhealthy("Container not running")

        check = service.config.health_check
        if check is None:
            return HealthStatus.healthy()
        if container_id is None:
            return HealthStatus.unhealthy("No container ID")

        result = _docker("exec", container_id, check.command, *check.args)
        if result.success():
            return HealthStatus.healthy()
        return HealthStatus.unhealthy("Health check failed")

    def get_logs(self, service: RunningService) -> Iterator[str]:
        return iter(())

    def can_handle(self, config: ServiceConfig) -> bool:
        return isinstance(config.target, DockerTarget)

    def _detect_existing_container(self, container_name: str) -> ContainerState | None:
        result = _docker(
            "ps",
            "-a",
            "--filter",
            f"name={container_name}",
            "--format",
            "{{.ID}}|{{.State}}|{{.Status}}",
            "--no-trunc",
        )
        if not result.success():
            return None
        return parse_container_state(result.output)

    def _adopt_container(
        self, existing: ContainerState, config: ServiceConfig
    ) -> RunningService:
        logger.info(
            "Adopting existing container '%s' for service '%s'",
            existing.id[:12],
            config.name,
        )
        network_info = self._container_network_info(existing.id)
        return RunningService(
            name=config.name,
            config=config,
            container_id=existing.id,
            network_info=network_info,
            metadata={"executor_type": "docker", "adopted": "true"},
        )

    def _container_network_info(self, container_id: str) -> NetworkInfo:
        inspected = _docker(
            "inspect", "--format", "{{.NetworkSettings.IPAddress}}", container_id
        )
        if not inspected.success():
            raise ConfigError(f"Failed to get container IP: {_message(inspected)}")
        ip = inspected.output.strip()

        port_result = _docker("port", container_id)
        ports = parse_port_output(port_result.output) if port_result.success() else []

        return NetworkInfo(
            ip=ip,
            hostname=container_id[:12],
            port=ports[0] if ports else None,
            ports=ports,
        )