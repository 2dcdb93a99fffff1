"""Central orchestrator managing the lifecycle of heterogeneous services."""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import platformdirs

from .config import (
    DockerTarget,
    ProcessTarget,
    ServiceConfig,
    ServiceState,
    ServiceStatus,
)
from .errors import ConfigError, OrchestrationError, ServiceExistsError, ServiceNotFoundError
from .executors.base import RunningService, ServiceExecutor
from .executors.docker import DockerExecutor
from .executors.process import ProcessExecutor
from .executors.remote import RemoteExecutor
from .health import HealthChecker, HealthMonitor, HealthState, HealthStatus
from .package import DeployedPackage, PackageDeployer, RemoteTarget

logger = logging.getLogger(__name__)

_REGISTRY_FILE = "registry.json"
_DEFAULT_VERSION = "1.0.0"


class _RegistryError(Exception):
    """The persisted registry could not be read or written."""


class _ServiceRegistry:
    """Service records persisted as JSON, so state survives between runs."""

    def __init__(self, path: Path, records: dict[str, dict[str, Any]] | None = None) -> None:
        self.path = path
        self._records: dict[str, dict[str, Any]] = records or {}
        self._lock = threading.Lock()

    @classmethod
    def load(cls, path: Path) -> _ServiceRegistry:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise _RegistryError(str(exc)) from exc
        services = data.get("services") if isinstance(data, dict) else None
        if not isinstance(services, dict):
            raise _RegistryError("registry file has no `services` mapping")
        records: dict[str, dict[str, Any]] = {}
        for name, record in services.items():
            if not isinstance(record, dict) or not isinstance(record.get("state"), str):
                raise _RegistryError(f"invalid record for service {name!r}")
            try:
                ServiceState(record["state"])
            except ValueError:
                raise _RegistryError(f"unknown state for service {name!r}") from None
            records[name] = record
        return cls(path, records)

    def register(self, name: str, version: str, execution: dict[str, Any]) -> None:
        with self._lock:
            self._records[name] = {
                "name": name,
                "version": version,
                "execution": execution,
                "location": "Local",
                "state": ServiceState.RUNNING.value,
            }
            self._save()

    def update_state(self, name: str, state: ServiceState) -> None:
        with self._lock:
            record = self._records.get(name)
            if record is None:
                raise _RegistryError(f"service not registered: {name}")
            record["state"] = state.value
            self._save()

    def state_of(self, name: str) -> ServiceState | None:
        with self._lock:
            record = self._records.get(name)
            return None if record is None else ServiceState(record["state"])

    def _save(self) -> None:
        payload = json.dumps({"services": self._records}, indent=2, sort_keys=True)
        try:
            self.path.write_text(payload, encoding="utf-8")
        except OSError as exc:
            raise _RegistryError(f"failed to write {self.path}: {exc}") from exc


def _execution_info(name: str, config: ServiceConfig, service: RunningService) -> dict[str, Any]:
    target = config.target
    if isinstance(target, ProcessTarget):
        return {
            "type": "ManagedProcess",
            "pid": service.pid,
            "command": target.binary,
            "args": list(target.args),
        }
    if isinstance(target, DockerTarget):
        return {
            "type": "DockerContainer",
            "container_id": service.container_id,
            "image": target.image,
            "name": f"orchestrator-{name}",
        }
    return {"type": "ManagedProcess", "pid": None, "command": name, "args": []}


def _default_state_dir() -> Path:
    return Path(platformdirs.user_data_dir("harness", appauthor=False))


class ServiceManager:
    """Starts, stops and monitors services across execution environments.

    Service states are persisted in ``registry.json`` inside the state
    directory, so a later manager still knows what an earlier one started.
    """

    def __init__(
        self,
        state_dir: str | os.PathLike[str] | None = None,
        executors: Mapping[str, ServiceExecutor] | None = None,
    ) -> None:
        logger.info("Initializing ServiceManager")
        directory = Path(state_dir) if state_dir is not None else _default_state_dir()
        directory.mkdir(parents=True, exist_ok=True)

        registry_path = directory / _REGISTRY_FILE
        if registry_path.exists():
            try:
                self._registry = _ServiceRegistry.load(registry_path)
                logger.info("Loaded existing registry state from %s", registry_path)
            except _RegistryError as exc:
                logger.warning(
                    "Failed to load registry state: %s. Starting with empty registry.", exc
                )
                self._registry = _ServiceRegistry(registry_path)
        else:
            logger.info("No existing registry found, creating new one at %s", registry_path)
            self._registry = _ServiceRegistry(registry_path)

        if executors is None:
            executors = {
                "process": ProcessExecutor(),
                "docker": DockerExecutor(),
                "remote": RemoteExecutor(),
            }
        self.executors: dict[str, ServiceExecutor] = dict(executors)
        self._active: dict[str, RunningService] = {}
        self._monitors: dict[str, HealthMonitor] = {}
        self._lock = threading.RLock()
        self._package_deployer = PackageDeployer()

    def start_service(self, name: str, config: ServiceConfig) -> RunningService:
        """Start a service; raises ServiceExistsError if it is already running."""
        logger.info("Starting service: %s", name)
        with self._lock:
            if name in self._active:
                raise ServiceExistsError(name)

        network_config = self._inject_network_config(config)
        executor = self.find_executor(network_config)
        running = executor.start(copy.deepcopy(network_config))

        with self._lock:
            if network_config.health_check is not None:
                self._monitors[name] = HealthMonitor(copy.deepcopy(network_config.health_check))
            self._active[name] = running

        try:
            self._registry.register(
                name, _DEFAULT_VERSION, _execution_info(name, config, running)
            )
        except _RegistryError as exc:
            logger.warning("Failed to register service with registry: %s", exc)

        logger.info("Successfully started service: %s", name)
        return running

    def stop_service(self, name: str) -> None:
        """Stop a running service; raises ServiceNotFoundError if it is not active."""
        logger.info("Stopping service: %s", name)
        with self._lock:
            service = self._active.pop(name, None)
        if service is None:
            raise ServiceNotFoundError(name)

        executor = self.find_executor(service.config)
        executor.stop(service)

        with self._lock:
            self._monitors.pop(name, None)

        try:
            self._registry.update_state(name, ServiceState.STOPPED)
        except _RegistryError as exc:
            logger.warning("Failed to update service state in registry: %s", exc)

        logger.info("Successfully stopped service: %s", name)

    def deploy_package(self, target: RemoteTarget, package_path: str) -> DeployedPackage:
        """Deploy a package archive to a remote target."""
        logger.info("Deploying package %s to %s", package_path, target.host)
        deployed = self._package_deployer.deploy(package_path, target)
        logger.info("Successfully deployed package: %s", deployed.manifest.name)
        return deployed

    def get_service_status(self, name: str) -> ServiceStatus:
        """Status of a service, from this manager or from the persisted registry."""
        with self._lock:
            active = name in self._active
            monitor = self._monitors.get(name)
            health = None if monitor is None else monitor.current_status()

        if not active:
            state = self._registry.state_of(name)
            if state is ServiceState.RUNNING:
                return ServiceStatus(ServiceState.RUNNING)
            if state is ServiceState.FAILED:
                return ServiceStatus.failed("Service failed")
            return ServiceStatus(ServiceState.STOPPED)

        if health is not None and health.state is HealthState.UNHEALTHY:
            return ServiceStatus(ServiceState.UNHEALTHY)
        return ServiceStatus(ServiceState.RUNNING)

    def list_services(self) -> list[str]:
        """Names of the services this manager is running."""
        with self._lock:
            return list(self._active)

    def get_service_info(self, name: str) -> RunningService | None:
        """The running instance of a service, or None."""
        with self._lock:
            return self._active.get(name)

    def run_health_checks(self) -> dict[str, HealthStatus]:
        """Run every configured health check and record the outcomes."""
        with self._lock:
            names = list(self._monitors)

        results: dict[str, HealthStatus] = {}
        for name in names:
            logger.debug("Running health check for service: %s", name)
            with self._lock:
                monitor = self._monitors.get(name)
                config = None if monitor is None else copy.deepcopy(monitor.config)
            if config is None:
                results[name] = HealthStatus.unknown()
                continue

            try:
                status = HealthChecker().check_health(config)
            except OrchestrationError as exc:
                logger.warning("Health check failed for service %s: %s", name, exc)
                status = HealthStatus.unhealthy(str(exc))

            with self._lock:
                monitor = self._monitors.get(name)
                if monitor is not None:
                    if status.state is HealthState.HEALTHY:
                        monitor.consecutive_failures = 0
                    elif status.state is HealthState.UNHEALTHY:
                        monitor.consecutive_failures += 1
                    monitor.last_status = status
            results[name] = status
        return results

    def find_executor(self, config: ServiceConfig) -> ServiceExecutor:
        """The first executor able to run the configuration."""
        for executor in self.executors.values():
            if executor.can_handle(config):
                return executor
        raise ConfigError(f"No executor found for service target: {config.target!r}")

    def _inject_network_config(self, config: ServiceConfig) -> ServiceConfig:
        logger.debug("Injecting network config for service: %s", config.name)
        return copy.deepcopy(config)