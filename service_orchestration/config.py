"""Service configuration model: targets, health checks and status."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, ClassVar

import yaml

from .errors import ConfigError


def _mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ConfigError(f"expected a mapping for {what}, got {type(data).__name__}")
    return data


def _field(data: Mapping[str, Any], key: str, what: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise ConfigError(f"missing field `{key}` in {what}") from None


def _string(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"field `{key}` must be a string")
    return value


def _optional_string(value: Any, key: str) -> str | None:
    return None if value is None else _string(value, key)


def _string_list(value: Any, key: str) -> list[str]:
    if not isinstance(value, list):
        raise ConfigError(f"field `{key}` must be a list")
    return [_string(item, key) for item in value]


def _string_map(value: Any, key: str) -> dict[str, str]:
    if not isinstance(value, Mapping):
        raise ConfigError(f"field `{key}` must be a mapping")
    return {_string(k, key): _string(v, key) for k, v in value.items()}


def _unsigned(value: Any, key: str, limit: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= limit:
        raise ConfigError(f"field `{key}` must be an integer between 0 and {limit}")
    return value


class ServiceTarget:
    """Where and how a service runs; one subclass per kind of target."""

    kind: ClassVar[str] = ""
    _kinds: ClassVar[dict[str, type[ServiceTarget]]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if cls.kind:
            ServiceTarget._kinds[cls.kind] = cls

    def env(self) -> dict[str, str]:
        """Environment variables the target passes to the service."""
        return {}

    def with_env(self, new_env: Mapping[str, str]) -> ServiceTarget:
        """Return a copy of the target with its environment replaced."""
        return copy.deepcopy(self)

    def _fields(self) -> dict[str, Any]:
        raise NotImplementedError

    @classmethod
    def _parse(cls, data: Mapping[str, Any]) -> ServiceTarget:
        raise NotImplementedError

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, **self._fields()}

    @classmethod
    def from_dict(cls, data: Any) -> ServiceTarget:
        data = _mapping(data, "service target")
        kind = _field(data, "type", "service target")
        target_cls = ServiceTarget._kinds.get(kind)
        if target_cls is None:
            raise ConfigError(f"unknown service target type: {kind!r}")
        if not issubclass(target_cls, cls):
            raise ConfigError(f"expected a {cls.kind} target, got {kind}")
        return target_cls._parse(data)


@dataclass
class ProcessTarget(ServiceTarget):
    """A local process."""

    kind: ClassVar[str] = "Process"

    binary: str
    args: list[str] = field(default_factory=list)
    environment: dict[str, str] = field(default_factory=dict)
    working_dir: str | None = None

    def env(self) -> dict[str, str]:
        return dict(self.environment)

    def with_env(self, new_env: Mapping[str, str]) -> ProcessTarget:
        return replace(self, args=list(self.args), environment=dict(new_env))

    def _fields(self) -> dict[str, Any]:
        return {
            "binary": self.binary,
            "args": list(self.args),
            "env": dict(self.environment),
            "working_dir": self.working_dir,
        }

    @classmethod
    def _parse(cls, data: Mapping[str, Any]) -> ProcessTarget:
        what = "Process target"
        return cls(
            binary=_string(_field(data, "binary", what), "binary"),
            args=_string_list(_field(data, "args", what), "args"),
            environment=_string_map(_field(data, "env", what), "env"),
            working_dir=_optional_string(data.get("working_dir"), "working_dir"),
        )


@dataclass
class DockerTarget(ServiceTarget):
    """A Docker container."""

    kind: ClassVar[str] = "Docker"

    image: str
    environment: dict[str, str] = field(default_factory=dict)
    ports: list[int] = field(default_factory=list)
    volumes: list[str] = field(default_factory=list)

    def env(self) -> dict[str, str]:
        return dict(self.environment)

    def with_env(self, new_env: Mapping[str, str]) -> DockerTarget:
        return replace(
            self,
            environment=dict(new_env),
            ports=list(self.ports),
            volumes=list(self.volumes),
        )

    def _fields(self) -> dict[str, Any]:
        return {
            "image": self.image,
            "env": dict(self.environment),
            "ports": list(self.ports),
            "volumes": list(self.volumes),
        }

    @classmethod
    def _parse(cls, data: Mapping[str, Any]) -> DockerTarget:
        what = "Docker target"
        ports = _field(data, "ports", what)
        if not isinstance(ports, list):
            raise ConfigError("field `ports` must be a list")
        return cls(
            image=_string(_field(data, "image", what), "image"),
            environment=_string_map(_field(data, "env", what), "env"),
            ports=[_unsigned(port, "ports", 65535) for port in ports],
            volumes=_string_list(_field(data, "volumes", what), "volumes"),
        )


@dataclass
class RemoteLanTarget(ServiceTarget):
    """A binary run on a LAN host over SSH."""

    kind: ClassVar[str] = "RemoteLan"

    host: str
    user: str
    binary: str
    args: list[str] = field(default_factory=list)

    def _fields(self) -> dict[str, Any]:
        return {
            "host": self.host,
            "user": self.user,
            "binary": self.binary,
            "args": list(self.args),
        }

    @classmethod
    def _parse(cls, data: Mapping[str, Any]) -> RemoteLanTarget:
        what = "RemoteLan target"
        return cls(
            host=_string(_field(data, "host", what), "host"),
            user=_string(_field(data, "user", what), "user"),
            binary=_string(_field(data, "binary", what), "binary"),
            args=_string_list(_field(data, "args", what), "args"),
        )


@dataclass
class WireguardTarget(ServiceTarget):
    """A packaged service deployed to a WireGuard peer."""

    kind: ClassVar[str] = "Wireguard"

    host: str
    user: str
    package: str

    def _fields(self) -> dict[str, Any]:
        return {"host": self.host, "user": self.user, "package": self.package}

    @classmethod
    def _parse(cls, data: Mapping[str, Any]) -> WireguardTarget:
        what = "Wireguard target"
        return cls(
            host=_string(_field(data, "host", what), "host"),
            user=_string(_field(data, "user", what), "user"),
            package=_string(_field(data, "package", what), "package"),
        )


@dataclass
class HealthCheck:
    """A command run periodically to decide whether a service is healthy."""

    command: str = "true"
    args: list[str] = field(default_factory=list)
    interval: int = 30
    retries: int = 3
    timeout: int = 10

    def to_dict(self) -> dict[str, Any]:
        return {
            "command": self.command,
            "args": list(self.args),
            "interval": self.interval,
            "retries": self.retries,
            "timeout": self.timeout,
        }

    @classmethod
    def from_dict(cls, data: Any) -> HealthCheck:
        data = _mapping(data, "health check")
        what = "health check"
        return cls(
            command=_string(_field(data, "command", what), "command"),
            args=_string_list(_field(data, "args", what), "args"),
            interval=_unsigned(_field(data, "interval", what), "interval", 2**64 - 1),
            retries=_unsigned(_field(data, "retries", what), "retries", 2**32 - 1),
            timeout=_unsigned(_field(data, "timeout", what), "timeout", 2**64 - 1),
        )


@dataclass
class ServiceConfig:
    """Configuration of one service managed by the orchestrator."""

    name: str
    target: ServiceTarget
    dependencies: list[str] = field(default_factory=list)
    health_check: HealthCheck | None = None

    def with_env(self, env: Mapping[str, str]) -> ServiceConfig:
        """Return a copy whose target carries the given environment."""
        return ServiceConfig(
            name=self.name,
            target=self.target.with_env(env),
            dependencies=list(self.dependencies),
            health_check=copy.deepcopy(self.health_check),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "target": self.target.to_dict(),
            "dependencies": list(self.dependencies),
            "health_check": None if self.health_check is None else self.health_check.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> ServiceConfig:
        data = _mapping(data, "service config")
        what = "service config"
        health = data.get("health_check")
        return cls(
            name=_string(_field(data, "name", what), "name"),
            target=ServiceTarget.from_dict(_field(data, "target", what)),
            dependencies=_string_list(_field(data, "dependencies", what), "dependencies"),
            health_check=None if health is None else HealthCheck.from_dict(health),
        )

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False)

    @classmethod
    def from_yaml(cls, text: str) -> ServiceConfig:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid YAML: {exc}") from exc
        return cls.from_dict(data)


class ServiceState(Enum):
    """Lifecycle state of a service."""

    STOPPED = "Stopped"
    STARTING = "Starting"
    RUNNING = "Running"
    UNHEALTHY = "Unhealthy"
    FAILED = "Failed"


@dataclass(frozen=True)
class ServiceStatus:
    """Current status of a service; failures carry a message."""

    state: ServiceState = ServiceState.STOPPED
    message: str | None = None

    @classmethod
    def failed(cls, message: str) -> ServiceStatus:
        return cls(ServiceState.FAILED, message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"state": self.state.value}
        if self.state is ServiceState.FAILED:
            result["message"] = self.message or ""
        return result

    @classmethod
    def from_dict(cls, data: Any) -> ServiceStatus:
        if isinstance(data, str):
            return cls(_service_state(data))
        data = _mapping(data, "service status")
        if "state" in data:
            state = _service_state(data["state"])
            message = data.get("message") if state is ServiceState.FAILED else None
            return cls(state, _optional_string(message, "message"))
        if len(data) == 1:
            (name, payload), = data.items()
            state = _service_state(name)
            if state is ServiceState.FAILED:
                return cls.failed(_string(payload, "Failed"))
            return cls(state)
        raise ConfigError("invalid service status")


def _service_state(name: Any) -> ServiceState:
    try:
        return ServiceState(name)
    except ValueError:
        raise ConfigError(f"unknown service state: {name!r}") from None