"""Building service packages and deploying them to remote hosts."""

from __future__ import annotations

import logging
import os
import shlex
import tarfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import PackageError
from .runner import run_command

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.yaml"


def _mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise PackageError(f"expected a mapping for {what}")
    return data


def _required(data: Mapping[str, Any], key: str, what: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise PackageError(f"missing field `{key}` in {what}") from None


def _string(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise PackageError(f"field `{key}` must be a string")
    return value


def _string_list(value: Any, key: str) -> list[str]:
    if not isinstance(value, list):
        raise PackageError(f"field `{key}` must be a list")
    return [_string(item, key) for item in value]


def _string_map(value: Any, key: str) -> dict[str, str]:
    if not isinstance(value, Mapping):
        raise PackageError(f"field `{key}` must be a mapping")
    return {_string(k, key): _string(v, key) for k, v in value.items()}


@dataclass
class RemoteTarget:
    """A host a package is deployed to."""

    service_name: str
    host: str
    user: str
    install_dir: str | None = None

    def install_path(self) -> str:
        """Installation directory, defaulting to ``/opt/harness/<service>``."""
        if self.install_dir is not None:
            return self.install_dir
        return f"/opt/harness/{self.service_name}"


@dataclass
class PackageHealthCheck:
    """Health check of a packaged service."""

    command: str
    args: list[str] = field(default_factory=list)
    timeout: int = 30

    def to_dict(self) -> dict[str, Any]:
        return {"command": self.command, "args": list(self.args), "timeout": self.timeout}

    @classmethod
    def from_dict(cls, data: Any) -> PackageHealthCheck:
        data = _mapping(data, "package health check")
        what = "package health check"
        timeout = _required(data, "timeout", what)
        if isinstance(timeout, bool) or not isinstance(timeout, int) or timeout < 0:
            raise PackageError("field `timeout` must be a non-negative integer")
        return cls(
            command=_string(_required(data, "command", what), "command"),
            args=_string_list(_required(data, "args", what), "args"),
            timeout=timeout,
        )


@dataclass
class PackageService:
    """The service a package runs."""

    executable: str
    args: list[str] = field(default_factory=list)
    working_dir: str | None = None
    health_check: PackageHealthCheck | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "executable": self.executable,
            "args": list(self.args),
            "working_dir": self.working_dir,
            "health_check": None if self.health_check is None else self.health_check.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> PackageService:
        data = _mapping(data, "package service")
        what = "package service"
        working_dir = data.get("working_dir")
        health = data.get("health_check")
        return cls(
            executable=_string(_required(data, "executable", what), "executable"),
            args=_string_list(_required(data, "args", what), "args"),
            working_dir=None if working_dir is None else _string(working_dir, "working_dir"),
            health_check=None if health is None else PackageHealthCheck.from_dict(health),
        )


@dataclass
class PackageManifest:
    """Description of a service package, stored as ``manifest.yaml``."""

    name: str
    version: str
    service: PackageService
    dependencies: list[str] = field(default_factory=list)
    environment: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "service": self.service.to_dict(),
            "dependencies": list(self.dependencies),
            "environment": dict(self.environment),
        }

    @classmethod
    def from_dict(cls, data: Any) -> PackageManifest:
        data = _mapping(data, "package manifest")
        what = "package manifest"
        return cls(
            name=_string(_required(data, "name", what), "name"),
            version=_string(_required(data, "version", what), "version"),
            service=PackageService.from_dict(_required(data, "service", what)),
            dependencies=_string_list(_required(data, "dependencies", what), "dependencies"),
            environment=_string_map(_required(data, "environment", what), "environment"),
        )

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False)

    @classmethod
    def from_yaml(cls, text: str) -> PackageManifest:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise PackageError(f"invalid manifest YAML: {exc}") from exc
        return cls.from_dict(data)


@dataclass
class DeployedPackage:
    """A package installed on a remote host."""

    target: RemoteTarget
    path: str
    manifest: PackageManifest


def _destination(target: RemoteTarget) -> str:
    return f"{target.user}@{target.host}"


def _remote_archive(target: RemoteTarget) -> str:
    return f"/tmp/{target.service_name}.tar.gz"


def _run_remote(target: RemoteTarget, script: str, action: str) -> None:
    result = run_command("ssh", [_destination(target), script])
    if not result.success():
        detail = (result.stderr or result.output).strip()
        raise PackageError(f"{action} failed on {_destination(target)}: {detail}")


def read_manifest(package_path: str | os.PathLike[str]) -> PackageManifest:
    """Read the manifest from a package archive."""
    try:
        with tarfile.open(package_path, "r:*") as archive:
            for member in archive.getmembers():
                if member.isfile() and os.path.normpath(member.name) == MANIFEST_NAME:
                    handle = archive.extractfile(member)
                    if handle is None:
                        break
                    with handle:
                        text = handle.read().decode("utf-8")
                    return PackageManifest.from_yaml(text)
    except tarfile.TarError as exc:
        raise PackageError(f"Invalid package archive {package_path}: {exc}") from exc
    raise PackageError(f"Package has no {MANIFEST_NAME}: {package_path}")


class PackageDeployer:
    """Deploys package archives to remote hosts over SSH."""

    def deploy(self, package_path: str, target: RemoteTarget) -> DeployedPackage:
        """Validate, copy, unpack and prepare a package on the target host."""
        install_path = target.install_path()
        logger.info(
            "Deploying package %s to %s:%s", package_path, _destination(target), install_path
        )

        manifest = self._validate_package(package_path)
        self._transfer_package(package_path, target)
        self._extract_package(target)
        self._generate_env_file(target, manifest)
        self._setup_permissions(target)

        logger.info("Successfully deployed package to %s", install_path)
        return DeployedPackage(target=target, path=install_path, manifest=manifest)

    def start_service(self, deployed: DeployedPackage) -> None:
        """Run the package's ``start.sh`` on its host."""
        logger.info("Starting deployed service: %s", deployed.manifest.name)
        _run_remote(
            deployed.target, f"cd {shlex.quote(deployed.path)} && ./start.sh", "Service start"
        )

    def stop_service(self, deployed: DeployedPackage) -> None:
        """Run the package's ``stop.sh`` on its host."""
        logger.info("Stopping deployed service: %s", deployed.manifest.name)
        _run_remote(
            deployed.target, f"cd {shlex.quote(deployed.path)} && ./stop.sh", "Service stop"
        )

    def undeploy(self, deployed: DeployedPackage) -> None:
        """Remove the installed package from its host."""
        logger.info("Undeploying package: %s", deployed.manifest.name)
        _run_remote(deployed.target, f"rm -rf {shlex.quote(deployed.path)}", "Package removal")

    def _validate_package(self, package_path: str) -> PackageManifest:
        logger.debug("Validating package: %s", package_path)
        path = Path(package_path)
        if not path.exists():
            raise PackageError(f"Package not found: {package_path}")
        if not path.is_file():
            raise PackageError(f"Package path is not a file: {package_path}")
        return read_manifest(path)

    def _transfer_package(self, package_path: str, target: RemoteTarget) -> None:
        logger.debug("Transferring package %s to %s", package_path, _destination(target))
        remote = f"{_destination(target)}:{_remote_archive(target)}"
        result = run_command("scp", [package_path, remote])
        if not result.success():
            detail = (result.stderr or result.output).strip()
            raise PackageError(f"Package transfer to {_destination(target)} failed: {detail}")

    def _extract_package(self, target: RemoteTarget) -> None:
        logger.debug("Extracting package on %s", _destination(target))
        install = shlex.quote(target.install_path())
        archive = shlex.quote(_remote_archive(target))
        script = f"mkdir -p {install} && tar -xzf {archive} -C {install} && rm -f {archive}"
        _run_remote(target, script, "Package extraction")

    def _generate_env_file(self, target: RemoteTarget, manifest: PackageManifest) -> None:
        logger.debug("Generating environment file for %s", manifest.name)
        content = "".join(f"{key}={value}\n" for key, value in manifest.environment.items())
        env_path = shlex.quote(f"{target.install_path()}/.env")
        _run_remote(
            target, f"printf %s {shlex.quote(content)} > {env_path}", "Environment file upload"
        )

    def _setup_permissions(self, target: RemoteTarget) -> None:
        logger.debug("Setting up permissions for %s", target.service_name)
        install = shlex.quote(target.install_path())
        script = f"find {install} -maxdepth 1 -name '*.sh' -exec chmod +x {{}} +"
        _run_remote(target, script, "Permission setup")


class PackageBuilder:
    """Creates package archives from a directory and a manifest."""

    def __init__(self, work_dir: str | os.PathLike[str]) -> None:
        self.work_dir = Path(work_dir)

    def create_package(
        self,
        source_dir: str | os.PathLike[str],
        manifest: PackageManifest,
        output_path: str | os.PathLike[str],
    ) -> Path:
        """Write a ``.tar.gz`` holding the manifest and the source directory's files."""
        source = Path(source_dir)
        logger.info("Creating package from %s", source)
        if not source.is_dir():
            raise PackageError(f"Package source is not a directory: {source}")

        self.work_dir.mkdir(parents=True, exist_ok=True)
        manifest_file = self.work_dir / MANIFEST_NAME
        manifest_file.write_text(manifest.to_yaml(), encoding="utf-8")

        output = Path(output_path)
        output.parent.mkdir(parents=True, exist_ok=True)
        with tarfile.open(output, "w:gz") as archive:
            for child in sorted(source.iterdir()):
                if child.name == MANIFEST_NAME:
                    continue
                archive.add(child, arcname=child.name)
            archive.add(manifest_file, arcname=MANIFEST_NAME)

        read_manifest(output)
        return output