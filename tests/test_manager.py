import tarfile

import pytest

from service_orchestration.config import (
    DockerTarget,
    HealthCheck,
    ProcessTarget,
    RemoteLanTarget,
    ServiceConfig,
    ServiceState,
    ServiceStatus,
    WireguardTarget,
)
from service_orchestration.errors import (
    ConfigError,
    PackageError,
    ServiceExistsError,
    ServiceNotFoundError,
)
from service_orchestration.executors.docker import DockerExecutor
from service_orchestration.executors.process import ProcessExecutor
from service_orchestration.executors.remote import RemoteExecutor
from service_orchestration.health import HealthState
from service_orchestration.manager import ServiceManager
from service_orchestration.package import RemoteTarget


@pytest.fixture
def manager(tmp_path):
    return ServiceManager(state_dir=tmp_path)


def remote_config(name="remote-api", health_check=None):
    return ServiceConfig(
        name=name,
        target=RemoteLanTarget(
            host="192.168.1.100",
            user="deploy",
            binary="./api-server",
            args=["--port", "3000"],
        ),
        dependencies=["database"],
        health_check=health_check,
    )


def test_executors_registered(manager):
    assert set(manager.executors) == {"process", "docker", "remote"}


def test_list_services_empty(manager):
    assert manager.list_services() == []


def test_stop_unknown_service(manager):
    with pytest.raises(ServiceNotFoundError):
        manager.stop_service("nonexistent")


def test_find_executor_process(manager):
    config = ServiceConfig(
        name="test",
        target=ProcessTarget(binary="echo"),
    )
    executor = manager.find_executor(config)
    assert isinstance(executor, ProcessExecutor)
    assert executor.can_handle(config)


@pytest.mark.parametrize(
    "target, expected",
    [
        (DockerTarget(image="hello-world"), DockerExecutor),
        (RemoteLanTarget(host="test.example.com", user="test", binary="test"), RemoteExecutor),
        (WireguardTarget(host="10.0.0.10", user="ubuntu", package="/p.tar.gz"), RemoteExecutor),
    ],
)
def test_find_executor_by_target(manager, target, expected):
    config = ServiceConfig(name="x", target=target)
    executor = manager.find_executor(config)
    assert isinstance(executor, expected)
    assert executor.can_handle(config) is True


def test_find_executor_none_available(tmp_path):
    manager = ServiceManager(state_dir=tmp_path, executors={"process": ProcessExecutor()})
    with pytest.raises(ConfigError):
        manager.find_executor(remote_config())


def test_start_remote_service(manager):
    running = manager.start_service("remote-api", remote_config())
    assert running.name == "remote-api"
    assert running.metadata["executor_type"] == "remote_lan"
    assert manager.list_services() == ["remote-api"]
    assert manager.get_service_info("remote-api") is running
    assert manager.get_service_status("remote-api") == ServiceStatus(ServiceState.RUNNING)


def test_start_process_service(manager):
    config = ServiceConfig(name="echo-test", target=ProcessTarget(binary="echo", args=["hi"]))
    running = manager.start_service("echo-test", config)
    assert running.pid == 0
    assert manager.list_services() == ["echo-test"]


def test_start_twice_raises(manager):
    manager.start_service("remote-api", remote_config())
    with pytest.raises(ServiceExistsError):
        manager.start_service("remote-api", remote_config())


def test_stop_service(manager):
    manager.start_service("remote-api", remote_config())
    manager.stop_service("remote-api")
    assert manager.list_services() == []
    assert manager.get_service_info("remote-api") is None
    assert manager.get_service_status("remote-api") == ServiceStatus(ServiceState.STOPPED)


def test_unknown_status_is_stopped(manager):
    assert manager.get_service_status("ghost").state is ServiceState.STOPPED


def test_status_persists_between_managers(tmp_path):
    first = ServiceManager(state_dir=tmp_path)
    first.start_service("remote-api", remote_config())

    second = ServiceManager(state_dir=tmp_path)
    assert second.list_services() == []
    assert second.get_service_status("remote-api").state is ServiceState.RUNNING

    first.stop_service("remote-api")
    third = ServiceManager(state_dir=tmp_path)
    assert third.get_service_status("remote-api").state is ServiceState.STOPPED


def test_corrupt_registry_starts_empty(tmp_path):
    (tmp_path / "registry.json").write_text("{not json", encoding="utf-8")
    manager = ServiceManager(state_dir=tmp_path)
    assert manager.get_service_status("remote-api").state is ServiceState.STOPPED
    manager.start_service("remote-api", remote_config())
    assert ServiceManager(state_dir=tmp_path).get_service_status(
        "remote-api"
    ).state is ServiceState.RUNNING


def test_health_checks_healthy(manager):
    manager.start_service("ok", remote_config("ok", HealthCheck(command="true", retries=1)))
    results = manager.run_health_checks()
    assert results["ok"].state is HealthState.HEALTHY
    assert manager.get_service_status("ok").state is ServiceState.RUNNING


def test_health_checks_unhealthy(manager):
    manager.start_service("bad", remote_config("bad", HealthCheck(command="false", retries=3)))
    results = manager.run_health_checks()
    assert results["bad"].state is HealthState.UNHEALTHY
    assert manager.get_service_status("bad").state is ServiceState.UNHEALTHY


def test_health_checks_only_monitored(manager):
    manager.start_service("plain", remote_config("plain"))
    assert manager.run_health_checks() == {}


def test_health_monitor_removed_on_stop(manager):
    manager.start_service("ok", remote_config("ok", HealthCheck(command="true")))
    manager.stop_service("ok")
    assert manager.run_health_checks() == {}


def test_deploy_missing_package(manager, tmp_path):
    target = RemoteTarget(service_name="my-app", host="example.com", user="deployer")
    with pytest.raises(PackageError):
        manager.deploy_package(target, str(tmp_path / "missing.tar.gz"))


def test_deploy_package_without_manifest(manager, tmp_path):
    archive = tmp_path / "empty.tar.gz"
    with tarfile.open(archive, "w:gz"):
        pass
    target = RemoteTarget(service_name="my-app", host="example.com", user="deployer")
    with pytest.raises(PackageError):
        manager.deploy_package(target, str(archive))