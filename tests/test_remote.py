import pytest

from service_orchestration.config import (
    DockerTarget,
    ProcessTarget,
    RemoteLanTarget,
    ServiceConfig,
    WireguardTarget,
)
from service_orchestration.errors import ConfigError
from service_orchestration.executors.remote import RemoteExecutor
from service_orchestration.health import HealthState


def _remote_lan():
    return ServiceConfig(
        name="remote-api",
        target=RemoteLanTarget(
            host="192.168.1.100",
            user="deploy",
            binary="./api-server",
            args=["--port", "3000"],
        ),
        dependencies=["database"],
    )


def _wireguard():
    return ServiceConfig(
        name="wg-service",
        target=WireguardTarget(
            host="10.0.0.10", user="ubuntu", package="/path/to/service.tar.gz"
        ),
    )


def test_can_handle():
    executor = RemoteExecutor()
    assert executor.can_handle(_remote_lan())
    assert executor.can_handle(_wireguard())
    process = ServiceConfig(name="test", target=ProcessTarget(binary="echo"))
    assert not executor.can_handle(process)
    docker = ServiceConfig(name="test", target=DockerTarget(image="nginx:latest"))
    assert not executor.can_handle(docker)


def test_start_remote_lan():
    service = RemoteExecutor().start(_remote_lan())
    assert service.name == "remote-api"
    assert service.metadata == {
        "executor_type": "remote_lan",
        "host": "192.168.1.100",
        "user": "deploy",
    }


def test_start_wireguard():
    service = RemoteExecutor().start(_wireguard())
    assert service.name == "wg-service"
    assert service.metadata["executor_type"] == "wireguard"
    assert service.metadata["package"] == "/path/to/service.tar.gz"
    assert service.metadata["host"] == "10.0.0.10"
    assert service.metadata["user"] == "ubuntu"


def test_start_rejects_process_target():
    config = ServiceConfig(name="test", target=ProcessTarget(binary="echo"))
    with pytest.raises(ConfigError):
        RemoteExecutor().start(config)


def test_health_check_is_unknown():
    executor = RemoteExecutor()
    service = executor.start(_remote_lan())
    assert executor.health_check(service).state is HealthState.UNKNOWN


def test_stop_leaves_service_record_intact():
    executor = RemoteExecutor()
    service = executor.start(_wireguard())
    executor.stop(service)
    assert service.metadata["executor_type"] == "wireguard"


def test_get_logs_is_empty():
    executor = RemoteExecutor()
    service = executor.start(_remote_lan())
    assert list(executor.get_logs(service)) == []