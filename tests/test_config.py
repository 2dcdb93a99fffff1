import pytest

from service_orchestration.config import (
    DockerTarget,
    HealthCheck,
    ProcessTarget,
    RemoteLanTarget,
    ServiceConfig,
    ServiceState,
    ServiceStatus,
    ServiceTarget,
    WireguardTarget,
)
from service_orchestration.errors import ConfigError


def _full_config():
    return ServiceConfig(
        name="test-service",
        target=ProcessTarget(
            binary="echo",
            args=["hello", "world"],
            environment={"LOG_LEVEL": "debug", "PORT": "8080"},
            working_dir="/tmp",
        ),
        dependencies=["database", "cache"],
        health_check=HealthCheck(
            command="curl",
            args=["-f", "http://localhost:8080/health"],
            interval=30,
            retries=3,
            timeout=10,
        ),
    )


def test_service_config_yaml_roundtrip():
    config = _full_config()
    restored = ServiceConfig.from_yaml(config.to_yaml())
    assert restored == config
    assert restored.name == config.name
    assert restored.dependencies == config.dependencies
    assert isinstance(restored.target, ProcessTarget)


def test_service_config_serialization_single_dependency():
    config = ServiceConfig(
        name="test-service",
        target=ProcessTarget(
            binary="echo", args=["hello"], environment={"FOO": "bar"}, working_dir="/tmp"
        ),
        dependencies=["database"],
        health_check=HealthCheck("curl", ["http://localhost:8080/health"], 30, 3, 10),
    )
    assert ServiceConfig.from_yaml(config.to_yaml()) == config


def test_docker_target_serialization():
    target = DockerTarget(
        image="nginx:latest",
        environment={"ENV_VAR": "value"},
        ports=[80, 443],
        volumes=["/data:/app/data"],
    )
    data = target.to_dict()
    assert data["type"] == "Docker"
    assert data["env"] == {"ENV_VAR": "value"}
    assert ServiceTarget.from_dict(data) == target


@pytest.mark.parametrize(
    "target",
    [
        ProcessTarget(binary="test"),
        DockerTarget(image="test"),
        RemoteLanTarget(host="test.example.com", user="test", binary="test", args=["a"]),
        WireguardTarget(host="10.0.0.10", user="ubuntu", package="/path/to/service.tar.gz"),
    ],
)
def test_every_target_roundtrips(target):
    restored = ServiceTarget.from_dict(target.to_dict())
    assert restored == target
    assert type(restored) is type(target)


def test_service_target_with_env():
    env = {"KEY1": "value1"}
    target = ProcessTarget(binary="test")
    assert target.with_env(env).env() == env


def test_service_target_env_methods():
    env = {"TEST_VAR": "test_value"}
    target = ProcessTarget(binary="test", environment=dict(env))
    assert target.env() == env

    new_env = {"NEW_VAR": "new_value"}
    updated = target.with_env(new_env)
    assert updated.env() == new_env
    assert target.env() == env


def test_remote_targets_have_no_env_and_ignore_with_env():
    target = RemoteLanTarget(host="192.168.1.100", user="deploy", binary="./api-server")
    updated = target.with_env({"A": "b"})
    assert updated.env() == {}
    assert updated == target
    assert updated is not target


def test_service_config_env_injection():
    original_env = {"ORIGINAL": "value"}
    config = ServiceConfig(
        name="test-service",
        target=ProcessTarget(binary="test", environment=dict(original_env)),
        dependencies=["db"],
    )
    injected = {"DB_ADDR": "192.168.1.100", "SERVICE_NAME": "test-service"}
    updated = config.with_env(injected)

    assert config.target.env() == original_env
    assert updated.target.env() == injected
    assert updated.name == config.name
    assert updated.dependencies == config.dependencies


def test_health_check_defaults():
    check = HealthCheck()
    assert check.command == "true"
    assert check.args == []
    assert (check.interval, check.retries, check.timeout) == (30, 3, 10)


def test_health_check_is_optional_in_input():
    data = _full_config().to_dict()
    del data["health_check"]
    assert ServiceConfig.from_dict(data).health_check is None


def test_unknown_target_type_is_rejected():
    with pytest.raises(ConfigError):
        ServiceTarget.from_dict({"type": "Kubernetes", "image": "x"})


def test_missing_field_is_rejected():
    with pytest.raises(ConfigError) as info:
        ServiceTarget.from_dict({"type": "Process", "args": [], "env": {}})
    assert "binary" in str(info.value)


def test_subclass_from_dict_rejects_other_kind():
    with pytest.raises(ConfigError):
        ProcessTarget.from_dict(DockerTarget(image="nginx").to_dict())


def test_invalid_port_is_rejected():
    data = DockerTarget(image="nginx").to_dict()
    data["ports"] = [70000]
    with pytest.raises(ConfigError):
        ServiceTarget.from_dict(data)


def test_invalid_yaml_is_rejected():
    with pytest.raises(ConfigError):
        ServiceConfig.from_yaml("name: [unclosed")


@pytest.mark.parametrize(
    "status",
    [
        ServiceStatus(ServiceState.STOPPED),
        ServiceStatus(ServiceState.STARTING),
        ServiceStatus(ServiceState.RUNNING),
        ServiceStatus(ServiceState.UNHEALTHY),
        ServiceStatus.failed("Something went wrong"),
    ],
)
def test_service_status_serialization(status):
    assert ServiceStatus.from_dict(status.to_dict()) == status


def test_service_status_default_is_stopped():
    assert ServiceStatus().state is ServiceState.STOPPED


def test_service_status_accepts_tagged_forms():
    assert ServiceStatus.from_dict("Running") == ServiceStatus(ServiceState.RUNNING)
    assert ServiceStatus.from_dict({"Failed": "disk full"}) == ServiceStatus.failed("disk full")