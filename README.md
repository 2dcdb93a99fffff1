# service-orchestration

Manage the lifecycle of services that run in different places: local
processes, Docker containers, hosts on the LAN, and hosts on a WireGuard
network that receive a deployed package.

## Installation

```
pip install service-orchestration
```

## Describing a service

A `ServiceConfig` (in `service_orchestration.config`) names a service, gives
its target, lists the services it depends on, and may carry a `HealthCheck`.
There are four target classes, all subclasses of `ServiceTarget`:
`ProcessTarget`, `DockerTarget`, `RemoteLanTarget` and `WireguardTarget`.

```python
from service_orchestration.config import (
    DockerTarget,
    HealthCheck,
    ProcessTarget,
    ServiceConfig,
)

api = ServiceConfig(
    name="api",
    target=ProcessTarget(
        binary="./api-server",
        args=["--port", "8080"],
        environment={"LOG_LEVEL": "info"},
        working_dir="/srv/api",
    ),
    dependencies=["database"],
    health_check=HealthCheck(
        command="curl",
        args=["-f", "http://localhost:8080/health"],
        interval=30,
        retries=3,
        timeout=10,
    ),
)

web = ServiceConfig(
    name="web",
    target=DockerTarget(image="nginx:latest", ports=[80, 443]),
)
```

You can write a configuration to YAML and read it back with `to_yaml` and
`from_yaml`. `to_dict` and `from_dict` do the same with plain dictionaries.
In the serialized form the target has a `type` key, such as `Process` or
`Docker`. If the input is malformed, these methods raise `ConfigError`.

```python
text = api.to_yaml()
assert ServiceConfig.from_yaml(text) == api
```

`ServiceTarget.env()` returns a target's environment variables. Remote and
WireGuard targets have none. `with_env` returns a copy that has a new
environment and leaves the original unchanged.

A `ServiceStatus` holds a `ServiceState` (`STOPPED`, `STARTING`, `RUNNING`,
`UNHEALTHY`, `FAILED`). A failed status also holds a message; build one with
`ServiceStatus.failed(message)`.

## Running services

`ServiceManager` (in `service_orchestration.manager`) picks an executor for
each target type and keeps track of the services it has started. It records
their state in `registry.json`. By default the file is in a `harness`
directory under the user's data directory. Pass `state_dir=` to use another
directory, or `executors=` to replace the default executors.

```python
from service_orchestration.manager import ServiceManager

manager = ServiceManager(state_dir="/tmp/harness-state")
running = manager.start_service("web", web)
print(manager.list_services())            # ['web']
print(manager.get_service_status("web"))  # ServiceStatus(state=ServiceState.RUNNING, ...)
print(manager.run_health_checks())
manager.stop_service("web")
```

- Starting a name that is already active raises `ServiceExistsError`.
- Stopping a name that is not active raises `ServiceNotFoundError`.
- If no executor can handle a target, `find_executor` raises `ConfigError`.
- All of these errors live in `service_orchestration.errors` and derive from
  `OrchestrationError`.

A service may not be active in this manager but still be recorded in the
registry file, for example after an earlier run. For such a service,
`get_service_status` reports the recorded state.

### Executors

The executors live in `service_orchestration.executors`. Each one implements
the `ServiceExecutor` interface: `start`, `stop`, `health_check`, `get_logs`
and `can_handle`.

- `ProcessExecutor` runs the binary to completion with the target's
  environment and working directory. It records a pid of `0`. Stopping sends
  `kill` to that pid, and then `kill -9` if the first attempt fails.
- `DockerExecutor` runs the image detached as a container named
  `orchestrator-<service>`, with `-e`, `-p port:port` and `-v` options. If a
  running container of that name already exists, it adopts it. If a stopped
  one exists, it removes it first. It reads the container's IP and ports into
  a `NetworkInfo`. Its health check inspects the container and then runs the
  configured command inside it with `docker exec`. The helpers
  `parse_container_state` and `parse_port_output` parse `docker ps` and
  `docker port` output.
- `RemoteExecutor` accepts `RemoteLanTarget` and `WireguardTarget`. It records
  the host, user and package in the running service's metadata.

## Health checks

`HealthChecker.check_health` (in `service_orchestration.health`) runs the
configured command once on the local machine and returns a `HealthStatus`: a
`HealthState` of `HEALTHY`, `UNHEALTHY` or `UNKNOWN`. An unhealthy status
includes a message. A `HealthMonitor` counts consecutive failures. It reports
a service as unhealthy only after `retries` checks in a row have failed.
`interval()` returns the configured interval as a `timedelta`.

`run_command` (in `service_orchestration.runner`) runs the external commands
and returns a `CommandResult`, which holds the exit code, signal, stdout and
stderr.

## Packages

`service_orchestration.package` builds and deploys service packages.

- `PackageBuilder(work_dir).create_package(source_dir, manifest, output_path)`
  writes a `.tar.gz` archive. The archive holds the files from `source_dir`
  and a `manifest.yaml` made from the `PackageManifest`.
- `read_manifest(path)` reads the manifest back from an archive.
- `PackageDeployer.deploy(package_path, target)` first validates the archive.
  It then copies the archive to the `RemoteTarget` with `scp`, unpacks it over
  `ssh`, writes a `.env` file from the manifest's environment, and makes the
  top-level `*.sh` scripts executable.
- The target installs under `/opt/harness/<service>` unless you set
  `install_dir`.
- `start_service`, `stop_service` and `undeploy` run `start.sh`, `stop.sh` and
  `rm -rf` on the host.
- If any of these steps fails, it raises `PackageError`.

`ServiceManager.deploy_package(target, package_path)` calls the deployer.

## What the package does not do

- It has no command-line tool, server or API for other programs. You use it as
  a library.
- `RemoteExecutor` does not connect to remote hosts. Starting a service only
  records it. Stopping it only logs a warning. Its health check always returns
  `UNKNOWN`.
- `get_logs` returns an empty iterator for every executor. Nothing streams
  logs.
- `ProcessExecutor` waits for the process to exit and does not track a live
  process id.
- No network configuration is injected. The manager passes the configuration
  through unchanged, and it does not resolve the addresses of dependencies.
- `HealthCheck.timeout` and `interval` are stored, but nothing enforces the
  timeout or schedules checks on the interval. Call `run_health_checks` or
  `HealthMonitor.check` yourself.