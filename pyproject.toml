[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "service-orchestration"
version = "0.1.0"
description = "Orchestrate services across local processes, Docker containers and remote hosts"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
    "platformdirs",
]
keywords = ["orchestration", "services", "docker", "health-check", "deployment"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["service_orchestration"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
