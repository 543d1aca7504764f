[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gnmikit"
version = "0.1.0"
description = "Building blocks for gNMI telemetry collectors: a concurrent path tree, sliding-window latency statistics, per-target metadata and error lists"
requires-python = ">=3.10"
dependencies = []
keywords = ["gnmi", "telemetry", "openconfig", "network-monitoring", "tree", "latency"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["gnmikit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
