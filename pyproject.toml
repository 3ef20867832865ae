[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "r2graph"
version = "0.1.0"
description = "Packet-forwarding graph with IPv4 route tables, Ethernet/ARP handling and a fixed-size binary event log"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "router",
    "forwarding",
    "packet-graph",
    "ipv4",
    "arp",
    "ethernet",
    "routing-table",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Telecommunications Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["r2graph"]

[tool.hatch.build.targets.sdist]
include = ["r2graph", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true

[tool.ruff]
line-length = 100
target-version = "py310"
