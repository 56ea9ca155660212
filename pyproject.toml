[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dcpstream"
version = "0.1.0"
description = "Building blocks for a Couchbase DCP consumer: configuration, server versions, connection strings, health checks, checkpoint keys, group membership and rollback mitigation bookkeeping."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "couchbase",
    "dcp",
    "change-data-capture",
    "cdc",
    "configuration",
    "checkpoint",
    "membership",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["dcpstream"]

[tool.hatch.build.targets.sdist]
include = ["dcpstream", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
