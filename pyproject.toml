[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "annego"
version = "0.1.0"
description = "Server toolkit: binary packet codec, TCP message server, admin console, connection pool, structured logging and containers"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "packet",
    "binary-protocol",
    "tcp-server",
    "connection-pool",
    "structured-logging",
    "red-black-tree",
    "console",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
    "Topic :: System :: Networking",
    "Topic :: System :: Logging",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["annego"]

[tool.hatch.build.targets.sdist]
include = ["annego", "tests", "README.md"]

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
