[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "assertoor"
version = "0.1.0"
description = "Block caches, fork tracking and node API clients for testing Ethereum consensus and execution nodes"
requires-python = ">=3.10"
keywords = [
    "ethereum",
    "beacon-chain",
    "consensus",
    "execution",
    "testing",
    "json-rpc",
    "server-sent-events",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Testing",
    "Topic :: System :: Networking :: Monitoring",
]
dependencies = [
    "requests>=2.28",
    "pyyaml>=6.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.23",
]

[tool.hatch.build.targets.wheel]
packages = ["assertoor"]

[tool.hatch.build.targets.sdist]
include = ["assertoor", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
