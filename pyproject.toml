[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "spirectl"
version = "0.1.0"
description = "Configuration, resource models, validation and reconciliation loop for a SPIRE controller manager"
requires-python = ">=3.10"
keywords = ["spire", "spiffe", "kubernetes", "controller", "workload-identity"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
spirectl = "spirectl.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["spirectl"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
