[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dinghy"
version = "0.1.0"
description = "Dependency tracking for pipeline definition files, with in-memory, Redis and SQL stores"
requires-python = ">=3.10"
keywords = ["pipelines", "dependencies", "redis", "mysql", "cache"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
]
dependencies = [
    "redis",
    "sqlalchemy",
    "requests",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["dinghy"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
