[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pgwirekit"
version = "0.1.0"
description = "Low-level PostgreSQL wire protocol building blocks: frontend messages, binary value codecs, SCRAM authentication, escaping and catalog parsing."
requires-python = ">=3.10"
dependencies = []
keywords = ["postgresql", "postgres", "protocol", "wire", "scram", "binary", "codec", "sqlstate"]
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
    "Topic :: Database",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["pgwirekit"]

[tool.pytest.ini_options]
addopts = "-ra"
