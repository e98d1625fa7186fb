[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "microtiny"
version = "0.1.0"
description = "Code generation for a small compiler and a simulator for the Tiny assembly language with cycle statistics"
requires-python = ">=3.10"
dependencies = []
keywords = ["compiler", "assembly", "simulator", "three-address-code", "tiny"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Compilers",
    "Topic :: Software Development :: Interpreters",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
microtiny = "microtiny.simulator:main"

[tool.hatch.build.targets.wheel]
packages = ["microtiny"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
