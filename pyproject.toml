[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "uthreadlib"
version = "0.1.0"
description = "User-level threads with a round-robin, quantum-based scheduler"
requires-python = ">=3.10"
dependencies = []
keywords = ["threads", "scheduler", "round-robin", "user-level-threads", "quantum"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
uthreadlib-demo = "uthreadlib.demo:main"
uthreadlib-examples = "uthreadlib.examples:main"

[tool.hatch.build.targets.wheel]
packages = ["uthreadlib"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
