[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "jobqueue"
version = "0.1.0"
description = "A PostgreSQL-backed job queue with retry policies, FIFO processing and dead-letter queues."
requires-python = ">=3.10"
dependencies = []
keywords = ["job queue", "background jobs", "worker", "retry", "dead-letter queue", "postgresql"]
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
    "Topic :: System :: Distributed Computing",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["jobqueue"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
