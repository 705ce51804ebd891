[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mqttd"
version = "0.1.0"
description = "MQTT broker building blocks: topic matching, in-memory storage, inflight tracking and offline queues"
requires-python = ">=3.10"
dependencies = []
keywords = ["mqtt", "broker", "pubsub", "iot", "messaging"]
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
    "Topic :: Communications",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["mqttd"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
