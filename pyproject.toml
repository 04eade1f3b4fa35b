[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "otel-extras"
version = "0.1.0"
description = "Resource detectors, a Cloud Trace context propagator and a Stackdriver span exporter for OpenTelemetry-style telemetry"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "opentelemetry",
    "telemetry",
    "tracing",
    "resource-detection",
    "propagation",
    "stackdriver",
    "cloud-trace",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Framework :: AsyncIO",
    "Topic :: System :: Monitoring",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest", "pytest-asyncio"]

[tool.hatch.build.targets.wheel]
packages = ["otel_extras"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
