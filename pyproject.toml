[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fancontrol"
version = "0.3.18"
description = "Notebook fan tools: embedded controller access, fan register search, configuration updates and service control"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "fan",
    "fan-control",
    "embedded-controller",
    "notebook",
    "laptop",
    "hwmon",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Hardware",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
fancontrol-bruteforce = "fancontrol.bruteforce:main"

[tool.hatch.build.targets.wheel]
packages = ["fancontrol"]

[tool.hatch.build.targets.sdist]
include = ["fancontrol", "tests", "pyproject.toml"]

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
