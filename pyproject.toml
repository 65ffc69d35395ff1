[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "httpdiff"
version = "0.1.0"
description = "Replay recorded requests against two HTTP endpoints and report where their JSON responses differ"
requires-python = ">=3.11"
keywords = ["http", "diff", "regression", "json", "api", "comparison", "testing"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Testing",
    "Topic :: Internet :: WWW/HTTP",
]
dependencies = [
    "httpx",
]

[project.optional-dependencies]
test = [
    "pytest",
    "respx",
]

[project.scripts]
http-diff = "httpdiff.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["httpdiff"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]
