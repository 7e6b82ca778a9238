[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gatorfeed"
version = "0.1.0"
description = "A command-line RSS feed aggregator: follow feeds, collect posts into SQLite and browse them."
requires-python = ">=3.10"
dependencies = []
keywords = ["rss", "feed", "aggregator", "cli", "news", "sqlite"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
gator = "gatorfeed.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["gatorfeed"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
