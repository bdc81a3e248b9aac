[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "webapp"
version = "1.8.6"
description = "A small threaded HTTP server library with sessions, cookies, multipart uploads and static file delivery"
requires-python = ">=3.10"
dependencies = []
keywords = ["http", "server", "web", "sessions", "cookies", "static files", "multipart"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
webapp-hello = "webapp.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["webapp"]

[tool.pytest.ini_options]
addopts = "-ra"
