[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "asynctracker"
version = "0.1.0"
description = "Task tracker services with JWT-protected HTTP APIs and event-driven account synchronisation"
requires-python = ">=3.11"
keywords = ["task-tracker", "events", "jwt", "flask", "sqlite"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
    "Topic :: Office/Business :: Groupware",
]
dependencies = [
    "flask",
    "pyjwt",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["asynctracker"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
