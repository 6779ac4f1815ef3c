[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tankarena"
version = "0.1.0"
description = "Multiplayer tank arena game server over WebSocket with a procedurally generated map"
requires-python = ">=3.10"
keywords = ["game", "tank", "websocket", "multiplayer", "procedural-map", "server"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Web Environment",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment :: Arcade",
]
dependencies = [
    "aiohttp>=3.8",
    "pillow>=9.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "pytest-asyncio>=0.21",
]

[project.scripts]
tankarena = "tankarena.server:main"

[tool.hatch.build.targets.wheel]
packages = ["tankarena"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
