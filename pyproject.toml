[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "treasurenet"
version = "0.1.0"
description = "Two-player treasure hunt played over a raw packet socket with a stop-and-wait file transfer protocol"
requires-python = ">=3.10"
dependencies = []
keywords = ["game", "treasure", "raw-socket", "ethernet", "protocol", "file-transfer"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment :: Puzzle Games",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
treasurenet = "treasurenet.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["treasurenet"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
