[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cspnet"
version = "0.1.0"
description = "CubeSat Space Protocol link layers: KISS, I2C, loopback, tunnel, UDP and ZeroMQ hub interfaces"
requires-python = ">=3.10"
keywords = [
    "csp",
    "cubesat",
    "space-protocol",
    "kiss",
    "i2c",
    "udp",
    "zeromq",
    "serial",
    "networking",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: Scientific/Engineering :: Astronomy",
]
dependencies = [
    "pyzmq",
    "pyserial",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["cspnet"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
