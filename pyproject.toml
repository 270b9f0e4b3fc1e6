[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "natnetbridge"
version = "0.1.0"
description = "Receive NatNet motion-capture frames over UDP multicast and publish rigid-body poses, odometry and transforms"
requires-python = ">=3.10"
keywords = [
    "natnet",
    "optitrack",
    "motion capture",
    "mocap",
    "rigid body",
    "multicast",
    "robotics",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Interface Engine/Protocol Translator",
    "Topic :: System :: Networking",
    "Typing :: Typed",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
natnet-bridge = "natnetbridge.node:main"

[tool.hatch.build.targets.wheel]
packages = ["natnetbridge"]

[tool.hatch.build.targets.sdist]
include = [
    "natnetbridge",
    "tests",
    "pyproject.toml",
]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
