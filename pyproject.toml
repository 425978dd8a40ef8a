[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rootfsgen"
version = "0.1.0"
description = "File generators for container and VM root filesystems, plus Windows installation media helpers"
requires-python = ">=3.10"
keywords = ["rootfs", "container", "lxc", "lxd", "image", "cloud-init", "generator", "windows"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Installation/Setup",
]
dependencies = [
    "jinja2",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["rootfsgen"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
