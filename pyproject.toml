[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "hfstools"
version = "0.1.0"
description = "Volume bookkeeping, listings, block cache, B*-tree and MDB checks for Macintosh HFS volumes"
requires-python = ">=3.10"
dependencies = []
keywords = ["hfs", "macintosh", "filesystem", "disk-image", "b-tree", "fsck"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
hvol = "hfstools.volcmds:main"
hpwd = "hfstools.volcmds:main"
humount = "hfstools.volcmds:main"

[tool.hatch.build.targets.wheel]
packages = ["hfstools"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
