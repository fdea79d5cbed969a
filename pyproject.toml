[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sixfs"
version = "0.1.0"
description = "A small Unix-style block file system in memory: image builder, buffer cache, redo log, inodes, directories, open files, pipes, console line editing and small text tools"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "filesystem",
    "inode",
    "buffer-cache",
    "write-ahead-log",
    "disk-image",
    "mkfs",
    "grep",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
sixfs-mkfs = "sixfs.mkfs:main"
sixfs-grep = "sixfs.grep:main"
sixfs-tools = "sixfs.tools:main"

[tool.hatch.build.targets.wheel]
packages = ["sixfs"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
