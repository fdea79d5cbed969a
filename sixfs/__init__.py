"""A small Unix-style block file system in memory: image builder, buffer cache, redo log,
inodes and directories, open files, pipes, console line editing and text tools."""

__version__ = "0.1.0"