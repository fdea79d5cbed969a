# sixfs

`sixfs` is a compact Unix-style file system written in plain Python. It
models a storage stack on a block device held in memory, and needs no
third-party packages.

- **On-disk layout** (`sixfs.layout`): 1024-byte blocks, a `Superblock`,
  a redo log, a table of `DiskInode` records with twelve direct block
  addresses and one indirect block, a free-block bitmap and 16-byte
  `Dirent` directory entries with names of up to 14 bytes. Each record has
  `pack()` and `unpack()`.
- **Disk** (`sixfs.disk`): `MemoryDisk`, a block device kept in memory
  that can be loaded with `MemoryDisk.from_file` and written back with
  `save`. Out-of-range blocks raise `DiskError`.
- **Buffer cache** (`sixfs.bufcache`): `BufferCache` keeps a fixed pool
  of buffers in most-recently-used order and recycles the least recently
  used one that is neither held nor dirty (`bread`, `bwrite`, `brelse`).
- **Log** (`sixfs.log`): `Log` groups block writes into transactions.
  Changes reach their home blocks only when the last outstanding
  operation ends; a committed log is replayed when the file system is
  mounted. A block written several times in one transaction is logged
  once.
- **Inodes, directories and path names** (`sixfs.fs`): `FileSystem`
  allocates inodes and blocks, reads and writes inode content, frees an
  inode and its blocks when the last reference to an unlinked inode is
  dropped, looks up and adds directory entries, and resolves paths such as
  `/a//b/c` (`namei`, `nameiparent`). Character devices can be attached
  through `FileSystem.devices`, keyed by major number.
- **Open files and pipes** (`sixfs.file`, `sixfs.pipe`): `FileTable`, a
  reference-counted table of `File` objects over inodes and pipe ends;
  `Pipe`, a 512-byte ring buffer.
- **Console** (`sixfs.console`, `sixfs.kbd`): `Console` edits input a
  line at a time with backspace, kill-line (Control-U) and end-of-file
  (Control-D) and collects echoed output in `Console.output`;
  `KeyboardDecoder` turns PC keyboard scan codes into characters, with
  shift, control and caps lock.
- **Page allocator** (`sixfs.kalloc`): `PageAllocator`, a free list of
  4096-byte page addresses.
- **Formatted output** (`sixfs.printf`): `format_user` handles
  `%d %x %p %s %c` with upper-case hex; `format_kernel` handles
  `%d %x %p %s` with lower-case hex.
- **Text tools** (`sixfs.grep`, `sixfs.tools`): a grep supporting
  `^ . * $`, and `cat`, `echo` and `ls`.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Building a disk image

`sixfs-mkfs` writes a fresh 2000-block image holding a root directory and
the given files, all placed in the root. A leading underscore is dropped
from each file name, and file names must not contain `/`.

```
sixfs-mkfs fs.img README _cat _ls
```

It prints the layout it chose and how many blocks are in use.

From Python, `build_image` takes `(name, data)` pairs and returns the
image bytes; `ImageBuilder` offers the same steps one at a time
(`add_file`, `ialloc`, `iappend`, `finish`).

## Listing an image and other tools

`sixfs-tools` runs one of three small tools:

```
sixfs-tools ls fs.img /          # name, type, inode number and size of each entry
sixfs-tools cat notes.txt        # copy host files (or standard input) to standard output
sixfs-tools echo hello world
```

`ls` reads the image and lists the given paths, or the root directory
when none is given.

## Searching text

`sixfs-grep` prints every newline-terminated line that matches a pattern.
Without file names it reads standard input.

```
sixfs-grep '^ab*c$' notes.txt
```

The matcher is available directly:

```python
from sixfs.grep import match

match("^ab*c$", "abbbc")   # True
match("a.c", "xxabcxx")    # True
match("^b", "abc")         # False
```

## Reading and writing files in an image

```python
from sixfs.disk import MemoryDisk
from sixfs.fs import FileSystem
from sixfs.layout import InodeType

disk = MemoryDisk.from_file("fs.img", 1)
fs = FileSystem.mount(disk, 1)

ip = fs.namei("/README")
fs.ilock(ip)
data = fs.readi(ip, 0, ip.size)
fs.iunlockput(ip)

with fs.log.transaction():
    ip = fs.ialloc(InodeType.FILE)
    fs.ilock(ip)
    ip.nlink = 1
    fs.iupdate(ip)
    fs.writei(ip, b"hello\n", 0)
    fs.iunlock(ip)
    root = fs.namei("/")
    fs.ilock(root)
    fs.dirlink(root, "hello", ip.inum)
    fs.iunlockput(root)
    fs.iput(ip)

disk.save("fs.img")
```

`namei` returns `None` when the path does not exist. Every change made
through `FileSystem` must happen inside `Log.transaction()` (or between
`begin_op` and `end_op`); it reaches the disk when the transaction ends.
`FileTable.write` opens its own transactions, a few blocks at a time.

## Formatting

```python
from sixfs.printf import format_user

format_user("%s has %d blocks, %x free", "root", 42, 255)
# 'root has 42 blocks, FF free'
```

## Errors

Conditions that cannot be served raise an exception from the module
concerned: `DiskError`, `CacheError`, `LogError`, `FsError`,
`FileError` and `AllocatorError`. Nothing ever waits: a pipe or console
read with no data, or a full pipe, raises `WouldBlock`; `Log.begin_op`
raises `LogError` when a commit is running or the log has no room.

## What it does not do

There are no processes, no system-call layer and no scheduler, so no
operation ever sleeps. There are no ready-made helpers for creating,
removing or renaming files or directories by path: that is done with the
inode and directory calls shown above. `ls` reads an image but does not
change it, and `sixfs-mkfs` puts every file in the root directory.