"""Simple exercises for the file system: copy in, print out, stress test."""

from __future__ import annotations

import sys
from typing import Optional, TextIO

from .filesys import FileSystem, FileSystemFull

TRANSFER_SIZE = 10

TEST_FILE_NAME = "TestFile"
CONTENTS = b"1234567890"
CONTENT_SIZE = len(CONTENTS)
FILE_SIZE = CONTENT_SIZE * 5000


def copy(fs: FileSystem, source_path, name: str) -> int:
    """Copy the host file ``source_path`` into the file system as ``name``.

    Returns the number of bytes copied.
    """
    with open(source_path, "rb") as source:
        source.seek(0, 2)
        length = source.tell()
        source.seek(0)
        if fs.open(name) is not None:
            raise FileExistsError(f"Copy: couldn't create output file {name}")
        if not fs.create(name, length):
            raise FileSystemFull(f"Copy: couldn't create output file {name}")
        target = fs.open(name)
        if target is None:
            raise FileNotFoundError(f"couldn't open file {name}")
        copied = 0
        while chunk := source.read(TRANSFER_SIZE):
            copied += target.write(chunk)
    return copied


def print_file(fs: FileSystem, name: str, out: Optional[TextIO] = None) -> int:
    """Write the contents of file ``name`` to ``out``; return the byte count."""
    stream = out if out is not None else sys.stdout
    handle = fs.open(name)
    if handle is None:
        raise FileNotFoundError(f"Print: unable to open file {name}")
    total = 0
    while chunk := handle.read(TRANSFER_SIZE):
        stream.write(chunk.decode("latin-1"))
        total += len(chunk)
    return total


def _file_write(fs: FileSystem, out: TextIO) -> bool:
    out.write(
        f"Sequential write of {FILE_SIZE} byte file, in {CONTENT_SIZE} byte chunks\n"
    )
    if not fs.create(TEST_FILE_NAME, 0):
        out.write(f"Perf test: can't create {TEST_FILE_NAME}\n")
        return False
    handle = fs.open(TEST_FILE_NAME)
    if handle is None:
        out.write(f"Perf test: unable to open {TEST_FILE_NAME}\n")
        return False
    for _ in range(0, FILE_SIZE, CONTENT_SIZE):
        if handle.write(CONTENTS) < CONTENT_SIZE:
            out.write(f"Perf test: unable to write {TEST_FILE_NAME}\n")
            return False
    return True


def _file_read(fs: FileSystem, out: TextIO) -> bool:
    out.write(
        f"Sequential read of {FILE_SIZE} byte file, in {CONTENT_SIZE} byte chunks\n"
    )
    handle = fs.open(TEST_FILE_NAME)
    if handle is None:
        out.write(f"Perf test: unable to open file {TEST_FILE_NAME}\n")
        return False
    for _ in range(0, FILE_SIZE, CONTENT_SIZE):
        if handle.read(CONTENT_SIZE) != CONTENTS:
            out.write(f"Perf test: unable to read {TEST_FILE_NAME}\n")
            return False
    return True


def performance_test(fs: FileSystem, out: Optional[TextIO] = None) -> bool:
    """Write a large file in small chunks, read it back, then remove it.

    Returns True only if every stage succeeded.
    """
    stream = out if out is not None else sys.stdout
    stream.write("Starting file system performance test:\n")
    wrote = _file_write(fs, stream)
    read = _file_read(fs, stream)
    if not fs.remove(TEST_FILE_NAME):
        stream.write(f"Perf test: unable to remove {TEST_FILE_NAME}\n")
        return False
    return wrote and read