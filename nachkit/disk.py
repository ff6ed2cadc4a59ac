"""A sector-addressed disk stored in a host file, with one request at a time."""

from __future__ import annotations

import io
import os
import threading
from typing import BinaryIO, Optional, Union

SECTOR_SIZE = 128
SECTORS_PER_TRACK = 32
NUM_TRACKS = 32
NUM_SECTORS = SECTORS_PER_TRACK * NUM_TRACKS


class DiskError(Exception):
    """Raised on an invalid disk request."""


class SynchDisk:
    """A disk whose reads and writes return only once they are complete.

    With ``path`` None the disk lives in memory only.
    """

    def __init__(
        self,
        path: Optional[Union[str, os.PathLike]] = None,
        sector_size: int = SECTOR_SIZE,
        num_sectors: int = NUM_SECTORS,
    ) -> None:
        if sector_size <= 0 or num_sectors <= 0:
            raise DiskError("sector size and sector count must be positive")
        self.sector_size = sector_size
        self.num_sectors = num_sectors
        self._lock = threading.Lock()
        total = sector_size * num_sectors
        if path is None:
            self._file: BinaryIO = io.BytesIO(bytes(total))
        else:
            mode = "r+b" if os.path.exists(path) else "w+b"
            self._file = open(path, mode)
            current = self._file.seek(0, io.SEEK_END)
            if current < total:
                self._file.write(bytes(total - current))
                self._file.flush()

    def _position(self, sector: int) -> int:
        if self._file.closed:
            raise DiskError("disk is closed")
        if not 0 <= sector < self.num_sectors:
            raise DiskError(f"sector {sector} out of range")
        return sector * self.sector_size

    def read_sector(self, sector: int) -> bytes:
        """Return the contents of ``sector``."""
        with self._lock:
            self._file.seek(self._position(sector))
            data = self._file.read(self.sector_size)
        return data.ljust(self.sector_size, b"\0")

    def write_sector(self, sector: int, data: bytes) -> None:
        """Write ``data`` to ``sector``; shorter data is padded with zeros."""
        data = bytes(data)
        if len(data) > self.sector_size:
            raise DiskError(
                f"{len(data)} bytes do not fit in a {self.sector_size}-byte sector"
            )
        with self._lock:
            self._file.seek(self._position(sector))
            self._file.write(data.ljust(self.sector_size, b"\0"))
            self._file.flush()

    def close(self) -> None:
        """Release the backing file."""
        with self._lock:
            if not self._file.closed:
                self._file.close()

    def __enter__(self) -> "SynchDisk":
        return self

    def __exit__(self, *args) -> None:
        self.close()