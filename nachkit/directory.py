"""A fixed-size table mapping file names to file-header sectors."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import ClassVar, List, Optional

FILE_NAME_MAX_LEN = 9

_ENTRY = struct.Struct(f"<?3xi{FILE_NAME_MAX_LEN + 1}s2x")


@dataclass
class DirectoryEntry:
    """One slot of a directory: a name and where its file header lives."""

    in_use: bool = False
    sector: int = 0
    name: str = ""

    SIZE: ClassVar[int] = _ENTRY.size

    def pack(self) -> bytes:
        """Encode the entry in its on-disk form."""
        raw = self.name[:FILE_NAME_MAX_LEN].encode("latin-1")
        return _ENTRY.pack(self.in_use, self.sector, raw)

    @classmethod
    def unpack(cls, data: bytes) -> "DirectoryEntry":
        """Decode an entry from its on-disk form."""
        in_use, sector, raw = _ENTRY.unpack(data)
        return cls(in_use, sector, raw.split(b"\0", 1)[0].decode("latin-1"))


def _key(name: str) -> str:
    return name[:FILE_NAME_MAX_LEN]


class Directory:
    """A directory of at most ``size`` files; it cannot grow."""

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError("directory size must not be negative")
        self.size = size
        self._table = [DirectoryEntry() for _ in range(size)]

    @property
    def byte_size(self) -> int:
        """Number of bytes the directory occupies on disk."""
        return self.size * DirectoryEntry.SIZE

    def fetch_from(self, file) -> None:
        """Load the table from ``file``, an open file with ``read_at``."""
        data = bytes(file.read_at(self.byte_size, 0)).ljust(self.byte_size, b"\0")
        self._table = [
            DirectoryEntry.unpack(data[start:start + DirectoryEntry.SIZE])
            for start in range(0, self.byte_size, DirectoryEntry.SIZE)
        ]

    def write_back(self, file) -> None:
        """Store the table into ``file``, an open file with ``write_at``."""
        file.write_at(b"".join(entry.pack() for entry in self._table), 0)

    def _find_entry(self, name: str) -> Optional[DirectoryEntry]:
        key = _key(name)
        return next(
            (e for e in self._table if e.in_use and _key(e.name) == key), None
        )

    def find(self, name: str) -> Optional[int]:
        """Return the header sector of file ``name``, or None if absent."""
        entry = self._find_entry(name)
        return entry.sector if entry is not None else None

    def add(self, name: str, sector: int) -> bool:
        """Add ``name``; False if it already exists or the table is full."""
        if self._find_entry(name) is not None:
            return False
        free = next((e for e in self._table if not e.in_use), None)
        if free is None:
            return False
        free.in_use = True
        free.name = _key(name)
        free.sector = sector
        return True

    def remove(self, name: str) -> bool:
        """Remove ``name``; False if it is not in the directory."""
        entry = self._find_entry(name)
        if entry is None:
            return False
        entry.in_use = False
        return True

    def names(self) -> List[str]:
        """Names of all files, in table order."""
        return [entry.name for entry in self._table if entry.in_use]

    def entries(self) -> List[DirectoryEntry]:
        """Copies of the entries in use, in table order."""
        return [
            DirectoryEntry(True, entry.sector, entry.name)
            for entry in self._table
            if entry.in_use
        ]