"""A flat file system on a simulated disk: one root directory and a free-sector bitmap."""

from __future__ import annotations

from typing import List, Optional, Tuple

from .directory import Directory
from .filehdr import FileHeader, FreeMap
from .openfile import OpenFile

FREE_MAP_SECTOR = 0
DIRECTORY_SECTOR = 1
NUM_DIR_ENTRIES = 10


class FileSystemFull(Exception):
    """Raised when the disk has no room for the file system's own structures."""


class FileSystem:
    """Files named in a single directory, with data placed through a bitmap.

    The bitmap and the directory are themselves files whose headers live in
    well-known sectors, so they can be found when the disk is mounted.
    Changes are written to disk only when an operation succeeds.
    """

    def __init__(self, disk, format: bool = False) -> None:
        self.disk = disk
        if format:
            self._format()
        self._free_map_file = OpenFile(disk, FREE_MAP_SECTOR)
        self._directory_file = OpenFile(disk, DIRECTORY_SECTOR)

    def _format(self) -> None:
        disk = self.disk
        if disk.num_sectors <= DIRECTORY_SECTOR:
            raise FileSystemFull("disk too small for the file system headers")
        free_map = FreeMap(disk.num_sectors)
        directory = Directory(NUM_DIR_ENTRIES)
        free_map.mark(FREE_MAP_SECTOR)
        free_map.mark(DIRECTORY_SECTOR)

        map_hdr = FileHeader(disk.sector_size)
        dir_hdr = FileHeader(disk.sector_size)
        if not map_hdr.allocate(free_map, free_map.byte_size):
            raise FileSystemFull("no room for the free-sector bitmap")
        if not dir_hdr.allocate(free_map, directory.byte_size):
            raise FileSystemFull("no room for the directory")

        # Headers must be on disk before the files can be opened.
        map_hdr.write_back(disk, FREE_MAP_SECTOR)
        dir_hdr.write_back(disk, DIRECTORY_SECTOR)
        free_map.write_back(OpenFile(disk, FREE_MAP_SECTOR))
        directory.write_back(OpenFile(disk, DIRECTORY_SECTOR))

    def _directory(self) -> Directory:
        directory = Directory(NUM_DIR_ENTRIES)
        directory.fetch_from(self._directory_file)
        return directory

    def _free_map(self) -> FreeMap:
        free_map = FreeMap(self.disk.num_sectors)
        free_map.fetch_from(self._free_map_file)
        return free_map

    def _load(self) -> Tuple[Directory, FreeMap]:
        return self._directory(), self._free_map()

    def create(self, name: str, initial_size: int) -> bool:
        """Create a file of fixed size ``initial_size``.

        Returns False if the name exists, or there is no free sector for the
        header, no free directory slot, or no room for the data.
        """
        directory = self._directory()
        if directory.find(name) is not None:
            return False
        free_map = self._free_map()
        sector = free_map.find()
        if sector is None:
            return False
        if not directory.add(name, sector):
            return False
        header = FileHeader(self.disk.sector_size)
        if not header.allocate(free_map, initial_size):
            return False
        header.write_back(self.disk, sector)
        directory.write_back(self._directory_file)
        free_map.write_back(self._free_map_file)
        return True

    def open(self, name: str) -> Optional[OpenFile]:
        """Open file ``name`` for reading and writing, or None if absent."""
        sector = self._directory().find(name)
        if sector is None:
            return None
        return OpenFile(self.disk, sector)

    def remove(self, name: str) -> bool:
        """Delete ``name`` and free its sectors; False if it does not exist."""
        directory, free_map = self._load()
        sector = directory.find(name)
        if sector is None:
            return False
        header = FileHeader(self.disk.sector_size)
        header.fetch_from(self.disk, sector)
        header.deallocate(free_map)
        free_map.clear(sector)
        directory.remove(name)
        free_map.write_back(self._free_map_file)
        directory.write_back(self._directory_file)
        return True

    def list(self) -> List[str]:
        """Names of all files in the directory."""
        return self._directory().names()

    def describe(self) -> str:
        """Everything about the file system: bitmap, directory and every file."""
        parts = ["Bit map file header:\n"]
        bit_hdr = FileHeader(self.disk.sector_size)
        bit_hdr.fetch_from(self.disk, FREE_MAP_SECTOR)
        parts.append(bit_hdr.describe(self.disk))

        parts.append("Directory file header:\n")
        dir_hdr = FileHeader(self.disk.sector_size)
        dir_hdr.fetch_from(self.disk, DIRECTORY_SECTOR)
        parts.append(dir_hdr.describe(self.disk))

        parts.append(self._free_map().describe())

        parts.append("Directory contents:\n")
        for entry in self._directory().entries():
            parts.append(f"Name: {entry.name}, Sector: {entry.sector}\n")
            header = FileHeader(self.disk.sector_size)
            header.fetch_from(self.disk, entry.sector)
            parts.append(header.describe(self.disk))
        parts.append("\n")
        return "".join(parts)