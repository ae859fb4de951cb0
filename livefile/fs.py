"""Filesystem abstraction used by :class:`~livefile.core.LiveFile`.

The controller only needs a handful of operations: open for reading, open
or create for writing, create directories and remove files. Handles must be
seekable, truncatable and syncable and report their size and modification
time. :class:`OSFileSystem` maps these onto the host operating system;
:class:`~livefile.memfs.MemoryFileSystem` keeps everything in memory.
"""

from __future__ import annotations

import io
import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Protocol, runtime_checkable

from .utils.envs import get_settings
from .utils.file_io import ensure_directory

__all__ = ["FileHandle", "FileStat", "FileSystem", "OSFile", "OSFileSystem"]


@dataclass(frozen=True)
class FileStat:
    size: int
    mtime_ns: int


@runtime_checkable
class FileHandle(Protocol):
    def read(self, size: int = -1) -> bytes: ...

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int: ...

    def write(self, data: bytes) -> int: ...

    def truncate(self, size: int) -> int: ...

    def sync(self) -> None: ...

    def stat(self) -> FileStat: ...

    def close(self) -> None: ...

    def __enter__(self) -> "FileHandle": ...

    def __exit__(self, exc_type, exc, tb) -> None: ...


@runtime_checkable
class FileSystem(Protocol):
    def open(self, path: Path) -> FileHandle:
        """Open ``path`` read-only; raise :class:`FileNotFoundError` if absent."""

    def open_or_create(self, path: Path, mode: int | None = None) -> FileHandle:
        """Open ``path`` read-write, creating it when missing.

        Raises :class:`FileNotFoundError` when the parent directory is absent.
        """

    def makedirs(self, path: Path, mode: int | None = None) -> None: ...

    def remove(self, path: Path) -> None: ...


class OSFile:
    """Thin wrapper giving a binary file object the :class:`FileHandle` shape."""

    def __init__(self, raw: BinaryIO) -> None:
        self._raw = raw

    @property
    def closed(self) -> bool:
        return self._raw.closed

    def read(self, size: int = -1) -> bytes:
        return self._raw.read(size)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        return self._raw.seek(offset, whence)

    def write(self, data: bytes) -> int:
        return self._raw.write(data)

    def truncate(self, size: int) -> int:
        return self._raw.truncate(size)

    def sync(self) -> None:
        self._raw.flush()
        os.fsync(self._raw.fileno())

    def stat(self) -> FileStat:
        self._raw.flush()
        result = os.fstat(self._raw.fileno())
        return FileStat(size=result.st_size, mtime_ns=result.st_mtime_ns)

    def close(self) -> None:
        self._raw.close()

    def __enter__(self) -> "OSFile":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class OSFileSystem:
    """:class:`FileSystem` backed by the host operating system.

    ``file_mode`` and ``dir_mode`` default to the ``file_mode``/``dir_mode``
    settings when left as ``None``.
    """

    def __init__(self, *, file_mode: int | None = None, dir_mode: int | None = None) -> None:
        self.file_mode = file_mode
        self.dir_mode = dir_mode

    def open(self, path: Path) -> OSFile:
        return OSFile(open(path, "rb"))

    def open_or_create(self, path: Path, mode: int | None = None) -> OSFile:
        if mode is None:
            mode = self.file_mode if self.file_mode is not None else get_settings().file_mode
        fd = os.open(path, os.O_RDWR | os.O_CREAT, mode)
        try:
            raw = os.fdopen(fd, "r+b")
        except Exception:
            os.close(fd)
            raise
        return OSFile(raw)

    def makedirs(self, path: Path, mode: int | None = None) -> None:
        if mode is None:
            mode = self.dir_mode if self.dir_mode is not None else get_settings().dir_mode
        ensure_directory(path, mode=mode)

    def remove(self, path: Path) -> None:
        os.remove(path)
