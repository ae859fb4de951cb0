"""In-memory :class:`~livefile.fs.FileSystem` for tests and ephemeral state."""

from __future__ import annotations

import io
import threading
import time
from pathlib import Path

from .fs import FileStat

__all__ = ["MemoryFile", "MemoryFileSystem"]


class _Node:
    __slots__ = ("data", "mtime_ns", "syncs")

    def __init__(self, mtime_ns: int) -> None:
        self.data = bytearray()
        self.mtime_ns = mtime_ns
        self.syncs = 0


class MemoryFile:
    def __init__(self, fs: "MemoryFileSystem", node: _Node, *, writable: bool) -> None:
        self._fs = fs
        self._node = node
        self._writable = writable
        self._pos = 0
        self.closed = False

    def _check(self, *, write: bool = False) -> None:
        if self.closed:
            raise ValueError("I/O operation on closed file")
        if write and not self._writable:
            raise io.UnsupportedOperation("not writable")

    def read(self, size: int = -1) -> bytes:
        self._check()
        with self._fs._lock:
            data = self._node.data
            end = len(data) if size is None or size < 0 else self._pos + size
            chunk = bytes(data[self._pos:end])
        self._pos += len(chunk)
        return chunk

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        self._check()
        if whence == io.SEEK_SET:
            target = offset
        elif whence == io.SEEK_CUR:
            target = self._pos + offset
        elif whence == io.SEEK_END:
            with self._fs._lock:
                target = len(self._node.data) + offset
        else:
            raise ValueError(f"invalid whence ({whence!r})")
        if target < 0:
            raise OSError(22, "Invalid argument")
        self._pos = target
        return target

    def write(self, data: bytes) -> int:
        self._check(write=True)
        with self._fs._lock:
            buf = self._node.data
            if self._pos > len(buf):
                buf.extend(b"\0" * (self._pos - len(buf)))
            buf[self._pos:self._pos + len(data)] = data
            self._node.mtime_ns = self._fs._tick()
        self._pos += len(data)
        return len(data)

    def truncate(self, size: int) -> int:
        self._check(write=True)
        with self._fs._lock:
            buf = self._node.data
            if size < len(buf):
                del buf[size:]
            else:
                buf.extend(b"\0" * (size - len(buf)))
            self._node.mtime_ns = self._fs._tick()
        return size

    def sync(self) -> None:
        self._check(write=True)
        with self._fs._lock:
            self._node.syncs += 1

    def stat(self) -> FileStat:
        self._check()
        with self._fs._lock:
            return FileStat(size=len(self._node.data), mtime_ns=self._node.mtime_ns)

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "MemoryFile":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class MemoryFileSystem:
    """Files and directories kept in process memory.

    Modification times come from a clock that strictly increases on every
    change, so two consecutive writes are always distinguishable. A removed
    file stays readable through handles opened before the removal.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._files: dict[Path, _Node] = {}
        self._dirs: set[Path] = set()
        self._last_tick = 0

    def _tick(self) -> int:
        with self._lock:
            self._last_tick = max(time.time_ns(), self._last_tick + 1)
            return self._last_tick

    @staticmethod
    def _key(path: Path | str) -> Path:
        return Path(path)

    def _dir_exists(self, path: Path) -> bool:
        return path == Path(path.anchor) or path == Path(".") or path in self._dirs

    def open(self, path: Path | str) -> MemoryFile:
        key = self._key(path)
        with self._lock:
            node = self._files.get(key)
            if node is None:
                if key in self._dirs:
                    raise IsADirectoryError(21, "Is a directory", str(key))
                raise FileNotFoundError(2, "No such file or directory", str(key))
        return MemoryFile(self, node, writable=False)

    def open_or_create(self, path: Path | str, mode: int | None = None) -> MemoryFile:
        key = self._key(path)
        with self._lock:
            node = self._files.get(key)
            if node is None:
                if key in self._dirs:
                    raise IsADirectoryError(21, "Is a directory", str(key))
                if not self._dir_exists(key.parent):
                    raise FileNotFoundError(2, "No such file or directory", str(key))
                node = _Node(self._tick())
                self._files[key] = node
        return MemoryFile(self, node, writable=True)

    def makedirs(self, path: Path | str, mode: int | None = None) -> None:
        key = self._key(path)
        chain = (key, *key.parents)
        with self._lock:
            for candidate in chain:
                if candidate in self._files:
                    raise FileExistsError(17, "File exists", str(candidate))
            self._dirs.update(candidate for candidate in chain if not self._dir_exists(candidate))

    def remove(self, path: Path | str) -> None:
        key = self._key(path)
        with self._lock:
            if self._files.pop(key, None) is None:
                raise FileNotFoundError(2, "No such file or directory", str(key))

    # ------------------------------------------------------------------
    # inspection helpers
    def exists(self, path: Path | str) -> bool:
        key = self._key(path)
        with self._lock:
            return key in self._files or key in self._dirs

    def read_bytes(self, path: Path | str) -> bytes:
        with self.open(path) as handle:
            return handle.read()

    def write_bytes(self, path: Path | str, data: bytes) -> None:
        """Replace the content of ``path`` as an outside writer would."""

        key = self._key(path)
        self.makedirs(key.parent)
        with self.open_or_create(key) as handle:
            handle.truncate(0)
            handle.write(data)

    def set_mtime(self, path: Path | str, mtime_ns: int) -> None:
        key = self._key(path)
        with self._lock:
            self._files[key].mtime_ns = mtime_ns

    def sync_count(self, path: Path | str) -> int:
        key = self._key(path)
        with self._lock:
            return self._files[key].syncs
