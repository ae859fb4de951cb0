"""Process-local, auto-refreshing cache over a JSON state file."""

from .core import LiveFile
from .errors import (
    LiveFileDecodeError,
    LiveFileEncodeError,
    LiveFileError,
    LiveFileIOError,
    OperationContext,
    abort_process,
    log_and_continue,
    raise_error,
)
from .fs import FileStat, FileSystem, OSFileSystem
from .memfs import MemoryFileSystem
from .utils.envs import get_settings, reset_settings, update_settings

__all__ = [
    "FileStat",
    "FileSystem",
    "LiveFile",
    "LiveFileDecodeError",
    "LiveFileEncodeError",
    "LiveFileError",
    "LiveFileIOError",
    "MemoryFileSystem",
    "OSFileSystem",
    "OperationContext",
    "abort_process",
    "get_settings",
    "log_and_continue",
    "raise_error",
    "reset_settings",
    "update_settings",
]
