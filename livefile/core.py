"""Mutually exclusive, auto-refreshing cache over a JSON state file.

A :class:`LiveFile` keeps one in-memory copy of a value that is persisted as
indented JSON. Every access first checks whether the file on disk changed
since it was last seen and reloads it when it did, so edits made by another
process or by an operator show up without restarting. Updates are
transactional: the callback either succeeds and the value is written and
synced, or it raises and the in-memory copy is restored from disk.

No file locks are taken. Writers in other processes race at the file level
and the last writer wins.
"""

from __future__ import annotations

import copy
import os
import threading
from pathlib import Path
from typing import Any, Callable, Generic, Mapping, Optional, TypeVar

from .codec import ValueCodec
from .errors import (
    ErrorHandler,
    LiveFileDecodeError,
    LiveFileEncodeError,
    LiveFileError,
    LiveFileIOError,
    OperationContext,
    abort_process,
)
from .fs import FileHandle, FileSystem, OSFileSystem
from .utils.log import is_enabled_for, log
from .utils.paths import resolve_path

T = TypeVar("T")

__all__ = ["DEFAULT_ERROR_HANDLER", "DEFAULT_FILE_SYSTEM", "LiveFile", "LoadedCallback"]

LoadedCallback = Callable[[OperationContext, Any], None]

# Both are read when a LiveFile is constructed, not on every call.
DEFAULT_ERROR_HANDLER: ErrorHandler = abort_process
DEFAULT_FILE_SYSTEM: FileSystem = OSFileSystem()


class LiveFile(Generic[T]):
    """Cache a JSON file's content and keep it in sync with the disk.

    Parameters
    ----------
    path:
        Backing file. Relative paths are joined to ``base_dir`` or, when that
        is ``None``, to the ``base_dir`` setting. The file does not have to
        exist; it is created by the first successful :meth:`update`.
    default:
        Zero-argument callable returning the value used while the file is
        missing or empty. Defaults to ``value_type()`` or an empty ``dict``.
    value_type:
        Type used to decode and encode the JSON content. Inferred from the
        default value when omitted. A reload builds a fresh value from the
        file alone: fields missing from the JSON take the type's own
        defaults, not the previously cached ones, and a missing required
        field is a decode error.
    fs:
        :class:`~livefile.fs.FileSystem` performing the I/O.
    error_handler:
        Policy called with ``(context, error)`` for I/O, decode and encode
        failures. The default logs the failure and aborts the process; pass
        :func:`~livefile.errors.raise_error` or
        :func:`~livefile.errors.log_and_continue` to degrade instead.
    on_loaded:
        Called with ``(context, value)`` after every successful reload, while
        the lock is still held.

    All methods serialise on one non-reentrant lock. Callbacks passed to
    :meth:`view` and :meth:`update` must not call back into the same
    instance and must not keep the value they receive.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        default: Optional[Callable[[], T]] = None,
        *,
        value_type: Any = None,
        fs: Optional[FileSystem] = None,
        error_handler: Optional[ErrorHandler] = None,
        on_loaded: Optional[LoadedCallback] = None,
        base_dir: str | os.PathLike[str] | None = None,
    ) -> None:
        self._path = resolve_path(path, base_dir)
        self._fs = fs if fs is not None else DEFAULT_FILE_SYSTEM
        self._error_handler = error_handler if error_handler is not None else DEFAULT_ERROR_HANDLER
        self._on_loaded = on_loaded

        if default is None:
            default = value_type if value_type is not None else dict
        self._default: Callable[[], T] = default
        self._cached: T = default()
        self._codec: ValueCodec[T] = ValueCodec(
            value_type if value_type is not None else type(self._cached)
        )

        self._last_mtime_ns: int | None = None
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def __repr__(self) -> str:
        return f"LiveFile({str(self._path)!r}, value_type={self._codec.value_type!r})"

    # ------------------------------------------------------------------
    # public API
    def view(self, fn: Callable[[T], Any], *, context: Mapping[str, Any] | None = None) -> Any:
        """Call ``fn`` with the current value and return its result.

        Nothing is written. The value must not be stored or modified.
        """

        with self._lock:
            self._ensure("view", context)
            return fn(self._cached)

    def peek(self, *, context: Mapping[str, Any] | None = None) -> T:
        """Return an independent copy of the current value."""

        with self._lock:
            self._ensure("peek", context)
            return copy.deepcopy(self._cached)

    def update(
        self,
        fn: Callable[[T], Optional[T]],
        *,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        """Modify the value through ``fn`` and persist it.

        ``fn`` may mutate its argument in place or return a replacement
        value. When it raises, the in-memory value is reloaded from the file
        as it was before the call and the exception propagates unchanged.

        When the file cannot be opened or written and the error policy
        returns, the reported :class:`~livefile.errors.LiveFileError` is
        raised so the caller never mistakes an unpersisted update for a
        committed one.
        """

        with self._lock:
            self._ensure("update", context)

            handle = self._open_for_write(context)

            with handle:
                self._load_if_updated(handle, "update", context)
                try:
                    result = fn(self._cached)
                except BaseException as exc:
                    try:
                        self._force_load(handle, "update", context)
                    finally:
                        self._log_rollback(exc, context)
                    raise
                if result is not None:
                    self._cached = result
                self._write(handle, context)

    def reset(self, *, context: Mapping[str, Any] | None = None) -> None:
        """Delete the backing file and return to the default value."""

        with self._lock:
            try:
                self._fs.remove(self._path)
            except FileNotFoundError:
                pass
            except OSError as exc:
                self._report("reset", "remove", context, LiveFileIOError, exc)
                return

            self._cached = self._default()
            self._last_mtime_ns = None
            log("livefile.reset", path=str(self._path), context=dict(context or {}))

    # ------------------------------------------------------------------
    # freshness
    def _ensure(self, operation: str, context: Mapping[str, Any] | None) -> None:
        try:
            handle = self._fs.open(self._path)
        except FileNotFoundError:
            return
        except OSError as exc:
            self._report(operation, "open", context, LiveFileIOError, exc)
            return

        with handle:
            self._load_if_updated(handle, operation, context)

    def _load_if_updated(
        self,
        handle: FileHandle,
        operation: str,
        context: Mapping[str, Any] | None,
    ) -> None:
        try:
            stat = handle.stat()
        except OSError as exc:
            self._report(operation, "stat", context, LiveFileIOError, exc)
            return

        # An empty file keeps whatever is cached.
        if stat.size == 0:
            return

        if self._last_mtime_ns is None or stat.mtime_ns > self._last_mtime_ns:
            self._force_load(handle, operation, context)
            self._last_mtime_ns = stat.mtime_ns

    def _force_load(
        self,
        handle: FileHandle,
        operation: str,
        context: Mapping[str, Any] | None,
    ) -> None:
        try:
            handle.seek(0)
        except OSError as exc:
            self._report(operation, "seek", context, LiveFileIOError, exc)
            return

        try:
            raw = handle.read()
        except OSError as exc:
            self._report(operation, "read", context, LiveFileIOError, exc)
            return

        if not raw.strip():
            # truncated by a concurrent writer after the size was checked
            value = self._default()
        else:
            try:
                value = self._codec.decode(raw)
            except ValueError as exc:
                self._report(operation, "decode", context, LiveFileDecodeError, exc)
                return

        self._cached = value

        if is_enabled_for("debug"):
            log(
                "livefile.loaded",
                severity="debug",
                path=str(self._path),
                last_mtime_ns=self._last_mtime_ns,
                data=self._codec.to_builtins(value),
                context=dict(context or {}),
            )

        if self._on_loaded is not None:
            self._on_loaded(self._context(operation, "loaded", context), self._cached)

    # ------------------------------------------------------------------
    # writing
    def _open_for_write(self, context: Mapping[str, Any] | None) -> FileHandle:
        try:
            return self._fs.open_or_create(self._path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise self._report("update", "open", context, LiveFileIOError, exc)

        try:
            self._fs.makedirs(self._path.parent)
        except OSError as exc:
            raise self._report("update", "mkdir", context, LiveFileIOError, exc)

        try:
            return self._fs.open_or_create(self._path)
        except OSError as exc:
            raise self._report("update", "open", context, LiveFileIOError, exc)

    def _write(self, handle: FileHandle, context: Mapping[str, Any] | None) -> None:
        try:
            payload = self._codec.encode(self._cached)
        except (TypeError, ValueError) as exc:
            raise self._report("update", "encode", context, LiveFileEncodeError, exc)

        steps: tuple[tuple[str, Callable[[], Any]], ...] = (
            ("truncate", lambda: handle.truncate(0)),
            ("seek", lambda: handle.seek(0)),
            ("write", lambda: handle.write(payload)),
            ("sync", handle.sync),
        )
        for stage, step in steps:
            try:
                step()
            except OSError as exc:
                raise self._report("update", stage, context, LiveFileIOError, exc)

        try:
            stat = handle.stat()
        except OSError as exc:
            raise self._report("update", "stat", context, LiveFileIOError, exc)

        self._last_mtime_ns = stat.mtime_ns
        log(
            "livefile.update.committed",
            severity="debug",
            path=str(self._path),
            size=stat.size,
            mtime_ns=stat.mtime_ns,
            context=dict(context or {}),
        )

    def _log_rollback(self, exc: BaseException, context: Mapping[str, Any] | None) -> None:
        try:
            log(
                "livefile.update.rollback",
                path=str(self._path),
                error=repr(exc),
                context=dict(context or {}),
            )
        except OSError:
            # an unwritable log must not replace the caller's exception
            return

    # ------------------------------------------------------------------
    # errors
    def _context(
        self,
        operation: str,
        stage: str,
        context: Mapping[str, Any] | None,
    ) -> OperationContext:
        return OperationContext(
            operation=operation,
            path=self._path,
            stage=stage,
            extra=dict(context or {}),
        )

    def _report(
        self,
        operation: str,
        stage: str,
        context: Mapping[str, Any] | None,
        error_type: type[LiveFileError],
        cause: BaseException,
    ) -> LiveFileError:
        """Hand a wrapped failure to the error policy and return it."""

        ctx = self._context(operation, stage, context)
        error = error_type(f"{stage} failed for {self._path}: {cause}", ctx)
        error.__cause__ = cause
        self._error_handler(ctx, error)
        return error
