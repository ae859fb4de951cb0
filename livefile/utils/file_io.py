"""Small filesystem helpers shared by the log writer and the OS provider.

The cache controller itself never uses these: it talks to the injectable
:class:`~livefile.fs.FileSystem`. The helpers here cover the ambient pieces
around it:

* directory creation with explicit permission bits;
* atomic rewrites for log pruning, so a crash never leaves a half-written
  log behind; and
* reading the tail of a JSONL log without loading the whole file.
"""

from __future__ import annotations

from pathlib import Path
import contextlib
import io
import os
import tempfile

__all__ = ["atomic_write_text", "ensure_directory", "tail_lines"]


def ensure_directory(path: Path | str, *, mode: int = 0o777) -> Path:
    """Ensure that ``path`` exists and return it as a :class:`Path`."""

    directory = Path(path)
    directory.mkdir(mode=mode, parents=True, exist_ok=True)
    return directory


def atomic_write_text(
    path: Path | str,
    text: str,
    *,
    encoding: str = "utf-8",
    fsync: bool = False,
) -> None:
    """Replace ``path`` with ``text`` through a temporary sibling file.

    The permission bits of an existing destination are carried over to the
    replacement.
    """

    destination = Path(path)
    ensure_directory(destination.parent)

    existing_mode: int | None = None
    with contextlib.suppress(FileNotFoundError):
        existing_mode = destination.stat().st_mode

    tmp_name: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", encoding=encoding, delete=False, dir=destination.parent
        ) as handle:
            tmp_name = handle.name
            handle.write(text)
            handle.flush()
            if fsync:
                os.fsync(handle.fileno())

        if existing_mode is not None:
            os.chmod(tmp_name, existing_mode)
        os.replace(tmp_name, destination)
    except Exception:
        if tmp_name:
            with contextlib.suppress(FileNotFoundError):
                os.remove(tmp_name)
        raise


def tail_lines(
    path: Path | str,
    limit: int,
    *,
    encoding: str = "utf-8",
    errors: str = "replace",
    drop_blank: bool = False,
) -> list[str]:
    """Return the last ``limit`` lines of ``path`` without line endings.

    Missing files and non-positive limits yield an empty list.
    """

    target = Path(path)
    if limit <= 0:
        return []

    try:
        handle = target.open("rb")
    except FileNotFoundError:
        return []

    with handle:
        handle.seek(0, os.SEEK_END)
        position = handle.tell()
        buffer = bytearray()
        block_size = 8192

        # one extra newline so the first kept line is complete
        while position > 0 and buffer.count(b"\n") <= limit:
            read_size = min(block_size, position)
            position -= read_size
            handle.seek(position)
            buffer[:0] = handle.read(read_size)

    with contextlib.closing(
        io.TextIOWrapper(io.BytesIO(bytes(buffer)), encoding=encoding, errors=errors)
    ) as wrapper:
        lines = wrapper.read().splitlines()[-limit:]

    if drop_blank:
        lines = [line for line in lines if line.strip()]
    return lines
