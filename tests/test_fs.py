from __future__ import annotations

import os
import stat

import pytest

from livefile.fs import FileHandle, FileSystem, OSFileSystem
from livefile.utils import envs


def test_os_filesystem_satisfies_protocol(tmp_path):
    fs = OSFileSystem()

    assert isinstance(fs, FileSystem)
    with fs.open_or_create(tmp_path / "a.json") as handle:
        assert isinstance(handle, FileHandle)


def test_open_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        OSFileSystem().open(tmp_path / "missing.json")


def test_open_or_create_missing_parent_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        OSFileSystem().open_or_create(tmp_path / "nope" / "state.json")


def test_handle_round_trip(tmp_path):
    fs = OSFileSystem()
    target = tmp_path / "state.json"

    with fs.open_or_create(target) as handle:
        handle.write(b"0123456789")
        handle.truncate(0)
        handle.seek(0)
        handle.write(b"{}")
        handle.sync()
        info = handle.stat()

    assert info.size == 2
    assert info.mtime_ns == target.stat().st_mtime_ns
    with fs.open(target) as handle:
        assert handle.read() == b"{}"


def test_sync_calls_fsync(tmp_path, monkeypatch):
    calls: list[int] = []
    monkeypatch.setattr("livefile.fs.os.fsync", lambda fd: calls.append(fd))

    with OSFileSystem().open_or_create(tmp_path / "state.json") as handle:
        handle.write(b"{}")
        handle.sync()

    assert calls, "fsync should be called on sync"


@pytest.mark.skipif(os.name != "posix", reason="permission bits are POSIX only")
def test_modes_follow_settings(tmp_path):
    previous = os.umask(0)
    try:
        envs.update_settings(file_mode=0o640, dir_mode=0o750)
        fs = OSFileSystem()
        fs.makedirs(tmp_path / "dir")
        with fs.open_or_create(tmp_path / "dir" / "state.json"):
            pass
    finally:
        os.umask(previous)

    assert stat.S_IMODE((tmp_path / "dir").stat().st_mode) == 0o750
    assert stat.S_IMODE((tmp_path / "dir" / "state.json").stat().st_mode) == 0o640


def test_remove(tmp_path):
    target = tmp_path / "state.json"
    target.write_text("{}", encoding="utf-8")
    fs = OSFileSystem()

    fs.remove(target)

    assert not target.exists()
    with pytest.raises(FileNotFoundError):
        fs.remove(target)
