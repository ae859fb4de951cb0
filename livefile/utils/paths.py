
from __future__ import annotations
from pathlib import Path
import os

from .envs import get_settings


LOG_FILE_NAME = "livefile.log"


def log_dir() -> Path:
    return get_settings().resolved_log_dir()


def log_file() -> Path:
    return log_dir() / LOG_FILE_NAME


def resolve_path(path: str | os.PathLike[str], base_dir: str | os.PathLike[str] | None = None) -> Path:
    """Return ``path`` anchored to a base directory when it is relative.

    An explicit ``base_dir`` wins over the process-wide ``base_dir`` setting.
    With neither set the path stays relative to the working directory.
    """

    target = Path(path).expanduser()
    if target.is_absolute():
        return target

    base = base_dir if base_dir is not None else get_settings().base_dir
    if base:
        return Path(base).expanduser() / target
    return target
