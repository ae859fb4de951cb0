from __future__ import annotations
import os
from dataclasses import fields, replace
from pydantic.dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

EnvSignature = Tuple[Tuple[str, Any], ...]

_TRUE_VALUES = {"1", "true", "yes", "on", "y"}
_FALSE_VALUES = {"0", "false", "no", "off", "n"}

_LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


@dataclass
class Settings:
    # paths
    base_dir: str = ""
    data_dir: str = ""
    log_dir: str = ""

    # logging
    log_enabled: bool = True
    log_level: str = "info"
    log_max_bytes: int = 2_000_000
    log_retain_lines: int = 2_000

    # permissions for files and directories created by OSFileSystem
    file_mode: int = 0o660
    dir_mode: int = 0o770

    def resolved_data_dir(self) -> Path:
        if self.data_dir:
            return Path(self.data_dir).expanduser()
        return Path.home() / ".livefile"

    def resolved_log_dir(self) -> Path:
        if self.log_dir:
            return Path(self.log_dir).expanduser()
        return self.resolved_data_dir() / "logs"

    def min_severity_rank(self) -> int:
        return severity_rank(self.log_level)


def severity_rank(value: str | None) -> int:
    """Return the ordinal of ``value`` among known log levels.

    Unknown names rank as ``info`` so that a typo never silences errors.
    """

    text = (value or "").strip().lower()
    if text == "warn":
        text = "warning"
    if text == "fatal":
        text = "critical"
    try:
        return _LOG_LEVELS.index(text)
    except ValueError:
        return _LOG_LEVELS.index("info")


_ENV_MAP = {
    "base_dir": "LIVEFILE_BASE_DIR",
    "data_dir": "LIVEFILE_DATA_DIR",
    "log_dir": "LIVEFILE_LOG_DIR",
    "log_enabled": "LIVEFILE_LOG_ENABLED",
    "log_level": "LIVEFILE_LOG_LEVEL",
    "log_max_bytes": "LIVEFILE_LOG_MAX_BYTES",
    "log_retain_lines": "LIVEFILE_LOG_RETAIN_LINES",
    "file_mode": "LIVEFILE_FILE_MODE",
    "dir_mode": "LIVEFILE_DIR_MODE",
}

_BOOL_ENV_KEYS = ("log_enabled",)
_INT_ENV_KEYS = ("log_max_bytes", "log_retain_lines")
_MODE_ENV_KEYS = ("file_mode", "dir_mode")

_ENV_FILE_VAR = "LIVEFILE_ENV_FILE"
_DISABLE_ENV_FILE_VAR = "LIVEFILE_DISABLE_ENV_FILE"

_CACHE: dict[str, Any] = {
    "settings": None,
    "key": None,
}

_OVERRIDES: Dict[str, Any] = {}
_LOADED_ENV_FILES: set[str] = set()


def _coerce_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    return None


def _cast_bool(x: Any) -> Optional[bool]:
    if x is None:
        return None
    return _coerce_bool(x)


def _cast_int(x: Any) -> Optional[int]:
    if x is None:
        return None
    try:
        return int(x)
    except (TypeError, ValueError):
        return None


def _cast_mode(x: Any) -> Optional[int]:
    """Parse permission bits written as octal text (``"660"`` or ``"0o660"``)."""

    if x is None:
        return None
    text = str(x).strip().lower()
    if text.startswith("0o"):
        text = text[2:]
    try:
        return int(text, 8)
    except ValueError:
        return None


def _bulk_cast(target: Dict[str, Any], keys: Iterable[str], caster: Callable[[Any], Any]) -> None:
    for name in keys:
        if name in target:
            target[name] = caster(target[name])


def _env_file_path() -> Path:
    override = os.getenv(_ENV_FILE_VAR)
    if override:
        return Path(override).expanduser()
    return Path.cwd() / ".env"


def _load_env_file() -> None:
    """Populate :mod:`os.environ` from a dotenv file, if one exists.

    Variables already present in the environment always win.
    """

    if _coerce_bool(os.getenv(_DISABLE_ENV_FILE_VAR, "")):
        return

    dotenv_path = _env_file_path()
    key = str(dotenv_path)
    if key in _LOADED_ENV_FILES or not dotenv_path.is_file():
        return

    from dotenv import load_dotenv

    load_dotenv(dotenv_path, override=False)
    _LOADED_ENV_FILES.add(key)


def _read_env() -> Dict[str, Optional[str]]:
    return {k: os.getenv(v) for k, v in _ENV_MAP.items()}


def _env_signature(env: Dict[str, Any]) -> EnvSignature:
    return tuple(sorted(env.items()))


def _env_overrides(raw_env: Optional[Dict[str, Any]] = None) -> Tuple[Dict[str, Any], EnvSignature]:
    raw_env = raw_env if raw_env is not None else _read_env()
    m = {k: v for k, v in raw_env.items() if v is not None}

    _bulk_cast(m, _BOOL_ENV_KEYS, _cast_bool)
    _bulk_cast(m, _INT_ENV_KEYS, _cast_int)
    _bulk_cast(m, _MODE_ENV_KEYS, _cast_mode)

    cleaned = {k: v for k, v in m.items() if v is not None}
    return cleaned, _env_signature(raw_env)


def _filter_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    allowed = {f.name for f in fields(Settings)}
    return {k: v for k, v in payload.items() if k in allowed}


def _cache_key(env_sig: EnvSignature) -> Tuple[EnvSignature, EnvSignature]:
    return (env_sig, _env_signature(_OVERRIDES))


def _invalidate_cache() -> None:
    _CACHE["settings"] = None
    _CACHE["key"] = None


def get_settings(force_reload: bool = False) -> Settings:
    """Return the process-wide :class:`Settings`.

    Values come from the dataclass defaults, then ``LIVEFILE_*`` environment
    variables (optionally seeded from a dotenv file), then programmatic
    overrides applied through :func:`update_settings`.
    """

    _load_env_file()
    env_overrides, env_sig = _env_overrides()
    key = _cache_key(env_sig)

    cached = _CACHE.get("settings")
    if not force_reload and cached is not None and _CACHE.get("key") == key:
        return cached

    merged: Dict[str, Any] = {}
    merged.update(env_overrides)
    merged.update(_OVERRIDES)
    settings = Settings(**_filter_fields(merged))

    _CACHE["settings"] = settings
    _CACHE["key"] = key
    return settings


def update_settings(**kwargs: Any) -> Settings:
    """Apply process-wide overrides and return the refreshed settings."""

    unknown = set(kwargs) - {f.name for f in fields(Settings)}
    if unknown:
        raise TypeError(f"unknown settings: {', '.join(sorted(unknown))}")

    # raises on invalid values
    replace(get_settings(), **kwargs)

    _OVERRIDES.update(kwargs)
    _invalidate_cache()
    return get_settings()


def reset_settings() -> Settings:
    """Drop programmatic overrides applied through :func:`update_settings`."""

    _OVERRIDES.clear()
    _invalidate_cache()
    return get_settings()
