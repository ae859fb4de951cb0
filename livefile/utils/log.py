from __future__ import annotations

import json
import threading
import time
import traceback
from pathlib import Path
from types import TracebackType
from typing import Any, Iterable, Iterator, Mapping

from .envs import get_settings, severity_rank
from .file_io import atomic_write_text, ensure_directory, tail_lines
from .paths import log_file

# Explicit override for the log destination; ``None`` follows the settings.
LOG_FILE: Path | None = None

_LOCK = threading.RLock()

_SEVERITY_KEYWORDS = {
    "critical": "critical",
    "fatal": "critical",
    "abort": "critical",
    "error": "error",
    "fail": "error",
    "exception": "error",
    "warn": "warning",
    "warning": "warning",
    "rollback": "warning",
    "debug": "debug",
}

_SENSITIVE_KEYWORDS = ("secret", "token", "apikey", "api_key", "api-key", "password", "passwd")


def current_log_file() -> Path:
    return LOG_FILE if LOG_FILE is not None else log_file()


def is_enabled_for(severity: str) -> bool:
    """Return ``True`` when a record of ``severity`` would be written."""

    settings = get_settings()
    if not settings.log_enabled:
        return False
    return severity_rank(severity) >= settings.min_severity_rank()


def _iter_valid_json_lines(lines: Iterable[str]) -> Iterator[str]:
    """Yield the lines that hold a JSON document, skipping blanks and debris."""

    for raw in lines:
        text = raw.strip()
        if not text:
            continue

        try:
            json.loads(text)
        except json.JSONDecodeError:
            continue

        yield raw


def _is_sensitive_key(key: object) -> bool:
    if not isinstance(key, str):
        return False
    lowered = key.strip().lower()
    return any(token in lowered for token in _SENSITIVE_KEYWORDS)


def _sanitize(value: Any) -> Any:
    if isinstance(value, Mapping):
        return _sanitize_mapping(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_sanitize(item) for item in value]
    return value


def _sanitize_mapping(mapping: Mapping[Any, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in mapping.items():
        key_text = key if isinstance(key, str) else str(key)
        if _is_sensitive_key(key_text):
            cleaned[key_text] = "***"
        else:
            cleaned[key_text] = _sanitize(value)
    return cleaned


def _derive_severity(event: str, explicit: str | None) -> str:
    if explicit:
        lowered = explicit.lower()
        return "warning" if lowered == "warn" else lowered

    tokens = [part.lower() for part in event.replace("-", ".").replace("_", ".").split(".") if part]
    for token in tokens:
        mapped = _SEVERITY_KEYWORDS.get(token)
        if mapped:
            return mapped
    lowered = event.lower()
    for keyword, mapped in _SEVERITY_KEYWORDS.items():
        if keyword in lowered:
            return mapped
    return "info"


def _normalise_exception(
    exc: BaseException | tuple[type[BaseException], BaseException, TracebackType] | None,
) -> dict[str, Any] | None:
    if exc is None:
        return None

    if isinstance(exc, tuple):
        exc_type, exc_value, tb = exc
    else:
        exc_type = type(exc)
        exc_value = exc
        tb = exc.__traceback__

    if exc_type is None or exc_value is None:
        return None

    formatted_tb = "".join(traceback.format_exception(exc_type, exc_value, tb))
    return {
        "type": f"{exc_type.__module__}.{exc_type.__name__}",
        "message": str(exc_value),
        "traceback": formatted_tb,
    }


def _prune_log_file(path: Path, *, max_bytes: int, retain_lines: int) -> None:
    """Keep only the newest ``retain_lines`` records once ``max_bytes`` is exceeded."""

    if max_bytes <= 0 or retain_lines <= 0:
        return

    try:
        size = path.stat().st_size
    except OSError:
        return

    if size <= max_bytes:
        return

    tail = tail_lines(path, retain_lines, drop_blank=True)
    cleaned = list(_iter_valid_json_lines(tail))
    text = "\n".join(cleaned) + "\n" if cleaned else ""
    atomic_write_text(path, text, encoding="utf-8")


def log(
    event: str,
    *,
    severity: str | None = None,
    exc: BaseException | tuple[type[BaseException], BaseException, TracebackType] | None = None,
    **payload: Any,
) -> None:
    """Append a JSON record with ``event`` and ``payload`` to the log file."""

    level = _derive_severity(event, severity)
    if not is_enabled_for(level):
        return

    record: dict[str, Any] = {
        "ts": int(time.time() * 1000),
        "event": event,
        "severity": level,
        "thread": threading.current_thread().name,
        "payload": _sanitize_mapping(payload),
    }

    exception_payload = _normalise_exception(exc)
    if exception_payload is not None:
        record["exception"] = exception_payload

    text = json.dumps(record, ensure_ascii=False, default=str)
    settings = get_settings()

    with _LOCK:
        path = current_log_file()
        ensure_directory(path.parent)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(text + "\n")
        _prune_log_file(
            path,
            max_bytes=settings.log_max_bytes,
            retain_lines=settings.log_retain_lines,
        )
