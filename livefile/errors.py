"""Error types and error policies for :class:`~livefile.core.LiveFile`.

An error policy is any callable ``(context, error) -> None``. The controller
hands it every unrecoverable I/O, decode or encode failure. The default,
:func:`abort_process`, ends the process. A policy that raises stops the
operation. A policy that returns lets reads carry on with best-effort
semantics, while :meth:`~livefile.core.LiveFile.update` still raises the
reported error because nothing was persisted.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping

from .utils.log import log

__all__ = [
    "ErrorHandler",
    "LiveFileDecodeError",
    "LiveFileEncodeError",
    "LiveFileError",
    "LiveFileIOError",
    "OperationContext",
    "abort_process",
    "log_and_continue",
    "raise_error",
]


@dataclass(frozen=True)
class OperationContext:
    """Where a failure happened: which entry point, which file, which step."""

    operation: str
    path: Path
    stage: str
    extra: Mapping[str, Any] = field(default_factory=dict)

    def as_payload(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "path": str(self.path),
            "stage": self.stage,
            "context": dict(self.extra),
        }


class LiveFileError(RuntimeError):
    """Base class for failures reported to an error policy."""

    def __init__(self, message: str, context: OperationContext) -> None:
        super().__init__(message)
        self.context = context


class LiveFileIOError(LiveFileError):
    """Raised when opening, stating, reading or writing the backing file fails."""


class LiveFileDecodeError(LiveFileError):
    """Raised when the backing file holds content that cannot be decoded."""


class LiveFileEncodeError(LiveFileError):
    """Raised when the cached value cannot be serialised."""


ErrorHandler = Callable[[OperationContext, BaseException], None]


def raise_error(context: OperationContext, error: BaseException) -> None:
    """Propagate the failure to the caller."""

    raise error


def log_and_continue(context: OperationContext, error: BaseException) -> None:
    """Record the failure and let the operation continue."""

    log("livefile.error", exc=error, **context.as_payload())


def abort_process(context: OperationContext, error: BaseException) -> None:
    """Default policy: record the failure and terminate the process immediately."""

    try:
        log("livefile.abort", exc=error, **context.as_payload())
    finally:
        os.abort()
