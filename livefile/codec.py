from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter

T = TypeVar("T")

__all__ = ["ValueCodec"]


class ValueCodec(Generic[T]):
    """JSON encoding for the cached value, driven by a pydantic ``TypeAdapter``.

    Any type pydantic understands works: plain containers and scalars,
    standard library dataclasses, pydantic dataclasses and ``BaseModel``
    subclasses. Encoded output is UTF-8 JSON with two-space indentation and a
    trailing newline.
    """

    def __init__(self, value_type: Any) -> None:
        self.value_type = value_type
        self._adapter: TypeAdapter[T] = TypeAdapter(value_type)

    def decode(self, raw: bytes | str) -> T:
        """Decode ``raw``; raises :class:`ValueError` on malformed content."""

        return self._adapter.validate_json(raw)

    def encode(self, value: T) -> bytes:
        return self._adapter.dump_json(value, indent=2) + b"\n"

    def to_builtins(self, value: T) -> Any:
        """Return ``value`` as JSON-compatible builtins, for log records."""

        return self._adapter.dump_python(value, mode="json")

    def __repr__(self) -> str:
        return f"ValueCodec({self.value_type!r})"
