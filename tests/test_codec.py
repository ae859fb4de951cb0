from __future__ import annotations

import json
from dataclasses import dataclass

import pytest
from pydantic import BaseModel
from pydantic.dataclasses import dataclass as pydantic_dataclass

from livefile.codec import ValueCodec


@dataclass
class Point:
    x: int
    y: int = 0


@pydantic_dataclass
class Limits:
    low: float = 0.0
    high: float = 1.0


class Config(BaseModel):
    name: str
    retries: int = 3
    hosts: list[str] = []


def test_encode_uses_two_space_indent_and_newline():
    codec = ValueCodec(dict)

    assert codec.encode({"a": 1, "b": [1, 2]}) == (json.dumps({"a": 1, "b": [1, 2]}, indent=2) + "\n").encode()


def test_decode_stdlib_dataclass():
    codec = ValueCodec(Point)

    assert codec.decode(b'{"x": 3}') == Point(3, 0)
    assert json.loads(codec.encode(Point(1, 2))) == {"x": 1, "y": 2}


def test_decode_pydantic_dataclass_and_model():
    assert ValueCodec(Limits).decode('{"high": 5}') == Limits(0.0, 5.0)

    model = ValueCodec(Config).decode(b'{"name": "svc", "hosts": ["a"]}')
    assert model == Config(name="svc", hosts=["a"])


def test_non_ascii_survives():
    codec = ValueCodec(dict)
    encoded = codec.encode({"name": "Zoë"})

    assert "Zoë".encode("utf-8") in encoded
    assert codec.decode(encoded) == {"name": "Zoë"}


@pytest.mark.parametrize("raw", [b"{not json", b'{"x": "nan-ish"}', b""])
def test_decode_errors_are_value_errors(raw):
    with pytest.raises(ValueError):
        ValueCodec(Point).decode(raw)


def test_to_builtins():
    assert ValueCodec(Config).to_builtins(Config(name="svc")) == {"name": "svc", "retries": 3, "hosts": []}
