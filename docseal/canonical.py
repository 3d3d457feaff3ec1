"""
Canonical (stable) serialization of document values.

- JSON text, UTF-8, keys sorted at every nesting level, compact separators.
- Semantically equal mappings encode to identical bytes regardless of insertion order.
- Non-JSON scalars (datetime, date, bytes, Decimal, UUID) are wrapped in single-key
  tag objects so stable_decode recovers the original type.
- Anything else (sets, callables, objects, NaN/Infinity, cycles) raises NonSerializableField.
"""

import base64
import json
import math
import uuid
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict

from .errors import NonSerializableField

TAG_DATETIME = "$datetime"
TAG_DATE = "$date"
TAG_BINARY = "$binary"
TAG_DECIMAL = "$decimal"
TAG_UUID = "$uuid"

_DECODERS: Dict[str, Callable[[str], Any]] = {
    TAG_DATETIME: datetime.fromisoformat,
    TAG_DATE: date.fromisoformat,
    TAG_BINARY: lambda raw: base64.b64decode(raw.encode("ascii"), validate=True),
    TAG_DECIMAL: Decimal,
    TAG_UUID: uuid.UUID,
}


def _encode_container(value: Any, seen: set) -> Any:
    marker = id(value)
    if marker in seen:
        raise NonSerializableField("Cyclic reference cannot be encoded")
    seen.add(marker)
    try:
        if isinstance(value, Mapping):
            if len(value) == 1 and next(iter(value)) in _DECODERS:
                raise NonSerializableField("Mapping uses a reserved tag key")
            out = {}
            for k, v in value.items():
                if not isinstance(k, str):
                    raise NonSerializableField(f"Mapping key of type {type(k).__name__} is not a string")
                out[k] = _to_json_safe(v, seen)
            return out
        return [_to_json_safe(item, seen) for item in value]
    finally:
        seen.discard(marker)


def _to_json_safe(value: Any, seen: set) -> Any:
    """Convert value into plain JSON types, tagging the ones JSON cannot carry."""
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise NonSerializableField("Non-finite float cannot be encoded")
        return value
    # datetime is a date subclass; check it first
    if isinstance(value, datetime):
        return {TAG_DATETIME: value.isoformat()}
    if isinstance(value, date):
        return {TAG_DATE: value.isoformat()}
    if isinstance(value, (bytes, bytearray, memoryview)):
        return {TAG_BINARY: base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, Decimal):
        return {TAG_DECIMAL: str(value)}
    if isinstance(value, uuid.UUID):
        return {TAG_UUID: str(value)}
    if isinstance(value, (Mapping, list, tuple)):
        return _encode_container(value, seen)
    raise NonSerializableField(f"Value of type {type(value).__name__} cannot be encoded")


def _untag(obj: Dict[str, Any]) -> Any:
    if len(obj) == 1:
        key, raw = next(iter(obj.items()))
        decoder = _DECODERS.get(key)
        if decoder is not None:
            if not isinstance(raw, str):
                raise ValueError("Malformed tagged value")
            try:
                return decoder(raw)
            except ArithmeticError as exc:  # decimal.InvalidOperation
                raise ValueError("Malformed tagged value") from exc
    return obj


def stable_encode(value: Any) -> bytes:
    """Deterministic encoding: same semantic value -> same bytes."""
    try:
        safe = _to_json_safe(value, set())
        return json.dumps(
            safe,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        ).encode("utf-8")
    except RecursionError:
        raise NonSerializableField("Value is nested too deeply") from None


def stable_decode(data: bytes) -> Any:
    """Inverse of stable_encode. Raises ValueError on malformed input."""
    try:
        return json.loads(data.decode("utf-8"), object_hook=_untag)
    except RecursionError:
        raise ValueError("Value is nested too deeply") from None
