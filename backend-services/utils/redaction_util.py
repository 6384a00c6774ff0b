"""
The contents of this file are property of Doorman Dev, LLC
Review the Apache License 2.0 for valid authorization of use
See https://github.com/apidoorman/doorman for more information
"""

import datetime
import decimal
import enum
import uuid
from collections.abc import Mapping
from typing import Any, Iterator

from utils.sensitivity_util import (
    get_sensitive_field_names,
    is_sensitive,
    is_sensitive_type,
    public_fields,
)

CIRCULAR_PLACEHOLDER = '[Circular]'
MAX_DEPTH_PLACEHOLDER = '[MaxDepth]'
MAX_DEPTH = 32

_SCALARS = (
    str, int, float, bool, decimal.Decimal, complex,
    datetime.datetime, datetime.date, datetime.time, datetime.timedelta,
    uuid.UUID, enum.Enum,
)


class StructuredRecord(Mapping):
    """
    Read-only, ordered ``name -> value`` view of one object for logging.
    """

    __slots__ = ('type_name', '_items')

    def __init__(self, type_name: str, items: list[tuple[str, Any]]):
        self.type_name = type_name
        self._items = dict(items)

    def __getitem__(self, key: str) -> Any:
        return self._items[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        body = ', '.join(f'{k}={v!r}' for k, v in self._items.items())
        return f'{self.type_name}({body})'


def redact_value(value: Any) -> Any:
    """
    Redaction-aware structured representation of ``value``.

    Scalars pass through unchanged. Mappings and objects drop sensitive fields
    entirely; sequences are walked item by item.
    """
    return _redact(value, set(), 0)


def _redact(value: Any, path: set[int], depth: int) -> Any:
    if value is None or isinstance(value, _SCALARS):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f'[binary {len(value)} bytes]'
    if depth >= MAX_DEPTH:
        return MAX_DEPTH_PLACEHOLDER
    marker = id(value)
    if marker in path:
        return CIRCULAR_PLACEHOLDER
    path.add(marker)
    try:
        if isinstance(value, Mapping):
            return _redact_mapping(value, path, depth)
        if isinstance(value, (list, tuple, set, frozenset)):
            return [_redact(item, path, depth + 1) for item in value]
        return _redact_object(value, path, depth)
    finally:
        path.discard(marker)


def _redact_mapping(value: Mapping, path: set[int], depth: int) -> dict:
    out = {}
    for key, item in value.items():
        if is_sensitive(key) or is_sensitive_type(item):
            continue
        out[key] = _redact(item, path, depth + 1)
    return out


def _redact_object(value: Any, path: set[int], depth: int) -> StructuredRecord:
    tp = type(value)
    marked = get_sensitive_field_names(tp)
    items = []
    for name, getter in public_fields(value):
        if is_sensitive(name, marked):
            continue
        try:
            field_value = getter(value)
        except Exception:
            # Diagnostics must not fail on a broken getter; drop the field.
            continue
        if is_sensitive_type(field_value):
            continue
        items.append((name, _redact(field_value, path, depth + 1)))
    return StructuredRecord(tp.__name__, items)


def to_loggable(value: Any) -> Any:
    """
    Convert a redacted tree into JSON-ready dicts, lists and primitives.
    """
    if isinstance(value, StructuredRecord):
        return {k: to_loggable(v) for k, v in value.items()}
    if isinstance(value, Mapping):
        return {str(k): to_loggable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_loggable(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, enum.Enum):
        return to_loggable(value.value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, datetime.timedelta):
        return value.total_seconds()
    return str(value)


def redact_for_log(value: Any) -> Any:
    """Shortcut used by log filters and ad-hoc logging calls."""
    return to_loggable(redact_value(value))
