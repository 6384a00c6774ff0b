"""
The contents of this file are property of Doorman Dev, LLC
Review the Apache License 2.0 for valid authorization of use
See https://github.com/apidoorman/doorman for more information
"""

import dataclasses
import logging
import threading
import typing
from typing import Any, Callable, Iterable

from pydantic import BaseModel, Field
from pydantic_core import PydanticUndefined

logger = logging.getLogger('scrubgate.gateway')

# Matching is case-insensitive substring containment: a field is sensitive when
# its lower-cased name contains any of these rules.
DEFAULT_SENSITIVE_FIELDS: frozenset[str] = frozenset({
    'password', 'passwd', 'pwd', 'passcode',
    'secret', 'token', 'credential',
    'apikey', 'api_key', 'api-key',
    'privatekey', 'private_key', 'pin',
    'authorization', 'cookie',
    'file', 'attachment', 'binary', 'upload', 'stream',
})

LOG_IGNORE_KEY = 'log_ignore'

_type_cache: dict[type, frozenset[str]] = {}
_type_cache_lock = threading.Lock()

_registry: set[str] = set()
_registry_lock = threading.Lock()


class LogIgnore:
    """
    Marker for fields that must never reach logs or redacted bodies.

    Usable as ``Annotated[str, LogIgnore()]`` on pydantic models, dataclasses
    and annotated plain classes.
    """

    def __repr__(self) -> str:
        return 'LogIgnore()'


def log_ignored(default: Any = PydanticUndefined, **kwargs) -> Any:
    """
    Pydantic ``Field`` that carries the log-ignore marker.
    """
    extra = dict(kwargs.pop('json_schema_extra', None) or {})
    extra[LOG_IGNORE_KEY] = True
    return Field(default, json_schema_extra=extra, **kwargs)


def sensitive_type(cls: type) -> type:
    """
    Class decorator marking a whole type sensitive: any field holding an
    instance of it is omitted from structured logs.
    """
    cls.__log_sensitive__ = True
    return cls


def is_sensitive_type(value: Any) -> bool:
    return bool(getattr(type(value), '__log_sensitive__', False))


def is_sensitive(field_name: Any, type_sensitive: Iterable[str] | None = None,
                 extra: Iterable[str] | None = None) -> bool:
    if not isinstance(field_name, str) or not field_name:
        return False
    name = field_name.lower()
    for rule in DEFAULT_SENSITIVE_FIELDS:
        if rule in name:
            return True
    for rules in (type_sensitive, extra):
        if not rules:
            continue
        for rule in rules:
            if rule and rule.lower() in name:
                return True
    return False


def _has_marker(metadata: Iterable[Any]) -> bool:
    return any(isinstance(m, LogIgnore) or m is LogIgnore for m in metadata)


def _annotated_markers(tp: type) -> set[str]:
    out: set[str] = set()
    try:
        hints = typing.get_type_hints(tp, include_extras=True)
    except Exception as e:
        # Unresolvable forward references; fall back to raw annotations.
        logger.debug(f'Type hints unavailable for {tp.__name__}: {e}')
        hints = {}
        for klass in reversed(tp.__mro__):
            hints.update(getattr(klass, '__annotations__', {}) or {})
    for name, hint in hints.items():
        if name.startswith('_'):
            continue
        if typing.get_origin(hint) is typing.Annotated and _has_marker(typing.get_args(hint)[1:]):
            out.add(name)
    return out


def _pydantic_markers(tp: type[BaseModel]) -> set[str]:
    out: set[str] = set()
    for name, info in tp.model_fields.items():
        extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
        if _has_marker(info.metadata) or extra.get(LOG_IGNORE_KEY):
            out.add(name)
            if info.alias:
                out.add(info.alias)
    return out


def _dataclass_markers(tp: type) -> set[str]:
    return {f.name for f in dataclasses.fields(tp) if f.metadata.get(LOG_IGNORE_KEY)}


def _compute_sensitive_field_names(tp: type) -> frozenset[str]:
    names: set[str] = set()
    if isinstance(tp, type) and issubclass(tp, BaseModel):
        names |= _pydantic_markers(tp)
    else:
        if dataclasses.is_dataclass(tp):
            names |= _dataclass_markers(tp)
        names |= _annotated_markers(tp)
    for klass in tp.__mro__:
        names.update(getattr(klass, '__log_ignore__', ()) or ())
    return frozenset(n.lower() for n in names if not n.startswith('_'))


def get_sensitive_field_names(tp: type) -> frozenset[str]:
    """
    Lower-cased names of the marked public fields of ``tp``.

    Computed once per type and cached for the process lifetime. Two racing
    first calls may both compute; the result is deterministic so either
    write is correct.
    """
    cached = _type_cache.get(tp)
    if cached is not None:
        return cached
    names = _compute_sensitive_field_names(tp)
    with _type_cache_lock:
        _type_cache.setdefault(tp, names)
    return names


def register_sensitive_type(tp: type) -> type:
    """
    Add the marked fields of ``tp`` to the application-wide rule registry
    consulted when redacting request bodies. Usable as a decorator.
    """
    names = get_sensitive_field_names(tp)
    if names:
        with _registry_lock:
            _registry.update(names)
    return tp


def registered_sensitive_names() -> frozenset[str]:
    with _registry_lock:
        return frozenset(_registry)


def clear_sensitive_cache() -> None:
    """Test helper; the cache is otherwise never invalidated."""
    with _type_cache_lock:
        _type_cache.clear()


class SensitiveModel(BaseModel):
    """
    Base model whose subclasses register their log-ignored fields on creation.
    """

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs):
        super().__pydantic_init_subclass__(**kwargs)
        register_sensitive_type(cls)


def _class_properties(tp: type) -> list[str]:
    seen: list[str] = []
    for klass in reversed(tp.__mro__):
        if klass is object:
            continue
        for name, attr in vars(klass).items():
            if isinstance(attr, property) and not name.startswith('_') and name not in seen:
                seen.append(name)
    return seen


def _slot_names(tp: type) -> list[str]:
    out: list[str] = []
    for klass in reversed(tp.__mro__):
        slots = getattr(klass, '__slots__', ())
        if isinstance(slots, str):
            slots = (slots,)
        for name in slots:
            if not name.startswith('_') and name not in out:
                out.append(name)
    return out


def _getter(name: str) -> Callable[[Any], Any]:
    return lambda obj: getattr(obj, name)


def public_fields(obj: Any) -> list[tuple[str, Callable[[Any], Any]]]:
    """
    Ordered ``(name, getter)`` pairs for the public readable fields of ``obj``.
    """
    tp = type(obj)
    names: list[str] = []
    if isinstance(obj, BaseModel):
        names.extend(tp.model_fields.keys())
        names.extend(tp.model_computed_fields.keys())
    elif dataclasses.is_dataclass(obj):
        names.extend(f.name for f in dataclasses.fields(obj))
    else:
        names.extend(_slot_names(tp))
        for name in (getattr(obj, '__dict__', None) or {}):
            if name not in names:
                names.append(name)
        for name in _class_properties(tp):
            if name not in names:
                names.append(name)
    return [(name, _getter(name)) for name in names if not name.startswith('_')]
