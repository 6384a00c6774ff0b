"""
The contents of this file are property of Doorman Dev, LLC
Review the Apache License 2.0 for valid authorization of use
See https://github.com/apidoorman/doorman for more information
"""

import json
import logging
import re
from decimal import Decimal
from functools import lru_cache
from typing import Any, Iterable
from urllib.parse import parse_qsl

from models.form_snapshot_model import FormSnapshot
from utils.sensitivity_util import DEFAULT_SENSITIVE_FIELDS, is_sensitive, registered_sensitive_names
from utils.settings_util import ScrubSettings, get_settings

logger = logging.getLogger('scrubgate.gateway')

FORM_NOT_READ_SENTINEL = '[form-data content - not read for security reasons]'
FORM_ERROR_SENTINEL = '[Error processing request body]'
BODY_NOT_CAPTURED_SENTINEL = '[body not captured]'
TRUNCATED_MARKER = '...[truncated]'
UNSEEKABLE_SENTINEL = "[Request body can't be read - stream doesn't support seeking]"
READ_ERROR_SENTINEL = '[Error reading request body]'

# Stand-ins produced by body capture; they are never request content.
CAPTURE_SENTINELS = frozenset({UNSEEKABLE_SENTINEL, READ_ERROR_SENTINEL})

JSON_TYPES = ('application/json', 'text/json')
FORM_TYPES = ('multipart/form-data', 'application/x-www-form-urlencoded')

# Longest malformed body the pattern fallback will scan.
PATTERN_INPUT_LIMIT = 64 * 1024

# Value shapes understood by the pattern fallback: string, flat array, flat object, bare token.
# Quantifiers are possessive and whitespace inside a bare token must be followed by
# another token character, so no input makes the engine backtrack over a run twice.
_STRING = r'"(?:[^"\\]|\\.)*+"'
_BARE = r'[^,}\]\s]++(?:\s++[^,}\]\s]++)*+'
_VALUE = r'(?>' + _STRING + r'|\[[^\]]*+\]|\{[^{}]*+\}|' + _BARE + r')'
_DANGLING_VALUE = r'(?>"(?:[^"\\]|\\.)*+"?+|(?:' + _BARE + r')?+)'


def main_content_type(content_type: str | None) -> str | None:
    if not content_type:
        return None
    main = content_type.split(';', 1)[0].strip().lower()
    return main or None


def is_json_content(content_type: str | None) -> bool:
    main = main_content_type(content_type)
    return bool(main) and (main in JSON_TYPES or main.endswith('+json'))


def is_form_content(content_type: str | None) -> bool:
    return main_content_type(content_type) in FORM_TYPES


def collect_rules(extra_rules: Iterable[str] | None = None,
                  settings: ScrubSettings | None = None) -> frozenset[str]:
    """Registry names, configured extras and caller extras, lower-cased."""
    settings = settings or get_settings()
    rules = set(registered_sensitive_names()) | set(settings.extra_rules)
    if extra_rules:
        rules.update(r.lower() for r in extra_rules if r)
    return frozenset(rules)


def redact_json_tree(node: Any, rules: Iterable[str] = ()) -> Any:
    """
    Copy of a parsed JSON tree with every sensitive object key removed.
    """
    if isinstance(node, dict):
        return {
            k: redact_json_tree(v, rules)
            for k, v in node.items()
            if not is_sensitive(k, rules)
        }
    if isinstance(node, list):
        return [redact_json_tree(v, rules) for v in node]
    return node


def _reject_constant(name: str):
    raise ValueError(f'Invalid JSON constant: {name}')


def parse_json(text: str) -> Any:
    """Strict parse keeping every non-integer number as an exact ``Decimal``."""
    return json.loads(text, parse_float=Decimal, parse_constant=_reject_constant)


def dump_json(node: Any) -> str:
    """Compact JSON writer that emits numbers exactly as parsed."""
    parts: list[str] = []
    _write(node, parts)
    return ''.join(parts)


def _write(node: Any, parts: list[str]) -> None:
    if isinstance(node, dict):
        parts.append('{')
        for i, (k, v) in enumerate(node.items()):
            if i:
                parts.append(',')
            parts.append(json.dumps(str(k), ensure_ascii=False))
            parts.append(':')
            _write(v, parts)
        parts.append('}')
    elif isinstance(node, list):
        parts.append('[')
        for i, v in enumerate(node):
            if i:
                parts.append(',')
            _write(v, parts)
        parts.append(']')
    elif node is True:
        parts.append('true')
    elif node is False:
        parts.append('false')
    elif node is None:
        parts.append('null')
    elif isinstance(node, Decimal):
        parts.append(str(node))
    elif isinstance(node, int):
        parts.append(str(node))
    else:
        parts.append(json.dumps(node, ensure_ascii=False))


@lru_cache(maxsize=256)
def _field_patterns(rule: str) -> tuple[re.Pattern, re.Pattern, re.Pattern, re.Pattern]:
    key = r'"[^"]*' + re.escape(rule) + r'[^"]*"'
    member = key + r'\s*+:\s*+'
    return (
        re.compile(member + _VALUE + r'\s*+,', re.IGNORECASE),
        re.compile(r',\s*+' + member + _VALUE + r'\s*+', re.IGNORECASE),
        re.compile(r'\{\s*+' + member + _VALUE + r'\s*+\}', re.IGNORECASE),
        re.compile(r'(?:,\s*+)?' + member + _DANGLING_VALUE + r'\s*+$', re.IGNORECASE),
    )


def strip_fields_by_pattern(text: str, rules: Iterable[str]) -> str:
    """
    Best-effort removal of sensitive fields from text that is not valid JSON.

    Handles a field in the middle of an object, at its end, as its only member
    and as a dangling last member of truncated input. Nested containers as
    values may survive. Input longer than ``PATTERN_INPUT_LIMIT`` is replaced
    by ``BODY_NOT_CAPTURED_SENTINEL`` rather than scanned.
    """
    if len(text) > PATTERN_INPUT_LIMIT:
        logger.debug(f'Malformed body of {len(text)} chars is too long for pattern redaction')
        return BODY_NOT_CAPTURED_SENTINEL
    out = text
    for rule in sorted(set(rules) | DEFAULT_SENSITIVE_FIELDS, key=len, reverse=True):
        middle, end, single, dangling = _field_patterns(rule.lower())
        out = middle.sub('', out)
        out = end.sub('', out)
        out = single.sub('{}', out)
        out = dangling.sub('', out)
    return out


def redact_json(text: str, rules: Iterable[str] = ()) -> str:
    if not text or not text.strip():
        return text
    rules = frozenset(rules)
    try:
        return dump_json(redact_json_tree(parse_json(text), rules))
    except ValueError:
        logger.debug('Body is not valid JSON; using pattern redaction')
    except RecursionError:
        logger.debug('Body nests too deeply to walk; using pattern redaction')
    return strip_fields_by_pattern(text, rules)


def _file_entry(info) -> dict:
    return {
        'filePresent': True,
        'fileName': info.filename,
        'size': info.size,
        'contentType': info.content_type,
    }


def redact_form(snapshot: FormSnapshot, rules: Iterable[str] = ()) -> str:
    """
    JSON rendering of a decoded form: non-sensitive fields plus file metadata.
    """
    rules = frozenset(rules)
    file_fields = {f.field_name for f in snapshot.files}
    data: dict[str, Any] = {}
    for name, values in snapshot.fields.items():
        if name in file_fields or is_sensitive(name, rules):
            continue
        data[name] = values[0] if len(values) == 1 else list(values)
    for info in snapshot.files:
        entry = _file_entry(info)
        existing = data.get(info.field_name)
        if existing is None:
            data[info.field_name] = entry
        elif isinstance(existing, list):
            existing.append(entry)
        else:
            data[info.field_name] = [existing, entry]
    return json.dumps(data, ensure_ascii=False, separators=(',', ':'))


def _snapshot_from_urlencoded(text: str) -> FormSnapshot:
    fields: dict[str, list[str]] = {}
    for k, v in parse_qsl(text, keep_blank_values=True):
        fields.setdefault(k, []).append(v)
    return FormSnapshot(fields=fields)


def _bounded(text: str, limit: int) -> str:
    if limit and len(text) > limit:
        return text[:limit] + TRUNCATED_MARKER
    return text


def redact_document(raw_text: str | None, content_type: str | None,
                    form: FormSnapshot | None = None,
                    extra_rules: Iterable[str] | None = None,
                    settings: ScrubSettings | None = None) -> str | None:
    """
    Sanitized rendering of a request body for the fault log.

    Never raises. On internal failure a form or JSON body is replaced by
    ``FORM_ERROR_SENTINEL``; an opaque body is returned as captured.
    """
    settings = settings or get_settings()
    if form is None and raw_text in CAPTURE_SENTINELS:
        return raw_text
    if is_form_content(content_type):
        try:
            rules = collect_rules(extra_rules, settings)
            if form is None and main_content_type(content_type) == 'application/x-www-form-urlencoded' and raw_text:
                form = _snapshot_from_urlencoded(raw_text)
            if form is None:
                return FORM_NOT_READ_SENTINEL
            return redact_form(form, rules)
        except Exception as e:
            logger.warning(f'Form redaction failed: {e}')
            return FORM_ERROR_SENTINEL
    if is_json_content(content_type):
        try:
            return redact_json(raw_text, collect_rules(extra_rules, settings))
        except Exception as e:
            logger.warning(f'JSON redaction failed: {e}')
            return FORM_ERROR_SENTINEL
    try:
        if raw_text is None:
            return None
        if not settings.capture_opaque_bodies:
            return BODY_NOT_CAPTURED_SENTINEL
        return _bounded(raw_text, settings.max_capture_bytes)
    except Exception as e:
        logger.warning(f'Body redaction failed: {e}')
        return raw_text
