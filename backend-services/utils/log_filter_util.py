"""
The contents of this file are property of Doorman Dev, LLC
Review the Apache License 2.0 for valid authorization of use
See https://github.com/apidoorman/doorman for more information
"""

import json
import logging
import re
from collections.abc import Mapping
from typing import Any

from utils.redaction_util import redact_for_log
from utils.sensitivity_util import is_sensitive

REDACTED = '[REDACTED]'

_RESERVED = frozenset(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {'message', 'asctime'}


def _is_plain(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool, BaseException))


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Attributes passed through ``extra=`` on a logging call."""
    return {k: v for k, v in vars(record).items() if k not in _RESERVED and not k.startswith('_')}


class StructuredRedactFilter(logging.Filter):
    """
    Passes object-valued log arguments and extras through the structured
    redactor so ad-hoc logging of models never prints sensitive fields.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        args = record.args
        if isinstance(args, Mapping):
            # Template placeholders must still resolve, so sensitive named
            # arguments are masked rather than dropped.
            record.args = {
                k: REDACTED if is_sensitive(k) else (v if _is_plain(v) else redact_for_log(v))
                for k, v in args.items()
            }
        elif isinstance(args, tuple) and args:
            record.args = tuple(v if _is_plain(v) else redact_for_log(v) for v in args)
        for key, value in record_extras(record).items():
            if is_sensitive(key):
                delattr(record, key)
            elif not _is_plain(value):
                setattr(record, key, redact_for_log(value))
        return True


class RedactFilter(logging.Filter):
    """Pattern redaction of credentials embedded in rendered log messages.

    Redacts:
    - Authorization headers (Bearer, Basic, API-Key, etc.)
    - Access/refresh tokens and bare JWTs
    - Passwords and secrets
    - Cookies and session data
    - API keys and private key blocks
    """

    PATTERNS = [
        re.compile(r'(?i)(authorization\s*[:=]\s*)([^;\r\n]+)'),

        re.compile(r'(?i)(x-api-key\s*[:=]\s*)([^;\r\n]+)'),
        re.compile(r'(?i)(api[_-]?key\s*[:=]\s*)([^;\r\n,\s]+)'),

        re.compile(r'(?i)(access[_-]?token\s*["\']?\s*[:=]\s*["\']?)([^"\';\r\n\s]+)(["\']?)'),
        re.compile(r'(?i)(refresh[_-]?token\s*["\']?\s*[:=]\s*["\']?)([^"\';\r\n\s]+)(["\']?)'),

        re.compile(r'(?i)(password\s*["\']?\s*[:=]\s*["\']?)([^"\';\r\n,]+)(["\']?)'),
        re.compile(r'(?i)(client[_-]?secret\s*["\']?\s*[:=]\s*["\']?)([^"\';\r\n\s]+)(["\']?)'),

        re.compile(r'(?i)(set-cookie\s*[:=]\s*)([^\r\n]+)'),
        re.compile(r'(?i)(cookie\s*[:=]\s*)([^\r\n]+)'),

        re.compile(r'\b(eyJ[a-zA-Z0-9_\-]+\.eyJ[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+)\b'),

        re.compile(r'(-----BEGIN[A-Z\s]+PRIVATE KEY-----)(.*?)(-----END[A-Z\s]+PRIVATE KEY-----)', re.DOTALL),
    ]

    def redact(self, message: str) -> str:
        red = message
        for pat in self.PATTERNS:
            if pat.groups >= 2:
                red = pat.sub(lambda m: (
                    m.group(1) +
                    REDACTED +
                    (m.group(3) if m.lastindex and m.lastindex >= 3 else '')
                ), red)
            else:
                red = pat.sub(REDACTED, red)
        return red

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            msg = record.getMessage()
        except Exception:
            # Leave malformed records to the handler's own error reporting.
            return True
        red = self.redact(msg)
        if red != msg:
            record.msg = red
            record.args = None
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            'time': self.formatTime(record, '%Y-%m-%dT%H:%M:%S'),
            'name': record.name,
            'level': record.levelname,
            'message': record.getMessage(),
        }
        for key, value in record_extras(record).items():
            payload[key] = value if _is_plain(value) else redact_for_log(value)
        if record.exc_info:
            payload['exc_info'] = self.formatException(record.exc_info)
        try:
            return json.dumps(payload, ensure_ascii=False, default=str)
        except Exception:
            return f'{payload}'


PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def build_formatter(log_format: str) -> logging.Formatter:
    if (log_format or '').lower() == 'json':
        return JSONFormatter()
    return logging.Formatter(PLAIN_FORMAT)


def attach_redaction_filters(handler: logging.Handler) -> logging.Handler:
    if not any(isinstance(f, StructuredRedactFilter) for f in handler.filters):
        handler.addFilter(StructuredRedactFilter())
    if not any(isinstance(f, RedactFilter) for f in handler.filters):
        handler.addFilter(RedactFilter())
    return handler
