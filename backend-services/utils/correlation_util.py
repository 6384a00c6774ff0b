"""
The contents of this file are property of Doorman Dev, LLC
Review the Apache License 2.0 for valid authorization of use
See https://github.com/apidoorman/doorman for more information
"""

from contextvars import ContextVar

correlation_id: ContextVar[str | None] = ContextVar('correlation_id', default=None)

REQUEST_ID_HEADERS = ('x-request-id', 'request-id')


def get_correlation_id() -> str | None:
    """
    Get the current correlation ID from context.
    """
    return correlation_id.get()


def request_id_from_scope(scope: dict) -> str | None:
    """
    Request ID stored on the request state, else the one sent by the client.
    """
    state = scope.get('state') or {}
    rid = state.get('request_id') if isinstance(state, dict) else None
    if rid:
        return rid
    for k, v in scope.get('headers') or []:
        if k.decode('latin1').lower() in REQUEST_ID_HEADERS:
            return v.decode('latin1')
    return None
