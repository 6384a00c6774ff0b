"""
Access logging.

Assigns the request ID, binds it to the correlation context and writes one
line per request. Failure details belong to the fault boundary's entry.
"""

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from utils.correlation_util import correlation_id, request_id_from_scope

logger = logging.getLogger('scrubgate.gateway')

QUIET_PATHS = frozenset({'/health'})


class GlobalLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request_id_from_scope(request.scope) or str(uuid.uuid4())
        request.state.request_id = request_id
        token = correlation_id.set(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            elapsed = (time.perf_counter() - started) * 1000
            logger.error(f'{request.method} {request.url.path} -> unhandled | {elapsed:.2f}ms | request_id={request_id}')
            raise
        finally:
            correlation_id.reset(token)

        elapsed = (time.perf_counter() - started) * 1000
        level = logging.DEBUG if request.url.path in QUIET_PATHS else logging.INFO
        logger.log(
            level,
            f'{request.method} {request.url.path} -> {response.status_code} '
            f'| {elapsed:.2f}ms | request_id={request_id}'
        )
        response.headers['X-Request-ID'] = request_id
        return response
