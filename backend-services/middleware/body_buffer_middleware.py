"""
Body Buffer Middleware

Reads the request body into a seekable buffer before the app sees it, so the
fault reporter can re-read it after a handler has consumed the stream.
"""

from collections import deque

from utils.body_capture_util import BODY_BUFFER_KEY, RequestBodyBuffer
from utils.document_redaction_util import main_content_type
from utils.settings_util import get_settings


class BodyBufferMiddleware:
    """
    ASGI middleware; multipart bodies are never buffered.
    """

    def __init__(self, app, max_bytes: int | None = None):
        self.app = app
        self.max_bytes = max_bytes

    def _limit(self) -> int:
        if self.max_bytes is not None:
            return self.max_bytes
        return get_settings().max_capture_bytes

    async def __call__(self, scope, receive, send):
        if scope.get('type') != 'http':
            return await self.app(scope, receive, send)
        content_type = None
        for k, v in scope.get('headers') or []:
            if k.lower() == b'content-type':
                content_type = v.decode('latin1')
                break
        if main_content_type(content_type) == 'multipart/form-data':
            return await self.app(scope, receive, send)

        buffer = RequestBodyBuffer(self._limit())
        scope.setdefault('state', {})[BODY_BUFFER_KEY] = buffer

        pending = deque()
        more_body = True
        while more_body:
            message = await receive()
            pending.append(message)
            if message.get('type') != 'http.request':
                break
            more_body = bool(message.get('more_body', False))
            if not buffer.append(message.get('body', b'') or b''):
                break
        if not more_body:
            buffer.complete = True

        async def replay():
            if pending:
                return pending.popleft()
            return await receive()

        await self.app(scope, replay, send)
