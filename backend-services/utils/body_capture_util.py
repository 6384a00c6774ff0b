"""
The contents of this file are property of Doorman Dev, LLC
Review the Apache License 2.0 for valid authorization of use
See https://github.com/apidoorman/doorman for more information
"""

import io
import logging

from fastapi import Request
from starlette.datastructures import FormData, UploadFile

from models.form_snapshot_model import FormSnapshot, UploadedFileInfo
from utils.document_redaction_util import (
    READ_ERROR_SENTINEL,
    UNSEEKABLE_SENTINEL,
    is_form_content,
    main_content_type,
)

logger = logging.getLogger('scrubgate.gateway')

BODY_BUFFER_KEY = 'body_buffer'
FORM_SNAPSHOT_KEY = 'form_snapshot'


class RequestBodyBuffer:
    """
    Seekable copy of a request body, filled before the app reads it.

    Once more than ``limit`` bytes arrive the buffer stops growing and is no
    longer rewindable; the rest of the body streams straight through.
    """

    def __init__(self, limit: int):
        self.limit = limit
        self._stream = io.BytesIO()
        self._size = 0
        self.complete = False
        self.overflowed = False

    def append(self, chunk: bytes) -> bool:
        if self.overflowed:
            return False
        if self._size + len(chunk) > self.limit:
            self.overflowed = True
            self._stream = io.BytesIO()
            self._size = 0
            return False
        self._stream.write(chunk)
        self._size += len(chunk)
        return True

    @property
    def seekable(self) -> bool:
        return self.complete and not self.overflowed

    def __len__(self) -> int:
        return self._size

    def read_all(self) -> bytes:
        if not self.seekable:
            raise io.UnsupportedOperation('body buffer is not rewindable')
        position = self._stream.tell()
        try:
            self._stream.seek(0)
            return self._stream.read()
        finally:
            self._stream.seek(position)


def snapshot_from_form(form: FormData) -> FormSnapshot:
    fields: dict[str, list[str]] = {}
    files: list[UploadedFileInfo] = []
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            files.append(UploadedFileInfo(
                field_name=key,
                filename=value.filename,
                size=getattr(value, 'size', None),
                content_type=value.content_type,
            ))
        else:
            fields.setdefault(key, []).append(str(value))
    return FormSnapshot(fields=fields, files=files)


async def capture_form_snapshot(request: Request) -> None:
    """
    Global dependency: remember the decoded form of form requests.

    Uses the form FastAPI has already parsed for the route; raw multipart bytes
    are never kept. A multipart body the route did not parse stays unread, as
    does a urlencoded body too large for the capture buffer.
    """
    content_type = request.headers.get('content-type')
    if not is_form_content(content_type):
        return
    try:
        if getattr(request, '_form', None) is None:
            if main_content_type(content_type) != 'application/x-www-form-urlencoded':
                return
            buffer = getattr(request.state, BODY_BUFFER_KEY, None)
            if buffer is None or not buffer.seekable:
                return
            # Cache the bytes first so the handler can still call request.body().
            await request.body()
        form = await request.form()
    except Exception as e:
        logger.debug(f'Form snapshot unavailable: {e}')
        return
    setattr(request.state, FORM_SNAPSHOT_KEY, snapshot_from_form(form))


def get_form_snapshot(request: Request) -> FormSnapshot | None:
    return getattr(request.state, FORM_SNAPSHOT_KEY, None)


def read_buffered_body(request: Request) -> str | None:
    """
    Text of the buffered request body, or a sentinel when it cannot be re-read.

    Multipart bodies are never read here.
    """
    if main_content_type(request.headers.get('content-type')) == 'multipart/form-data':
        return None
    buffer: RequestBodyBuffer | None = getattr(request.state, BODY_BUFFER_KEY, None)
    if buffer is None or not buffer.seekable:
        return UNSEEKABLE_SENTINEL
    try:
        data = buffer.read_all()
    except OSError as e:
        logger.debug(f'Buffered body read failed: {e}')
        return READ_ERROR_SENTINEL
    if not data:
        return None
    text = data.decode('utf-8', errors='replace')
    return text if text.strip() else None
