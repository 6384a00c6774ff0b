"""
The contents of this file are property of Doorman Dev, LLC
Review the Apache License 2.0 for valid authorization of use
See https://github.com/apidoorman/doorman for more information
"""

import logging

from fastapi import Request
from fastapi.responses import Response

from models.fault_context_model import FaultContext, FaultStage, StepResult
from utils.body_capture_util import get_form_snapshot, read_buffered_body
from utils.correlation_util import get_correlation_id, request_id_from_scope
from utils.document_redaction_util import redact_document
from utils.redaction_util import redact_for_log
from utils.response_util import fallback_response, problem_response
from utils.settings_util import ScrubSettings, get_settings

LOG_TEMPLATE = (
    'Exception occurred. RawBody: %(body)s, Method: %(method)s, '
    'Path: %(path)s, ContentType: %(content_type)s'
)
HANDLER_FAILURE_MESSAGE = 'Error in exception handler itself'


class FaultReporter:
    """
    Turns one unhandled request failure into one redacted log entry and one
    generic error response.

    Stages run once each, in order: capturing, redacting, logging,
    responding. A failed stage skips the rest and the caller gets the
    plain-text fallback response. Nothing is re-raised.
    """

    def __init__(self, logger: logging.Logger | None = None, settings: ScrubSettings | None = None):
        self.logger = logger or logging.getLogger('scrubgate.gateway')
        self._settings = settings

    @property
    def settings(self) -> ScrubSettings:
        return self._settings or get_settings()

    def capture(self, request: Request) -> StepResult[FaultContext]:
        try:
            context = FaultContext(
                method=request.method,
                path=request.url.path,
                content_type=request.headers.get('content-type'),
                request_id=request_id_from_scope(request.scope) or get_correlation_id(),
            )
            context.raw_body = read_buffered_body(request)
            context.form = get_form_snapshot(request)
            return StepResult.success(context)
        except Exception as e:
            return StepResult.failure(f'capture failed: {type(e).__name__}: {e}')

    def redact(self, context: FaultContext) -> StepResult[FaultContext]:
        try:
            context.body = redact_document(
                context.raw_body,
                context.content_type,
                form=context.form,
                settings=self.settings,
            )
            return StepResult.success(context)
        except Exception as e:
            return StepResult.failure(f'redaction failed: {type(e).__name__}: {e}', context)

    def log(self, context: FaultContext, exc: BaseException) -> StepResult[None]:
        try:
            context.error_type = type(exc).__name__
            self.logger.error(
                LOG_TEMPLATE,
                context.log_args(),
                exc_info=(type(exc), exc, exc.__traceback__),
                extra={'fault_context': redact_for_log(context), 'request_id': context.request_id},
            )
            return StepResult.success()
        except Exception as e:
            return StepResult.failure(f'logging failed: {type(e).__name__}: {e}')

    def respond(self, context: FaultContext | None) -> Response:
        request_id = context.request_id if context is not None else None
        return problem_response(500, self.settings.fault_response_title, request_id)

    def _log_handler_failure(self, reason: str | None, exc: BaseException) -> None:
        try:
            self.logger.error(f'{HANDLER_FAILURE_MESSAGE}: {reason} (original fault: {type(exc).__name__})')
        except Exception:
            # The sink itself is gone; the fallback response is all that is left.
            pass

    async def try_handle(self, request: Request, exc: BaseException) -> tuple[bool, Response]:
        """
        Handle ``exc`` raised while serving ``request``.

        Returns ``(True, response)``; the response is always safe to send.
        """
        response, _ = self.process(request, exc)
        return True, response

    def process(self, request: Request, exc: BaseException) -> tuple[Response, FaultContext | None]:
        stages = [FaultStage.IDLE, FaultStage.CAPTURING]
        result = self.capture(request)
        context = result.value
        if result.ok:
            stages.append(FaultStage.REDACTING)
            result = self.redact(context)
        if result.ok:
            stages.append(FaultStage.LOGGING)
            result = self.log(context, exc)
        stages.append(FaultStage.RESPONDING)
        if result.ok:
            response = self.respond(context)
        else:
            if context is not None:
                context.failures[stages[-2].value] = result.reason
            self._log_handler_failure(result.reason, exc)
            response = fallback_response()
        stages.append(FaultStage.DONE)
        if context is not None:
            context.stages = stages
        return response, context

    def log_late_fault(self, request: Request, exc: BaseException) -> None:
        """Fault after the response started: nothing can be sent, only logged."""
        try:
            self.logger.error(
                f'Exception after response started: {request.method} {request.url.path}',
                exc_info=(type(exc), exc, exc.__traceback__),
            )
        except Exception:
            pass
