"""
Fault Boundary Middleware

Single interception point for otherwise-unhandled request failures. The
failure is reported through FaultReporter and never propagates further.
"""

import logging

from starlette.requests import Request

from services.fault_service import FaultReporter

logger = logging.getLogger('scrubgate.gateway')


class FaultBoundaryMiddleware:

    def __init__(self, app, reporter: FaultReporter | None = None):
        self.app = app
        self.reporter = reporter or FaultReporter()

    async def __call__(self, scope, receive, send):
        if scope.get('type') != 'http':
            return await self.app(scope, receive, send)

        response_started = False
        response_finished = False

        async def send_wrapper(message):
            nonlocal response_started, response_finished
            if message.get('type') == 'http.response.start':
                response_started = True
            elif message.get('type') == 'http.response.body' and not message.get('more_body', False):
                response_finished = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            request = Request(scope)
            if response_started:
                # Status and headers are already out; end the body and only log.
                self.reporter.log_late_fault(request, exc)
                if not response_finished:
                    try:
                        await send({'type': 'http.response.body', 'body': b'', 'more_body': False})
                    except Exception as e:
                        logger.error(f'Failed to close response after late fault: {type(e).__name__}')
                return
            handled, response = await self.reporter.try_handle(request, exc)
            try:
                await response(scope, receive, send)
            except Exception as e:
                logger.error(f'Failed to write fault response: {type(e).__name__}')
