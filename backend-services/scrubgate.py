"""
The contents of this file are property of Doorman Dev, LLC
Review the Apache License 2.0 for valid authorization of use
See https://github.com/apidoorman/doorman for more information
"""

from logging.handlers import RotatingFileHandler
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from dotenv import load_dotenv
import logging
import os
import sys
import uvicorn

load_dotenv()

from middleware.body_buffer_middleware import BodyBufferMiddleware
from middleware.fault_boundary_middleware import FaultBoundaryMiddleware
from middleware.logging_middleware import GlobalLoggingMiddleware
from routes.demo_routes import demo_router
from utils.body_capture_util import capture_form_snapshot
from utils.log_filter_util import attach_redaction_filters, build_formatter
from utils.response_util import problem_response
from utils.settings_util import get_settings

"""Logging configuration

Prefer file logging to LOGS_DIR/scrubgate.log when writable; otherwise, fall back
to console only. Respects LOG_FORMAT=json|plain and LOG_LEVEL.
"""

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
_settings = get_settings()
LOGS_DIR = os.path.abspath(_settings.logs_dir) if _settings.logs_dir else os.path.join(BASE_DIR, 'platform-logs')
_level = getattr(logging, (_settings.log_level or 'INFO').upper(), logging.INFO)

_file_handler = None
try:
    os.makedirs(LOGS_DIR, exist_ok=True)
    _file_handler = RotatingFileHandler(
        filename=os.path.join(LOGS_DIR, 'scrubgate.log'),
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding='utf-8'
    )
    _file_handler.setFormatter(build_formatter(_settings.log_format))
    attach_redaction_filters(_file_handler)
except Exception as _e:
    logging.getLogger('scrubgate.gateway').warning(f'File logging disabled ({_e}); using console logging only')
    _file_handler = None

# Configure all scrubgate loggers to use the same handlers and prevent propagation
def configure_logger(logger_name):
    logger = logging.getLogger(logger_name)
    logger.setLevel(_level)
    logger.propagate = False

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    console = logging.StreamHandler(stream=sys.stdout)
    console.setLevel(_level)
    console.setFormatter(build_formatter(_settings.log_format))
    attach_redaction_filters(console)
    logger.addHandler(console)

    if _file_handler is not None:
        logger.addHandler(_file_handler)
    return logger

gateway_logger = configure_logger('scrubgate.gateway')
logging_logger = configure_logger('scrubgate.logging')

@asynccontextmanager
async def app_lifespan(app: FastAPI):
    settings = get_settings()
    gateway_logger.info(
        f'Fault capture: max_capture_bytes={settings.max_capture_bytes}, '
        f'capture_opaque_bodies={settings.capture_opaque_bodies}'
    )
    yield
    gateway_logger.info('Shutting down scrubgate')

scrubgate = FastAPI(
    title='scrubgate',
    description='Fault boundary with redacted request logging',
    version='1.0.0',
    lifespan=app_lifespan,
    dependencies=[Depends(capture_form_snapshot)],
)

# Added innermost first: the body buffer wraps everything, the fault boundary
# sits directly around the app.
scrubgate.add_middleware(FaultBoundaryMiddleware)
scrubgate.add_middleware(GlobalLoggingMiddleware)
scrubgate.add_middleware(BodyBufferMiddleware)

@scrubgate.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    gateway_logger.warning(f'Validation failed: {request.method} {request.url.path} ({len(exc.errors())} error(s))')
    return problem_response(422, 'Validation error', getattr(request.state, 'request_id', None))

@scrubgate.get('/health', description='Liveness probe')
async def health():
    return {'status': 'ok'}

if _settings.enable_demo_routes:
    scrubgate.include_router(demo_router, tags=['Demo'])

def run():
    settings = get_settings()
    gateway_logger.info(f'Started scrubgate on port {settings.port}')
    uvicorn.run(
        'scrubgate:scrubgate',
        host=settings.host,
        port=settings.port,
        reload=settings.dev_reload,
        reload_excludes=['venv/*', 'platform-logs/*'],
        log_level='info',
    )

def main():
    try:
        run()
    except Exception as e:
        gateway_logger.error(f'Failed to start server: {str(e)}')
        raise

if __name__ == '__main__':
    main()
