"""
Pytest configuration for backend-services tests.

Ensures the backend-services directory is on sys.path so imports like
`from utils...` resolve correctly when tests run from the repo root in CI.
"""

# External imports
import logging
import os
import sys
import tempfile

os.environ.setdefault('LOGS_DIR', os.path.join(tempfile.gettempdir(), 'scrubgate-test-logs'))
os.environ.setdefault('ENABLE_DEMO_ROUTES', 'true')
os.environ.setdefault('LOG_FORMAT', 'plain')

_HERE = os.path.dirname(__file__)
_PROJECT_ROOT = os.path.abspath(os.path.join(_HERE, os.pardir))
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient


class ListHandler(logging.Handler):
    """Collects records emitted on a logger for assertions."""

    def __init__(self):
        super().__init__()
        self.records: list[logging.LogRecord] = []
        self.lines: list[str] = []

    def emit(self, record):
        self.records.append(record)
        self.lines.append(self.format(record))

    @property
    def text(self) -> str:
        return '\n'.join(self.lines)


@pytest.fixture(autouse=True)
def _fresh_settings():
    from utils.settings_util import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def gateway_logs():
    # Importing the app configures the logger and drops existing handlers.
    import scrubgate  # noqa: F401
    from utils.log_filter_util import attach_redaction_filters

    logger = logging.getLogger('scrubgate.gateway')
    handler = ListHandler()
    handler.setFormatter(logging.Formatter('%(message)s'))
    attach_redaction_filters(handler)
    logger.addHandler(handler)
    try:
        yield handler
    finally:
        logger.removeHandler(handler)


@pytest_asyncio.fixture
async def client():
    from scrubgate import scrubgate

    transport = ASGITransport(app=scrubgate, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url='http://testserver') as ac:
        yield ac
