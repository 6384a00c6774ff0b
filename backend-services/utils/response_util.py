from fastapi.responses import JSONResponse, PlainTextResponse, Response
import logging

from models.response_model import ProblemResponseModel

logger = logging.getLogger('scrubgate.gateway')

PROBLEM_MEDIA_TYPE = 'application/problem+json'
FALLBACK_TEXT = 'Server error occurred'

def _normalize_headers(request_id: str | None) -> dict | None:
    if not request_id:
        return None
    return {'X-Request-ID': request_id}

def problem_response(status_code: int = 500, title: str = 'Server error',
                     request_id: str | None = None) -> Response:
    """Return the fixed-shape problem body; exception details never go here.
    """
    try:
        model = ProblemResponseModel(status=status_code, title=title)
        return JSONResponse(
            content=model.model_dump(),
            status_code=model.status,
            media_type=PROBLEM_MEDIA_TYPE,
            headers=_normalize_headers(request_id),
        )
    except Exception as e:
        logger.error(f'An error occurred while building the problem response: {e}')
        return fallback_response()

def fallback_response() -> Response:
    return PlainTextResponse(FALLBACK_TEXT, status_code=500)
