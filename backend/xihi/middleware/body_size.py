import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from xihi.core.config import DEFAULT_MAX_BODY_SIZE
from xihi.core.errors import PayloadTooLarge

logger = logging.getLogger(__name__)


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests whose declared Content-Length is already over the limit.

    Bodies without a usable Content-Length are still bounded while they
    stream in; see ``xihi.services.body.read_body``.
    """

    def __init__(self, app, max_body_size: int = DEFAULT_MAX_BODY_SIZE):
        super().__init__(app)
        self.max_body_size = max_body_size

    async def dispatch(self, request: Request, call_next) -> Response:
        declared = request.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > self.max_body_size:
            logger.warning(
                f"Declared body of {declared} bytes exceeds {self.max_body_size}"
            )
            return PayloadTooLarge().to_response()
        return await call_next(request)
