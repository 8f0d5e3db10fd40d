import logging
from collections.abc import Mapping

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from xihi.core.errors import (
    AuthenticationFailure,
    MethodNotAllowed,
    NotFound,
    TransportPolicyViolation,
    UnsupportedMediaType,
)

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-hub-signature"
EVENT_HEADER = "x-github-event"


def check_request(
    method: str, path: str, headers: Mapping[str, str], expected_path: str
) -> None:
    """Raise the first transport or header failure; ``headers`` keys are lowercase."""
    if path != expected_path:
        raise NotFound()
    if method != "POST":
        raise MethodNotAllowed()
    if headers.get("content-type") != "application/json":
        raise UnsupportedMediaType()
    if not headers.get(SIGNATURE_HEADER) or not headers.get(EVENT_HEADER):
        raise AuthenticationFailure("missing signature or event header")


def client_host(request: Request) -> str:
    return request.client.host if request.client else "?"


def raw_path(request: Request) -> str:
    """The path as sent, before percent-decoding."""
    raw = request.scope.get("raw_path")
    if raw is None:
        return request.url.path
    return raw.decode("latin-1")


class RequestGateMiddleware(BaseHTTPMiddleware):
    """Turn away anything that is not a well-formed webhook POST before the body is read."""

    def __init__(self, app, path: str):
        super().__init__(app)
        self.path = path

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            check_request(request.method, raw_path(request), request.headers, self.path)
        except TransportPolicyViolation as exc:
            logger.debug(f"{request.method} {raw_path(request)}: {exc.detail}")
            return exc.to_response()
        except AuthenticationFailure as exc:
            logger.warning(f"Rejected webhook from {client_host(request)}: {exc.detail}")
            return exc.to_response()
        return await call_next(request)
