import logging

from fastapi import BackgroundTasks, FastAPI, Request, Response, status

from xihi.core.config import Settings, get_settings
from xihi.core.errors import AuthenticationFailure, WebhookError
from xihi.dispatcher import EventDispatcher, parse_payload
from xihi.handlers import build_dispatcher
from xihi.middleware.body_size import BodySizeLimitMiddleware
from xihi.middleware.gate import (
    EVENT_HEADER,
    SIGNATURE_HEADER,
    RequestGateMiddleware,
    client_host,
)
from xihi.services.body import read_body
from xihi.services.signature import verify_signature

logger = logging.getLogger(__name__)


async def webhook_error_handler(request: Request, exc: WebhookError) -> Response:
    return exc.to_response()


def create_app(
    settings: Settings | None = None, dispatcher: EventDispatcher | None = None
) -> FastAPI:
    """Build the webhook receiver. The subscriber registry is fixed from here on."""
    settings = settings or get_settings()
    if dispatcher is None:
        dispatcher = build_dispatcher(settings)

    app = FastAPI(
        title="Xihi",
        description="Protocol definition diff bot for GitHub webhooks",
        version="1.0.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    # Added last runs first: the gate sees every request before the size check
    app.add_middleware(BodySizeLimitMiddleware, max_body_size=settings.max_body_size)
    app.add_middleware(RequestGateMiddleware, path=settings.www_path)
    app.add_exception_handler(WebhookError, webhook_error_handler)

    secret = settings.secret_bytes

    @app.post(
        settings.www_path,
        status_code=status.HTTP_204_NO_CONTENT,
        include_in_schema=False,
    )
    async def receive_webhook(request: Request, background_tasks: BackgroundTasks):
        raw = await read_body(request.stream(), settings.max_body_size)

        if not verify_signature(secret, raw, request.headers[SIGNATURE_HEADER]):
            logger.warning(f"Signature mismatch from {client_host(request)}")
            raise AuthenticationFailure("signature mismatch")

        payload = parse_payload(raw)
        event = request.headers[EVENT_HEADER]
        logger.info(f"Accepted {event!r} webhook ({len(raw)} bytes)")

        # Subscribers run after the 204 has gone out
        background_tasks.add_task(dispatcher.dispatch, event, payload)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app
