from starlette.responses import PlainTextResponse, Response


class WebhookError(Exception):
    """Base for every way a webhook request can be turned away."""

    status_code = 500
    phrase = "500 Internal Server Error"

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.phrase)
        self.detail = detail or self.phrase

    def to_response(self) -> Response:
        return PlainTextResponse(self.phrase, status_code=self.status_code)


class TransportPolicyViolation(WebhookError):
    pass


class NotFound(TransportPolicyViolation):
    status_code = 404
    phrase = "404 Not Found"


class MethodNotAllowed(TransportPolicyViolation):
    status_code = 405
    phrase = "405 Method Not Allowed"


class UnsupportedMediaType(TransportPolicyViolation):
    status_code = 415
    phrase = "415 Unsupported Media Type"


class AuthenticationFailure(WebhookError):
    """Missing signature/event headers or a signature mismatch.

    Both causes answer with the same bare 403 so callers cannot tell which
    check failed.
    """

    status_code = 403
    phrase = ""


class PayloadTooLarge(WebhookError):
    status_code = 413
    phrase = "413 Payload Too Large"


class MalformedPayload(WebhookError):
    status_code = 400
    phrase = "400 Bad Request"
