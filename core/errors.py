from starlette import status


class WebhookError(Exception):
    """Base class for every failure that halts the event pipeline.

    ``detail`` is the only text ever returned to the caller. ``stage`` is
    filled in by the pipeline with the state it was in when the error
    was raised.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: str = "Internal Server Error"

    def __init__(self, message: str = "", stage: str | None = None):
        super().__init__(message or self.detail)
        self.stage = stage


class MalformedPayload(WebhookError):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Bad Request"


class SignatureMismatch(WebhookError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Unauthorized"


class CredentialError(WebhookError):
    """The App's own key or configuration is unusable."""


class AuthenticationError(WebhookError):
    """GitHub refused the App assertion or the installation."""

    status_code = status.HTTP_502_BAD_GATEWAY
    detail = "Bad Gateway"


class TransientError(WebhookError):
    """Network failure, timeout or 5xx while talking to GitHub."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = "Service Unavailable"


class HandlerError(WebhookError):
    """An event handler failed after authentication succeeded."""
