"""Error taxonomy shared by the service layer and the HTTP API."""

from typing import Any, Dict, Optional


class GatewayError(Exception):
    """
    Base exception for errors surfaced to API callers.

    Each subclass fixes the HTTP status code it maps to; the message is
    returned to the caller verbatim, so it must never carry secrets.
    """

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to API error response format."""
        return {"error": self.message}


class RequestValidationFailed(GatewayError):
    """A required request field is missing or malformed."""

    status_code = 400


class UpstreamRejection(GatewayError):
    """
    The payment processor answered but reported a non-success status.

    Examples:
    - Card declined on charge_authorization
    - Transaction reference abandoned or failed on verify
    """

    status_code = 400


class NotFoundError(GatewayError):
    """The referenced document does not exist."""

    status_code = 404


class InternalError(GatewayError):
    """Network or database failure while handling the request."""

    status_code = 500
