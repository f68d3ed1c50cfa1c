"""Exception taxonomy for gateway operations.

Services raise these; handlers translate them into HTTP responses using
``status_code``. Access-control denials are returned as values by the
access-control service and only become ``AccessDeniedError`` at the
orchestration boundary.
"""

from typing import Any

from fastapi import status


class GatewayError(Exception):
    """Base class for all expected gateway failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "Internal server error"

    def __init__(self, message: str | None = None, **details: Any) -> None:
        self.message = message or self.error
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON error body used by the HTTP layer."""
        return {"success": False, "error": self.error, "message": self.message, **self.details}


class ValidationError(GatewayError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Validation failed"


class InvalidTokenError(GatewayError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Invalid or expired token"


class NoActiveSessionError(GatewayError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "No active session"


class InvalidCredentialsError(GatewayError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "Invalid credentials"


class SessionConflictError(GatewayError):
    status_code = status.HTTP_409_CONFLICT
    error = "User already in use"


class SessionNotFoundError(GatewayError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "Session not found"


class CredentialNotFoundError(GatewayError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "API key not found"


class TemplateExistsError(GatewayError):
    status_code = status.HTTP_409_CONFLICT
    error = "Template already exists"


class SemanticConflictError(GatewayError):
    status_code = status.HTTP_409_CONFLICT
    error = "Semantic conflict detected"


class ConfirmationRequiredError(GatewayError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Confirmation required"


class TemplateNotFoundError(GatewayError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "No matching API template found for this intent"


class AccessDeniedError(GatewayError):
    """Raised when access control rejects a request.

    Quota denials are retryable later and map to 429; structural denials
    (expiry, origin, payload size) map to 403.
    """

    error = "Access denied"

    def __init__(self, message: str, retryable: bool, **details: Any) -> None:
        super().__init__(message, **details)
        self.retryable = retryable
        self.status_code = (
            status.HTTP_429_TOO_MANY_REQUESTS if retryable else status.HTTP_403_FORBIDDEN
        )


class DecryptionError(GatewayError):
    error = "Failed to decrypt API key"


class UpstreamError(GatewayError):
    status_code = status.HTTP_502_BAD_GATEWAY
    error = "Upstream API call failed"
