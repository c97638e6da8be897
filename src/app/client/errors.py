"""Exceptions raised by the shop API client."""

# Body message of the server's CSRF 403 (src.app.csrf.REJECTION_MESSAGE).
CSRF_REJECTION_MESSAGE = "Invalid CSRF token"


class ClientError(Exception):
    """Base class for every error the client raises on its own."""


class ApiError(ClientError):
    """Non-2xx response. Carries the status code and the decoded error body."""

    def __init__(self, status_code: int, payload: dict | None = None):
        self.status_code = status_code
        self.payload = payload or {}
        super().__init__(f"{status_code}: {self.message}")

    @property
    def message(self) -> str:
        return str(self.payload.get("message", ""))

    @property
    def is_auth_failure(self) -> bool:
        """Expired or invalid access credential; recoverable by a refresh."""
        return self.status_code == 401

    @property
    def is_csrf_rejection(self) -> bool:
        return self.status_code == 403 and self.message == CSRF_REJECTION_MESSAGE


class RefreshError(ApiError):
    """The refresh credential was missing, expired or refused."""


class CsrfTokenNotFound(ClientError):
    """The token endpoint answered without a ``csrfToken`` field."""
