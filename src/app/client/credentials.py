"""
Access credential storage and refresh.

The access token is short-lived and held by the client in plain memory so it
can be attached as ``Authorization: Bearer ...``. The refresh token never
reaches this code: it lives in the HTTP-only ``refreshToken`` cookie and the
HTTP transport's cookie jar sends it to ``GET /auth/token``.
"""

import logging
import threading
from typing import Any, Callable

from src.app.client.errors import ApiError, RefreshError

logger = logging.getLogger(__name__)

REFRESH_ENDPOINT = "/auth/token"


class AccessTokenStore:
    """Current access token, or None when signed out."""

    def __init__(self, token: str | None = None):
        self._token = token
        self._lock = threading.Lock()

    def get(self) -> str | None:
        return self._token

    def set(self, token: str) -> None:
        with self._lock:
            self._token = token

    def clear(self) -> None:
        with self._lock:
            self._token = None


class CredentialRefresher:
    """
    Exchanges the refresh cookie for a new access token.

    *request* is the single-attempt request function of the client
    (``Api.request``); it raises ApiError for non-2xx answers and lets
    transport errors through.
    """

    def __init__(self, request: Callable[..., Any]):
        self._request = request

    def refresh(self) -> str:
        """Return a new access token or raise RefreshError.

        Storing the token is left to the caller.
        """
        try:
            data = self._request("GET", REFRESH_ENDPOINT)
        except ApiError as exc:
            raise RefreshError(exc.status_code, exc.payload) from exc

        if not isinstance(data, dict) or not data.get("success") or not data.get("accessToken"):
            raise RefreshError(200, data if isinstance(data, dict) else None)
        return data["accessToken"]
