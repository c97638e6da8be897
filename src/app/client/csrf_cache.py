"""
Client-side CSRF token cache.

One token per client instance, fetched from ``GET /csrf-token`` the first
time a mutating call needs it. Concurrent first callers share a single fetch:
the lock is held for the duration of the request, so late arrivals wait and
then read the cached value.
"""

import logging
import threading
from typing import Any, Callable

from src.app.client.errors import CsrfTokenNotFound

logger = logging.getLogger(__name__)

TOKEN_ENDPOINT = "/csrf-token"
TOKEN_FIELD = "csrfToken"


class CsrfTokenCache:
    def __init__(self, fetch: Callable[[], Any]):
        self._fetch = fetch
        self._token: str | None = None
        self._lock = threading.Lock()

    def get_token(self) -> str:
        token = self._token
        if token is not None:
            return token
        with self._lock:
            # Another thread may have filled the cache while we waited.
            if self._token is None:
                data = self._fetch()
                token = data.get(TOKEN_FIELD) if isinstance(data, dict) else None
                if not token:
                    raise CsrfTokenNotFound("CSRF token not found")
                self._token = token
                logger.info("client_csrf_token_fetched")
            return self._token

    def invalidate(self) -> None:
        with self._lock:
            if self._token is not None:
                logger.info("client_csrf_token_invalidated")
            self._token = None

    @property
    def cached(self) -> str | None:
        return self._token
