"""
CSRF protection for the shop API.

Strategy: double-submit with a per-session secret.
  - GET /csrf-token lazily creates a random secret, stores it in an HTTP-only
    cookie and returns a token derived from it.
  - A token is a fresh nonce signed (HMAC, itsdangerous Signer) with the
    session secret. Nothing token-related is stored server-side.
  - Mutating routes depend on require_csrf, and their routers use
    CsrfProtectedRoute so the same check runs before the body is parsed.
    The check reads the secret from the cookie and the token from the
    X-CSRF-Token header (fallback: body field, then query field
    ``csrfToken``) and rejects with 403 unless the token was signed with
    that secret.

A cross-origin attacker can make the browser send the secret cookie but
cannot read a token, and a token lifted from another session does not verify
against the victim's secret.
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Any, Callable, Coroutine

from fastapi import HTTPException, Request, Response
from fastapi.routing import APIRoute
from itsdangerous import Signer

from src.app.config import IS_PROD

logger = logging.getLogger(__name__)

SECRET_COOKIE = "_csrf"
HEADER_NAME = "x-csrf-token"
FIELD_NAME = "csrfToken"
REJECTION_MESSAGE = "Invalid CSRF token"

_CSRF_SALT = "csrf-token"
_SECRET_BYTES = 18
_NONCE_BYTES = 8

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


@dataclass(frozen=True)
class CsrfContext:
    """Outcome of a successful check, handed to the route as a parameter."""

    secret: str
    token: str
    source: str  # "header" | "body" | "query"


# ── Secret store ──────────────────────────────────────────────────────────────


def ensure_secret(request: Request, response: Response) -> str:
    """Return the session secret, creating and setting the cookie if absent."""
    secret = request.cookies.get(SECRET_COOKIE)
    if secret:
        return secret
    secret = secrets.token_urlsafe(_SECRET_BYTES)
    response.set_cookie(
        key=SECRET_COOKIE,
        value=secret,
        httponly=True,
        samesite="lax",
        secure=IS_PROD,
        path="/",
    )
    logger.info("csrf_secret_created path=%s", request.url.path)
    return secret


# ── Token service ─────────────────────────────────────────────────────────────


def _signer(secret: str) -> Signer:
    return Signer(secret, salt=_CSRF_SALT)


def issue_token(secret: str) -> str:
    """Return a token bound to *secret*. Each call signs a new nonce."""
    return _signer(secret).sign(secrets.token_urlsafe(_NONCE_BYTES)).decode()


def verify_token(secret: str | None, token: str | None) -> bool:
    """True only if *token* was issued for *secret*. Never raises."""
    if not secret or not token:
        return False
    if not isinstance(secret, str) or not isinstance(token, str):
        return False
    return _signer(secret).validate(token)


# ── Verification dependency ───────────────────────────────────────────────────


async def _token_from_body(request: Request) -> str | None:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            payload = await request.json()
        except (ValueError, UnicodeDecodeError):
            return None
        if isinstance(payload, dict):
            value = payload.get(FIELD_NAME)
            return value if isinstance(value, str) else None
        return None
    if content_type.startswith(_FORM_TYPES):
        form = await request.form()
        value = form.get(FIELD_NAME)
        return value if isinstance(value, str) else None
    return None


async def _presented_token(request: Request) -> tuple[str | None, str]:
    header = request.headers.get(HEADER_NAME)
    if header:
        return header, "header"
    body = await _token_from_body(request)
    if body:
        return body, "body"
    return request.query_params.get(FIELD_NAME), "query"


def _reject(request: Request, reason: str) -> HTTPException:
    logger.warning(
        "csrf_rejected method=%s path=%s reason=%s",
        request.method, request.url.path, reason,
    )
    return HTTPException(status_code=403, detail=REJECTION_MESSAGE)


async def require_csrf(request: Request) -> CsrfContext:
    """
    FastAPI dependency for state-changing routes.

    Declare it as the first parameter (``csrf: CsrfContext = Depends(require_csrf)``)
    so it runs before authentication; pair it with ``CsrfProtectedRoute`` on
    the router so it also runs before body validation. Raises 403 with
    ``{"message": "Invalid CSRF token"}`` when the secret cookie or the token
    is missing, or when the token does not verify.
    """
    secret = request.cookies.get(SECRET_COOKIE)
    if not secret:
        raise _reject(request, "secret_missing")
    token, source = await _presented_token(request)
    if not token:
        raise _reject(request, "token_missing")
    if not verify_token(secret, token):
        raise _reject(request, "token_mismatch")
    return CsrfContext(secret=secret, token=token, source=source)


# ── Route class ───────────────────────────────────────────────────────────────


_UNSAFE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


class CsrfProtectedRoute(APIRoute):
    """
    Route class for routers whose mutating routes are CSRF-guarded.

    FastAPI parses and validates the request body before any dependency
    runs, so ``require_csrf`` alone would let a malformed body answer 422
    ahead of the CSRF gate. This class runs the same check on unsafe methods
    before handing the request to FastAPI's handler; the body it reads is
    cached on the request and parsed again from that cache.
    """

    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        handler = super().get_route_handler()

        async def csrf_checked_handler(request: Request) -> Response:
            if request.method in _UNSAFE_METHODS:
                await require_csrf(request)
            return await handler(request)

        return csrf_checked_handler
