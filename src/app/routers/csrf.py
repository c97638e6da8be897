"""
CSRF token route.

    GET /csrf-token  – ensure the session secret cookie, return a token for it
"""

from fastapi import APIRouter, Request, Response

from src.app.csrf import ensure_secret, issue_token

router = APIRouter()


@router.get("/csrf-token")
def get_csrf_token(request: Request, response: Response) -> dict:
    """Return ``{"csrfToken": ...}``; sets the ``_csrf`` cookie on first call."""
    secret = ensure_secret(request, response)
    return {"csrfToken": issue_token(secret)}
