"""
Authentication utilities for the shop API.

Provides:
- Password hashing / verification (bcrypt)
- Access credentials: short-lived signed bearer tokens (itsdangerous)
- Refresh credentials: long-lived signed tokens carried in an HTTP-only cookie
- FastAPI dependencies: get_current_user, require_admin
- In-memory per-IP login rate limiter
"""

import logging
import threading
from collections import defaultdict
from datetime import datetime, timezone

import bcrypt
from fastapi import Depends, HTTPException, Request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy.orm import Session

from src.app.config import ACCESS_TOKEN_TTL, IS_PROD, REFRESH_TOKEN_TTL, SECRET_KEY
from src.app.database import get_db
from src.app.models import Role, User

logger = logging.getLogger(__name__)

# ── Password hashing ──────────────────────────────────────────────────────────


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode(), hashed.encode())


# ── Access / refresh credentials ──────────────────────────────────────────────

_ACCESS_SALT = "access-v1"
_REFRESH_SALT = "refresh-v1"
REFRESH_COOKIE = "refreshToken"


def _access_serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(SECRET_KEY, salt=_ACCESS_SALT)


def _refresh_serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(SECRET_KEY, salt=_REFRESH_SALT)


def create_access_token(user_id: int, role: str) -> str:
    return _access_serializer().dumps({"user_id": user_id, "role": role})


def decode_access_token(token: str) -> dict | None:
    """Return the payload, or None if the token is tampered or expired."""
    try:
        return _access_serializer().loads(token, max_age=ACCESS_TOKEN_TTL)
    except (BadSignature, SignatureExpired):
        return None


def create_refresh_token(user_id: int) -> str:
    return _refresh_serializer().dumps({"user_id": user_id})


def decode_refresh_token(token: str) -> dict | None:
    try:
        return _refresh_serializer().loads(token, max_age=REFRESH_TOKEN_TTL)
    except (BadSignature, SignatureExpired):
        return None


def set_refresh_cookie(response, token: str) -> None:
    """Attach the HTTP-only refresh cookie to any Response."""
    response.set_cookie(
        key=REFRESH_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=IS_PROD,
        max_age=REFRESH_TOKEN_TTL,
        path="/",
    )


def clear_refresh_cookie(response) -> None:
    response.delete_cookie(key=REFRESH_COOKIE, path="/", samesite="lax")


# ── Current-user dependencies ─────────────────────────────────────────────────


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Return the User behind the bearer access credential or raise 401."""
    token = _bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    data = decode_access_token(token)
    if not data:
        raise HTTPException(status_code=401, detail="Invalid or expired access token")
    user = db.get(User, data["user_id"])
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Return the current user if they hold the admin role, else 403."""
    if current_user.role != Role.admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return current_user


# ── Rate limiter ──────────────────────────────────────────────────────────────

_RATE_WINDOW = 60  # seconds
_RATE_MAX = 5  # max login attempts per window per IP

_login_attempts: dict[str, list[float]] = defaultdict(list)
_rate_lock = threading.Lock()


def check_login_rate_limit(ip: str) -> None:
    """Raise HTTP 429 if the IP has exceeded the login rate limit."""
    now = datetime.now(timezone.utc).timestamp()
    with _rate_lock:
        attempts = [t for t in _login_attempts[ip] if now - t < _RATE_WINDOW]
        attempts.append(now)
        _login_attempts[ip] = attempts
        if len(attempts) > _RATE_MAX:
            logger.warning("auth_rate_limited ip=%s attempts=%d", ip, len(attempts))
            raise HTTPException(
                status_code=429,
                detail="Too many login attempts. Please wait a minute.",
            )


def _reset_rate_limits() -> None:
    """Clear all recorded login attempts. Used only in tests."""
    with _rate_lock:
        _login_attempts.clear()
