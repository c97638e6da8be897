"""
Auth routes for the shop API.

    POST /auth/register    – create a customer account
    POST /auth/login       – authenticate
    GET  /auth/token       – exchange the refresh cookie for a new access token
    GET  /auth/logout      – clear the refresh cookie
    GET  /auth/user        – return the current user (bearer access token)
    GET  /auth/user/roles  – return the current user's roles

Register and login both answer ``{success, user, accessToken}`` and set the
HTTP-only refresh cookie. The access token travels in the Authorization
header; it is never set as a cookie by the server.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from src.app.auth import (
    REFRESH_COOKIE,
    check_login_rate_limit,
    clear_refresh_cookie,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    get_current_user,
    hash_password,
    set_refresh_cookie,
    verify_password,
)
from src.app.database import get_db
from src.app.models import Role, User

router = APIRouter(prefix="/auth")
logger = logging.getLogger(__name__)


# ── Pydantic request schemas ──────────────────────────────────────────────────


class RegisterRequest(BaseModel):
    email: str
    password: str
    name: str = "Евлампий"

    @field_validator("email")
    @classmethod
    def _email_normalise(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("email must contain '@'")
        return v

    @field_validator("name")
    @classmethod
    def _name_length(cls, v: str) -> str:
        v = v.strip()
        if not 2 <= len(v) <= 30:
            raise ValueError("name must be 2–30 characters")
        return v

    @field_validator("password")
    @classmethod
    def _password_length(cls, v: str) -> str:
        if len(v) < 6:
            raise ValueError("password must be at least 6 characters")
        return v


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _email_normalise(cls, v: str) -> str:
        return v.strip().lower()


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "roles": [user.role.value],
    }


def _signed_in(response: Response, user: User) -> dict:
    set_refresh_cookie(response, create_refresh_token(user.id))
    return {
        "success": True,
        "user": user_to_dict(user),
        "accessToken": create_access_token(user.id, user.role.value),
    }


# ── Endpoints ─────────────────────────────────────────────────────────────────


@router.post("/register", status_code=201)
def register(
    body: RegisterRequest,
    response: Response,
    db: Session = Depends(get_db),
) -> dict:
    """Create a customer account and sign it in."""
    if db.query(User).filter(User.email == body.email).first():
        raise HTTPException(status_code=409, detail="Email already registered")

    user = User(
        email=body.email,
        name=body.name,
        password_hash=hash_password(body.password),
        role=Role.customer,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("auth_register user_id=%d email=%s", user.id, user.email)
    return _signed_in(response, user)


@router.post("/login")
def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> dict:
    client_ip = request.client.host if request.client else "unknown"
    check_login_rate_limit(client_ip)

    user = db.query(User).filter(User.email == body.email).first()
    if not user or not verify_password(body.password, user.password_hash):
        logger.warning("auth_login_failure email=%s ip=%s", body.email, client_ip)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    logger.info(
        "auth_login_success user_id=%d email=%s role=%s",
        user.id, user.email, user.role.value,
    )
    return _signed_in(response, user)


@router.get("/token")
def refresh_access_token(request: Request, db: Session = Depends(get_db)):
    """Issue a new access token for the holder of a valid refresh cookie."""
    token = request.cookies.get(REFRESH_COOKIE)
    data = decode_refresh_token(token) if token else None
    user = db.get(User, data["user_id"]) if data else None
    if not user:
        logger.warning("auth_refresh_failure reason=%s", "no_cookie" if not token else "invalid")
        return JSONResponse(
            status_code=401,
            content={"success": False, "message": "Refresh token missing or expired"},
        )

    return {
        "success": True,
        "user": user_to_dict(user),
        "accessToken": create_access_token(user.id, user.role.value),
    }


@router.get("/logout")
def logout(response: Response) -> dict:
    clear_refresh_cookie(response)
    return {"success": True}


@router.get("/user")
def current_user(user: User = Depends(get_current_user)) -> dict:
    return {"success": True, "user": user_to_dict(user)}


@router.get("/user/roles")
def current_user_roles(user: User = Depends(get_current_user)) -> list[str]:
    return [user.role.value]
