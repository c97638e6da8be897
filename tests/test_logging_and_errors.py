"""
Structured logging and the uniform error body.

Covers:
- auth_login_success / auth_login_failure / auth_refresh_failure log events
- client_access_token_refreshed log event
- Every error response is {"message": ...}
- Unhandled exceptions return a generic 500 JSON (not a stack trace)
"""

import logging

from fastapi.testclient import TestClient

from src.app.client.api import ShopApi
from src.app.database import get_db
from src.app.main import app


def _register(client, email="u@example.com"):
    return client.post("/auth/register", json={"email": email, "password": "pass1234"})


# ── Auth logging ──────────────────────────────────────────────────────────────


def test_login_success_is_logged_with_email(client, caplog):
    _register(client)
    with caplog.at_level(logging.INFO, logger="src.app.routers.auth"):
        client.post("/auth/login", json={"email": "u@example.com", "password": "pass1234"})

    messages = " ".join(r.message for r in caplog.records)
    assert "auth_login_success" in messages
    assert "u@example.com" in messages


def test_login_failure_is_logged(client, caplog):
    with caplog.at_level(logging.WARNING, logger="src.app.routers.auth"):
        r = client.post("/auth/login", json={"email": "nobody@x.com", "password": "wrongpass"})

    assert r.status_code == 401
    messages = " ".join(r.message for r in caplog.records)
    assert "auth_login_failure" in messages
    assert "nobody@x.com" in messages


def test_refresh_failure_is_logged(client, caplog):
    with caplog.at_level(logging.WARNING, logger="src.app.routers.auth"):
        client.get("/auth/token")

    assert any("auth_refresh_failure reason=no_cookie" in r.message for r in caplog.records)


def test_client_refresh_is_logged(client, caplog):
    _register(client)
    shop = ShopApi("", base_url="", http=client)
    with caplog.at_level(logging.INFO, logger="src.app.client.api"):
        shop.get_user()  # no access token stored yet → 401 → refresh via cookie

    assert any("client_access_token_refreshed" in r.message for r in caplog.records)


# ── Error bodies ──────────────────────────────────────────────────────────────


def test_not_found_uses_message_body(client):
    r = client.get("/product/12345")
    assert r.status_code == 404
    assert r.json() == {"message": "Product not found"}


def test_unknown_route_uses_message_body(client):
    r = client.get("/no-such-route")
    assert r.status_code == 404
    assert "message" in r.json()


def test_validation_error_lists_fields(client):
    r = client.post("/auth/register", json={"email": "x@example.com"})
    assert r.status_code == 422
    body = r.json()
    assert body["message"] == "Validation failed"
    assert any(e["loc"][-1] == "password" for e in body["errors"])


def test_unhandled_exception_returns_json_500():
    """RuntimeError from a dependency must return clean JSON, not a stack trace."""

    def _bad_db():
        raise RuntimeError("Simulated database crash")
        yield  # unreachable; makes this a generator as required by FastAPI Depends

    app.dependency_overrides[get_db] = _bad_db
    try:
        with TestClient(app, raise_server_exceptions=False) as c:
            r = c.post(
                "/auth/register",
                json={"email": "test@example.com", "password": "pass1234"},
            )
    finally:
        app.dependency_overrides.clear()

    assert r.status_code == 500
    assert r.json() == {"message": "An internal server error occurred"}
    assert "Traceback" not in r.text
    assert "RuntimeError" not in r.text
