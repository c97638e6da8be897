"""
ShopApi against the real app (TestClient as the HTTP transport):
- Mutating calls fetch the CSRF token once and succeed
- An expired access token is refreshed silently; the caller only sees success
- Without a refresh cookie the call fails with RefreshError
- Product image names get the CDN prefix
"""

import pytest

from src.app.auth import REFRESH_COOKIE, create_access_token
from src.app.client.api import ShopApi
from src.app.client.errors import ApiError, RefreshError
from src.app.models import Order, PaymentType, Product, Role

CDN = "https://cdn.example.com"


@pytest.fixture()
def shop(client):
    # TestClient is an httpx.Client: relative endpoints resolve against it
    # and its cookie jar carries the refresh and CSRF secret cookies.
    return ShopApi(CDN, base_url="", http=client)


@pytest.fixture()
def admin_shop(shop, make_user):
    make_user("admin@example.com", role=Role.admin, name="Admin")
    shop.login_user({"email": "admin@example.com", "password": "password123"})
    return shop


@pytest.fixture()
def placed_order(db_session, make_user):
    buyer = make_user("buyer@example.com")
    product = Product(title="HEX-леденец", category="другое", price=1450,
                      image_file_name="/Shell.svg", image_original_name="Shell.svg")
    db_session.add(product)
    db_session.flush()
    db_session.add(Order(order_number=1, customer_id=buyer.id, payment=PaymentType.card,
                         address="Москва", email=buyer.email, phone="+70000000000",
                         total_amount=1450, products=[product]))
    db_session.commit()


def _expire_access_token(shop, issued_long_ago):
    user_id = shop.get_user()["user"]["id"]
    shop.tokens.set(issued_long_ago(lambda: create_access_token(user_id, "admin")))


def test_login_stores_access_token(admin_shop):
    assert admin_shop.tokens.get()
    assert admin_shop.get_user_roles() == ["admin"]


def test_create_product_round_trip(admin_shop):
    created = admin_shop.create_product({
        "title": "Фреймворк куки судьбы",
        "category": "дополнительное",
        "price": 2500,
        "image": {"fileName": "/Soft_Flower.svg", "originalName": "Soft_Flower.svg"},
    })
    assert created["image"]["fileName"] == f"{CDN}/Soft_Flower.svg"

    listing = admin_shop.get_product_list({"page": 1, "limit": 5})
    assert [p["image"]["fileName"] for p in listing["items"]] == [f"{CDN}/Soft_Flower.svg"]
    assert admin_shop.csrf.cached is not None


def test_expired_access_token_is_refreshed_transparently(admin_shop, placed_order, issued_long_ago):
    """PATCH with an expired token: one 401, one refresh, one replay; caller sees success."""
    _expire_access_token(admin_shop, issued_long_ago)
    stale = admin_shop.tokens.get()

    result = admin_shop.update_order_status("delivering", 1)

    assert result["status"] == "delivering"
    assert admin_shop.tokens.get() != stale


def test_expired_token_without_refresh_cookie_fails(admin_shop, placed_order, client, issued_long_ago):
    _expire_access_token(admin_shop, issued_long_ago)
    client.cookies.delete(REFRESH_COOKIE)

    with pytest.raises(RefreshError):
        admin_shop.update_order_status("delivering", 1)
    assert admin_shop.tokens.get() is None


def test_forged_secret_is_rejected_and_cache_dropped(admin_shop, placed_order, client):
    admin_shop.csrf.get_token()
    client.cookies.delete("_csrf")
    client.cookies.set("_csrf", "someone-elses-secret")

    with pytest.raises(ApiError) as exc_info:
        admin_shop.update_order_status("completed", 1)

    assert exc_info.value.status_code == 403
    assert admin_shop.csrf.cached is None


def test_logout_then_refresh_fails(admin_shop, client):
    admin_shop.logout_user()
    assert admin_shop.tokens.get() is None
    with pytest.raises(RefreshError):
        admin_shop.get_user()
