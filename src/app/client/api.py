"""
HTTP client for the shop API.

``Api`` is the transport layer:

* ``request`` makes exactly one attempt and raises ApiError on non-2xx.
* ``request_with_refresh`` attaches the bearer access token and, if the
  server answers 401, refreshes the token once and replays the call once.
  Any other failure (transport error, 403, 404, 422, ...) is raised as is.
* ``mutate`` additionally attaches the cached CSRF token and drops the cache
  when the server rejects it.

``ShopApi`` maps the shop endpoints onto those three primitives.

Usage:
    with ShopApi(CDN_URL, API_URL) as api:
        api.login_user({"email": "...", "password": "..."})
        api.update_order_status("delivering", 12)
"""

import logging
from typing import Any
from urllib.parse import urlencode

import httpx

from src.app.client.credentials import AccessTokenStore, CredentialRefresher
from src.app.client.csrf_cache import TOKEN_ENDPOINT, CsrfTokenCache
from src.app.client.errors import ApiError
from src.app.config import API_URL, CDN_URL

logger = logging.getLogger(__name__)

CSRF_HEADER = "X-CSRF-Token"


class Api:
    def __init__(
        self,
        base_url: str,
        http: httpx.Client | None = None,
        tokens: AccessTokenStore | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_http = http is None
        self.http = http if http is not None else httpx.Client()
        self.tokens = tokens if tokens is not None else AccessTokenStore()
        self.refresher = CredentialRefresher(self.request)
        self.csrf = CsrfTokenCache(lambda: self.request("GET", TOKEN_ENDPOINT))

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ── Primitives ────────────────────────────────────────────────────────────

    @staticmethod
    def _handle_response(response: httpx.Response) -> Any:
        if response.is_success:
            return response.json()
        try:
            payload = response.json()
        except ValueError:
            payload = {"message": response.text}
        if not isinstance(payload, dict):
            payload = {"message": str(payload)}
        raise ApiError(response.status_code, payload)

    def request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Send one request and return the decoded JSON body."""
        response = self.http.request(method, f"{self.base_url}{endpoint}", **kwargs)
        return self._handle_response(response)

    def _auth_headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        merged = dict(headers or {})
        token = self.tokens.get()
        if token:
            merged["Authorization"] = f"Bearer {token}"
        return merged

    def request_with_refresh(
        self,
        method: str,
        endpoint: str,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> Any:
        """
        Send an authorized request; on 401 refresh the access token and replay.

        At most two attempts are made. A failed refresh raises RefreshError
        and the call is not replayed. The replay's outcome is returned or
        raised as is.
        """
        try:
            return self.request(method, endpoint, headers=self._auth_headers(headers), **kwargs)
        except ApiError as exc:
            if not exc.is_auth_failure:
                raise
            logger.info("client_auth_failed method=%s endpoint=%s", method, endpoint)

        try:
            token = self.refresher.refresh()
        except ApiError as exc:
            logger.warning("client_refresh_failed status=%s", exc.status_code)
            self.tokens.clear()
            raise
        self.tokens.set(token)
        logger.info("client_access_token_refreshed endpoint=%s", endpoint)

        return self.request(method, endpoint, headers=self._auth_headers(headers), **kwargs)

    def mutate(
        self,
        method: str,
        endpoint: str,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> Any:
        """Authorized state-changing request carrying the CSRF token."""
        csrf_headers = {**(headers or {}), CSRF_HEADER: self.csrf.get_token()}
        try:
            return self.request_with_refresh(method, endpoint, headers=csrf_headers, **kwargs)
        except ApiError as exc:
            if exc.is_csrf_rejection:
                self.csrf.invalidate()
            raise


def _query(filters: dict[str, Any] | None) -> str:
    params = {k: v for k, v in (filters or {}).items() if v is not None}
    return f"?{urlencode(params)}" if params else ""


class ShopApi(Api):
    """Typed facade over the shop endpoints."""

    def __init__(
        self,
        cdn: str = CDN_URL,
        base_url: str = API_URL,
        http: httpx.Client | None = None,
        tokens: AccessTokenStore | None = None,
    ):
        super().__init__(base_url, http=http, tokens=tokens)
        self.cdn = cdn

    def _with_cdn(self, product: dict) -> dict:
        image = product.get("image") or {}
        return {**product, "image": {**image, "fileName": self.cdn + image.get("fileName", "")}}

    # ── Catalogue ─────────────────────────────────────────────────────────────

    def get_product_list(self, filters: dict[str, Any] | None = None) -> dict:
        data = self.request("GET", f"/product{_query(filters)}")
        return {**data, "items": [self._with_cdn(p) for p in data["items"]]}

    def get_product_item(self, product_id: int) -> dict:
        return self._with_cdn(self.request("GET", f"/product/{product_id}"))

    def create_product(self, data: dict) -> dict:
        return self._with_cdn(self.mutate("POST", "/product", json=data))

    def update_product(self, data: dict, product_id: int) -> dict:
        return self._with_cdn(self.mutate("PATCH", f"/product/{product_id}", json=data))

    def delete_product(self, product_id: int) -> dict:
        return self.mutate("DELETE", f"/product/{product_id}")

    # ── Orders ────────────────────────────────────────────────────────────────

    def create_order(self, order: dict) -> dict:
        return self.mutate("POST", "/order", json=order)

    def update_order_status(self, status: str, order_number: int) -> dict:
        return self.mutate("PATCH", f"/order/{order_number}", json={"status": status})

    def delete_order(self, order_id: int) -> dict:
        return self.mutate("DELETE", f"/order/{order_id}")

    def get_all_orders(self, filters: dict[str, Any] | None = None) -> dict:
        return self.request_with_refresh("GET", f"/order/all{_query(filters)}")

    def get_current_user_orders(self, filters: dict[str, Any] | None = None) -> dict:
        return self.request_with_refresh("GET", f"/order/all/me{_query(filters)}")

    def get_order_by_number(self, order_number: int) -> dict:
        return self.request_with_refresh("GET", f"/order/{order_number}")

    def get_order_current_user_by_number(self, order_number: int) -> dict:
        return self.request_with_refresh("GET", f"/order/me/{order_number}")

    # ── Customers ─────────────────────────────────────────────────────────────

    def get_all_customers(self, filters: dict[str, Any] | None = None) -> dict:
        return self.request_with_refresh("GET", f"/customers{_query(filters)}")

    def get_customer_by_id(self, customer_id: int) -> dict:
        return self.request_with_refresh("GET", f"/customers/{customer_id}")

    def update_customer(self, data: dict, customer_id: int) -> dict:
        return self.mutate("PATCH", f"/customers/{customer_id}", json=data)

    def delete_customer(self, customer_id: int) -> dict:
        return self.mutate("DELETE", f"/customers/{customer_id}")

    # ── Auth ──────────────────────────────────────────────────────────────────

    def _store_access_token(self, data: dict) -> dict:
        if data.get("accessToken"):
            self.tokens.set(data["accessToken"])
        return data

    def login_user(self, data: dict) -> dict:
        return self._store_access_token(self.request("POST", "/auth/login", json=data))

    def register_user(self, data: dict) -> dict:
        return self._store_access_token(self.request("POST", "/auth/register", json=data))

    def logout_user(self) -> dict:
        data = self.request("GET", "/auth/logout")
        self.tokens.clear()
        return data

    def get_user(self) -> dict:
        return self.request_with_refresh("GET", "/auth/user")

    def get_user_roles(self) -> list[str]:
        return self.request_with_refresh("GET", "/auth/user/roles")
