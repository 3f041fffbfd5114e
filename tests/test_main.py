from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

import chatbot_app.main as main_module
from chatbot_app.compliance import InMemoryComplianceStore, get_customer_store, get_shop_store
from chatbot_app.shopify_api import ShopifyApiError
from chatbot_app.theme_blocks import AssetWriteFailedError, NoMainThemeError


@pytest.fixture()
def customer_store():
    return InMemoryComplianceStore({"cust-1": {"email": "jane@example.com", "orders": [1001, 1002]}})


@pytest.fixture()
def shop_store():
    return InMemoryComplianceStore({"shop-1": {"plan": "basic"}})


@pytest.fixture()
def api_client(customer_store, shop_store):
    main_module.app.dependency_overrides[get_customer_store] = lambda: customer_store
    main_module.app.dependency_overrides[get_shop_store] = lambda: shop_store
    with TestClient(main_module.app) as client:
        yield client
    main_module.app.dependency_overrides.clear()


def test_health(api_client):
    response = api_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_install_page_displays_shop(api_client):
    response = api_client.get("/", params={"shop": "example.myshopify.com"})

    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]
    assert "example.myshopify.com" in response.text


def test_auth_redirects_to_shopify_authorize_url(api_client):
    response = api_client.get("/auth", params={"shop": "Example.myshopify.com"}, follow_redirects=False)

    assert response.status_code == 302
    location = urlparse(response.headers["location"])
    assert location.netloc == "example.myshopify.com"
    assert location.path == "/admin/oauth/authorize"
    query = parse_qs(location.query)
    assert query["client_id"] == ["test_key"]
    assert query["redirect_uri"] == ["https://example.ngrok.app/auth/callback"]
    assert "write_themes" in query["scope"][0].split(",")


def test_auth_requires_shop(api_client):
    response = api_client.get("/auth", follow_redirects=False)

    assert response.status_code == 400


def test_auth_callback_installs_block_and_redirects_to_theme_editor(api_client, monkeypatch):
    installs: list[tuple[str, str]] = []

    async def fake_exchange_code_for_access_token(*, shop_domain: str, code: str):
        assert shop_domain == "example.myshopify.com"
        assert code == "oauth_code"
        return "admin_access_token"

    async def fake_install_chatbot_block(*, shop_domain: str, access_token: str):
        installs.append((shop_domain, access_token))

    monkeypatch.setattr(main_module.shopify_api, "exchange_code_for_access_token", fake_exchange_code_for_access_token)
    monkeypatch.setattr(main_module.installer, "install_chatbot_block", fake_install_chatbot_block)

    response = api_client.get(
        "/auth/callback",
        params={"code": "oauth_code", "shop": "example.myshopify.com"},
        follow_redirects=False,
    )

    assert response.status_code == 302
    assert response.headers["location"] == "https://example.myshopify.com/admin/themes/current/editor?context=apps"
    assert installs == [("example.myshopify.com", "admin_access_token")]


@pytest.mark.parametrize("params", [{"code": "oauth_code"}, {"shop": "example.myshopify.com"}, {}])
def test_auth_callback_requires_code_and_shop(api_client, params):
    response = api_client.get("/auth/callback", params=params, follow_redirects=False)

    assert response.status_code == 400


def test_auth_callback_returns_plain_500_when_token_exchange_fails(api_client, monkeypatch):
    async def fake_exchange_code_for_access_token(*, shop_domain: str, code: str):
        raise ShopifyApiError(message="Shopify API call failed (400): invalid_request secret-detail")

    monkeypatch.setattr(main_module.shopify_api, "exchange_code_for_access_token", fake_exchange_code_for_access_token)

    response = api_client.get(
        "/auth/callback",
        params={"code": "oauth_code", "shop": "example.myshopify.com"},
        follow_redirects=False,
    )

    assert response.status_code == 500
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text == "Failed to install app"
    assert "secret-detail" not in response.text


@pytest.mark.parametrize(
    "error",
    [NoMainThemeError("No main theme"), AssetWriteFailedError("PUT and POST failed")],
)
def test_auth_callback_maps_install_errors_to_500(api_client, monkeypatch, error):
    async def fake_exchange_code_for_access_token(*, shop_domain: str, code: str):
        return "admin_access_token"

    async def fake_install_chatbot_block(*, shop_domain: str, access_token: str):
        raise error

    monkeypatch.setattr(main_module.shopify_api, "exchange_code_for_access_token", fake_exchange_code_for_access_token)
    monkeypatch.setattr(main_module.installer, "install_chatbot_block", fake_install_chatbot_block)

    response = api_client.get(
        "/auth/callback",
        params={"code": "oauth_code", "shop": "example.myshopify.com"},
        follow_redirects=False,
    )

    assert response.status_code == 500
    assert response.text == "Failed to install app"


def test_customer_data_request_returns_stored_payload(api_client):
    response = api_client.post("/customer-data-request", json={"customer_id": "cust-1", "request_id": "r1"})

    assert response.status_code == 200
    assert response.json() == {
        "request_id": "r1",
        "customer_id": "cust-1",
        "data": {"email": "jane@example.com", "orders": [1001, 1002]},
    }


def test_customer_data_request_returns_404_after_erasure(api_client, customer_store):
    erase_response = api_client.post("/customer-data-erasure", json={"customer_id": "cust-1", "request_id": "r2"})

    assert erase_response.status_code == 200
    assert erase_response.json() == {
        "request_id": "r2",
        "customer_id": "cust-1",
        "status": "Data erased successfully",
    }
    assert "cust-1" not in customer_store

    response = api_client.post("/customer-data-request", json={"customer_id": "cust-1", "request_id": "r3"})
    assert response.status_code == 404


def test_customer_data_request_accepts_numeric_ids(api_client, customer_store):
    customer_store.put("207119551", {"email": "numeric@example.com"})

    response = api_client.post("/customer-data-request", json={"customer_id": 207119551, "request_id": 9})

    assert response.status_code == 200
    assert response.json()["customer_id"] == 207119551
    assert response.json()["data"] == {"email": "numeric@example.com"}


@pytest.mark.parametrize("path", ["/customer-data-request", "/customer-data-erasure"])
@pytest.mark.parametrize("body", [{"customer_id": "cust-1"}, {"request_id": "r1"}, {}])
def test_customer_endpoints_require_ids(api_client, customer_store, path, body):
    response = api_client.post(path, json=body)

    assert response.status_code == 400
    assert len(customer_store) == 1


def test_customer_data_erasure_returns_404_for_unknown_customer(api_client):
    response = api_client.post("/customer-data-erasure", json={"customer_id": "missing", "request_id": "r1"})

    assert response.status_code == 404


def test_shop_data_erasure_deletes_record(api_client, shop_store):
    response = api_client.post("/shop-data-erasure", json={"shop_id": "shop-1", "request_id": "r1"})

    assert response.status_code == 200
    assert response.json() == {
        "request_id": "r1",
        "shop_id": "shop-1",
        "status": "Shop data erased successfully",
    }
    assert "shop-1" not in shop_store

    second = api_client.post("/shop-data-erasure", json={"shop_id": "shop-1", "request_id": "r2"})
    assert second.status_code == 404


def test_shop_data_erasure_requires_shop_id(api_client, shop_store):
    response = api_client.post("/shop-data-erasure", json={"request_id": "r1"})

    assert response.status_code == 400
    assert shop_store.get("shop-1") == {"plan": "basic"}


def test_require_myshopify_host_lowercases_and_strips():
    assert main_module._require_myshopify_host(" Example-Shop.myshopify.com ") == "example-shop.myshopify.com"


@pytest.mark.parametrize("shop", ["example.com", "evil.myshopify.com.attacker.io", "-shop.myshopify.com"])
def test_auth_rejects_hosts_outside_myshopify(api_client, shop):
    response = api_client.get("/auth", params={"shop": shop}, follow_redirects=False)

    assert response.status_code == 400
    assert "myshopify.com" in response.json()["detail"]


def test_auth_callback_returns_plain_500_on_unexpected_error(api_client, monkeypatch):
    async def fake_exchange_code_for_access_token(*, shop_domain: str, code: str):
        return "admin_access_token"

    async def fake_install_chatbot_block(*, shop_domain: str, access_token: str):
        raise KeyError("id")

    monkeypatch.setattr(main_module.shopify_api, "exchange_code_for_access_token", fake_exchange_code_for_access_token)
    monkeypatch.setattr(main_module.installer, "install_chatbot_block", fake_install_chatbot_block)

    response = api_client.get(
        "/auth/callback",
        params={"code": "oauth_code", "shop": "example.myshopify.com"},
        follow_redirects=False,
    )

    assert response.status_code == 500
    assert response.text == "Failed to install app"


MALFORMED_BODIES = [
    pytest.param({}, id="no-body"),
    pytest.param({"content": b""}, id="empty-body"),
    pytest.param({"content": b"{not json", "headers": {"Content-Type": "application/json"}}, id="invalid-json"),
    pytest.param({"json": []}, id="array-body"),
    pytest.param({"json": "cust-1"}, id="string-body"),
    pytest.param({"json": {"customer_id": 1.5, "shop_id": 1.5, "request_id": "r1"}}, id="float-ids"),
]


@pytest.mark.parametrize("path", ["/customer-data-request", "/customer-data-erasure", "/shop-data-erasure"])
@pytest.mark.parametrize("request_kwargs", MALFORMED_BODIES)
def test_compliance_endpoints_reject_malformed_bodies_with_400(
    api_client, customer_store, shop_store, path, request_kwargs
):
    response = api_client.post(path, **request_kwargs)

    assert response.status_code == 400
    assert customer_store.get("cust-1") == {"email": "jane@example.com", "orders": [1001, 1002]}
    assert shop_store.get("shop-1") == {"plan": "basic"}
