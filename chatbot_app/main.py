from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, TypeVar
from urllib.parse import urlencode

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import HTMLResponse, ORJSONResponse, PlainTextResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, ValidationError

from chatbot_app.compliance import ComplianceStore, get_customer_store, get_shop_store
from chatbot_app.config import settings
from chatbot_app.schemas import (
    CustomerComplianceRequest,
    CustomerDataResponse,
    CustomerErasureResponse,
    ShopComplianceRequest,
    ShopErasureResponse,
)
from chatbot_app.shopify_api import ShopifyApiClient, ShopifyApiError
from chatbot_app.theme_blocks import InstallError, ThemeBlockInstaller

logger = logging.getLogger(__name__)

INSTALL_FAILED_MESSAGE = "Failed to install app"

_MYSHOPIFY_HOST_RE = re.compile(r"^[a-z0-9][a-z0-9-]*\.myshopify\.com$")

ComplianceRequestT = TypeVar("ComplianceRequestT", bound=BaseModel)

app = FastAPI(title="Convex AI Chatbot Shopify App", default_response_class=ORJSONResponse)
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))
shopify_api = ShopifyApiClient()
installer = ThemeBlockInstaller(shopify_api)


@app.get("/health")
def health() -> dict[str, bool]:
    return {"ok": True}


@app.get("/", response_class=HTMLResponse)
def install_page(request: Request, shop: str | None = None):
    return templates.TemplateResponse(
        request,
        "install.html",
        {"title": "Install Convex AI Chatbot", "shop_name": shop},
    )


def _require_myshopify_host(shop: str) -> str:
    """Lower-case ``shop`` and reject anything that is not a bare ``<store>.myshopify.com`` host.

    The value ends up in redirect URLs and in the Admin API host, so paths,
    ports and foreign domains are refused with 400.
    """
    host = shop.strip().lower()
    if not _MYSHOPIFY_HOST_RE.fullmatch(host):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid shop {shop!r}: expected <store>.myshopify.com",
        )
    return host


def _build_shopify_oauth_url(*, shop_domain: str) -> str:
    query = urlencode(
        {
            "client_id": settings.SHOPIFY_API_KEY,
            "scope": settings.SHOPIFY_SCOPE,
            "redirect_uri": settings.redirect_uri,
        }
    )
    return f"https://{shop_domain}/admin/oauth/authorize?{query}"


def _theme_editor_url(shop_domain: str) -> str:
    return f"https://{shop_domain}/admin/themes/current/editor?context=apps"


@app.get("/auth")
def auth_install(shop: str | None = None):
    if not shop:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing shop parameter")
    shop_domain = _require_myshopify_host(shop)
    return RedirectResponse(url=_build_shopify_oauth_url(shop_domain=shop_domain), status_code=302)


@app.get("/auth/callback")
async def auth_callback(code: str | None = None, shop: str | None = None):
    if not code or not shop:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing code or shop parameter",
        )
    shop_domain = _require_myshopify_host(shop)

    try:
        access_token = await shopify_api.exchange_code_for_access_token(shop_domain=shop_domain, code=code)
        await installer.install_chatbot_block(shop_domain=shop_domain, access_token=access_token)
    except (ShopifyApiError, InstallError) as exc:
        logger.error("App installation failed for %s: %s", shop_domain, exc)
        return PlainTextResponse(INSTALL_FAILED_MESSAGE, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    except Exception:
        logger.exception("Unexpected error while installing app for %s", shop_domain)
        return PlainTextResponse(INSTALL_FAILED_MESSAGE, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    logger.info("App installed for %s", shop_domain)
    return RedirectResponse(url=_theme_editor_url(shop_domain), status_code=302)


async def _read_compliance_request(request: Request, model: type[ComplianceRequestT]) -> ComplianceRequestT:
    body = await request.body()
    payload: Any = {}
    if body.strip():
        try:
            payload = await request.json()
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook payload must be a JSON object",
        )
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Identifiers must be strings or integers",
        ) from exc


@app.post("/customer-data-request", response_model=CustomerDataResponse)
async def customer_data_request(
    request: Request,
    store: ComplianceStore = Depends(get_customer_store),
):
    payload = await _read_compliance_request(request, CustomerComplianceRequest)
    if not payload.customer_id or not payload.request_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing customer_id or request_id",
        )

    data = store.get(str(payload.customer_id))
    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer data not found")

    return CustomerDataResponse(
        request_id=payload.request_id,
        customer_id=payload.customer_id,
        data=data,
    )


@app.post("/customer-data-erasure", response_model=CustomerErasureResponse)
async def customer_data_erasure(
    request: Request,
    store: ComplianceStore = Depends(get_customer_store),
):
    payload = await _read_compliance_request(request, CustomerComplianceRequest)
    if not payload.customer_id or not payload.request_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing customer_id or request_id",
        )

    customer_key = str(payload.customer_id)
    if store.get(customer_key) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer data not found")

    store.delete(customer_key)
    logger.info("Erased customer data for request %s", payload.request_id)
    return CustomerErasureResponse(
        request_id=payload.request_id,
        customer_id=payload.customer_id,
        status="Data erased successfully",
    )


@app.post("/shop-data-erasure", response_model=ShopErasureResponse)
async def shop_data_erasure(
    request: Request,
    store: ComplianceStore = Depends(get_shop_store),
):
    payload = await _read_compliance_request(request, ShopComplianceRequest)
    if not payload.shop_id or not payload.request_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing shop_id or request_id",
        )

    shop_key = str(payload.shop_id)
    if store.get(shop_key) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shop data not found")

    store.delete(shop_key)
    logger.info("Erased shop data for request %s", payload.request_id)
    return ShopErasureResponse(
        request_id=payload.request_id,
        shop_id=payload.shop_id,
        status="Shop data erased successfully",
    )
