from __future__ import annotations

from typing import Any, Literal

import httpx

from chatbot_app.config import settings

SETTINGS_DATA_ASSET_KEY = "config/settings_data.json"


class ShopifyApiError(RuntimeError):
    def __init__(self, *, message: str, status_code: int = 502) -> None:
        super().__init__(message)
        self.status_code = status_code


class ShopifyAssetNotFoundError(ShopifyApiError):
    def __init__(self, *, message: str) -> None:
        super().__init__(message=message, status_code=404)


class ShopifyApiClient:
    def __init__(self, *, api_version: str | None = None) -> None:
        self._timeout = settings.SHOPIFY_REQUEST_TIMEOUT_SECONDS
        self._api_version = api_version or settings.SHOPIFY_ADMIN_API_VERSION

    @property
    def api_version(self) -> str:
        return self._api_version

    async def exchange_code_for_access_token(self, *, shop_domain: str, code: str) -> str:
        url = f"https://{shop_domain}/admin/oauth/access_token"
        payload = {
            "client_id": settings.SHOPIFY_API_KEY,
            "client_secret": settings.SHOPIFY_API_SECRET,
            "code": code,
        }
        response = await self._request_json(method="POST", url=url, payload=payload)
        access_token = response.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ShopifyApiError(message="OAuth token exchange response is missing access_token")
        return access_token

    async def list_themes(self, *, shop_domain: str, access_token: str) -> list[dict[str, Any]]:
        response = await self._request_json(
            method="GET",
            url=self._admin_url(shop_domain=shop_domain, path="themes.json"),
            headers=self._admin_headers(access_token),
        )
        themes = response.get("themes")
        if not isinstance(themes, list):
            raise ShopifyApiError(message="Theme list response is missing themes")
        return [theme for theme in themes if isinstance(theme, dict)]

    async def get_theme_asset(
        self,
        *,
        shop_domain: str,
        access_token: str,
        theme_id: int | str,
        key: str,
    ) -> str:
        response = await self._request_json(
            method="GET",
            url=self._admin_url(shop_domain=shop_domain, path=f"themes/{theme_id}/assets.json"),
            headers=self._admin_headers(access_token),
            params={"asset[key]": key},
            not_found_message=f"Theme asset {key} does not exist on theme {theme_id}",
        )
        asset = response.get("asset")
        if not isinstance(asset, dict):
            raise ShopifyApiError(message=f"Theme asset response for {key} is missing asset")
        value = asset.get("value")
        if not isinstance(value, str):
            raise ShopifyApiError(message=f"Theme asset {key} has no text value")
        return value

    async def replace_theme_asset(
        self,
        *,
        shop_domain: str,
        access_token: str,
        theme_id: int | str,
        key: str,
        value: str,
    ) -> dict[str, Any]:
        return await self._write_theme_asset(
            method="PUT",
            shop_domain=shop_domain,
            access_token=access_token,
            theme_id=theme_id,
            key=key,
            value=value,
        )

    async def create_theme_asset(
        self,
        *,
        shop_domain: str,
        access_token: str,
        theme_id: int | str,
        key: str,
        value: str,
    ) -> dict[str, Any]:
        return await self._write_theme_asset(
            method="POST",
            shop_domain=shop_domain,
            access_token=access_token,
            theme_id=theme_id,
            key=key,
            value=value,
        )

    async def upsert_theme_asset(
        self,
        *,
        shop_domain: str,
        access_token: str,
        theme_id: int | str,
        key: str,
        value: str,
    ) -> Literal["replaced", "created"]:
        """Replace the asset, creating it only when Shopify reports it does not exist.

        Any other replace failure propagates unchanged.
        """
        try:
            await self.replace_theme_asset(
                shop_domain=shop_domain,
                access_token=access_token,
                theme_id=theme_id,
                key=key,
                value=value,
            )
        except ShopifyAssetNotFoundError:
            await self.create_theme_asset(
                shop_domain=shop_domain,
                access_token=access_token,
                theme_id=theme_id,
                key=key,
                value=value,
            )
            return "created"
        return "replaced"

    async def _write_theme_asset(
        self,
        *,
        method: Literal["PUT", "POST"],
        shop_domain: str,
        access_token: str,
        theme_id: int | str,
        key: str,
        value: str,
    ) -> dict[str, Any]:
        response = await self._request_json(
            method=method,
            url=self._admin_url(shop_domain=shop_domain, path=f"themes/{theme_id}/assets.json"),
            headers=self._admin_headers(access_token),
            payload={"asset": {"key": key, "value": value}},
            not_found_message=f"Theme asset {key} does not exist on theme {theme_id}",
        )
        asset = response.get("asset")
        if not isinstance(asset, dict):
            raise ShopifyApiError(message=f"Theme asset {method} response for {key} is missing asset")
        return asset

    def _admin_url(self, *, shop_domain: str, path: str) -> str:
        return f"https://{shop_domain}/admin/api/{self._api_version}/{path}"

    @staticmethod
    def _admin_headers(access_token: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": access_token,
        }

    async def _request_json(
        self,
        *,
        method: str,
        url: str,
        payload: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
        not_found_message: str | None = None,
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.request(method, url, json=payload, headers=headers, params=params)
        except httpx.RequestError as exc:
            raise ShopifyApiError(message=f"Network error while calling Shopify: {exc}") from exc

        if response.status_code == 404 and not_found_message:
            raise ShopifyAssetNotFoundError(message=not_found_message)

        if response.status_code >= 400:
            raise ShopifyApiError(
                message=f"Shopify API call failed ({response.status_code}): {response.text}",
                status_code=502,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise ShopifyApiError(message="Shopify API returned invalid JSON") from exc

        if not isinstance(body, dict):
            raise ShopifyApiError(message="Shopify API response must be a JSON object")
        return body
