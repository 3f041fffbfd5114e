"""Enable the chatbot app embed in a shop's published theme.

The installer edits ``config/settings_data.json`` of the main theme. App embeds
live under ``current.blocks`` keyed by block id, with render order kept in
``current.block_order``. Running the installer again on an already-patched
document only re-enables the block; merchant-entered settings are preserved.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Literal

from chatbot_app.config import settings
from chatbot_app.shopify_api import (
    SETTINGS_DATA_ASSET_KEY,
    ShopifyApiClient,
    ShopifyApiError,
    ShopifyAssetNotFoundError,
)

logger = logging.getLogger(__name__)

MAIN_THEME_ROLE = "main"


class InstallError(RuntimeError):
    pass


class NoMainThemeError(InstallError):
    pass


class AssetFetchFailedError(InstallError):
    pass


class AssetWriteFailedError(InstallError):
    pass


class MalformedAssetError(InstallError):
    pass


@dataclass(frozen=True)
class ChatbotBlock:
    block_id: str
    block_type: str
    settings: dict[str, str] = field(default_factory=lambda: {"website_url": "", "email_id": ""})

    def definition(self) -> dict[str, Any]:
        return {
            "type": self.block_type,
            "disabled": False,
            "settings": dict(self.settings),
        }


def default_chatbot_block() -> ChatbotBlock:
    return ChatbotBlock(block_id=settings.CHATBOT_BLOCK_ID, block_type=settings.CHATBOT_BLOCK_TYPE)


def parse_settings_document(raw_value: str) -> dict[str, Any]:
    try:
        document = json.loads(raw_value)
    except ValueError as exc:
        raise MalformedAssetError(f"{SETTINGS_DATA_ASSET_KEY} is not valid JSON") from exc
    if not isinstance(document, dict):
        raise MalformedAssetError(f"{SETTINGS_DATA_ASSET_KEY} must contain a JSON object")
    return document


def normalize_settings_document(document: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``document`` with ``current.blocks`` and ``current.block_order`` present."""
    normalized = copy.deepcopy(document)

    current = normalized.setdefault("current", {})
    if not isinstance(current, dict):
        raise MalformedAssetError("settings_data.current must be an object")

    blocks = current.setdefault("blocks", {})
    if not isinstance(blocks, dict):
        raise MalformedAssetError("settings_data.current.blocks must be an object")

    block_order = current.setdefault("block_order", [])
    if not isinstance(block_order, list):
        raise MalformedAssetError("settings_data.current.block_order must be a list")

    return normalized


def ensure_chatbot_block(
    document: dict[str, Any],
    block: ChatbotBlock,
) -> tuple[dict[str, Any], Literal["enabled", "inserted"]]:
    normalized = normalize_settings_document(document)
    current = normalized["current"]
    blocks: dict[str, Any] = current["blocks"]
    block_order: list[Any] = current["block_order"]

    existing = blocks.get(block.block_id)
    if existing is not None:
        if not isinstance(existing, dict):
            raise MalformedAssetError(f"settings_data block {block.block_id} must be an object")
        existing["disabled"] = False
        return normalized, "enabled"

    blocks[block.block_id] = block.definition()
    if block.block_id not in block_order:
        block_order.append(block.block_id)
    return normalized, "inserted"


def select_main_theme(themes: list[dict[str, Any]]) -> dict[str, Any] | None:
    for theme in themes:
        if theme.get("role") == MAIN_THEME_ROLE and theme.get("id") is not None:
            return theme
    return None


class ThemeBlockInstaller:
    def __init__(self, client: ShopifyApiClient, *, block: ChatbotBlock | None = None) -> None:
        self._client = client
        self._block = block or default_chatbot_block()

    @property
    def block(self) -> ChatbotBlock:
        return self._block

    async def install_chatbot_block(self, *, shop_domain: str, access_token: str) -> None:
        if not shop_domain:
            raise ValueError("shop_domain is required")
        if not access_token:
            raise ValueError("access_token is required")

        theme_id = await self._resolve_main_theme_id(shop_domain=shop_domain, access_token=access_token)
        document = await self._load_settings_document(
            shop_domain=shop_domain,
            access_token=access_token,
            theme_id=theme_id,
        )

        updated, outcome = ensure_chatbot_block(document, self._block)
        logger.info("Chatbot block %s %s for %s theme %s", self._block.block_id, outcome, shop_domain, theme_id)

        try:
            mode = await self._client.upsert_theme_asset(
                shop_domain=shop_domain,
                access_token=access_token,
                theme_id=theme_id,
                key=SETTINGS_DATA_ASSET_KEY,
                value=json.dumps(updated, indent=2),
            )
        except ShopifyApiError as exc:
            raise AssetWriteFailedError(
                f"Failed to write {SETTINGS_DATA_ASSET_KEY} for {shop_domain}: {exc}"
            ) from exc
        logger.info("%s %s on %s theme %s", mode.capitalize(), SETTINGS_DATA_ASSET_KEY, shop_domain, theme_id)

    async def _resolve_main_theme_id(self, *, shop_domain: str, access_token: str) -> int | str:
        try:
            themes = await self._client.list_themes(shop_domain=shop_domain, access_token=access_token)
        except ShopifyApiError as exc:
            raise AssetFetchFailedError(f"Failed to list themes for {shop_domain}: {exc}") from exc

        main_theme = select_main_theme(themes)
        if main_theme is None:
            raise NoMainThemeError(f"No main theme found for {shop_domain}")
        logger.info("Using main theme %s (%s) for %s", main_theme["id"], main_theme.get("name"), shop_domain)
        return main_theme["id"]

    async def _load_settings_document(
        self,
        *,
        shop_domain: str,
        access_token: str,
        theme_id: int | str,
    ) -> dict[str, Any]:
        try:
            raw_value = await self._client.get_theme_asset(
                shop_domain=shop_domain,
                access_token=access_token,
                theme_id=theme_id,
                key=SETTINGS_DATA_ASSET_KEY,
            )
        except ShopifyAssetNotFoundError:
            logger.info(
                "%s missing on %s theme %s; starting from an empty document",
                SETTINGS_DATA_ASSET_KEY,
                shop_domain,
                theme_id,
            )
            return {"current": {"blocks": {}}}
        except ShopifyApiError as exc:
            raise AssetFetchFailedError(
                f"Failed to fetch {SETTINGS_DATA_ASSET_KEY} for {shop_domain}: {exc}"
            ) from exc
        return parse_settings_document(raw_value)
