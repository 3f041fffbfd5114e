from __future__ import annotations

from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    SHOPIFY_API_KEY: str
    SHOPIFY_API_SECRET: str
    SHOPIFY_REDIRECT_URI: AnyHttpUrl
    SHOPIFY_SCOPE: str = "read_products,write_orders,read_themes,write_themes"
    SHOPIFY_ADMIN_API_VERSION: str = "2024-07"
    SHOPIFY_REQUEST_TIMEOUT_SECONDS: float = 20.0

    CHATBOT_BLOCK_ID: str = "3693381111320325491"
    CHATBOT_BLOCK_TYPE: str = (
        "shopify://apps/convex-ai-chatbot/blocks/chatbot/5a2d1c7e-8b3f-4e0a-9c61-2f4b7d9e0a13"
    )

    PORT: int = 10026
    LOG_LEVEL: str = "INFO"

    @field_validator("SHOPIFY_SCOPE")
    @classmethod
    def validate_scope(cls, value: str) -> str:
        scopes = [scope.strip() for scope in value.split(",") if scope.strip()]
        if not scopes:
            raise ValueError("SHOPIFY_SCOPE must include at least one scope")
        return ",".join(scopes)

    @field_validator("CHATBOT_BLOCK_ID", "CHATBOT_BLOCK_TYPE")
    @classmethod
    def validate_block_identity(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Chatbot block id and type cannot be empty")
        return cleaned

    @property
    def redirect_uri(self) -> str:
        return str(self.SHOPIFY_REDIRECT_URI)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
