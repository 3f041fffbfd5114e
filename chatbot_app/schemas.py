from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

ExternalId = str | int


class CustomerComplianceRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    customer_id: ExternalId | None = None
    request_id: ExternalId | None = None


class ShopComplianceRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    shop_id: ExternalId | None = None
    request_id: ExternalId | None = None


class CustomerDataResponse(BaseModel):
    request_id: ExternalId
    customer_id: ExternalId
    data: Any


class CustomerErasureResponse(BaseModel):
    request_id: ExternalId
    customer_id: ExternalId
    status: str


class ShopErasureResponse(BaseModel):
    request_id: ExternalId
    shop_id: ExternalId
    status: str
