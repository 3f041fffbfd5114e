from __future__ import annotations

from typing import Any, Protocol


class ComplianceStore(Protocol):
    def get(self, key: str) -> Any | None: ...

    def delete(self, key: str) -> bool: ...

    def put(self, key: str, data: Any) -> None: ...


class InMemoryComplianceStore:
    """Dict-backed store. Not synchronized; concurrent read and erase of a key race."""

    def __init__(self, records: dict[str, Any] | None = None) -> None:
        self._records: dict[str, Any] = dict(records or {})

    def get(self, key: str) -> Any | None:
        return self._records.get(key)

    def delete(self, key: str) -> bool:
        return self._records.pop(key, None) is not None

    def put(self, key: str, data: Any) -> None:
        self._records[key] = data

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)


customer_store = InMemoryComplianceStore()
shop_store = InMemoryComplianceStore()


def get_customer_store() -> ComplianceStore:
    return customer_store


def get_shop_store() -> ComplianceStore:
    return shop_store
