"""Price source interface and the HTTP quote adapter."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Quote:
    """Current price for one symbol."""

    symbol: str
    price: float
    change_amount: float = 0.0
    change_percent: float = 0.0


class PriceSource(Protocol):
    async def get_quote(self, symbol: str) -> Quote | None:
        """Current quote for ``symbol``, or None if the provider has none."""
        ...


class HttpPriceSource:
    """Reads quotes from a JSON endpoint: ``GET {base_url}/quotes/{symbol}``.

    Expected body: ``{"price": 12.3, "change_amount": 0.1, "change_percent": 0.8}``.
    A 404 means the provider does not know the symbol.
    """

    def __init__(self, base_url: str, timeout: float = 5.0, client: httpx.AsyncClient | None = None):
        self._client = client or httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)

    async def get_quote(self, symbol: str) -> Quote | None:
        response = await self._client.get(f"/quotes/{symbol}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        data = response.json()
        price = data.get("price")
        if price is None:
            logger.warning("Quote for %s has no price field", symbol)
            return None
        return Quote(
            symbol=symbol,
            price=float(price),
            change_amount=float(data.get("change_amount") or 0.0),
            change_percent=float(data.get("change_percent") or 0.0),
        )

    async def aclose(self) -> None:
        await self._client.aclose()
