"""Batch price refresh for every active symbol."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from stockpick.predictions.service import utcnow
from stockpick.prices.source import PriceSource
from stockpick.repositories.interfaces import FollowRepository, PredictionRepository, StockRepository

logger = logging.getLogger(__name__)


@dataclass
class RefreshReport:
    total: int = 0
    updated: int = 0
    missing: int = 0
    failed: int = 0
    predictions_marked: int = 0
    failed_symbols: list[str] = field(default_factory=list)


class PriceRefresher:
    """Fetch quotes with bounded concurrency and mark open positions to market.

    Each symbol is its own unit of work: a timeout or provider error on one
    symbol is logged and counted, the rest still commit.
    """

    def __init__(
        self,
        source: PriceSource,
        stocks: StockRepository,
        predictions: PredictionRepository,
        follows: FollowRepository,
        concurrency: int = 8,
        timeout: float = 5.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._source = source
        self._stocks = stocks
        self._predictions = predictions
        self._follows = follows
        self._concurrency = concurrency
        self._timeout = timeout
        self._clock = clock

    async def refresh_prices(self) -> RefreshReport:
        symbols = await self._stocks.list_active_symbols()
        report = RefreshReport(total=len(symbols))
        if not symbols:
            return report

        semaphore = asyncio.Semaphore(self._concurrency)
        now = self._clock()
        results = await asyncio.gather(
            *(self._refresh_symbol(symbol, semaphore, now) for symbol in symbols),
            return_exceptions=True,
        )

        for symbol, result in zip(symbols, results):
            if isinstance(result, BaseException):
                report.failed += 1
                report.failed_symbols.append(symbol)
                logger.warning("Price refresh failed for %s: %r", symbol, result)
            elif result is None:
                report.missing += 1
            else:
                report.updated += 1
                report.predictions_marked += result

        logger.info(
            "Price refresh: %d symbols, %d updated, %d missing, %d failed",
            report.total, report.updated, report.missing, report.failed,
        )
        return report

    async def roll_previous_close(self) -> int:
        """Start a new trading day: the last price becomes the previous close."""
        rolled = await self._stocks.roll_previous_close()
        logger.info("Rolled previous close for %d stocks", rolled)
        return rolled

    async def _refresh_symbol(self, symbol: str, semaphore: asyncio.Semaphore, now: datetime) -> int | None:
        async with semaphore:
            quote = await asyncio.wait_for(self._source.get_quote(symbol), timeout=self._timeout)
        if quote is None:
            logger.debug("No quote for %s", symbol)
            return None

        await self._stocks.save_quote(quote, now)
        marked = await self._predictions.mark_to_market(symbol, quote.price, now)
        await self._follows.mark_to_market(symbol, quote.price)
        return marked
