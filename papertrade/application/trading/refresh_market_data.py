"""
Use case: Refresh the market data cache from the provider.

Input: None (reads the tracked symbols)
Output: RefreshMarketDataResult
Side effects: Seeds the default symbols when nothing is tracked, upserts
    a fresh quote per symbol, publishes a QuoteChange when a price moved.
Failure cases: None. A symbol that cannot be fetched, parsed or stored is
    reported in `failed` and the run continues.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from papertrade.application.trading.dtos import RefreshMarketDataResult
from papertrade.domain.trading.entities import QuoteChange
from papertrade.domain.trading.errors import PersistenceFailureError, UpstreamUnavailableError
from papertrade.domain.trading.ports import (
    MarketDataProviderPort,
    MarketDataRepository,
    QuoteChangePublisher,
)

logger = logging.getLogger(__name__)

DEFAULT_SYMBOLS = ["AAPL", "GOOGL", "MSFT", "AMZN", "META", "TSLA", "NVDA", "JPM", "V", "WMT"]


class RefreshMarketDataUseCase:
    """Pulls a snapshot per tracked symbol and stores it."""

    def __init__(
        self,
        repository: MarketDataRepository,
        provider: MarketDataProviderPort,
        publisher: Optional[QuoteChangePublisher] = None,
        seed_symbols: Optional[list[str]] = None,
        request_delay_seconds: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._repository = repository
        self._provider = provider
        self._publisher = publisher
        self._seed_symbols = seed_symbols or DEFAULT_SYMBOLS
        self._delay = request_delay_seconds
        self._sleep = sleep

    def execute(self) -> RefreshMarketDataResult:
        started_at = datetime.now(timezone.utc)
        symbols = self._repository.list_active_symbols()
        seeded = False
        if not symbols:
            logger.info("No tracked symbols, seeding %d defaults", len(self._seed_symbols))
            self._repository.add_symbols(self._seed_symbols)
            symbols = list(self._seed_symbols)
            seeded = True

        updated: list[str] = []
        failed: list[str] = []
        for index, symbol in enumerate(symbols):
            if index and self._delay > 0:
                # Provider rate limit.
                self._sleep(self._delay)
            try:
                self._refresh_symbol(symbol)
            except (UpstreamUnavailableError, PersistenceFailureError) as exc:
                logger.warning("Refresh failed for %s: %s", symbol, exc.message)
                failed.append(symbol)
                continue
            updated.append(symbol)

        logger.info(
            "Market data refresh done: %d updated, %d failed", len(updated), len(failed)
        )
        return RefreshMarketDataResult(
            symbols=symbols,
            updated=updated,
            failed=failed,
            seeded=seeded,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )

    def _refresh_symbol(self, symbol: str) -> None:
        previous = self._repository.get_quote(symbol)
        quote = self._provider.fetch_snapshot(symbol)
        self._repository.upsert_quote(quote)

        if self._publisher is None:
            return
        if previous is not None and previous.price == quote.price:
            return
        self._publisher.publish(
            QuoteChange(
                symbol=quote.symbol,
                price=quote.price,
                change=quote.change,
                previous_price=previous.price if previous is not None else None,
            )
        )
