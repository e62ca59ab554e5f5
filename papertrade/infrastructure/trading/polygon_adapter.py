"""
Adapter: Polygon.io market data provider.

Implements MarketDataProviderPort.
Builds a full quote snapshot per symbol from four REST calls:
previous-day aggregate (required), one year of daily closes, ticker
details and the latest news. Only the previous-day aggregate is required;
the other calls degrade to fallbacks when they fail.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Optional

import httpx

from papertrade.domain.trading.entities import ChartPoint, NewsItem, Quote
from papertrade.domain.trading.errors import UpstreamUnavailableError
from papertrade.domain.trading.ports import MarketDataProviderPort

logger = logging.getLogger(__name__)

SERVICE_NAME = "Market data provider"
NEWS_LIMIT = 5
CHART_DAYS = 365

# Raised while reading fields out of a JSON body of the wrong shape.
PARSE_ERRORS = (TypeError, ValueError, KeyError, AttributeError, ArithmeticError)


def _ms_to_date(timestamp_ms: int) -> date:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).date()


def percent_change(open_price: Optional[float], close_price: Optional[float]) -> Decimal:
    """Return the intraday change in percent, or 0 when undefined."""
    if not open_price or not close_price:
        return Decimal("0")
    opened = Decimal(str(open_price))
    closed = Decimal(str(close_price))
    return (closed - opened) / opened * 100


class PolygonMarketDataAdapter(MarketDataProviderPort):
    """Polygon REST client producing Quote snapshots."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.polygon.io",
        client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._api_key = api_key
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)
        self._today = today

    def close(self) -> None:
        self._client.close()

    def _get(self, path: str, **params: Any) -> dict:
        """GET a JSON object.

        Raises:
            UpstreamUnavailableError: On transport errors, HTTP errors or a
                body that is not a JSON object.
        """
        try:
            response = self._client.get(path, params={**params, "apiKey": self._api_key})
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError(SERVICE_NAME, exc.__class__.__name__) from exc
        except ValueError as exc:
            raise UpstreamUnavailableError(SERVICE_NAME, "invalid JSON") from exc
        if not isinstance(payload, dict):
            raise UpstreamUnavailableError(SERVICE_NAME, "unexpected payload")
        return payload

    def fetch_snapshot(self, symbol: str) -> Quote:
        """Return a fresh quote for a symbol.

        Raises:
            UpstreamUnavailableError: If the previous-day aggregate is missing
                or malformed.
        """
        symbol = symbol.upper()
        try:
            daily = self._get(f"/v2/aggs/ticker/{symbol}/prev", adjusted="true")
        except UpstreamUnavailableError as exc:
            logger.error("Daily aggregate request failed for %s: %s", symbol, exc.reason)
            raise UpstreamUnavailableError(SERVICE_NAME, f"daily aggregate for {symbol}") from exc

        results = daily.get("results") or []
        bar = results[0] if isinstance(results, list) and results else None
        if not isinstance(bar, dict) or bar.get("c") is None:
            logger.error("No daily data available for %s", symbol)
            raise UpstreamUnavailableError(SERVICE_NAME, f"no daily data for {symbol}")
        try:
            price = Decimal(str(bar["c"]))
            change = percent_change(bar.get("o"), bar.get("c"))
            volume = int(bar["v"]) if bar.get("v") is not None else None
        except PARSE_ERRORS as exc:
            logger.error("Malformed daily data for %s: %s", symbol, exc.__class__.__name__)
            raise UpstreamUnavailableError(SERVICE_NAME, f"malformed daily data for {symbol}") from exc
        if not price.is_finite() or price <= 0:
            logger.error("Malformed daily data for %s: price %s", symbol, price)
            raise UpstreamUnavailableError(SERVICE_NAME, f"malformed daily data for {symbol}")

        name, description = self._fetch_details(symbol)
        return Quote(
            symbol=symbol,
            name=name,
            price=price,
            change=change,
            volume=volume,
            description=description,
            chart=self._fetch_chart(symbol),
            news=self._fetch_news(symbol),
            updated_at=datetime.now(timezone.utc),
        )

    def _fetch_chart(self, symbol: str) -> list[ChartPoint]:
        to_date = self._today()
        from_date = to_date - timedelta(days=CHART_DAYS)
        try:
            data = self._get(
                f"/v2/aggs/ticker/{symbol}/range/1/day/{from_date.isoformat()}/{to_date.isoformat()}",
                adjusted="true",
                sort="asc",
                limit=CHART_DAYS,
            )
            return [
                ChartPoint(date=_ms_to_date(item["t"]).isoformat(), value=Decimal(str(item["c"])))
                for item in data.get("results") or []
                if item.get("t") is not None and item.get("c") is not None
            ]
        except UpstreamUnavailableError as exc:
            logger.warning("Chart request failed for %s: %s", symbol, exc.reason)
        except PARSE_ERRORS as exc:
            logger.warning("Malformed chart data for %s: %s", symbol, exc.__class__.__name__)
        return []

    def _fetch_details(self, symbol: str) -> tuple[str, str]:
        name = f"{symbol} Stock"
        description = f"Trading data for {symbol}"
        try:
            details = self._get(f"/v3/reference/tickers/{symbol}").get("results") or {}
            return (
                str(details.get("name") or name),
                str(details.get("description") or description),
            )
        except UpstreamUnavailableError as exc:
            logger.warning("Details request failed for %s: %s", symbol, exc.reason)
        except PARSE_ERRORS as exc:
            logger.warning("Malformed details for %s: %s", symbol, exc.__class__.__name__)
        return name, description

    def _fetch_news(self, symbol: str) -> list[NewsItem]:
        try:
            data = self._get(
                "/v2/reference/news", ticker=symbol, order="desc", limit=NEWS_LIMIT
            )
            return [_to_news_item(item) for item in (data.get("results") or [])[:NEWS_LIMIT]]
        except UpstreamUnavailableError as exc:
            logger.warning("News request failed for %s: %s", symbol, exc.reason)
        except PARSE_ERRORS as exc:
            logger.warning("Malformed news for %s: %s", symbol, exc.__class__.__name__)
        return []


def _to_news_item(item: dict) -> NewsItem:
    published = str(item.get("published_utc") or "")
    return NewsItem(
        id=str(item.get("id", "")),
        title=str(item.get("title", "")),
        summary=str(item.get("description") or ""),
        date=published[:10],
        url=str(item.get("article_url", "")),
    )
