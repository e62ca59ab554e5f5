"""
Adapter: Market data store.

Implements MarketDataRepository port.
Reads/writes the stock_data_cache table (one JSON snapshot per symbol)
and the stocks table (symbols tracked by the refresh job).
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import case, insert, or_, select, update
from sqlalchemy.engine import Engine, Row
from sqlalchemy.exc import SQLAlchemyError

from papertrade.domain.trading.entities import ChartPoint, NewsItem, Quote, utcnow
from papertrade.domain.trading.errors import PersistenceFailureError
from papertrade.domain.trading.ports import MarketDataRepository
from papertrade.infrastructure.trading.tables import stock_data_cache, stocks

logger = logging.getLogger(__name__)

LIKE_ESCAPE = "\\"


def escape_like(term: str) -> str:
    """Make LIKE wildcards in user input match literally."""
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def quote_to_data(quote: Quote) -> dict[str, Any]:
    """Serialize a quote into the JSON document stored per symbol."""
    return {
        "symbol": quote.symbol,
        "name": quote.name,
        "price": str(quote.price),
        "change": str(quote.change),
        "volume": quote.volume,
        "description": quote.description,
        "chartData": [{"date": p.date, "value": str(p.value)} for p in quote.chart],
        "news": [
            {
                "id": n.id,
                "title": n.title,
                "summary": n.summary,
                "date": n.date,
                "url": n.url,
            }
            for n in quote.news
        ],
    }


def data_to_quote(data: dict[str, Any], updated_at: Optional[datetime] = None) -> Quote:
    """Rebuild a quote from its stored JSON document."""
    return Quote(
        symbol=data["symbol"],
        name=data.get("name") or data["symbol"],
        price=Decimal(str(data.get("price") or 0)),
        change=Decimal(str(data.get("change") or 0)),
        volume=data.get("volume"),
        description=data.get("description") or "",
        chart=[
            ChartPoint(date=p["date"], value=Decimal(str(p["value"])))
            for p in data.get("chartData") or []
        ],
        news=[
            NewsItem(
                id=str(n.get("id", "")),
                title=n.get("title", ""),
                summary=n.get("summary") or "",
                date=n.get("date", ""),
                url=n.get("url", ""),
            )
            for n in data.get("news") or []
        ],
        updated_at=updated_at,
    )


def _row_to_quote(row: Row) -> Quote:
    return data_to_quote(row.data, row.updated_at)


class MarketDataRepositoryAdapter(MarketDataRepository):
    """SQL adapter for the stock_data_cache and stocks tables."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def get_quote(self, symbol: str) -> Optional[Quote]:
        """Return the cached quote for a symbol, or None."""
        with self._engine.connect() as conn:
            row = conn.execute(
                select(stock_data_cache).where(
                    stock_data_cache.c.symbol == symbol.upper()
                )
            ).first()
        return _row_to_quote(row) if row is not None else None

    def get_quotes(self, symbols: list[str]) -> dict[str, Quote]:
        """Return cached quotes keyed by symbol."""
        if not symbols:
            return {}
        wanted = [s.upper() for s in symbols]
        with self._engine.connect() as conn:
            rows = conn.execute(
                select(stock_data_cache).where(stock_data_cache.c.symbol.in_(wanted))
            ).all()
        return {row.symbol: _row_to_quote(row) for row in rows}

    def search(self, term: str, limit: int = 10) -> list[Quote]:
        """Return quotes whose symbol or name contains the term.

        Symbols starting with the term are listed first.
        """
        term = term.strip()
        if not term:
            return []
        literal = escape_like(term)
        pattern = f"%{literal}%"
        prefix_first = case(
            (stock_data_cache.c.symbol.ilike(f"{literal}%", escape=LIKE_ESCAPE), 0), else_=1
        )
        stmt = (
            select(stock_data_cache)
            .where(
                or_(
                    stock_data_cache.c.symbol.ilike(pattern, escape=LIKE_ESCAPE),
                    stock_data_cache.c.name.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )
            .order_by(prefix_first, stock_data_cache.c.symbol)
            .limit(limit)
        )
        with self._engine.connect() as conn:
            rows = conn.execute(stmt).all()
        return [_row_to_quote(row) for row in rows]

    def list_quotes(self, limit: int = 20) -> list[Quote]:
        """Return cached quotes ordered by symbol."""
        with self._engine.connect() as conn:
            rows = conn.execute(
                select(stock_data_cache).order_by(stock_data_cache.c.symbol).limit(limit)
            ).all()
        return [_row_to_quote(row) for row in rows]

    def upsert_quote(self, quote: Quote) -> None:
        """Insert or replace the cached snapshot for the quote's symbol."""
        values = {
            "name": quote.name,
            "data": quote_to_data(quote),
            "updated_at": quote.updated_at or utcnow(),
        }
        try:
            with self._engine.begin() as conn:
                result = conn.execute(
                    update(stock_data_cache)
                    .where(stock_data_cache.c.symbol == quote.symbol)
                    .values(**values)
                )
                if result.rowcount == 0:
                    conn.execute(insert(stock_data_cache).values(symbol=quote.symbol, **values))
        except SQLAlchemyError as exc:
            logger.error("Caching quote failed for %s: %s", quote.symbol, type(exc).__name__)
            raise PersistenceFailureError(type(exc).__name__) from exc
        logger.debug("Cached quote: symbol=%s price=%s", quote.symbol, quote.price)

    def list_active_symbols(self) -> list[str]:
        """Return tracked symbols with status 'active'."""
        with self._engine.connect() as conn:
            rows = conn.execute(
                select(stocks.c.symbol)
                .where(stocks.c.status == "active")
                .order_by(stocks.c.symbol)
            ).all()
        return [row.symbol for row in rows]

    def add_symbols(self, symbols: list[str]) -> None:
        """Track new symbols; already tracked ones are left as they are."""
        wanted = {s.upper() for s in symbols}
        with self._engine.begin() as conn:
            existing = {
                row.symbol
                for row in conn.execute(
                    select(stocks.c.symbol).where(stocks.c.symbol.in_(wanted))
                ).all()
            }
            missing = sorted(wanted - existing)
            if missing:
                conn.execute(
                    insert(stocks),
                    [{"symbol": symbol, "status": "active"} for symbol in missing],
                )
        logger.info("Tracking %d new symbols", len(missing))
