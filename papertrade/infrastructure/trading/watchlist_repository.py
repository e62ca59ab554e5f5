"""
Adapter: Watchlist persistence.

Implements WatchlistRepository port on the watchlist table.
"""

from sqlalchemy import delete, insert, select
from sqlalchemy.engine import Engine

from papertrade.domain.trading.entities import WatchlistEntry
from papertrade.domain.trading.ports import WatchlistRepository
from papertrade.infrastructure.trading.tables import watchlist


class WatchlistRepositoryAdapter(WatchlistRepository):
    """SQL adapter for saved symbols."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def add(self, entry: WatchlistEntry) -> bool:
        with self._engine.begin() as conn:
            exists = conn.execute(
                select(watchlist.c.symbol).where(
                    watchlist.c.user_id == entry.user_id,
                    watchlist.c.symbol == entry.symbol,
                )
            ).first()
            if exists is not None:
                return False
            conn.execute(
                insert(watchlist).values(
                    user_id=entry.user_id,
                    symbol=entry.symbol,
                    created_at=entry.created_at,
                )
            )
        return True

    def remove(self, user_id: str, symbol: str) -> bool:
        with self._engine.begin() as conn:
            result = conn.execute(
                delete(watchlist).where(
                    watchlist.c.user_id == user_id, watchlist.c.symbol == symbol
                )
            )
        return result.rowcount > 0

    def list_for_user(self, user_id: str) -> list[WatchlistEntry]:
        with self._engine.connect() as conn:
            rows = conn.execute(
                select(watchlist)
                .where(watchlist.c.user_id == user_id)
                .order_by(watchlist.c.created_at.desc(), watchlist.c.symbol)
            ).all()
        return [
            WatchlistEntry(user_id=row.user_id, symbol=row.symbol, created_at=row.created_at)
            for row in rows
        ]
