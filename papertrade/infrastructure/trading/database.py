"""
Database engine construction.

One SQLAlchemy engine per process, shared by every repository adapter.
"""

import logging
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from papertrade.core.config import settings
from papertrade.infrastructure.trading.tables import metadata

logger = logging.getLogger(__name__)


def create_db_engine(url: str) -> Engine:
    """Build a SQLAlchemy engine for the given URL.

    SQLite connections are shared across threads; an in-memory SQLite URL
    gets a single static connection so every session sees the same data.
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)


def init_schema(engine: Engine) -> None:
    """Create missing tables."""
    metadata.create_all(engine)


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Return the process-wide engine, creating the schema on first use."""
    engine = create_db_engine(settings.get_database_url())
    init_schema(engine)
    logger.info("Ledger storage ready: dialect=%s", engine.dialect.name)
    return engine
