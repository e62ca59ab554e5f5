"""US equity regular trading hours."""

from datetime import datetime, time
from typing import Optional
from zoneinfo import ZoneInfo

MARKET_TZ = ZoneInfo("America/New_York")
MARKET_OPEN = time(9, 30)
MARKET_CLOSE = time(16, 0)


def is_market_open(now: Optional[datetime] = None) -> bool:
    """Return True during Mon-Fri 09:30-16:00 New York time.

    Naive datetimes are taken as UTC. Exchange holidays are not modelled.
    """
    now = now or datetime.now(MARKET_TZ)
    if now.tzinfo is None:
        now = now.replace(tzinfo=ZoneInfo("UTC"))
    local = now.astimezone(MARKET_TZ)
    if local.weekday() >= 5:
        return False
    return MARKET_OPEN <= local.time() < MARKET_CLOSE
