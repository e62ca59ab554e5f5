"""
Use cases: Read cached market data.

GetQuoteUseCase returns one symbol's quote with chart and news.
ListQuotesUseCase returns a page of cached quotes for the swipe deck.
Side effects: None.
Failure cases: SymbolNotFoundError.
"""

from papertrade.application.trading.dtos import NewsResult, QuoteResult
from papertrade.domain.trading.entities import Quote
from papertrade.domain.trading.errors import SymbolNotFoundError
from papertrade.domain.trading.ports import MarketDataRepository


def to_quote_result(quote: Quote, include_detail: bool = True) -> QuoteResult:
    """Map a cached quote to its DTO. Chart and news are left out of listings."""
    return QuoteResult(
        symbol=quote.symbol,
        name=quote.name,
        price=quote.price,
        change=quote.change,
        volume=quote.volume,
        description=quote.description,
        updated_at=quote.updated_at,
        chart=[(p.date, p.value) for p in quote.chart] if include_detail else [],
        news=[
            NewsResult(id=n.id, title=n.title, summary=n.summary, date=n.date, url=n.url)
            for n in quote.news
        ]
        if include_detail
        else [],
    )


class GetQuoteUseCase:
    def __init__(self, market_data: MarketDataRepository) -> None:
        self._market_data = market_data

    def execute(self, symbol: str) -> QuoteResult:
        symbol = symbol.strip().upper()
        quote = self._market_data.get_quote(symbol)
        if quote is None:
            raise SymbolNotFoundError(symbol)
        return to_quote_result(quote)


class ListQuotesUseCase:
    def __init__(self, market_data: MarketDataRepository) -> None:
        self._market_data = market_data

    def execute(self, limit: int = 20) -> list[QuoteResult]:
        return [
            to_quote_result(q, include_detail=False)
            for q in self._market_data.list_quotes(limit)
        ]
