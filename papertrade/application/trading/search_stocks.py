"""
Use case: Search-as-you-type over cached stocks.

Input: SearchStocksQuery (term, limit)
Output: list[QuoteResult], symbol prefix matches first
Side effects: None.
"""

from papertrade.application.trading.dtos import QuoteResult, SearchStocksQuery
from papertrade.application.trading.get_quote import to_quote_result
from papertrade.domain.trading.ports import MarketDataRepository


class SearchStocksUseCase:
    """Matches the term against symbol and company name."""

    def __init__(self, market_data: MarketDataRepository) -> None:
        self._market_data = market_data

    def execute(self, query: SearchStocksQuery) -> list[QuoteResult]:
        term = query.term.strip()
        if not term:
            return []
        return [
            to_quote_result(q, include_detail=False)
            for q in self._market_data.search(term, query.limit)
        ]
