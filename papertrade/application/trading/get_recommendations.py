"""
Use case: Get AI stock recommendations for an investment idea.

Input: GetRecommendationsQuery (prompt)
Output: list[RecommendationResult]
Side effects: One call to the recommendation model.
Failure cases: ValueError (blank prompt), UpstreamUnavailableError.
"""

import logging

from papertrade.application.trading.dtos import GetRecommendationsQuery, RecommendationResult
from papertrade.domain.trading.ports import MarketDataRepository, RecommendationPort

logger = logging.getLogger(__name__)


class GetRecommendationsUseCase:
    """Asks the model for picks and attaches cached prices where known."""

    def __init__(
        self,
        recommender: RecommendationPort,
        market_data: MarketDataRepository,
        max_items: int = 10,
    ) -> None:
        self._recommender = recommender
        self._market_data = market_data
        self._max_items = max_items

    def execute(self, query: GetRecommendationsQuery) -> list[RecommendationResult]:
        """Run the recommendation use case.

        Args:
            query: The user's idea in free text.

        Returns:
            At most max_items picks, in the model's order.

        Raises:
            ValueError: If the prompt is blank.
            UpstreamUnavailableError: If the model cannot be reached or
                replies with something other than a JSON array.
        """
        prompt = query.prompt.strip()
        if not prompt:
            raise ValueError("prompt must not be blank")

        picks = self._recommender.recommend(prompt)[: self._max_items]
        quotes = self._market_data.get_quotes([p.symbol for p in picks])
        logger.info(
            "Generated %d recommendations (%d with cached prices)", len(picks), len(quotes)
        )

        return [
            RecommendationResult(
                symbol=p.symbol,
                name=p.name,
                reason=p.reason,
                price=quotes[p.symbol].price if p.symbol in quotes else None,
            )
            for p in picks
        ]
