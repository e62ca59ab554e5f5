"""
FastAPI router for AI stock recommendations.

Calls a paid upstream model, so the route carries the heavy rate limit.
"""

from fastapi import APIRouter, Depends, Request

from papertrade.application.trading.dtos import GetRecommendationsQuery
from papertrade.application.trading.get_recommendations import GetRecommendationsUseCase
from papertrade.interfaces.trading.dependencies import get_recommendations_use_case
from papertrade.interfaces.trading.schemas import (
    ErrorResponse,
    RecommendationItem,
    RecommendationListResponse,
    RecommendationRequest,
)
from papertrade.shared.security.rate_limiting import HEAVY_RATE_LIMIT, limiter

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


@router.post(
    "",
    response_model=RecommendationListResponse,
    responses={422: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Get AI stock recommendations",
    description="Suggest stocks that fit an investment idea or market sentiment.",
)
@limiter.limit(HEAVY_RATE_LIMIT)
def get_recommendations(
    request: Request,
    body: RecommendationRequest,
    use_case: GetRecommendationsUseCase = Depends(get_recommendations_use_case),
) -> RecommendationListResponse:
    results = use_case.execute(GetRecommendationsQuery(prompt=body.prompt))
    return RecommendationListResponse(
        recommendations=[
            RecommendationItem(symbol=r.symbol, name=r.name, reason=r.reason, price=r.price)
            for r in results
        ]
    )
