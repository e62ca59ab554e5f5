"""
Adapter: LLM stock recommendations.

Implements RecommendationPort against an OpenAI-compatible
chat-completions endpoint. The model is instructed to answer with a JSON
array only; anything else is treated as an upstream failure.
"""

import json
import logging
import re
from typing import Any, Optional

import httpx

from papertrade.domain.trading.entities import StockRecommendation
from papertrade.domain.trading.errors import UpstreamUnavailableError
from papertrade.domain.trading.ports import RecommendationPort

logger = logging.getLogger(__name__)

SERVICE_NAME = "Recommendation service"

SYSTEM_PROMPT = """You are a financial advisor AI that recommends stocks based on investment ideas or market sentiments.
For the given market sentiment or investment thesis, recommend exactly {count} relevant publicly traded stocks.
Format your response as a JSON array of objects, where each object has:
- symbol: The stock ticker symbol
- name: The company name
- reason: A brief explanation of why this stock fits the investment thesis

Only return the JSON array, no other text."""

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_recommendations(content: str, max_items: int) -> list[StockRecommendation]:
    """Parse the model's reply into recommendations.

    Accepts a bare JSON array, optionally wrapped in a markdown code fence.
    Items without a symbol are dropped; at most max_items are returned.

    Raises:
        UpstreamUnavailableError: If the reply is not a JSON array.
    """
    cleaned = _FENCE.sub("", content.strip())
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise UpstreamUnavailableError(SERVICE_NAME, "reply was not valid JSON") from exc
    if not isinstance(payload, list):
        raise UpstreamUnavailableError(SERVICE_NAME, "reply was not a JSON array")

    recommendations = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        symbol = str(item.get("symbol") or "").strip().upper()
        if not symbol:
            continue
        recommendations.append(
            StockRecommendation(
                symbol=symbol,
                name=str(item.get("name") or symbol),
                reason=str(item.get("reason") or ""),
            )
        )
        if len(recommendations) >= max_items:
            break
    return recommendations


class OpenAIRecommendationAdapter(RecommendationPort):
    """Chat-completions client returning structured stock picks."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4",
        base_url: str = "https://api.openai.com/v1",
        count: int = 3,
        max_items: int = 10,
        temperature: float = 0.7,
        client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._count = count
        self._max_items = max_items
        self._temperature = temperature
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def recommend(self, prompt: str) -> list[StockRecommendation]:
        """Ask the model for stocks matching an investment idea.

        Raises:
            UpstreamUnavailableError: Missing API key, HTTP failure, rate
                limiting, or a malformed reply.
        """
        if not self._api_key:
            logger.error("Recommendation API key is not configured")
            raise UpstreamUnavailableError(SERVICE_NAME, "API key not configured")

        payload: dict[str, Any] = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT.format(count=self._count)},
                {"role": "user", "content": prompt},
            ],
            "temperature": self._temperature,
        }
        try:
            response = self._client.post(
                "/chat/completions",
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )
        except httpx.HTTPError as exc:
            logger.error("Recommendation request failed: %s", exc.__class__.__name__)
            raise UpstreamUnavailableError(SERVICE_NAME, "request failed") from exc

        if response.status_code == 429:
            logger.warning("Recommendation model is rate limited")
            raise UpstreamUnavailableError(SERVICE_NAME, "model is busy, try again shortly")
        if response.is_error:
            logger.error("Recommendation model returned HTTP %d", response.status_code)
            raise UpstreamUnavailableError(SERVICE_NAME, f"HTTP {response.status_code}")

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise UpstreamUnavailableError(SERVICE_NAME, "unexpected response shape") from exc
        if not content:
            raise UpstreamUnavailableError(SERVICE_NAME, "empty reply")

        return parse_recommendations(content, self._max_items)
