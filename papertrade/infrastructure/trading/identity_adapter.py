"""
Adapter: Supabase Auth identity provider.

Implements IdentityProvider by asking the provider who owns an access
token (GET /auth/v1/user). Sign-in, sign-up and password resets go to
the provider directly and are not proxied here.
"""

import logging
from typing import Optional

import httpx

from papertrade.domain.trading.errors import UpstreamUnavailableError
from papertrade.domain.trading.ports import IdentityProvider

logger = logging.getLogger(__name__)

SERVICE_NAME = "Identity provider"


class SupabaseIdentityAdapter(IdentityProvider):
    """Resolves bearer tokens to user ids through Supabase Auth."""

    def __init__(
        self,
        base_url: Optional[str],
        anon_key: Optional[str],
        client: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ) -> None:
        self._anon_key = anon_key or ""
        self._client = client
        if self._client is None and base_url:
            self._client = httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)

    def get_current_user(self, access_token: str) -> Optional[str]:
        """Return the user id for a token, or None if the token is rejected.

        Raises:
            UpstreamUnavailableError: If the provider is not configured or
                cannot be reached.
        """
        if self._client is None:
            raise UpstreamUnavailableError(SERVICE_NAME, "not configured")

        try:
            response = self._client.get(
                "/auth/v1/user",
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "apikey": self._anon_key,
                },
            )
        except httpx.HTTPError as exc:
            logger.error("Identity lookup failed: %s", exc.__class__.__name__)
            raise UpstreamUnavailableError(SERVICE_NAME, "request failed") from exc

        if response.status_code in (401, 403):
            logger.info("Access token rejected by identity provider")
            return None
        if response.is_error:
            logger.error("Identity provider returned HTTP %d", response.status_code)
            raise UpstreamUnavailableError(SERVICE_NAME, f"HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            logger.error("Identity provider returned a non-JSON body")
            raise UpstreamUnavailableError(SERVICE_NAME, "invalid response") from exc
        if not isinstance(payload, dict):
            logger.error("Identity provider returned an unexpected payload")
            raise UpstreamUnavailableError(SERVICE_NAME, "invalid response")

        user_id = payload.get("id")
        return str(user_id) if user_id else None
