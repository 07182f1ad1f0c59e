from typing import Optional

import httpx

from core.config import settings
from core.errors import GatewayError
from core.logger import logger


class LLMGateway:
    """Single round trip to the chat-completion service. No retries, no state."""

    def __init__(self, api_key: str = None, model: str = None, base_url: str = None,
                 timeout: float = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = settings.LLM_API_KEY if api_key is None else api_key
        self.model = model or settings.LLM_MODEL
        self.base_url = base_url or settings.LLM_API_URL
        self.timeout = timeout or settings.LLM_TIMEOUT_SECONDS
        self.transport = transport

    def _log_rate_limits(self, headers: httpx.Headers):
        """Extract and log rate limit information."""
        remaining_requests = headers.get("x-ratelimit-remaining-requests")
        remaining_tokens = headers.get("x-ratelimit-remaining-tokens")

        if remaining_requests or remaining_tokens:
            logger.info(
                "LLM rate limits",
                rem_req=remaining_requests,
                rem_tok=remaining_tokens,
                reset_req=headers.get("x-ratelimit-reset-requests"),
                reset_tok=headers.get("x-ratelimit-reset-tokens")
            )

    async def generate(self, prompt: str) -> str:
        """Send one prompt and return the raw response body."""
        if not self.api_key:
            raise GatewayError("LLM_API_KEY is not configured")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.base_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json"
                    },
                    json={
                        "model": self.model,
                        "messages": [{"role": "user", "content": prompt}],
                        "temperature": settings.LLM_TEMPERATURE,
                    }
                )
        except httpx.TimeoutException as e:
            logger.error("LLM request timed out", timeout=self.timeout, error=str(e))
            raise GatewayError(f"Generation service timed out after {self.timeout}s")
        except httpx.HTTPError as e:
            logger.error("LLM request failed", error=str(e))
            raise GatewayError(f"Generation service request failed: {e}")

        self._log_rate_limits(response.headers)

        if response.status_code != 200:
            logger.error("LLM API error", status=response.status_code, error=response.text[:500])
            raise GatewayError(f"Generation service returned HTTP {response.status_code}")

        return response.text
