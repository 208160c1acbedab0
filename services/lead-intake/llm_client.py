"""Async client for the LLM chat-completion API.

Wraps the openai SDK over an httpx client with explicit timeouts. SDK-level
retries are disabled; retries are owned by retry.RetryPolicy.
"""

import logging

import httpx
import openai
from openai import AsyncOpenAI

from config import settings

logger = logging.getLogger(__name__)


class LLMServiceUnavailable(Exception):
    """LLM API temporarily unavailable (connection error, timeout, 429, 5xx)."""


class LLMServiceError(Exception):
    """LLM API rejected the request (4xx other than 429)."""


class LLMClient:
    """JSON-mode chat completions with configurable model and timeouts."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        temperature: float | None = None,
        timeout: int | None = None,
        connect_timeout: int | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.model = model or settings.OPENAI_MODEL
        self._temperature = temperature if temperature is not None else settings.OPENAI_TEMPERATURE

        read_timeout = timeout if timeout is not None else settings.LLM_TIMEOUT_SECONDS
        conn_timeout = connect_timeout if connect_timeout is not None else settings.LLM_CONNECT_TIMEOUT

        if http_client is None:
            http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    connect=float(conn_timeout),
                    read=float(read_timeout),
                    write=30.0,
                    pool=30.0,
                ),
            )

        self._client = AsyncOpenAI(
            api_key=api_key or settings.OPENAI_API_KEY,
            base_url=base_url or settings.OPENAI_BASE_URL or None,
            http_client=http_client,
            max_retries=0,
        )

    async def close(self):
        await self._client.close()

    async def complete_json(self, system_prompt: str, user_prompt: str) -> str:
        """Run one JSON-mode completion and return the raw message content.

        Returns an empty string when the model produced no content.
        Raises LLMServiceUnavailable or LLMServiceError.
        """
        try:
            completion = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self._temperature,
                response_format={"type": "json_object"},
            )
        except openai.APIConnectionError as e:
            # Includes APITimeoutError
            logger.warning("LLM connection failed: %s", e)
            raise LLMServiceUnavailable(f"Cannot reach LLM API: {e}") from e
        except (openai.RateLimitError, openai.InternalServerError) as e:
            logger.warning("LLM API returned %d", e.status_code)
            raise LLMServiceUnavailable(f"LLM API unavailable: {e}") from e
        except openai.APIError as e:
            logger.error("LLM API error: %s", e)
            raise LLMServiceError(f"LLM API error: {e}") from e

        if not completion.choices:
            return ""
        return completion.choices[0].message.content or ""

    async def health(self) -> dict:
        """Check that the configured model is reachable. Never raises."""
        try:
            model = await self._client.models.retrieve(self.model)
            return {"status": "reachable", "model": model.id}
        except Exception as e:
            logger.warning("LLM health check failed: %s", e)
            return {"status": "unreachable", "error": str(e)}
