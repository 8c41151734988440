from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from news_narrator.config import Settings
from news_narrator.errors import UpstreamGenerationError

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class LLMClient:
    """Chat-completions client used by every agent in a crew.

    The underlying ``httpx.AsyncClient`` and the API key are resolved on the
    first ``generate`` call, so a process without credentials only fails when
    something actually asks for text.
    """

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def generate(self, system_prompt: str, user_instruction: str) -> str:
        if not system_prompt.strip():
            raise ValueError("system_prompt must not be empty")
        if not user_instruction.strip():
            raise ValueError("user_instruction must not be empty")

        client = self._get_client()
        payload: dict[str, Any] = {
            "model": self.settings.llm_model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_instruction},
            ],
            "temperature": self.settings.llm_temperature,
            "max_tokens": self.settings.llm_max_tokens,
        }

        attempts = max(0, self.settings.llm_max_retries) + 1
        for attempt in range(1, attempts + 1):
            try:
                return await self._request_completion(client, payload)
            except UpstreamGenerationError as exc:
                retryable = exc.timed_out or exc.status_code is None or exc.status_code in _RETRYABLE_STATUS
                if not retryable or attempt >= attempts:
                    raise
                delay = self.settings.llm_retry_backoff_seconds * attempt
                logger.warning("Completion attempt %s/%s failed (%s), retrying in %.1fs", attempt, attempts, exc, delay)
                await asyncio.sleep(delay)

        raise UpstreamGenerationError("Completion failed without a response.")

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        api_key = (self.settings.llm_api_key or "").strip()
        if not api_key:
            raise UpstreamGenerationError("LLM_API_KEY is not configured.")

        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.llm_base_url,
                timeout=httpx.Timeout(self.settings.llm_timeout_seconds),
                headers={
                    "Authorization": f"Bearer {api_key}",
                    "Content-Type": "application/json",
                },
                transport=self._transport,
            )
        return self._client

    async def _request_completion(self, client: httpx.AsyncClient, payload: dict[str, Any]) -> str:
        try:
            response = await client.post("/chat/completions", json=payload)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise UpstreamGenerationError(
                f"Completion request timed out after {self.settings.llm_timeout_seconds}s",
                timed_out=True,
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise UpstreamGenerationError(
                f"Completion request failed with HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamGenerationError(f"Completion request failed: {exc}") from exc

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise UpstreamGenerationError("Completion response had no message content.") from exc

        if content is None:
            raise UpstreamGenerationError("Completion response had no message content.")

        return str(content).strip()
