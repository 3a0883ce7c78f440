"""OpenAI chat-completions provider over httpx."""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from pydantic import ValidationError

from aifunctions.config.settings import DEFAULT_BASE_URL, Settings
from aifunctions.types import ChatCompletionRequest, ChatCompletionResponse, Model
from aifunctions.utils.logger import get_logger
from aifunctions.utils.retry import BackoffConfig, backoff_delays

from .base import (
    BaseProvider,
    MissingCredentialsError,
    RateLimitExhaustedError,
    ResponseDecodeError,
    TransportError,
)

logger = get_logger(__name__)

TOO_MANY_REQUESTS = 429

# Bytes of an undecodable body kept on ResponseDecodeError
_BODY_PREVIEW = 500


class OpenAIProvider(BaseProvider):
    """Sends chat-completion requests to an OpenAI-compatible endpoint.

    HTTP 429 responses are retried with exponential backoff (1s, 2s, 4s, ...)
    until the next wait would reach the ceiling, at which point
    :class:`RateLimitExhaustedError` is raised. No other failure is retried.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model_id: str = Model.gpt_3_5_turbo.value,
        base_url: str = DEFAULT_BASE_URL,
        max_tokens: Optional[int] = None,
        timeout: float = 60.0,
        backoff: Optional[BackoffConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if not api_key:
            raise MissingCredentialsError("OpenAI API key not provided")
        super().__init__(model_id, max_tokens)
        self._api_key = api_key
        self.endpoint = f"{base_url.rstrip('/')}/chat/completions"
        self.timeout = timeout
        self.backoff = backoff or BackoffConfig()
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "OpenAIProvider":
        """Create a provider from settings; extra keyword arguments override them."""
        params: Dict[str, Any] = {
            "api_key": settings.openai_api_key,
            "model_id": settings.ai_model,
            "base_url": settings.openai_base_url,
            "max_tokens": settings.ai_max_tokens,
            "timeout": settings.request_timeout,
            "backoff": settings.backoff_config(),
        }
        params.update(kwargs)
        return cls(**params)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        try:
            return await self._get_client().post(
                self.endpoint,
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except httpx.HTTPError as e:
            logger.error(f"OpenAI request failed: {e}")
            raise TransportError(f"Request to {self.endpoint} failed: {e}") from e

    async def chat_completion(
        self, request: ChatCompletionRequest
    ) -> ChatCompletionResponse:
        """Send ``request``, waiting out rate limits, and parse the response.

        Raises:
            RateLimitExhaustedError: Still rate limited after the longest allowed wait
            ResponseDecodeError: The body is not a chat-completion response
            TransportError: The HTTP exchange itself failed
        """
        payload = request.to_payload()
        delays = backoff_delays(self.backoff)
        attempts = 0
        waited = 0.0

        while True:
            response = await self._post(payload)
            attempts += 1

            if response.status_code != TOO_MANY_REQUESTS:
                return self._parse_response(response)

            delay = next(delays, None)
            if delay is None:
                logger.error(
                    f"Still rate limited after {attempts} requests and {waited:.0f}s of backoff"
                )
                raise RateLimitExhaustedError(
                    f"Exceeded max wait time of {self.backoff.max_delay:.0f}s for rate-limited requests",
                    attempts=attempts,
                    waited=waited,
                )

            logger.warning(f"Too many requests, waiting {delay:.1f}s...")
            await self._sleep(delay)
            waited += delay

    def _parse_response(self, response: httpx.Response) -> ChatCompletionResponse:
        try:
            parsed = ChatCompletionResponse.model_validate_json(response.content)
        except ValidationError as e:
            logger.error(
                f"Malformed chat-completion response (HTTP {response.status_code})"
            )
            raise ResponseDecodeError(
                f"Malformed chat-completion response (HTTP {response.status_code}): {e}",
                status_code=response.status_code,
                body=response.text[:_BODY_PREVIEW],
            ) from e

        if not parsed.choices:
            raise ResponseDecodeError(
                "Chat-completion response contained no choices",
                status_code=response.status_code,
                body=response.text[:_BODY_PREVIEW],
            )
        return parsed

    async def shutdown(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
