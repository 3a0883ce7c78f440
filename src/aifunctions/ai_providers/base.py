"""Base provider interface for chat-completion backends."""

from abc import ABC, abstractmethod
from typing import Optional

from aifunctions.errors import AiFunctionsError
from aifunctions.types import ChatCompletionRequest, ChatCompletionResponse


class ProviderError(AiFunctionsError):
    """Base exception for backend and transport faults."""

    pass


class MissingCredentialsError(ProviderError):
    """No API key was configured for the provider."""

    pass


class TransportError(ProviderError):
    """The request could not be delivered or the response not received."""

    pass


class RateLimitExhaustedError(ProviderError):
    """The backend kept answering 429 until the backoff ceiling was reached.

    Attributes:
        attempts: Number of requests sent, all rate limited
        waited: Total seconds slept between them
    """

    def __init__(self, message: str, attempts: int, waited: float):
        super().__init__(message)
        self.attempts = attempts
        self.waited = waited


class ResponseDecodeError(ProviderError):
    """The response body is not a valid chat-completion envelope.

    Attributes:
        status_code: HTTP status of the response, when there was one
        body: Start of the offending body, for diagnostics
    """

    def __init__(
        self, message: str, status_code: Optional[int] = None, body: str = ""
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class BaseProvider(ABC):
    """Abstract base class for chat-completion providers.

    A provider performs one request/response exchange per call. It absorbs
    rate limiting itself and raises :class:`ProviderError` subclasses for
    every other fault.
    """

    def __init__(self, model_id: str, max_tokens: Optional[int] = None):
        self.model_id = model_id
        self.max_tokens = max_tokens

    @abstractmethod
    async def chat_completion(
        self, request: ChatCompletionRequest
    ) -> ChatCompletionResponse:
        """Send one chat-completion request and return the parsed response."""
        pass

    async def shutdown(self) -> None:
        """Cleanup provider resources."""
        pass

    async def __aenter__(self) -> "BaseProvider":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()
