"""Chat-completion providers."""

from .base import (
    BaseProvider,
    MissingCredentialsError,
    ProviderError,
    RateLimitExhaustedError,
    ResponseDecodeError,
    TransportError,
)
from .openai import OpenAIProvider

__all__ = [
    "BaseProvider",
    "OpenAIProvider",
    "ProviderError",
    "MissingCredentialsError",
    "RateLimitExhaustedError",
    "ResponseDecodeError",
    "TransportError",
]
