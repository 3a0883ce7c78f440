"""Pytest configuration and shared fixtures."""

import json
import sys
from pathlib import Path
from typing import Any, Callable, List, Optional, Union

import pytest

# Add src directory to Python path for tests
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from aifunctions.ai_providers.base import BaseProvider  # noqa: E402
from aifunctions.types import (  # noqa: E402
    CalledFunction,
    ChatCompletionRequest,
    ChatCompletionResponse,
    Choice,
    Message,
    Usage,
)

_SETTINGS_ENV_VARS = (
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "AI_MODEL",
    "AI_MAX_TOKENS",
    "REQUEST_TIMEOUT",
    "RATE_LIMIT_INITIAL_DELAY",
    "RATE_LIMIT_MAX_DELAY",
    "MAX_ATTEMPTS_PER_TURN",
    "STRICT_FUNCTION_CHOICE",
    "JSON_LOGS",
)


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch, tmp_path):
    """Isolate tests from the developer's environment and any .env file."""
    for key in _SETTINGS_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.chdir(tmp_path)


Reply = Union[Message, Exception, Callable[[ChatCompletionRequest], Message]]


class ScriptedProvider(BaseProvider):
    """Provider returning canned replies and recording every request.

    Replies are consumed in order; once they run out, ``responder`` (if any)
    answers every further request.
    """

    def __init__(
        self,
        *replies: Reply,
        responder: Optional[Callable[[ChatCompletionRequest], Message]] = None,
        usage: Optional[Usage] = None,
    ):
        super().__init__("test-model")
        self.replies: List[Reply] = list(replies)
        self.responder = responder
        self.usage = usage or Usage(prompt_tokens=10, completion_tokens=5, total_tokens=15)
        self.requests: List[ChatCompletionRequest] = []
        self.shutdown_called = False

    @staticmethod
    def call(name: str, **arguments: Any) -> Message:
        return ScriptedProvider.raw_call(name, json.dumps(arguments))

    @staticmethod
    def raw_call(name: str, arguments: str) -> Message:
        return Message(
            role="assistant",
            function_call=CalledFunction(name=name, arguments=arguments),
        )

    @staticmethod
    def text(content: str) -> Message:
        return Message(role="assistant", content=content)

    async def chat_completion(
        self, request: ChatCompletionRequest
    ) -> ChatCompletionResponse:
        self.requests.append(request)
        if self.replies:
            reply = self.replies.pop(0)
        elif self.responder is not None:
            reply = self.responder
        else:
            raise AssertionError("ScriptedProvider ran out of replies")

        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            reply = reply(request)

        return ChatCompletionResponse(
            created=1700000000,
            model=self.model_id,
            choices=[Choice(index=0, message=reply, finish_reason="stop")],
            usage=self.usage,
        )

    async def shutdown(self) -> None:
        self.shutdown_called = True


@pytest.fixture
def scripted_provider():
    """The ScriptedProvider class, for building providers with canned replies."""
    return ScriptedProvider
