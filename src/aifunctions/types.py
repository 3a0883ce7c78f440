"""Wire models for the OpenAI-compatible chat-completions API."""

import json
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class Model(str, Enum):
    """Known chat models with function-calling support."""

    gpt_3_5_turbo = "gpt-3.5-turbo-0613"
    gpt_4 = "gpt-4-0613"


class Role(str, Enum):
    user = "user"
    assistant = "assistant"
    function = "function"
    system = "system"


class CalledFunction(BaseModel):
    """A function invocation chosen by the model; ``arguments`` is raw JSON text."""

    name: str
    arguments: str = ""


class Message(BaseModel):
    """A single conversation message."""

    role: str
    content: Optional[str] = None
    function_call: Optional[CalledFunction] = None

    @classmethod
    def user(cls, content: Any) -> "Message":
        return cls(role=Role.user.value, content=str(content))

    def function_to_content(self) -> "Message":
        """Collapse a function invocation into a plain assistant text message.

        The backend rejects a replayed ``function_call`` message as history, so
        the invocation is kept as its JSON text instead. Messages without an
        invocation are returned unchanged, except that a missing ``content``
        becomes the empty string.
        """
        if self.function_call is None:
            if self.content is None:
                return Message(role=self.role, content="")
            return self
        return Message(
            role=Role.assistant.value,
            content=json.dumps(self.function_call.model_dump()),
        )


class FunctionDescriptor(BaseModel):
    """Name, description and parameter schema advertised for one callable function."""

    name: str
    description: str
    parameters: Dict[str, Any]


class ExactFunctionCall(BaseModel):
    """Forces the model to call the named function."""

    name: str


FunctionCallMode = Union[Literal["auto"], ExactFunctionCall]


class ChatCompletionRequest(BaseModel):
    model: str
    messages: List[Message]
    functions: Optional[List[FunctionDescriptor]] = None
    function_call: Optional[FunctionCallMode] = None
    temperature: float = 0.0
    max_tokens: Optional[int] = Field(default=None, gt=0)

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the JSON body, omitting unset optional fields."""
        return self.model_dump(mode="json", exclude_none=True)


class Choice(BaseModel):
    index: int
    message: Message
    finish_reason: Optional[str] = None


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


class ChatCompletionResponse(BaseModel):
    created: int
    model: str
    choices: List[Choice]
    usage: Usage
