"""Turn record for one prompt's request/response/retry cycle."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from aifunctions.outcomes import Prompt
from aifunctions.types import (
    ChatCompletionRequest,
    ExactFunctionCall,
    FunctionCallMode,
    FunctionDescriptor,
    Message,
    Usage,
)


@dataclass
class Turn:
    """One prompt's exchange with the backend.

    The message list starts fresh with the prompt text; nothing from earlier
    turns is carried over.
    """

    prompt: Prompt
    descriptors: List[FunctionDescriptor]
    turn_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    messages: List[Message] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    attempts: int = 0
    failed_attempts: int = 0
    function_called: Optional[str] = None
    usage: Usage = field(default_factory=Usage)
    status: str = "in_progress"
    error: Optional[str] = None

    def __post_init__(self):
        if not self.messages:
            self.messages.append(Message.user(self.prompt.text))

    @property
    def function_call_mode(self) -> FunctionCallMode:
        """Force the only allowed function, or let the model pick among several."""
        if len(self.descriptors) == 1:
            return ExactFunctionCall(name=self.descriptors[0].name)
        return "auto"

    def build_request(
        self, model: str, max_tokens: Optional[int] = None
    ) -> ChatCompletionRequest:
        return ChatCompletionRequest(
            model=model,
            messages=list(self.messages),
            functions=list(self.descriptors),
            function_call=self.function_call_mode,
            temperature=self.prompt.temperature,
            max_tokens=max_tokens,
        )

    def record_reply(self, message: Message, usage: Usage):
        """Append the model's reply, with any invocation collapsed to text."""
        self.attempts += 1
        self.usage = self.usage + usage
        self.messages.append(message.function_to_content())

    def add_correction(self, text: str):
        """Append a corrective user message; the current attempt counts as failed."""
        self.failed_attempts += 1
        self.messages.append(Message.user(text))

    def mark_completed(self, function_name: str):
        self.function_called = function_name
        self.completed_at = datetime.now()
        self.status = "completed"

    def mark_failed(self, error: str):
        self.error = error
        self.completed_at = datetime.now()
        self.status = "failed"

    def to_dict(self) -> Dict[str, Any]:
        """Convert turn to dictionary for serialization."""
        return {
            "turn_id": self.turn_id,
            "prompt": self.prompt.text,
            "functions": list(self.prompt.functions),
            "temperature": self.prompt.temperature,
            "messages": [m.model_dump(exclude_none=True) for m in self.messages],
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat()
            if self.completed_at
            else None,
            "attempts": self.attempts,
            "failed_attempts": self.failed_attempts,
            "function_called": self.function_called,
            "usage": self.usage.model_dump(),
            "status": self.status,
            "error": self.error,
        }
