"""aifunctions - drive LLM conversations through declared, typed functions."""

from aifunctions.ai_providers import (
    BaseProvider,
    MissingCredentialsError,
    OpenAIProvider,
    ProviderError,
    RateLimitExhaustedError,
    ResponseDecodeError,
    TransportError,
)
from aifunctions.config import Settings, load_settings
from aifunctions.errors import (
    AiFunctionsError,
    FunctionDeclarationError,
    RecoverableError,
    UnknownFunctionError,
    UnrecoverableError,
)
from aifunctions.execution import Driver, DriveResult, FailureKind, Turn, drive
from aifunctions.functions import FunctionRegistry, ai_function
from aifunctions.outcomes import (
    Done,
    FunctionResult,
    Outcome,
    Prompt,
    Recoverable,
    Unrecoverable,
    done,
    prompt,
    recoverable_err,
    unrecoverable_err,
)
from aifunctions.state import AgentState
from aifunctions.types import FunctionDescriptor, Message, Model

__version__ = "0.1.0"

__all__ = [
    # State and declarations
    "AgentState",
    "ai_function",
    "FunctionRegistry",
    "FunctionDescriptor",
    # Outcomes
    "Outcome",
    "FunctionResult",
    "Done",
    "Prompt",
    "Recoverable",
    "Unrecoverable",
    "done",
    "prompt",
    "recoverable_err",
    "unrecoverable_err",
    # Driving
    "drive",
    "Driver",
    "DriveResult",
    "FailureKind",
    "Turn",
    # Backend
    "BaseProvider",
    "OpenAIProvider",
    "Message",
    "Model",
    "Settings",
    "load_settings",
    # Errors
    "AiFunctionsError",
    "FunctionDeclarationError",
    "UnknownFunctionError",
    "RecoverableError",
    "UnrecoverableError",
    "ProviderError",
    "MissingCredentialsError",
    "RateLimitExhaustedError",
    "ResponseDecodeError",
    "TransportError",
]
