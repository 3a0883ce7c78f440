"""Driver state machine sequencing turns until a state is done or fails."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Union

from aifunctions.ai_providers.base import BaseProvider, ProviderError, ResponseDecodeError
from aifunctions.ai_providers.openai import OpenAIProvider
from aifunctions.config.settings import Settings
from aifunctions.errors import UnknownFunctionError
from aifunctions.outcomes import Done, Outcome, Prompt, Recoverable, Unrecoverable
from aifunctions.types import Usage
from aifunctions.utils.logger import get_logger

from .turn import Turn

logger = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 5

FUNCTION_CALL_REQUIRED = "You must call one of the provided functions"
TOO_MANY_ERRORS = "too many errors"


class FailureKind(Enum):
    """Why a drive failed."""

    # A handler returned Unrecoverable
    unrecoverable = "unrecoverable"
    # Every attempt of a turn ended in a recoverable error
    too_many_errors = "too_many_errors"
    # The backend or transport failed (rate limit exhausted, malformed body, network)
    backend = "backend"


@dataclass
class DriveResult:
    """Final result of a drive.

    ``retries`` counts attempts that ended in a correction (no function call
    or a recoverable error), across all turns.
    """

    error: Optional[str] = None
    failure_kind: Optional[FailureKind] = None
    turns: int = 0
    retries: int = 0
    usage: Usage = field(default_factory=Usage)

    @property
    def ok(self) -> bool:
        return self.error is None

    def fail(self, error: str, kind: FailureKind) -> "DriveResult":
        self.error = error
        self.failure_kind = kind
        return self


class Driver:
    """Runs an agent state to completion, one turn per Prompt outcome.

    Each turn allows up to ``max_attempts`` requests. An attempt fails when
    the model answers without a function call or the handler reports a
    recoverable error; the turn then continues with a corrective message.
    """

    def __init__(
        self,
        provider: BaseProvider,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        strict_function_choice: bool = False,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.provider = provider
        self.max_attempts = max_attempts
        self.strict_function_choice = strict_function_choice
        self.turns: List[Turn] = []

    @classmethod
    def from_settings(
        cls, settings: Settings, provider: Optional[BaseProvider] = None
    ) -> "Driver":
        return cls(
            provider or OpenAIProvider.from_settings(settings),
            max_attempts=settings.max_attempts_per_turn,
            strict_function_choice=settings.strict_function_choice,
        )

    async def run(self, state: Any) -> DriveResult:
        """Drive ``state`` from its initial outcome until Done or failure.

        Raises:
            UnknownFunctionError: A Prompt allows a function the state does not declare
            TypeError: The state or a handler produced something that is not an outcome
        """
        self.turns = []
        result = DriveResult()
        outcome = state.initial()

        while True:
            if isinstance(outcome, Done):
                logger.info(
                    f"Drive completed after {result.turns} turns "
                    f"({result.retries} retries, {result.usage.total_tokens} tokens)"
                )
                return result
            if not isinstance(outcome, Prompt):
                raise TypeError(
                    f"Expected Done or Prompt, got {type(outcome).__name__}"
                )

            turn = self._start_turn(state, outcome)
            self.turns.append(turn)
            result.turns += 1

            try:
                step = await self._run_turn(state, turn, result)
            except ProviderError as e:
                logger.error(f"Backend failure in turn {result.turns}: {e}")
                turn.mark_failed(str(e))
                return result.fail(str(e), FailureKind.backend)

            if isinstance(step, Unrecoverable):
                logger.error(f"Unrecoverable error in turn {result.turns}: {step.message}")
                turn.mark_failed(step.message)
                return result.fail(step.message, FailureKind.unrecoverable)
            if step is None:
                logger.error(
                    f"Turn {result.turns} failed {self.max_attempts} attempts; giving up"
                )
                turn.mark_failed(TOO_MANY_ERRORS)
                return result.fail(TOO_MANY_ERRORS, FailureKind.too_many_errors)

            outcome = step

    def _start_turn(self, state: Any, prompt: Prompt) -> Turn:
        descriptors = []
        for name in prompt.functions:
            descriptor = state.descriptor_for(name)
            if descriptor is None:
                raise UnknownFunctionError(name, type(state).__name__)
            descriptors.append(descriptor)

        logger.info(
            f"Starting turn with functions {list(prompt.functions)}",
            temperature=prompt.temperature,
        )
        return Turn(prompt=prompt, descriptors=descriptors)

    async def _run_turn(
        self, state: Any, turn: Turn, result: DriveResult
    ) -> Optional[Union[Outcome, Unrecoverable]]:
        """Run the attempt loop of one turn.

        Returns:
            The next outcome on success, the Unrecoverable error that aborts
            the drive, or None once every attempt has failed
        """
        for attempt in range(1, self.max_attempts + 1):
            request = turn.build_request(self.provider.model_id, self.provider.max_tokens)
            response = await self.provider.chat_completion(request)
            result.usage = result.usage + response.usage

            if not response.choices:
                raise ResponseDecodeError("Chat-completion response contained no choices")
            message = response.choices[0].message
            turn.record_reply(message, response.usage)

            if message.function_call is None:
                logger.info(f"Attempt {attempt}: reply without a function call")
                turn.add_correction(FUNCTION_CALL_REQUIRED)
                result.retries += 1
                continue

            name = message.function_call.name
            if self.strict_function_choice and name not in turn.prompt.functions:
                outcome = Recoverable(
                    f"function {name} is not allowed here; call one of: "
                    f"{', '.join(turn.prompt.functions)}"
                )
            else:
                outcome = await state.dispatch(name, message.function_call.arguments)

            if isinstance(outcome, Recoverable):
                logger.info(f"Attempt {attempt}: recoverable error from {name}: {outcome.message}")
                turn.add_correction(f"Error: {outcome.message}")
                result.retries += 1
                continue
            if isinstance(outcome, Unrecoverable):
                return outcome
            if isinstance(outcome, (Done, Prompt)):
                turn.mark_completed(name)
                return outcome
            raise TypeError(
                f"Dispatch of {name} returned {type(outcome).__name__}"
            )

        return None


async def drive(
    state: Any,
    provider: Optional[BaseProvider] = None,
    *,
    settings: Optional[Settings] = None,
) -> DriveResult:
    """Run ``state`` to completion or failure.

    Args:
        state: Object offering ``initial()``, ``descriptor_for(name)`` and
            ``async dispatch(name, raw_arguments)``, usually an AgentState
        provider: Backend to use; an OpenAIProvider built from settings otherwise
        settings: Engine settings; read from the environment when omitted

    Returns:
        DriveResult whose ``ok`` is True on success; otherwise ``error`` holds
        the final message and ``failure_kind`` its category

    Raises:
        MissingCredentialsError: No provider was given and no API key is configured
        UnknownFunctionError: A Prompt allows a function the state does not declare
    """
    settings = settings or Settings()
    owns_provider = provider is None
    driver = Driver.from_settings(settings, provider)
    try:
        return await driver.run(state)
    finally:
        if owns_provider:
            await driver.provider.shutdown()
