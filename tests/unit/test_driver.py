"""Tests for the driver state machine."""

import json

import pytest

from aifunctions import (
    AgentState,
    Done,
    Driver,
    FailureKind,
    MissingCredentialsError,
    RateLimitExhaustedError,
    ResponseDecodeError,
    Settings,
    UnknownFunctionError,
    ai_function,
    done,
    drive,
    prompt,
    recoverable_err,
    unrecoverable_err,
)
from aifunctions.ai_providers import BaseProvider
from aifunctions.execution import FUNCTION_CALL_REQUIRED, TOO_MANY_ERRORS
from aifunctions.types import (
    CalledFunction,
    ChatCompletionResponse,
    ExactFunctionCall,
    Message,
    Usage,
)


class TwoStepState(AgentState):
    """Initial prompt allows A; A leads to B; B is done."""

    def __init__(self):
        self.values = []

    def initial(self):
        return prompt("Start with {step}", ["step_a"], 0.3, step="A")

    @ai_function
    def step_a(self, value: str):
        self.values.append(("a", value))
        return prompt("Then B", ["step_b"])

    @ai_function
    def step_b(self, value: str):
        self.values.append(("b", value))
        return done()


class OutlineState(AgentState):
    """Rejects outlines shorter than 80 characters."""

    def __init__(self):
        self.outline = None

    def initial(self):
        return prompt("Outline the story", ["write_outline"])

    @ai_function
    def write_outline(self, outline: str):
        if len(outline) < 80:
            return recoverable_err(f"too short: got {len(outline)} chars")
        self.outline = outline
        return done()


class ChoiceState(AgentState):
    def __init__(self):
        self.chosen = None

    def initial(self):
        return prompt("Pick one", ["go_left", "go_right"])

    @ai_function
    def go_left(self, reason: str):
        self.chosen = "left"
        return done()

    @ai_function
    def go_right(self, reason: str):
        self.chosen = "right"
        return done()

    @ai_function
    def go_back(self, reason: str):
        self.chosen = "back"
        return done()


class FatalState(AgentState):
    def initial(self):
        return prompt("Try", ["explode"])

    @ai_function
    def explode(self, why: str):
        return unrecoverable_err(f"cannot continue: {why}")


class BrokenState(AgentState):
    def initial(self):
        return prompt("Call a function that does not exist", ["write_epilogue"])


def call_allowed_function(request):
    """Mock backend that always calls the forced function correctly."""
    assert isinstance(request.function_call, ExactFunctionCall)
    return Message(
        role="assistant",
        function_call=CalledFunction(
            name=request.function_call.name, arguments=json.dumps({"value": "ok"})
        ),
    )


class TestDriveScenarios:
    """End-to-end drives against a scripted backend."""

    @pytest.mark.asyncio
    async def test_two_turns_without_retries(self, scripted_provider):
        provider = scripted_provider(responder=call_allowed_function)
        state = TwoStepState()

        result = await drive(state, provider)

        assert result.ok
        assert result.error is None
        assert result.failure_kind is None
        assert result.turns == 2
        assert result.retries == 0
        assert len(provider.requests) == 2
        assert state.values == [("a", "ok"), ("b", "ok")]

    @pytest.mark.asyncio
    async def test_short_argument_consumes_one_retry(self, scripted_provider):
        provider = scripted_provider(
            scripted_provider.call("write_outline", outline="x" * 40),
            scripted_provider.call("write_outline", outline="y" * 85),
        )
        state = OutlineState()

        result = await drive(state, provider)

        assert result.ok
        assert result.turns == 1
        assert result.retries == 1
        assert state.outline == "y" * 85

        retry_messages = provider.requests[1].messages
        assert len(retry_messages) == 3
        assert retry_messages[0].content == "Outline the story"
        assert retry_messages[1].role == "assistant"
        assert retry_messages[1].function_call is None
        assert json.loads(retry_messages[1].content) == {
            "name": "write_outline",
            "arguments": json.dumps({"outline": "x" * 40}),
        }
        assert retry_messages[2].role == "user"
        assert retry_messages[2].content == "Error: too short: got 40 chars"

    @pytest.mark.asyncio
    async def test_five_recoverable_errors_fail_the_drive(self, scripted_provider):
        provider = scripted_provider(
            responder=lambda request: scripted_provider.call("write_outline", outline="short")
        )

        result = await drive(OutlineState(), provider)

        assert not result.ok
        assert result.error == TOO_MANY_ERRORS == "too many errors"
        assert result.failure_kind is FailureKind.too_many_errors
        assert result.retries == 5
        assert len(provider.requests) == 5

    @pytest.mark.asyncio
    async def test_reply_without_function_call_is_corrected(self, scripted_provider):
        provider = scripted_provider(
            scripted_provider.text("Here is an outline: ..."),
            scripted_provider.call("write_outline", outline="z" * 90),
        )

        result = await drive(OutlineState(), provider)

        assert result.ok
        assert result.retries == 1
        messages = provider.requests[1].messages
        assert [m.role for m in messages] == ["user", "assistant", "user"]
        assert messages[1].content == "Here is an outline: ..."
        assert messages[2].content == FUNCTION_CALL_REQUIRED

    @pytest.mark.asyncio
    async def test_unrecoverable_stops_immediately(self, scripted_provider):
        provider = scripted_provider(
            scripted_provider.call("explode", why="the moon fell"),
            scripted_provider.call("explode", why="never sent"),
        )

        result = await drive(FatalState(), provider)

        assert result.error == "cannot continue: the moon fell"
        assert result.failure_kind is FailureKind.unrecoverable
        assert len(provider.requests) == 1
        assert len(provider.replies) == 1

    @pytest.mark.asyncio
    async def test_unknown_allowed_function_aborts_without_requests(self, scripted_provider):
        provider = scripted_provider()

        with pytest.raises(UnknownFunctionError, match="write_epilogue"):
            await drive(BrokenState(), provider)

        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_initial_done_sends_nothing(self, scripted_provider):
        class AlreadyDone(AgentState):
            def initial(self):
                return Done()

        provider = scripted_provider()

        result = await drive(AlreadyDone(), provider)

        assert result.ok
        assert result.turns == 0
        assert provider.requests == []


class TestRequestConstruction:
    """Tests for the requests the driver builds."""

    @pytest.mark.asyncio
    async def test_single_function_is_forced(self, scripted_provider):
        provider = scripted_provider(responder=call_allowed_function)

        await drive(TwoStepState(), provider)

        first = provider.requests[0]
        assert first.function_call == ExactFunctionCall(name="step_a")
        assert [f.name for f in first.functions] == ["step_a"]
        assert first.temperature == 0.3
        assert first.model == "test-model"
        assert [m.content for m in first.messages] == ["Start with A"]

    @pytest.mark.asyncio
    async def test_several_functions_use_auto_with_exactly_that_set(self, scripted_provider):
        provider = scripted_provider(scripted_provider.call("go_right", reason="light"))
        state = ChoiceState()

        await drive(state, provider)

        request = provider.requests[0]
        assert request.function_call == "auto"
        assert [f.name for f in request.functions] == ["go_left", "go_right"]
        assert state.chosen == "right"

    @pytest.mark.asyncio
    async def test_history_is_not_carried_across_turns(self, scripted_provider):
        provider = scripted_provider(
            scripted_provider.text("thinking"),
            scripted_provider.call("step_a", value="1"),
            scripted_provider.call("step_b", value="2"),
        )

        await drive(TwoStepState(), provider)

        assert len(provider.requests[1].messages) == 3
        second_turn = provider.requests[2].messages
        assert [m.content for m in second_turn] == ["Then B"]

    @pytest.mark.asyncio
    async def test_provider_max_tokens_is_forwarded(self, scripted_provider):
        provider = scripted_provider(responder=call_allowed_function)
        provider.max_tokens = 128

        await drive(TwoStepState(), provider)

        assert all(r.max_tokens == 128 for r in provider.requests)


class TestFunctionChoicePolicy:
    """Invocations outside the prompt's allowed set."""

    @pytest.mark.asyncio
    async def test_global_lookup_by_default(self, scripted_provider):
        provider = scripted_provider(scripted_provider.call("go_back", reason="tired"))
        state = ChoiceState()

        result = await drive(state, provider)

        assert result.ok
        assert state.chosen == "back"

    @pytest.mark.asyncio
    async def test_strict_choice_rejects_other_functions(self, scripted_provider):
        provider = scripted_provider(
            scripted_provider.call("go_back", reason="tired"),
            scripted_provider.call("go_left", reason="fine"),
        )
        state = ChoiceState()

        result = await Driver(provider, strict_function_choice=True).run(state)

        assert result.ok
        assert result.retries == 1
        assert state.chosen == "left"
        correction = provider.requests[1].messages[-1].content
        assert correction == (
            "Error: function go_back is not allowed here; call one of: go_left, go_right"
        )

    @pytest.mark.asyncio
    async def test_unknown_model_choice_is_recoverable(self, scripted_provider):
        provider = scripted_provider(
            scripted_provider.call("go_sideways", reason="?"),
            scripted_provider.call("go_left", reason="ok"),
        )

        result = await drive(ChoiceState(), provider)

        assert result.ok
        assert provider.requests[1].messages[-1].content == (
            "Error: function go_sideways not found"
        )


class TestBackendFailures:
    """Provider faults become explicit failures."""

    @pytest.mark.asyncio
    async def test_rate_limit_exhaustion_fails_the_drive(self, scripted_provider):
        provider = scripted_provider(
            RateLimitExhaustedError("Exceeded max wait time", attempts=7, waited=63.0)
        )

        result = await drive(OutlineState(), provider)

        assert result.failure_kind is FailureKind.backend
        assert result.error == "Exceeded max wait time"

    @pytest.mark.asyncio
    async def test_malformed_response_after_successful_turn(self, scripted_provider):
        provider = scripted_provider(
            scripted_provider.call("step_a", value="1"),
            ResponseDecodeError("Malformed chat-completion response", status_code=200),
        )
        driver = Driver(provider)

        result = await driver.run(TwoStepState())

        assert result.failure_kind is FailureKind.backend
        assert result.turns == 2
        assert [t.status for t in driver.turns] == ["completed", "failed"]

    @pytest.mark.asyncio
    async def test_response_without_choices_is_a_backend_failure(self):
        class NoChoicesProvider(BaseProvider):
            async def chat_completion(self, request):
                return ChatCompletionResponse(
                    created=1700000000, model=self.model_id, choices=[], usage=Usage()
                )

        result = await drive(OutlineState(), NoChoicesProvider("test-model"))

        assert result.failure_kind is FailureKind.backend
        assert "no choices" in result.error

    @pytest.mark.asyncio
    async def test_empty_reply_is_replayed_with_empty_content(self, scripted_provider):
        provider = scripted_provider(
            Message(role="assistant"),
            scripted_provider.call("write_outline", outline="w" * 90),
        )

        result = await drive(OutlineState(), provider)

        assert result.ok
        replayed = provider.requests[1].to_payload()["messages"][1]
        assert replayed == {"role": "assistant", "content": ""}


class TestDriverBookkeeping:
    """Tests for usage aggregation, turn records and settings."""

    @pytest.mark.asyncio
    async def test_usage_is_aggregated_across_requests(self, scripted_provider):
        provider = scripted_provider(
            scripted_provider.call("write_outline", outline="short"),
            scripted_provider.call("write_outline", outline="o" * 100),
        )

        result = await drive(OutlineState(), provider)

        assert result.usage.prompt_tokens == 20
        assert result.usage.completion_tokens == 10
        assert result.usage.total_tokens == 30

    @pytest.mark.asyncio
    async def test_turn_records(self, scripted_provider):
        provider = scripted_provider(responder=call_allowed_function)
        driver = Driver(provider)

        await driver.run(TwoStepState())

        assert len(driver.turns) == 2
        first = driver.turns[0].to_dict()
        assert first["status"] == "completed"
        assert first["function_called"] == "step_a"
        assert first["attempts"] == 1
        assert first["failed_attempts"] == 0
        assert first["functions"] == ["step_a"]

    @pytest.mark.asyncio
    async def test_max_attempts_from_settings(self, scripted_provider, monkeypatch):
        monkeypatch.setenv("MAX_ATTEMPTS_PER_TURN", "2")
        provider = scripted_provider(
            responder=lambda request: scripted_provider.text("no call")
        )

        result = await drive(OutlineState(), provider, settings=Settings())

        assert result.error == TOO_MANY_ERRORS
        assert len(provider.requests) == 2

    @pytest.mark.asyncio
    async def test_caller_provider_is_not_shut_down(self, scripted_provider):
        provider = scripted_provider(responder=call_allowed_function)

        await drive(TwoStepState(), provider)

        assert not provider.shutdown_called

    def test_invalid_max_attempts(self, scripted_provider):
        with pytest.raises(ValueError):
            Driver(scripted_provider(), max_attempts=0)

    @pytest.mark.asyncio
    async def test_non_outcome_initial_is_a_type_error(self, scripted_provider):
        class Confused(AgentState):
            def initial(self):
                return "start"

        with pytest.raises(TypeError):
            await drive(Confused(), scripted_provider())

    @pytest.mark.asyncio
    async def test_default_provider_requires_api_key(self):
        with pytest.raises(MissingCredentialsError):
            await drive(TwoStepState())
