"""Exception hierarchy for aifunctions."""


class AiFunctionsError(Exception):
    """Base exception for all aifunctions errors."""

    pass


class FunctionDeclarationError(AiFunctionsError, ValueError):
    """An ``@ai_function`` declaration is malformed."""

    pass


class UnknownFunctionError(AiFunctionsError, LookupError):
    """A prompt allows a function that the state does not declare.

    This is a defect in the calling code, not a model mistake, so the driver
    never retries it.
    """

    def __init__(self, function_name: str, state_type: str):
        super().__init__(
            f"Function {function_name!r} is not declared on {state_type}"
        )
        self.function_name = function_name
        self.state_type = state_type


class RecoverableError(AiFunctionsError):
    """Raised by a handler to send an error back to the model and retry."""

    pass


class UnrecoverableError(AiFunctionsError):
    """Raised by a handler to abort the whole drive."""

    pass
