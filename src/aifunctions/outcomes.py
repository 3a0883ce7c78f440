"""Outcomes returned by initial rules and function handlers.

An outcome is either terminal (:class:`Done`) or the next request to issue
(:class:`Prompt`). Handler failures are reported with the separate
:class:`Recoverable` and :class:`Unrecoverable` values.
"""

from dataclasses import dataclass
from typing import Any, Sequence, Tuple, Union


@dataclass(frozen=True)
class Done:
    """Terminal outcome: the drive ends successfully."""


@dataclass(frozen=True)
class Prompt:
    """Non-terminal outcome: send ``text`` and let the model call one of ``functions``."""

    text: str
    functions: Tuple[str, ...]
    temperature: float = 0.0

    def __post_init__(self):
        if isinstance(self.functions, str):
            raise TypeError("functions must be a sequence of names, not a string")
        object.__setattr__(self, "functions", tuple(self.functions))
        if not self.functions:
            raise ValueError("Prompt requires at least one allowed function")


@dataclass(frozen=True)
class Recoverable:
    """Error shown back to the model; consumes one attempt of the turn."""

    message: str


@dataclass(frozen=True)
class Unrecoverable:
    """Error that ends the drive immediately."""

    message: str


Outcome = Union[Done, Prompt]
FunctionError = Union[Recoverable, Unrecoverable]
FunctionResult = Union[Done, Prompt, Recoverable, Unrecoverable]


def done() -> Done:
    return Done()


def prompt(
    template: str,
    functions: Sequence[str],
    temperature: float = 0.0,
    **values: Any,
) -> Prompt:
    """Build a :class:`Prompt`, formatting ``template`` with explicit named values.

    Args:
        template: Prompt text; ``{name}`` fields are filled from ``values``
        functions: Names of the functions the model may call
        temperature: Sampling temperature for the request
        **values: Values substituted into the template

    Example:
        prompt("Write a paragraph about {topic}", ["write_paragraph"], 0.5, topic=self.topic)
    """
    text = template.format(**values) if values else template
    return Prompt(text=text, functions=tuple(functions), temperature=temperature)


def recoverable_err(message: Any) -> Recoverable:
    return Recoverable(str(message))


def unrecoverable_err(message: Any) -> Unrecoverable:
    return Unrecoverable(str(message))
