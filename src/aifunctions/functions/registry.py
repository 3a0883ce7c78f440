"""Function registry for agent states.

Collects the ``@ai_function`` declarations of a state class once, serves their
descriptors by name, and dispatches model invocations to the handlers.
"""

from typing import Any, Dict, List, Optional, Union

from aifunctions.errors import RecoverableError, UnrecoverableError
from aifunctions.outcomes import Done, Prompt, Recoverable, Unrecoverable
from aifunctions.types import FunctionDescriptor
from aifunctions.utils.logger import get_logger

from .decorator import FUNCTION_ATTR, AiFunction

logger = get_logger(__name__)

DispatchResult = Union[Done, Prompt, Recoverable, Unrecoverable]


class FunctionRegistry:
    """Registry of the callable functions declared on one state class.

    The registry provides:
    - Descriptor lookup by function name
    - Argument decoding tolerant of snake_case, camelCase and PascalCase keys
    - Handler dispatch returning the next outcome or an error kind
    """

    _by_state_type: Dict[type, "FunctionRegistry"] = {}

    def __init__(self, state_type: Optional[type] = None):
        self.state_type = state_type
        self._functions: Dict[str, AiFunction] = {}

    @classmethod
    def for_state(cls, state_type: type) -> "FunctionRegistry":
        """Return the registry for ``state_type``, building it on first use."""
        registry = cls._by_state_type.get(state_type)
        if registry is None:
            registry = cls(state_type)
            # Base classes first so that overrides in subclasses win
            for klass in reversed(state_type.__mro__):
                for attr in vars(klass).values():
                    function = getattr(attr, FUNCTION_ATTR, None)
                    if isinstance(function, AiFunction):
                        registry.register(function)
            cls._by_state_type[state_type] = registry
        return registry

    def register(self, function: AiFunction) -> AiFunction:
        if function.name in self._functions:
            logger.debug(f"Overriding function: {function.name}")
        self._functions[function.name] = function
        logger.debug(f"Registered function: {function.name}")
        return function

    def get(self, name: str) -> Optional[AiFunction]:
        return self._functions.get(name)

    def descriptor_for(self, name: str) -> Optional[FunctionDescriptor]:
        """Get the descriptor advertised for ``name``, or None if not declared."""
        function = self._functions.get(name)
        return function.descriptor if function else None

    def list_function_names(self) -> List[str]:
        return sorted(self._functions)

    async def dispatch(
        self, state: Any, name: str, raw_arguments: str
    ) -> DispatchResult:
        """Decode ``raw_arguments`` and invoke the handler for ``name`` on ``state``.

        Args:
            state: The agent state the handler is bound to
            name: Function name chosen by the model
            raw_arguments: Argument payload as returned by the model (JSON text)

        Returns:
            The handler's outcome, or a Recoverable/Unrecoverable error. Unknown
            names and undecodable arguments come back as Recoverable so the model
            can correct itself.

        Raises:
            TypeError: The handler returned something other than an outcome or error
        """
        function = self._functions.get(name)
        if function is None:
            logger.warning(f"Model called unknown function: {name}")
            return Recoverable(f"function {name} not found")

        try:
            arguments = function.decode_arguments(raw_arguments)
        except RecoverableError as e:
            logger.info(f"Rejected arguments for {name}: {e}")
            return Recoverable(str(e))

        logger.debug(f"Dispatching {name}", arguments=list(arguments))
        try:
            result = await function.ainvoke(state, arguments)
        except RecoverableError as e:
            return Recoverable(str(e))
        except UnrecoverableError as e:
            return Unrecoverable(str(e))

        if not isinstance(result, (Done, Prompt, Recoverable, Unrecoverable)):
            raise TypeError(
                f"Handler {name} returned {type(result).__name__}; expected "
                "Done, Prompt, Recoverable or Unrecoverable"
            )
        return result

    def __len__(self) -> int:
        return len(self._functions)

    def __contains__(self, name: str) -> bool:
        return name in self._functions

    def __repr__(self) -> str:
        state = self.state_type.__name__ if self.state_type else None
        return f"FunctionRegistry(state={state!r}, functions={self.list_function_names()})"
