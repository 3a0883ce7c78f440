"""Base class for agent states driven by the engine."""

from abc import ABC, abstractmethod
from typing import Optional

from aifunctions.functions.registry import DispatchResult, FunctionRegistry
from aifunctions.outcomes import Outcome
from aifunctions.types import FunctionDescriptor


class AgentState(ABC):
    """Application state plus the callable functions the model may invoke.

    Subclasses implement :meth:`initial` and declare handlers with
    ``@ai_function``. The driver owns the state for the duration of a drive
    and only mutates it through dispatched handlers.
    """

    @abstractmethod
    def initial(self) -> Outcome:
        """Produce the first outcome of the drive."""
        pass

    @classmethod
    def function_registry(cls) -> FunctionRegistry:
        return FunctionRegistry.for_state(cls)

    @classmethod
    def descriptor_for(cls, name: str) -> Optional[FunctionDescriptor]:
        return cls.function_registry().descriptor_for(name)

    async def dispatch(self, name: str, raw_arguments: str) -> DispatchResult:
        return await self.function_registry().dispatch(self, name, raw_arguments)
