"""Decorator for declaring model-callable functions on an agent state.

Provides the ``@ai_function`` decorator, which turns a handler method into a
callable function with a generated parameter schema and a tolerant argument
decoder, both derived from the method signature and docstring.
"""

import inspect
import json
import re
from dataclasses import dataclass
from functools import cached_property
from typing import Any, Callable, Dict, List, Optional, Type, get_type_hints

from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model
from pydantic.alias_generators import to_camel, to_pascal, to_snake

from aifunctions.errors import FunctionDeclarationError, RecoverableError
from aifunctions.types import FunctionDescriptor
from aifunctions.utils.logger import get_logger

from .schema import clean_schema

logger = get_logger(__name__)

# Attribute under which the AiFunction metadata is stored on the handler
FUNCTION_ATTR = "__ai_function__"

_MODEL_CONFIG = ConfigDict(protected_namespaces=(), extra="ignore")


@dataclass(frozen=True)
class Parameter:
    """One declared argument of a callable function."""

    name: str
    annotation: Any
    default: Any = inspect.Parameter.empty

    @property
    def required(self) -> bool:
        return self.default is inspect.Parameter.empty


def _parse_docstring(docstring: str) -> Dict[str, Any]:
    """Parse docstring to extract description and argument descriptions.

    Supports Google-style docstrings:
        '''Short description.

        Longer description if needed.

        Args:
            param1: Description of param1
            param2: Description of param2

        Returns:
            Description of return value
        '''
    """
    if not docstring:
        return {"description": "", "args": {}}

    description_lines = []
    arg_descriptions: Dict[str, str] = {}
    current_section = "description"
    current_arg = None
    current_arg_desc_lines: list = []

    def flush_arg():
        if current_arg and current_arg_desc_lines:
            arg_descriptions[current_arg] = " ".join(current_arg_desc_lines).strip()

    for line in inspect.cleandoc(docstring).split("\n"):
        stripped = line.strip()
        header = stripped.lower()

        if header in ("args:", "arguments:", "parameters:"):
            current_section = "args"
            continue
        if header in ("returns:", "return:", "yields:", "raises:", "examples:", "example:"):
            flush_arg()
            current_arg = None
            current_section = "other"
            continue

        if current_section == "description":
            description_lines.append(stripped)
        elif current_section == "args":
            arg_match = re.match(r"^(\w+)\s*(?:\([^)]*\))?\s*:\s*(.*)$", stripped)
            if arg_match:
                flush_arg()
                current_arg = arg_match.group(1)
                current_arg_desc_lines = [arg_match.group(2)] if arg_match.group(2) else []
            elif current_arg and stripped:
                current_arg_desc_lines.append(stripped)

    flush_arg()

    description = re.sub(r"\s+", " ", " ".join(description_lines)).strip()
    return {"description": description, "args": arg_descriptions}


def _collect_parameters(func: Callable) -> List[Parameter]:
    """Read the declared arguments of a handler, skipping ``self``."""
    params = list(inspect.signature(func).parameters.values())
    if params and params[0].name in ("self", "cls"):
        params = params[1:]

    collected = []
    for param in params:
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            raise FunctionDeclarationError(
                f"{func.__name__}: *args and **kwargs cannot be described to the model"
            )
        if param.kind is inspect.Parameter.POSITIONAL_ONLY:
            raise FunctionDeclarationError(
                f"{func.__name__}: parameter {param.name!r} is positional-only; "
                "arguments are passed by name"
            )
        collected.append(Parameter(param.name, param.annotation, param.default))
    return collected


def case_aliases(name: str) -> List[str]:
    """Return the spellings accepted for an argument name.

    The name itself first, then its snake_case, camelCase and PascalCase forms,
    without duplicates.
    """
    variants = [name, to_snake(name), to_camel(name), to_pascal(name)]
    return list(dict.fromkeys(variants))


class AiFunction:
    """Metadata and marshaling for one declared function."""

    def __init__(
        self,
        func: Callable,
        description: Optional[str] = None,
        arg_descriptions: Optional[Dict[str, str]] = None,
    ):
        self.func = func
        self.name = func.__name__

        parsed = _parse_docstring(func.__doc__ or "")
        self.description = description or parsed["description"] or self.name

        self.parameters = _collect_parameters(func)
        names = [p.name for p in self.parameters]

        explicit = dict(arg_descriptions or {})
        unknown = sorted(set(explicit) - set(names))
        if unknown:
            raise FunctionDeclarationError(
                f"Field(s) {', '.join(unknown)} do not exist in function {self.name}"
            )
        self.arg_descriptions = {
            k: v for k, v in parsed["args"].items() if k in names
        }
        self.arg_descriptions.update(explicit)

        self.aliases: Dict[str, str] = {}
        for param_name in names:
            for alias in case_aliases(param_name):
                owner = self.aliases.setdefault(alias, param_name)
                if owner != param_name:
                    raise FunctionDeclarationError(
                        f"{self.name}: parameters {owner!r} and {param_name!r} "
                        f"share the spelling {alias!r}"
                    )

    def _annotations(self) -> Dict[str, Any]:
        try:
            hints = get_type_hints(self.func, include_extras=True)
        except Exception as e:
            raise FunctionDeclarationError(
                f"Cannot resolve type hints of {self.name}: {e}"
            ) from e
        return {
            p.name: hints.get(p.name, str)
            for p in self.parameters
        }

    def _build_model(self, suffix: str, for_schema: bool) -> Type[BaseModel]:
        annotations = self._annotations()
        fields: Dict[str, Any] = {}
        for param in self.parameters:
            default = ... if param.required else param.default
            if for_schema:
                field = Field(
                    default,
                    alias=to_camel(param.name),
                    description=self.arg_descriptions.get(param.name),
                )
            else:
                field = Field(default)
            fields[param.name] = (annotations[param.name], field)
        return create_model(
            f"{to_pascal(self.name)}{suffix}", __config__=_MODEL_CONFIG, **fields
        )

    @cached_property
    def arguments_model(self) -> Type[BaseModel]:
        """Pydantic model validating decoded arguments, keyed by Python names."""
        return self._build_model("Arguments", for_schema=False)

    @cached_property
    def descriptor(self) -> FunctionDescriptor:
        """The advertised descriptor; built once and reused."""
        schema_model = self._build_model("Parameters", for_schema=True)
        schema = schema_model.model_json_schema(by_alias=True)
        return FunctionDescriptor(
            name=self.name,
            description=self.description,
            parameters=clean_schema(schema),
        )

    def resolve_aliases(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Map payload keys onto parameter names.

        Keys are scanned in payload order and the first spelling seen for a
        parameter wins; later spellings of the same parameter are ignored.
        Keys matching no parameter are dropped.
        """
        resolved: Dict[str, Any] = {}
        for key, value in payload.items():
            param_name = self.aliases.get(key)
            if param_name is None:
                continue
            if param_name in resolved:
                if resolved[param_name] != value:
                    logger.warning(
                        f"Conflicting values for {self.name}.{param_name}; "
                        f"keeping the first and ignoring key {key!r}"
                    )
                continue
            resolved[param_name] = value
        return resolved

    def decode_arguments(self, raw_arguments: str) -> Dict[str, Any]:
        """Decode the model's raw JSON arguments into typed keyword arguments.

        Raises:
            RecoverableError: The payload is not a JSON object or fails validation
        """
        try:
            payload = json.loads(raw_arguments) if raw_arguments.strip() else {}
        except json.JSONDecodeError as e:
            raise RecoverableError(
                f"Arguments for {self.name} are not valid JSON: {e}"
            ) from e

        if not isinstance(payload, dict):
            raise RecoverableError(
                f"Arguments for {self.name} must be a JSON object, "
                f"got {type(payload).__name__}"
            )

        try:
            parsed = self.arguments_model.model_validate(self.resolve_aliases(payload))
        except ValidationError as e:
            raise RecoverableError(f"Invalid arguments for {self.name}: {e}") from e

        return dict(parsed)

    async def ainvoke(self, state: Any, arguments: Dict[str, Any]) -> Any:
        """Call the handler on ``state``, awaiting it when it is async.

        The method is looked up on the state class, so a subclass override
        runs even when it is not decorated again.
        """
        handler = getattr(type(state), self.name, self.func)
        if inspect.iscoroutinefunction(handler):
            return await handler(state, **arguments)
        return handler(state, **arguments)

    def __repr__(self) -> str:
        return f"AiFunction(name={self.name!r}, parameters={[p.name for p in self.parameters]!r})"


def ai_function(
    func: Optional[Callable] = None,
    /,
    *,
    description: Optional[str] = None,
    **arg_descriptions: str,
) -> Callable:
    """Declare a state method as a function the model may call.

    Can be used with or without arguments:

        @ai_function
        def write_topic(self, topic: str) -> FunctionResult:
            '''Write a story topic.'''
            ...

        @ai_function(description="Write a story premise", notes="Scratch notes where you ideate")
        def write_premise(self, notes: List[str], premise: str) -> FunctionResult:
            ...

    Args:
        func: The method to declare (when used without parentheses)
        description: Function description; defaults to the docstring summary,
            then to the function name
        **arg_descriptions: Per-parameter descriptions, overriding docstring ``Args:``

    Returns:
        The method itself, carrying its :class:`AiFunction` metadata

    Raises:
        FunctionDeclarationError: A description names a parameter that does not exist
    """

    def decorator(f: Callable) -> Callable:
        setattr(
            f,
            FUNCTION_ATTR,
            AiFunction(f, description=description, arg_descriptions=arg_descriptions),
        )
        return f

    if func is not None:
        return decorator(func)
    return decorator
