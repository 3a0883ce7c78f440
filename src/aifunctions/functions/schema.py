"""JSON-schema post-processing for advertised function parameters.

Pydantic emits presentation metadata the backend does not need. Every token in
the advertised schema is paid for on each request, so it is removed here.
"""

import copy
from typing import Any, Dict

# Keys dropped from every schema node
STRIPPED_KEYS = frozenset(
    {
        "$schema",
        "title",
        "format",
        "minimum",
        "maximum",
        "exclusiveMinimum",
        "exclusiveMaximum",
        "multipleOf",
    }
)

# Keys whose value maps names to subschemas; the names themselves are kept
_SCHEMA_MAPS = frozenset({"properties", "$defs", "definitions", "patternProperties"})


def _clean_node(node: Any) -> Any:
    if isinstance(node, list):
        return [_clean_node(item) for item in node]
    if not isinstance(node, dict):
        return node

    cleaned: Dict[str, Any] = {}
    for key, value in node.items():
        if key in STRIPPED_KEYS:
            continue
        if key in _SCHEMA_MAPS and isinstance(value, dict):
            cleaned[key] = {name: _clean_node(sub) for name, sub in value.items()}
        elif key in ("enum", "const", "default", "examples"):
            # Literal values, not schemas
            cleaned[key] = value
        else:
            cleaned[key] = _clean_node(value)

    enum_values = cleaned.get("enum")
    if isinstance(enum_values, list) and len(enum_values) == 1:
        cleaned["const"] = enum_values[0]
        del cleaned["enum"]

    return cleaned


def clean_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``schema`` without presentation-only metadata.

    Removes ``$schema``, ``title``, ``format`` and numeric constraints at every
    level, and turns single-value enums into ``const``. The input is not
    modified.
    """
    return _clean_node(copy.deepcopy(schema))
