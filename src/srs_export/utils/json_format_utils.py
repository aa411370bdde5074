from __future__ import annotations


import math
import logging
from enum import Enum
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Sequence


import numpy as np


if TYPE_CHECKING:
    pass


logger = logging.getLogger(__name__)


DEFAULT_INDENT_SIZE = 2
DEFAULT_DECIMAL_PLACES = 4
NULL_LITERAL = "null"

# JSON short escapes for control characters; other C0 characters use \u00XX
_CONTROL_CHAR_ESCAPES: Dict[str, str] = {
    "\b": "\\b",
    "\f": "\\f",
    "\t": "\\t",
}


def indent(level: int, indent_size: int = DEFAULT_INDENT_SIZE) -> str:
    """Return the whitespace prefix for a nesting level."""
    return " " * (level * indent_size)


def escape_string(s: str) -> str:
    """
    Escape a string for use inside double quotes.

    Backslashes and double quotes are escaped, carriage returns are dropped and
    line feeds become the two-character sequence '\\n'.
    """
    escaped = s.replace("\\", "\\\\").replace("\"", "\\\"").replace("\r", "").replace("\n", "\\n")
    if not any(ord(c) < 0x20 for c in escaped):
        return escaped
    return "".join(
        _CONTROL_CHAR_ESCAPES.get(c, f"\\u{ord(c):04x}") if ord(c) < 0x20 else c
        for c in escaped
    )


def quote_key(key: str) -> str:
    """Return a property name as a quoted, escaped string."""
    return f"\"{escape_string(key)}\""


def _normalize_numpy_scalar(value: Any) -> Any:
    """Convert numpy scalars to their builtin equivalents."""
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    return value


def format_value(value: Any, quote_strings: bool = True, decimal_places: int = DEFAULT_DECIMAL_PLACES) -> str:
    """
    Render a scalar value as document text.

    Args:
        value: Scalar to render (str, bool, int, float, Decimal, numpy scalar, Enum or None).
        quote_strings: If False, strings are emitted verbatim (for pre-built fragments).
        decimal_places: Fixed number of digits after the decimal point for floats.

    Returns:
        The textual representation. Floats always use '.' as the decimal separator.
        NaN and infinities render as null.
    """
    value = _normalize_numpy_scalar(value)

    if value is None:
        return NULL_LITERAL
    if isinstance(value, Enum):
        return format_value(value.value, quote_strings, decimal_places)
    # bool before int; bool is an int subclass
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (float, Decimal)):
        if not math.isfinite(float(value)):
            logger.warning(f"Non-finite numeric value '{value}' rendered as {NULL_LITERAL}.")
            return NULL_LITERAL
        # str.format ignores the process locale
        return format(value, f".{decimal_places}f")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return f"\"{escape_string(value)}\"" if quote_strings else value
    return f"\"{escape_string(str(value))}\""


def render_array(
    items: Sequence[str],
    as_objects: bool,
    indent_level: int,
    indent_size: int = DEFAULT_INDENT_SIZE,
) -> str:
    """
    Render already-built fragments as an array.

    Args:
        items: Fragments in order. Object fragments must carry their own leading indentation.
        as_objects: Multi-line layout for object fragments, inline layout for scalars.
        indent_level: Nesting level of the array itself, used for the closing bracket.
        indent_size: Spaces per nesting level.

    Returns:
        The array text. An empty sequence is always '[]'.
    """
    if not items:
        return "[]"
    if as_objects:
        return "[\n" + ",\n".join(items) + "\n" + indent(indent_level, indent_size) + "]"
    return "[" + ", ".join(items) + "]"
