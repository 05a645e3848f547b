"""
Field coercion for loosely-typed source records.

Source files omit fields or send null freely; each helper maps a raw value
to the column's type with a fixed default.
"""
import re
from typing import Any, Optional, Union

from .errors import RecordSchemaError

Number = Union[int, float]

# Characters that force quoting inside a PostgreSQL array literal
_ARRAY_SPECIAL = re.compile(r'[{},"\\\s]')


def text(value: Any) -> str:
    """Text column: null, missing, empty or false becomes ''."""
    if value is None or value is False or value == "":
        return ""
    return value if isinstance(value, str) else str(value)


def number(value: Any, field: str = "") -> Number:
    """
    Numeric column: null or missing becomes 0.

    Numeric strings are parsed; anything else raises RecordSchemaError.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if stripped == "":
            return 0
        try:
            return int(stripped)
        except ValueError:
            pass
        try:
            return float(stripped)
        except ValueError:
            pass
    raise RecordSchemaError(
        f"Field '{field}' is not numeric: {value!r}",
        {"field": field, "value": value},
    )


def timestamp(value: Any) -> Optional[str]:
    """Timestamp column: null, missing or empty becomes NULL."""
    if value is None or value is False or value == "":
        return None
    return value if isinstance(value, str) else str(value)


def _array_element(value: Any) -> str:
    if value is None:
        return "NULL"
    element = value if isinstance(value, str) else str(value)
    if element == "" or element.upper() == "NULL" or _ARRAY_SPECIAL.search(element):
        escaped = element.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return element


def text_array(value: Any) -> str:
    """
    List-valued column as a PostgreSQL array literal.

        None / "" / []    -> {}
        "X1"              -> {X1}
        ["X1", "X2"]      -> {X1,X2}
    """
    if isinstance(value, (list, tuple)):
        return "{" + ",".join(_array_element(item) for item in value) + "}"
    if isinstance(value, str) and value:
        return "{" + _array_element(value) + "}"
    return "{}"
