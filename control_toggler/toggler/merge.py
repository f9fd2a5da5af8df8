"""
Value Merge Policy

Decides the authoritative control value from the latest reading and the
latest command, and compares control values across bool/number/string
representations.
"""

from typing import Any

from .state import Command, CommandState, ControlReading


def coerce_number(value: Any) -> float | None:
    """
    Coerce a control value to a number for comparison.

    bool -> 1.0/0.0, numbers as-is, numeric strings parsed (blank -> 0.0).
    Returns None for values with no numeric meaning.
    """
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        if "_" in text:
            return None
        try:
            return float(text)
        except ValueError:
            return None
    return None


def values_equal(a: Any, b: Any) -> bool:
    """
    Loose equality between control values.

    None only equals None. Two strings compare as strings; any other pair
    compares numerically, so 1 == "1" == True but "1" != "1.0".
    """
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    x = coerce_number(a)
    y = coerce_number(b)
    return x is not None and y is not None and x == y


def merge_value(reading: ControlReading | None, command: Command | None) -> Any:
    """
    Return the reading value or the command's requested value, whichever is newer.

    A missing or declined command defers to the reading. On equal timestamps
    the command wins.
    """
    if command is None or command.state is CommandState.DECLINED:
        return reading.value if reading is not None else None
    if reading is None:
        return command.value
    if reading.created_at is None:
        return command.value
    if command.created_at is None:
        return reading.value
    if reading.created_at > command.created_at:
        return reading.value
    return command.value
