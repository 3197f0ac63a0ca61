"""Runtime value model for TSL.

Values are plain immutable Python objects:

- NULL: None
- BOOL: bool
- NUMBER: float (IEEE-754 double, ints are normalised)
- STRING: str
- DATETIME: timezone-aware datetime
- LIST: tuple of values
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Union

from tsl.errors import EvalErrorKind, EvaluationError

Value = Union[None, bool, float, str, datetime, tuple]


class ValueKind(Enum):
    """Tag for the runtime value variants."""

    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    DATETIME = "datetime"
    LIST = "list"


DATE_PATTERN = re.compile(r"(\d{4})-(\d{2})-(\d{2})")

RFC3339_PATTERN = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(\.\d+)?"
    r"([Zz]|[+-]\d{2}:\d{2})"
)


def kind_of(value: Any) -> ValueKind:
    """Return the kind of a runtime value.

    Raises:
        TypeError: If the object is not a runtime value
    """
    if value is None:
        return ValueKind.NULL
    # bool is a subclass of int, check it first
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, datetime):
        return ValueKind.DATETIME
    if isinstance(value, tuple):
        return ValueKind.LIST
    raise TypeError(f"Not a TSL value: {type(value).__name__}")


def type_name(value: Any) -> str:
    """User-facing type name for error messages."""
    try:
        return kind_of(value).value
    except TypeError:
        return type(value).__name__


def to_value(obj: Any) -> Value:
    """Convert host data into a runtime value.

    Raises:
        EvaluationError: If the object has no TSL representation
    """
    if obj is None or isinstance(obj, (bool, str)):
        return obj
    if isinstance(obj, (int, float, Decimal)):
        try:
            return float(obj)
        except OverflowError:
            raise EvaluationError(
                EvalErrorKind.TYPE_MISMATCH,
                "Number is too large for a TSL number",
            ) from None
    if isinstance(obj, datetime):
        if obj.tzinfo is None:
            return obj.replace(tzinfo=timezone.utc)
        return obj
    if isinstance(obj, date):
        return datetime.combine(obj, time(), tzinfo=timezone.utc)
    if isinstance(obj, (list, tuple)):
        return tuple(to_value(item) for item in obj)
    if isinstance(obj, (set, frozenset)):
        return tuple(to_value(item) for item in sorted(obj, key=repr))
    raise EvaluationError(
        EvalErrorKind.TYPE_MISMATCH,
        f"Cannot use {type(obj).__name__} as a TSL value",
    )


def from_value(value: Value) -> Any:
    """Convert a runtime value into JSON/YAML friendly data."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, datetime):
        if value.utcoffset() == timedelta(0):
            return value.strftime("%Y-%m-%dT%H:%M:%S") + _fraction(value) + "Z"
        return value.isoformat()
    if isinstance(value, tuple):
        return [from_value(item) for item in value]
    return value


def _fraction(value: datetime) -> str:
    if not value.microsecond:
        return ""
    return f".{value.microsecond:06d}".rstrip("0")


def parse_datetime(text: str) -> datetime | None:
    """Parse a bare date or an RFC3339 timestamp.

    Returns:
        An aware datetime, or None if the text is not date-shaped

    Raises:
        ValueError: If the text is date-shaped but a field is out of range
    """
    match = RFC3339_PATTERN.fullmatch(text)
    if match:
        year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
        fraction = match.group(7)
        microsecond = int(fraction[1:7].ljust(6, "0")) if fraction else 0
        zone = match.group(8)
        if zone in ("Z", "z"):
            tz = timezone.utc
        else:
            sign = 1 if zone[0] == "+" else -1
            hours, minutes = int(zone[1:3]), int(zone[4:6])
            if hours > 23 or minutes > 59:
                raise ValueError(f"Invalid UTC offset '{zone}'")
            tz = timezone(sign * timedelta(hours=hours, minutes=minutes))
        return datetime(year, month, day, hour, minute, second, microsecond, tzinfo=tz)

    match = DATE_PATTERN.fullmatch(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return datetime(year, month, day, tzinfo=timezone.utc)

    return None
