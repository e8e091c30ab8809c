"""Numeric and enum guards shared by the engine and the write path."""

import math
from enum import Enum
from typing import Any, Optional, TypeVar

from clinicsplit.domain.errors import ValidationError

E = TypeVar("E", bound=Enum)


def is_finite_number(value: Any) -> bool:
    """Return True for int/float values that are finite (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def require_int(value: Any, field: str, minimum: int = 0) -> int:
    """Return value if it is an integer >= minimum.

    Raises:
        ValidationError: If value is not an integer or is below minimum
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(
            f"{field} must be an integer, got {value!r}", field=field
        )
    if value < minimum:
        qualifier = "positive" if minimum == 1 else f">= {minimum}"
        raise ValidationError(f"{field} must be {qualifier}, got {value}", field=field)
    return value


def require_non_negative_int(value: Any, field: str) -> int:
    return require_int(value, field, minimum=0)


def require_positive_int(value: Any, field: str) -> int:
    return require_int(value, field, minimum=1)


def require_percent(value: Any, field: str) -> Optional[float]:
    """Validate an optional percentage in [0, 100].

    Raises:
        ValidationError: If value is set but not a finite number in range
    """
    if value is None:
        return None
    if not is_finite_number(value):
        raise ValidationError(f"{field} must be a finite number, got {value!r}", field=field)
    if value < 0 or value > 100:
        raise ValidationError(f"{field} must be between 0 and 100, got {value}", field=field)
    return float(value)


def optional_percent(value: Any, field: str) -> Optional[float]:
    """Read a stored percentage: non-finite numbers count as absent.

    Raises:
        ValidationError: If value is neither None nor a number
    """
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number, got {value!r}", field=field)
    if not math.isfinite(value):
        return None
    return float(value)


def coerce_enum(enum_cls: type[E], value: Any, field: str) -> E:
    """Convert a raw value into a member of enum_cls.

    Raises:
        ValidationError: If value is not one of the enum's values
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"Invalid {field} '{value}'. Use one of: {allowed}", field=field
        )
