from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import InvalidInputError


# Upper bound for prices, balances and stock counts; keeps values inside a
# 32-bit integer column and rejects nonsensical input
MAX_POINTS = 999_999_999


def parse_int(
    value: Any,
    field: str,
    *,
    minimum: int | None = None,
    maximum: int | None = MAX_POINTS,
) -> int:
    """
    Strict integer coercion for client input.

    Accepts ints and plain digit strings. Rejects bools, floats, decimals,
    and scientific notation so that "12.5" never silently becomes 12.
    """
    if value is None:
        raise InvalidInputError(f"{field} is required")

    if isinstance(value, bool):
        raise InvalidInputError(f"{field} must be an integer")

    if isinstance(value, int):
        result = value
    elif isinstance(value, float):
        # Spreadsheet readers hand back 3.0 for an integer cell
        if not value.is_integer():
            raise InvalidInputError(f"{field} must be an integer, not a decimal")
        result = int(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidInputError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise InvalidInputError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise InvalidInputError(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise InvalidInputError(f"{field} must be an integer")
    else:
        raise InvalidInputError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise InvalidInputError(f"{field} must be >= {minimum}")
    if maximum is not None and result > maximum:
        raise InvalidInputError(f"{field} cannot exceed {maximum}")
    return result


def parse_decimal(value: Any, field: str) -> Decimal:
    """Coerce a JSON number or numeric string to a finite Decimal."""
    if value is None or isinstance(value, bool):
        raise InvalidInputError(f"{field} must be a number")
    try:
        # str() first so that floats like 12.3 keep their printed value
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidInputError(f"{field} must be a number")
    if not result.is_finite():
        raise InvalidInputError(f"{field} must be a finite number")
    return result


def parse_text(value: Any, field: str, *, max_length: int | None = None, required: bool = True) -> str | None:
    if value is None:
        if required:
            raise InvalidInputError(f"{field} is required")
        return None
    text = str(value).strip()
    if not text:
        if required:
            raise InvalidInputError(f"{field} cannot be blank")
        return None
    if max_length and len(text) > max_length:
        raise InvalidInputError(f"{field} exceeds max length {max_length}")
    return text
