"""Base models shared across domains."""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from mill_credit.exceptions import ValidationError


@dataclass
class Address:
    """Postal address of a customer.

    Every field defaults to an empty string except ``country``.
    """

    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = "Pakistan"


def to_decimal(value: Any, field_name: str) -> Decimal:
    """Coerce a numeric input to ``Decimal``.

    Floats go through ``str`` so ``0.1`` stays ``Decimal("0.1")``.

    Raises
    ------
    ValidationError
        If the value is not numeric or not finite.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number, got {value!r}")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValidationError(f"{field_name} must be a number, got {value!r}") from e
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be finite, got {value!r}")
    return result


CENT = Decimal("0.01")


def to_money(value: Any, field_name: str) -> Decimal:
    """Coerce to ``Decimal`` and require whole cents.

    Stores keep two decimal places; finer amounts are rejected.

    Raises
    ------
    ValidationError
        If the value is not numeric or has more than two decimal places.
    """
    result = to_decimal(value, field_name)
    try:
        exact = result == result.quantize(CENT)
    except InvalidOperation as e:
        raise ValidationError(f"{field_name} is out of range, got {value!r}") from e
    if not exact:
        raise ValidationError(
            f"{field_name} cannot have more than 2 decimal places, got {value!r}"
        )
    return result
