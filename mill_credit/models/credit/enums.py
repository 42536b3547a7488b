"""Enumeration types for customer credit entities."""

from enum import Enum
from typing import TypeVar

from mill_credit.exceptions import ValidationError

E = TypeVar("E", bound=Enum)


class BusinessType(str, Enum):
    INDIVIDUAL = "Individual"
    RETAILER = "Retailer"
    WHOLESALER = "Wholesaler"
    RESTAURANT = "Restaurant"
    BAKERY = "Bakery"
    DISTRIBUTOR = "Distributor"
    OTHER = "Other"


class CustomerType(str, Enum):
    NEW = "New"
    REGULAR = "Regular"
    PREMIUM = "Premium"
    VIP = "VIP"


class CustomerStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    SUSPENDED = "Suspended"


class CreditStatus(str, Enum):
    ACTIVE = "Active"
    SUSPENDED = "Suspended"
    BLOCKED = "Blocked"


class PaymentTerms(str, Enum):
    CASH = "Cash"
    CREDIT = "Credit"
    NET_15 = "Net 15"
    NET_30 = "Net 30"
    NET_60 = "Net 60"
    COD = "COD"


class PaymentMethod(str, Enum):
    CASH = "Cash"
    BANK_TRANSFER = "Bank Transfer"
    CHEQUE = "Cheque"
    CREDIT_CARD = "Credit Card"
    MOBILE_PAYMENT = "Mobile Payment"
    OTHER = "Other"


class BalanceDirection(str, Enum):
    """Ledger sense: debit raises the amount owed, credit lowers it."""

    DEBIT = "debit"
    CREDIT = "credit"


class EntryReason(str, Enum):
    SALE = "Sale"
    PAYMENT = "Payment"
    RETURN = "Return"
    ADJUSTMENT = "Adjustment"


def parse_enum(enum_cls: type[E], value: object, field_name: str) -> E:
    """Resolve ``value`` to a member of ``enum_cls``.

    Accepts a member or its exact string value.

    Raises
    ------
    ValidationError
        If the value is outside the enumerated set.
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(str(m.value) for m in enum_cls)
        raise ValidationError(
            f"Invalid {field_name} {value!r}; must be one of: {allowed}"
        ) from None
