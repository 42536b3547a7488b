"""Pure credit ledger operations.

Nothing here touches a store. The service layer reads a customer, calls
these functions, and persists the result.
"""

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any

from mill_credit.exceptions import (
    CreditInactiveError,
    InsufficientCreditError,
    ValidationError,
)
from mill_credit.models.base import to_decimal, to_money
from mill_credit.models.credit import (
    BalanceDirection,
    CreditInfo,
    CreditStatus,
    Customer,
    CustomerStatus,
    calculate_available_credit,
    parse_enum,
)

ZERO = Decimal("0")

__all__ = [
    "CreditDecision",
    "CreditPreview",
    "apply_balance_delta",
    "calculate_available_credit",
    "check_credit",
    "format_customer_number",
    "preview_credit",
    "validate_amount",
]


@dataclass(frozen=True)
class CreditDecision:
    """Outcome of an approved credit check."""

    approved: bool
    requested_amount: Decimal
    available_credit: Decimal
    remaining_credit: Decimal


@dataclass(frozen=True)
class CreditPreview:
    """Non-authoritative availability figures for a cart being built."""

    available_credit: Decimal
    cart_total: Decimal
    remaining_after: Decimal
    within_limit: bool


def validate_amount(amount: Any, field_name: str = "amount") -> Decimal:
    """Return ``amount`` as a positive ``Decimal`` or raise ``ValidationError``."""
    value = to_money(amount, field_name)
    if value <= 0:
        raise ValidationError(f"{field_name} must be greater than zero, got {value}")
    return value


def check_credit(customer: Customer, amount: Any) -> CreditDecision:
    """Gate a prospective credit charge against a customer's credit record.

    Parameters
    ----------
    customer : Customer
        Customer as currently stored.
    amount : Any
        Proposed transaction amount, must be positive.

    Returns
    -------
    CreditDecision
        Approved decision with the figures it was based on.

    Raises
    ------
    ValidationError
        If the amount is not a positive number.
    CreditInactiveError
        If the account or its credit line is not Active.
    InsufficientCreditError
        If the amount exceeds the available credit.
    """
    requested = validate_amount(amount)
    if customer.status != CustomerStatus.ACTIVE:
        raise CreditInactiveError(
            f"Customer {customer.customer_id} account is {customer.status.value}"
        )
    credit = customer.credit
    if credit.credit_status != CreditStatus.ACTIVE:
        raise CreditInactiveError(
            f"Customer {customer.customer_id} credit is {credit.credit_status.value}"
        )
    available = credit.available_credit
    if available < requested:
        raise InsufficientCreditError(available_credit=available, requested_amount=requested)
    return CreditDecision(
        approved=True,
        requested_amount=requested,
        available_credit=available,
        remaining_credit=available - requested,
    )


def apply_balance_delta(
    credit: CreditInfo,
    amount: Any,
    direction: BalanceDirection | str,
) -> tuple[CreditInfo, Decimal]:
    """Apply a debit or credit to the owed balance.

    A debit adds the full amount. A credit lowers the balance but never
    below zero; any excess is dropped.

    Returns
    -------
    tuple[CreditInfo, Decimal]
        The new credit record and the amount actually applied.
    """
    value = validate_amount(amount)
    direction = parse_enum(BalanceDirection, direction, "direction")

    if direction == BalanceDirection.DEBIT:
        new_balance = credit.current_balance + value
    else:
        new_balance = max(ZERO, credit.current_balance - value)

    applied = abs(new_balance - credit.current_balance)
    return replace(credit, current_balance=new_balance), applied


def preview_credit(credit: CreditInfo, cart_total: Any) -> CreditPreview:
    """Live availability figures for a sale form.

    Mirrors the gate's arithmetic but ignores statuses and never raises
    for an over-limit cart. The service re-checks against the stored
    record before anything is charged.
    """
    total = to_decimal(cart_total, "cart_total")
    available = credit.available_credit
    return CreditPreview(
        available_credit=available,
        cart_total=total,
        remaining_after=available - total,
        within_limit=total <= available,
    )


def format_customer_number(sequence: int, prefix: str = "CUST", width: int = 6) -> str:
    """Format a sequence value as a customer number, e.g. ``CUST-000042``."""
    if sequence < 1:
        raise ValidationError(f"Customer sequence must start at 1, got {sequence}")
    return f"{prefix}-{sequence:0{width}d}"
