"""Customer credit domain models."""

from mill_credit.models.credit.customer import (
    CreditInfo,
    Customer,
    SalesSummary,
    calculate_available_credit,
)
from mill_credit.models.credit.entry import LedgerEntry
from mill_credit.models.credit.enums import (
    BalanceDirection,
    BusinessType,
    CreditStatus,
    CustomerStatus,
    CustomerType,
    EntryReason,
    PaymentMethod,
    PaymentTerms,
    parse_enum,
)

__all__ = [
    "BalanceDirection",
    "BusinessType",
    "CreditInfo",
    "CreditStatus",
    "Customer",
    "CustomerStatus",
    "CustomerType",
    "EntryReason",
    "LedgerEntry",
    "PaymentMethod",
    "PaymentTerms",
    "SalesSummary",
    "calculate_available_credit",
    "parse_enum",
]
