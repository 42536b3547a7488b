"""Customer record stores."""

from mill_credit.store.base import (
    DETAIL_FIELDS,
    BaseCustomerStore,
    CreditOverview,
    CustomerPage,
    CustomerTypeSummary,
)
from mill_credit.store.memory import InMemoryCustomerStore

__all__ = [
    "DETAIL_FIELDS",
    "BaseCustomerStore",
    "CreditOverview",
    "CustomerPage",
    "CustomerTypeSummary",
    "InMemoryCustomerStore",
]
