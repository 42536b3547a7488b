"""Ledger entry model for customer balance movements."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from mill_credit.models.credit.enums import BalanceDirection, EntryReason


@dataclass(frozen=True)
class LedgerEntry:
    """One applied change to a customer's owed balance.

    ``applied_amount`` is what actually moved the balance. It is smaller
    than ``amount`` only when a credit was floored at a zero balance.
    """

    entry_id: str
    customer_id: str
    direction: BalanceDirection
    amount: Decimal
    applied_amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    reason: EntryReason
    created_at: datetime
    reference: str = ""

    @property
    def unapplied_amount(self) -> Decimal:
        return self.amount - self.applied_amount
