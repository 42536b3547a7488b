"""Credit ledger service: the authoritative path for every balance change."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable
from uuid import uuid4

from mill_credit.exceptions import ConcurrentUpdateError, ValidationError
from mill_credit.ledger import (
    CreditDecision,
    apply_balance_delta,
    check_credit,
    validate_amount,
)
from mill_credit.models.base import Address, to_money
from mill_credit.models.credit import (
    BalanceDirection,
    CreditInfo,
    CreditStatus,
    Customer,
    CustomerStatus,
    EntryReason,
    LedgerEntry,
    parse_enum,
)
from mill_credit.store.base import (
    DETAIL_FIELDS,
    BaseCustomerStore,
    CreditOverview,
    CustomerPage,
    CustomerTypeSummary,
)

logger = logging.getLogger(__name__)

MIN_SALES_SEARCH_LENGTH = 2


class CreditLedgerService:
    """Customer registration, credit checks and balance movements.

    Every credit change follows read, validate, conditional write. When
    the store reports that the customer was written in between, the whole
    cycle runs again against the fresh record, up to ``max_retries`` times.

    Parameters
    ----------
    store : BaseCustomerStore
        Customer record store.
    sink : Any | None
        Optional sink with ``send(topic, record)``; receives every applied
        ledger entry.
    max_retries : int
        Compare-and-swap attempts per balance change.
    ledger_topic : str
        Topic/entity name passed to the sink.
    """

    def __init__(
        self,
        store: BaseCustomerStore,
        sink: Any | None = None,
        max_retries: int = 3,
        ledger_topic: str = "mill.credit-ledger",
    ) -> None:
        if max_retries < 1:
            raise ValidationError(f"max_retries must be at least 1, got {max_retries}")
        self.store = store
        self.sink = sink
        self.max_retries = max_retries
        self.ledger_topic = ledger_topic

    # Customer records
    def register_customer(self, customer: Customer) -> Customer:
        """Store a new customer and assign its customer number."""
        stored = self.store.add_customer(customer)
        logger.info(
            "Customer registered: %s (%s) limit=%s",
            stored.customer_number,
            stored.full_name,
            stored.credit.credit_limit,
        )
        return stored

    def get_customer(self, customer_id: str) -> Customer:
        return self.store.get_customer(customer_id)

    def get_credit_info(self, customer_id: str) -> CreditInfo:
        return self.store.get_customer(customer_id).credit

    def update_status(self, customer_id: str, status: CustomerStatus | str) -> Customer:
        """Set the overall account status (Active/Inactive/Suspended)."""
        status = parse_enum(CustomerStatus, status, "status")
        customer = self.store.update_status(customer_id, status)
        logger.info("Customer %s status set to %s", customer_id, status.value)
        return customer

    def update_customer(self, customer_id: str, **changes: Any) -> Customer:
        """Edit contact and business details.

        Only the fields in ``DETAIL_FIELDS`` can be changed here; credit
        goes through ``update_credit_limit`` and status through
        ``update_status``. ``address`` may be an ``Address`` or a dict of
        its fields.

        Raises
        ------
        ValidationError
            If a field is not editable or a new value is invalid.
        DuplicateCustomerError
            If the email or national id belongs to another customer.
        """
        unknown = sorted(set(changes) - set(DETAIL_FIELDS))
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(unknown)}")
        if isinstance(changes.get("address"), dict):
            try:
                changes["address"] = Address(**changes["address"])
            except TypeError as e:
                raise ValidationError(f"Invalid address: {e}") from e
        if "address" in changes and not isinstance(changes["address"], Address):
            raise ValidationError(f"address must be an Address, got {changes['address']!r}")

        # replace() re-runs the model validation
        edited = replace(self.store.get_customer(customer_id), **changes)
        customer = self.store.update_details(edited)
        logger.info("Customer %s updated: %s", customer_id, ", ".join(sorted(changes)))
        return customer

    def deactivate_customer(self, customer_id: str) -> Customer:
        """Soft delete: customers are never removed, only made Inactive."""
        return self.update_status(customer_id, CustomerStatus.INACTIVE)

    def search_customers(
        self,
        search: str | None = None,
        status: CustomerStatus | str | None = None,
        credit_status: CreditStatus | str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> CustomerPage:
        if limit < 1:
            raise ValidationError(f"limit must be at least 1, got {limit}")
        return self.store.search_customers(
            search=search,
            status=parse_enum(CustomerStatus, status, "status") if status else None,
            credit_status=(
                parse_enum(CreditStatus, credit_status, "credit_status")
                if credit_status
                else None
            ),
            page=page,
            limit=limit,
        )

    def search_for_sales(self, term: str | None, limit: int = 10) -> list[Customer]:
        """Customer picker for the sale form: Active customers only."""
        if not term or len(term.strip()) < MIN_SALES_SEARCH_LENGTH:
            return []
        return self.search_customers(
            search=term, status=CustomerStatus.ACTIVE, limit=limit
        ).customers

    def credit_overview(self) -> CreditOverview:
        return self.store.credit_overview()

    def top_customers(self, limit: int = 10) -> list[Customer]:
        """Active customers ranked by total spend."""
        if limit < 1:
            raise ValidationError(f"limit must be at least 1, got {limit}")
        return self.store.top_customers(limit)

    def customers_by_type(self) -> list[CustomerTypeSummary]:
        return self.store.customers_by_type()

    def ledger_history(self, customer_id: str) -> list[LedgerEntry]:
        """Balance movements for a customer, oldest first."""
        self.store.get_customer(customer_id)
        return self.store.get_ledger_entries(customer_id)

    # Credit gate
    def check_credit(self, customer_id: str, amount: Any) -> CreditDecision:
        """Read-only availability check against the stored record.

        Raises
        ------
        CustomerNotFoundError
            If the id does not resolve.
        CreditInactiveError
            If the account or its credit line is not Active.
        InsufficientCreditError
            If the amount exceeds the available credit.
        """
        customer = self.store.get_customer(customer_id)
        return check_credit(customer, amount)

    def update_credit_limit(
        self,
        customer_id: str,
        credit_limit: Any,
        credit_status: CreditStatus | str | None = None,
        credit_terms: int | None = None,
    ) -> Customer:
        """Change the limit, and optionally the credit status and terms."""
        limit = to_money(credit_limit, "credit_limit")
        if limit < 0:
            raise ValidationError(f"credit_limit cannot be negative, got {limit}")
        status = (
            parse_enum(CreditStatus, credit_status, "credit_status")
            if credit_status is not None
            else None
        )

        def change(customer: Customer) -> tuple[CreditInfo, None]:
            credit = customer.credit
            return (
                CreditInfo(
                    credit_limit=limit,
                    current_balance=credit.current_balance,
                    credit_terms=credit.credit_terms if credit_terms is None else credit_terms,
                    credit_status=status or credit.credit_status,
                ),
                None,
            )

        customer, _ = self._compare_and_swap(customer_id, change)
        logger.info(
            "Customer %s credit limit set to %s (%s)",
            customer_id,
            customer.credit.credit_limit,
            customer.credit.credit_status.value,
        )
        return customer

    # Balance movements
    def update_credit_balance(
        self,
        customer_id: str,
        amount: Any,
        direction: BalanceDirection | str,
        reason: EntryReason | str = EntryReason.ADJUSTMENT,
        reference: str = "",
    ) -> LedgerEntry:
        """Apply a debit or credit without gating it.

        Debits here can push the balance past the limit; gated sales go
        through ``record_sale``.
        """
        value = validate_amount(amount)
        direction = parse_enum(BalanceDirection, direction, "direction")
        reason = parse_enum(EntryReason, reason, "reason")

        def change(customer: Customer) -> tuple[CreditInfo, LedgerEntry]:
            return self._movement(customer, value, direction, reason, reference)

        return self._apply(customer_id, change)

    def record_payment(self, customer_id: str, amount: Any, reference: str = "") -> LedgerEntry:
        """Payment received: lowers the owed balance, floored at zero."""
        return self.update_credit_balance(
            customer_id, amount, BalanceDirection.CREDIT, EntryReason.PAYMENT, reference
        )

    def record_return(self, customer_id: str, amount: Any, reference: str = "") -> LedgerEntry:
        """Goods returned: lowers the owed balance, floored at zero."""
        return self.update_credit_balance(
            customer_id, amount, BalanceDirection.CREDIT, EntryReason.RETURN, reference
        )

    def record_sale(
        self,
        customer_id: str,
        amount: Any,
        on_credit: bool,
        reference: str = "",
    ) -> LedgerEntry | None:
        """Record a sale for a customer.

        A credit sale passes the credit gate and is debited in the same
        compare-and-swap cycle, so two concurrent sales cannot both spend
        the same headroom. Cash sales only touch the sales summary.

        Returns
        -------
        LedgerEntry | None
            The debit entry for a credit sale, ``None`` for a cash sale.
        """
        value = validate_amount(amount)
        entry: LedgerEntry | None = None

        if on_credit:

            def change(customer: Customer) -> tuple[CreditInfo, LedgerEntry]:
                check_credit(customer, value)
                return self._movement(
                    customer, value, BalanceDirection.DEBIT, EntryReason.SALE, reference
                )

            entry = self._apply(customer_id, change)

        self.store.record_sale_summary(customer_id, value, datetime.now())
        logger.info(
            "Sale recorded for %s: amount=%s on_credit=%s", customer_id, value, on_credit
        )
        return entry

    def _movement(
        self,
        customer: Customer,
        amount: Decimal,
        direction: BalanceDirection,
        reason: EntryReason,
        reference: str,
    ) -> tuple[CreditInfo, LedgerEntry]:
        credit, applied = apply_balance_delta(customer.credit, amount, direction)
        entry = LedgerEntry(
            entry_id=str(uuid4()),
            customer_id=customer.customer_id,
            direction=direction,
            amount=amount,
            applied_amount=applied,
            balance_before=customer.credit.current_balance,
            balance_after=credit.current_balance,
            reason=reason,
            reference=reference,
            created_at=datetime.now(),
        )
        if entry.unapplied_amount > 0:
            logger.warning(
                "Customer %s overpaid by %s; balance floored at zero",
                customer.customer_id,
                entry.unapplied_amount,
            )
        return credit, entry

    def _apply(
        self,
        customer_id: str,
        change: Callable[[Customer], tuple[CreditInfo, LedgerEntry]],
    ) -> LedgerEntry:
        _, entry = self._compare_and_swap(customer_id, change)
        logger.info(
            "Ledger %s %s for %s: %s -> %s",
            entry.direction.value,
            entry.applied_amount,
            customer_id,
            entry.balance_before,
            entry.balance_after,
            extra={
                "customer_id": customer_id,
                "entry_id": entry.entry_id,
                "direction": entry.direction.value,
                "amount": entry.amount,
                "applied_amount": entry.applied_amount,
                "balance_after": entry.balance_after,
            },
        )
        if self.sink is not None:
            self.sink.send(self.ledger_topic, entry)
        return entry

    def _compare_and_swap(
        self,
        customer_id: str,
        change: Callable[[Customer], tuple[CreditInfo, LedgerEntry | None]],
    ) -> tuple[Customer, LedgerEntry | None]:
        """Read, compute, write-if-unchanged; retry on conflicts."""
        attempt = 0
        while True:
            attempt += 1
            customer = self.store.get_customer(customer_id)
            credit, entry = change(customer)
            try:
                updated = self.store.update_credit(
                    customer_id,
                    credit,
                    expected_version=customer.version,
                    entry=entry,
                )
                return updated, entry
            except ConcurrentUpdateError:
                if attempt == self.max_retries:
                    raise
                logger.debug(
                    "Customer %s changed during update, retrying (%d/%d)",
                    customer_id,
                    attempt,
                    self.max_retries,
                )
