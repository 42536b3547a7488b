"""In-memory customer store with uniqueness and relationship tracking."""

from __future__ import annotations

import copy
import re
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal

from mill_credit.exceptions import (
    ConcurrentUpdateError,
    CustomerNotFoundError,
    DuplicateCustomerError,
)
from mill_credit.ledger import format_customer_number
from mill_credit.models.credit import (
    CreditInfo,
    CreditStatus,
    Customer,
    CustomerStatus,
    LedgerEntry,
    parse_enum,
)
from mill_credit.store.base import DETAIL_FIELDS, BaseCustomerStore, CustomerPage


@dataclass
class InMemoryCustomerStore(BaseCustomerStore):
    """Dict-backed store; every mutation runs under one lock."""

    number_prefix: str = "CUST"
    number_width: int = 6

    # Primary entities
    customers: dict[str, Customer] = field(default_factory=dict)
    entries: list[LedgerEntry] = field(default_factory=list)

    # Indexes
    _customer_entries: dict[str, list[int]] = field(default_factory=dict)
    _emails: dict[str, str] = field(default_factory=dict)
    _national_ids: dict[str, str] = field(default_factory=dict)
    _numbers: dict[str, str] = field(default_factory=dict)

    _sequence: int = 0
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def next_customer_number(self) -> str:
        """Allocate the next free customer number."""
        with self._lock:
            while True:
                self._sequence += 1
                number = format_customer_number(
                    self._sequence, self.number_prefix, self.number_width
                )
                if number not in self._numbers:
                    return number

    def add_customer(self, customer: Customer) -> Customer:
        """Add a customer to the store."""
        with self._lock:
            if customer.customer_id in self.customers:
                raise DuplicateCustomerError(f"Customer {customer.customer_id} already exists")
            if customer.email in self._emails:
                raise DuplicateCustomerError(f"Customer with email {customer.email} already exists")
            if customer.national_id and customer.national_id in self._national_ids:
                raise DuplicateCustomerError(
                    f"Customer with national id {customer.national_id} already exists"
                )

            stored = copy.deepcopy(customer)
            if stored.customer_number:
                if stored.customer_number in self._numbers:
                    raise DuplicateCustomerError(
                        f"Customer number {stored.customer_number} already exists"
                    )
                self._advance_sequence_past(stored.customer_number)
            else:
                stored.customer_number = self.next_customer_number()

            self.customers[stored.customer_id] = stored
            self._customer_entries[stored.customer_id] = []
            self._emails[stored.email] = stored.customer_id
            self._numbers[stored.customer_number] = stored.customer_id
            if stored.national_id:
                self._national_ids[stored.national_id] = stored.customer_id
            return copy.deepcopy(stored)

    def get_customer(self, customer_id: str) -> Customer:
        """Get a snapshot of a customer."""
        with self._lock:
            return copy.deepcopy(self._require(customer_id))

    def update_credit(
        self,
        customer_id: str,
        credit: CreditInfo,
        expected_version: int,
        entry: LedgerEntry | None = None,
    ) -> Customer:
        """Compare-and-swap the credit record on the customer version."""
        with self._lock:
            stored = self._require(customer_id)
            if stored.version != expected_version:
                raise ConcurrentUpdateError(
                    f"Customer {customer_id} changed: expected version {expected_version}, "
                    f"found {stored.version}"
                )
            stored.credit = replace(credit)
            self._touch(stored)
            if entry is not None:
                self._append_entry(entry)
            return copy.deepcopy(stored)

    def update_status(self, customer_id: str, status: CustomerStatus) -> Customer:
        """Set the account status."""
        status = parse_enum(CustomerStatus, status, "status")
        with self._lock:
            stored = self._require(customer_id)
            stored.status = status
            self._touch(stored)
            return copy.deepcopy(stored)

    def update_details(self, customer: Customer) -> Customer:
        """Copy contact and business fields, keeping the unique indexes in step."""
        with self._lock:
            stored = self._require(customer.customer_id)
            owner = self._emails.get(customer.email)
            if owner is not None and owner != stored.customer_id:
                raise DuplicateCustomerError(f"Customer with email {customer.email} already exists")
            if customer.national_id:
                owner = self._national_ids.get(customer.national_id)
                if owner is not None and owner != stored.customer_id:
                    raise DuplicateCustomerError(
                        f"Customer with national id {customer.national_id} already exists"
                    )

            del self._emails[stored.email]
            self._national_ids.pop(stored.national_id, None)
            for name in DETAIL_FIELDS:
                setattr(stored, name, copy.deepcopy(getattr(customer, name)))
            self._emails[stored.email] = stored.customer_id
            if stored.national_id:
                self._national_ids[stored.national_id] = stored.customer_id
            self._touch(stored)
            return copy.deepcopy(stored)

    def record_sale_summary(
        self, customer_id: str, order_value: Decimal, when: datetime
    ) -> Customer:
        """Update sales aggregates in place."""
        with self._lock:
            stored = self._require(customer_id)
            stored.sales.record_order(order_value, when)
            stored.updated_at = datetime.now()
            return copy.deepcopy(stored)

    def get_ledger_entries(self, customer_id: str) -> list[LedgerEntry]:
        """Get all ledger entries for a customer."""
        with self._lock:
            indices = self._customer_entries.get(customer_id, [])
            return [self.entries[i] for i in indices]

    def list_customers(self) -> list[Customer]:
        """Return all customers in registration order."""
        with self._lock:
            return [copy.deepcopy(c) for c in self.customers.values()]

    def search_customers(
        self,
        search: str | None = None,
        status: CustomerStatus | None = None,
        credit_status: CreditStatus | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> CustomerPage:
        """Filter, then page, newest registrations first."""
        if status is not None:
            status = parse_enum(CustomerStatus, status, "status")
        if credit_status is not None:
            credit_status = parse_enum(CreditStatus, credit_status, "credit_status")
        needle = (search or "").strip().lower()

        with self._lock:
            matches = [
                c
                for c in self.customers.values()
                if (status is None or c.status == status)
                and (credit_status is None or c.credit.credit_status == credit_status)
                and (not needle or _matches(c, needle))
            ]

        matches.sort(key=lambda c: c.created_at, reverse=True)
        page = max(page, 1)
        start = (page - 1) * limit
        return CustomerPage(
            customers=[copy.deepcopy(c) for c in matches[start : start + limit]],
            total=len(matches),
            page=page,
            limit=limit,
        )

    def _require(self, customer_id: str) -> Customer:
        try:
            return self.customers[customer_id]
        except KeyError:
            raise CustomerNotFoundError(customer_id) from None

    @staticmethod
    def _touch(stored: Customer) -> None:
        stored.version += 1
        stored.updated_at = datetime.now()

    def _append_entry(self, entry: LedgerEntry) -> None:
        idx = len(self.entries)
        self.entries.append(entry)
        self._customer_entries.setdefault(entry.customer_id, []).append(idx)

    def _advance_sequence_past(self, number: str) -> None:
        match = re.fullmatch(rf"{re.escape(self.number_prefix)}-(\d+)", number)
        if match:
            self._sequence = max(self._sequence, int(match.group(1)))


def _matches(customer: Customer, needle: str) -> bool:
    haystack = (
        customer.customer_number,
        customer.first_name,
        customer.last_name,
        customer.email,
        customer.phone,
        customer.business_name,
    )
    return any(needle in value.lower() for value in haystack)
