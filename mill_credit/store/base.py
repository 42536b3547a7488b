"""Abstract customer record store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from mill_credit.models.credit import (
    CreditInfo,
    CreditStatus,
    Customer,
    CustomerStatus,
    CustomerType,
    LedgerEntry,
)

# Fields an update_details call may change
DETAIL_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "phone",
    "national_id",
    "alternate_phone",
    "address",
    "business_name",
    "business_type",
    "customer_type",
    "payment_terms",
    "preferred_payment_method",
    "notes",
    "tags",
)


@dataclass(frozen=True)
class CreditOverview:
    """Portfolio-wide credit and sales totals.

    ``average_order_value`` is the mean of the per-customer averages.
    """

    total_customers: int
    active_customers: int
    customers_with_credit: int
    customers_over_limit: int
    total_credit_limit: Decimal
    total_outstanding: Decimal
    total_revenue: Decimal = Decimal("0")
    average_order_value: Decimal = Decimal("0")


@dataclass(frozen=True)
class CustomerTypeSummary:
    """Customer count and spend for one customer type."""

    customer_type: CustomerType
    count: int
    total_spent: Decimal


@dataclass(frozen=True)
class CustomerPage:
    """One page of a customer search."""

    customers: list[Customer]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit) if self.limit > 0 else 0

    @property
    def has_next(self) -> bool:
        return self.page * self.limit < self.total

    @property
    def has_prev(self) -> bool:
        return self.page > 1


class BaseCustomerStore(ABC):
    """Persistence contract for customers and their ledger entries.

    Reads return snapshots; mutating a returned ``Customer`` never changes
    the stored record. Every write to credit, status or details bumps
    ``Customer.version``. ``update_credit`` only commits when the version
    is still the one the caller read, so a write never lands on top of a
    limit, credit status or account status change it did not see.
    """

    @abstractmethod
    def next_customer_number(self) -> str:
        """Allocate the next customer number atomically."""

    @abstractmethod
    def add_customer(self, customer: Customer) -> Customer:
        """Insert a customer, assigning a customer number when missing.

        Raises
        ------
        DuplicateCustomerError
            If the id, email, national id or customer number is taken.
        """

    @abstractmethod
    def get_customer(self, customer_id: str) -> Customer:
        """Fetch a customer snapshot.

        Raises
        ------
        CustomerNotFoundError
            If the id does not resolve.
        """

    @abstractmethod
    def update_credit(
        self,
        customer_id: str,
        credit: CreditInfo,
        expected_version: int,
        entry: LedgerEntry | None = None,
    ) -> Customer:
        """Write a credit record if the customer is still at ``expected_version``.

        The credit fields and the optional ledger entry are persisted
        together.

        Raises
        ------
        CustomerNotFoundError
            If the id does not resolve.
        ConcurrentUpdateError
            If the customer was written since it was read.
        """

    @abstractmethod
    def update_status(self, customer_id: str, status: CustomerStatus) -> Customer:
        """Set the overall account status."""

    @abstractmethod
    def update_details(self, customer: Customer) -> Customer:
        """Copy the ``DETAIL_FIELDS`` of ``customer`` onto the stored record.

        Credit, status, sales figures and the customer number are left
        untouched.

        Raises
        ------
        CustomerNotFoundError
            If the id does not resolve.
        DuplicateCustomerError
            If the new email or national id belongs to another customer.
        """

    @abstractmethod
    def record_sale_summary(
        self, customer_id: str, order_value: Decimal, when: datetime
    ) -> Customer:
        """Fold a sale into the customer's sales aggregates."""

    @abstractmethod
    def get_ledger_entries(self, customer_id: str) -> list[LedgerEntry]:
        """Ledger entries for a customer, oldest first."""

    @abstractmethod
    def list_customers(self) -> list[Customer]:
        """All customers, oldest first."""

    @abstractmethod
    def search_customers(
        self,
        search: str | None = None,
        status: CustomerStatus | None = None,
        credit_status: CreditStatus | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> CustomerPage:
        """Case-insensitive search over number, names, email, phone and business name."""

    def credit_overview(self) -> CreditOverview:
        """Aggregate credit and sales figures across all customers."""
        customers = self.list_customers()
        averages = [c.sales.average_order_value for c in customers]
        return CreditOverview(
            total_customers=len(customers),
            active_customers=sum(1 for c in customers if c.status == CustomerStatus.ACTIVE),
            customers_with_credit=sum(1 for c in customers if c.credit.credit_limit > 0),
            customers_over_limit=sum(
                1 for c in customers if c.credit.current_balance > c.credit.credit_limit
            ),
            total_credit_limit=sum((c.credit.credit_limit for c in customers), Decimal("0")),
            total_outstanding=sum((c.credit.current_balance for c in customers), Decimal("0")),
            total_revenue=sum((c.sales.total_spent for c in customers), Decimal("0")),
            average_order_value=(
                (sum(averages, Decimal("0")) / len(averages)).quantize(Decimal("0.01"))
                if averages
                else Decimal("0")
            ),
        )

    def top_customers(self, limit: int = 10) -> list[Customer]:
        """Active customers with the highest total spend."""
        active = [c for c in self.list_customers() if c.status == CustomerStatus.ACTIVE]
        active.sort(key=lambda c: c.sales.total_spent, reverse=True)
        return active[:limit]

    def customers_by_type(self) -> list[CustomerTypeSummary]:
        """Count and spend per customer type, most common first."""
        counts: dict[CustomerType, int] = {}
        spent: dict[CustomerType, Decimal] = {}
        for c in self.list_customers():
            counts[c.customer_type] = counts.get(c.customer_type, 0) + 1
            spent[c.customer_type] = spent.get(c.customer_type, Decimal("0")) + c.sales.total_spent
        summaries = [
            CustomerTypeSummary(customer_type=t, count=n, total_spent=spent[t])
            for t, n in counts.items()
        ]
        summaries.sort(key=lambda s: (-s.count, s.customer_type.value))
        return summaries
