"""PostgreSQL-backed customer store."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterator

import psycopg
from psycopg.errors import UniqueViolation
from psycopg.rows import dict_row

from mill_credit.config import PostgresConfig
from mill_credit.exceptions import (
    ConcurrentUpdateError,
    CustomerNotFoundError,
    DuplicateCustomerError,
    StoreError,
)
from mill_credit.ledger import format_customer_number
from mill_credit.models.base import Address
from mill_credit.models.credit import (
    BalanceDirection,
    CreditInfo,
    CreditStatus,
    Customer,
    CustomerStatus,
    CustomerType,
    EntryReason,
    LedgerEntry,
    SalesSummary,
    parse_enum,
)
from mill_credit.store.base import (
    BaseCustomerStore,
    CreditOverview,
    CustomerPage,
    CustomerTypeSummary,
)

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = (
    "CREATE SEQUENCE IF NOT EXISTS customer_number_seq START 1",
    """
    CREATE TABLE IF NOT EXISTS customers (
        customer_id TEXT PRIMARY KEY,
        customer_number TEXT NOT NULL UNIQUE,
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        phone TEXT NOT NULL,
        national_id TEXT UNIQUE,
        alternate_phone TEXT NOT NULL DEFAULT '',
        street TEXT NOT NULL DEFAULT '',
        city TEXT NOT NULL DEFAULT '',
        state TEXT NOT NULL DEFAULT '',
        zip_code TEXT NOT NULL DEFAULT '',
        country TEXT NOT NULL DEFAULT 'Pakistan',
        business_name TEXT NOT NULL DEFAULT '',
        business_type TEXT NOT NULL,
        customer_type TEXT NOT NULL,
        payment_terms TEXT NOT NULL,
        preferred_payment_method TEXT NOT NULL,
        credit_limit NUMERIC(15, 2) NOT NULL CHECK (credit_limit >= 0),
        current_balance NUMERIC(15, 2) NOT NULL CHECK (current_balance >= 0),
        available_credit NUMERIC(15, 2)
            GENERATED ALWAYS AS (GREATEST(credit_limit - current_balance, 0)) STORED,
        credit_terms INTEGER NOT NULL DEFAULT 30,
        credit_status TEXT NOT NULL CHECK (credit_status IN ('Active', 'Suspended', 'Blocked')),
        total_orders INTEGER NOT NULL DEFAULT 0,
        total_spent NUMERIC(15, 2) NOT NULL DEFAULT 0,
        last_order_date TIMESTAMP,
        average_order_value NUMERIC(15, 2) NOT NULL DEFAULT 0,
        status TEXT NOT NULL CHECK (status IN ('Active', 'Inactive', 'Suspended')),
        notes TEXT NOT NULL DEFAULT '',
        tags TEXT[] NOT NULL DEFAULT '{}',
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP,
        version INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS ledger_entries (
        entry_id TEXT PRIMARY KEY,
        customer_id TEXT NOT NULL REFERENCES customers (customer_id),
        direction TEXT NOT NULL CHECK (direction IN ('debit', 'credit')),
        amount NUMERIC(15, 2) NOT NULL,
        applied_amount NUMERIC(15, 2) NOT NULL,
        balance_before NUMERIC(15, 2) NOT NULL,
        balance_after NUMERIC(15, 2) NOT NULL,
        reason TEXT NOT NULL,
        reference TEXT NOT NULL DEFAULT '',
        created_at TIMESTAMP NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_customers_status ON customers (status)",
    "CREATE INDEX IF NOT EXISTS idx_customers_credit_status ON customers (credit_status)",
    "CREATE INDEX IF NOT EXISTS idx_customers_total_spent ON customers (total_spent DESC)",
    "CREATE INDEX IF NOT EXISTS idx_ledger_entries_customer "
    "ON ledger_entries (customer_id, created_at)",
)

INSERT_CUSTOMER = """
    INSERT INTO customers (
        customer_id, customer_number, first_name, last_name, email, phone,
        national_id, alternate_phone, street, city, state, zip_code, country,
        business_name, business_type, customer_type, payment_terms,
        preferred_payment_method, credit_limit, current_balance, credit_terms,
        credit_status, total_orders, total_spent, last_order_date,
        average_order_value, status, notes, tags, created_at, updated_at, version
    ) VALUES (
        %(customer_id)s, %(customer_number)s, %(first_name)s, %(last_name)s,
        %(email)s, %(phone)s, %(national_id)s, %(alternate_phone)s, %(street)s,
        %(city)s, %(state)s, %(zip_code)s, %(country)s, %(business_name)s,
        %(business_type)s, %(customer_type)s, %(payment_terms)s,
        %(preferred_payment_method)s, %(credit_limit)s, %(current_balance)s,
        %(credit_terms)s, %(credit_status)s, %(total_orders)s, %(total_spent)s,
        %(last_order_date)s, %(average_order_value)s, %(status)s, %(notes)s,
        %(tags)s, %(created_at)s, %(updated_at)s, %(version)s
    )
"""

INSERT_ENTRY = """
    INSERT INTO ledger_entries (
        entry_id, customer_id, direction, amount, applied_amount,
        balance_before, balance_after, reason, reference, created_at
    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
"""

# Lands only if nothing wrote the row since it was read
UPDATE_CREDIT = """
    UPDATE customers
    SET credit_limit = %s, current_balance = %s, credit_terms = %s,
        credit_status = %s, updated_at = %s, version = version + 1
    WHERE customer_id = %s AND version = %s
    RETURNING *
"""

UPDATE_DETAILS = """
    UPDATE customers
    SET first_name = %(first_name)s, last_name = %(last_name)s, email = %(email)s,
        phone = %(phone)s, national_id = %(national_id)s,
        alternate_phone = %(alternate_phone)s, street = %(street)s, city = %(city)s,
        state = %(state)s, zip_code = %(zip_code)s, country = %(country)s,
        business_name = %(business_name)s, business_type = %(business_type)s,
        customer_type = %(customer_type)s, payment_terms = %(payment_terms)s,
        preferred_payment_method = %(preferred_payment_method)s,
        notes = %(notes)s, tags = %(tags)s, updated_at = %(updated_at)s,
        version = version + 1
    WHERE customer_id = %(customer_id)s
    RETURNING *
"""

SEARCH_COLUMNS = (
    "customer_number",
    "first_name",
    "last_name",
    "email",
    "phone",
    "business_name",
)


class PostgresCustomerStore(BaseCustomerStore):
    """Customer store on PostgreSQL via psycopg.

    Each public call opens its own connection and commits on success, so
    every method is one transaction. Driver errors surface as
    ``StoreError``, unique violations as ``DuplicateCustomerError``.
    """

    def __init__(
        self,
        config: PostgresConfig | str,
        number_prefix: str = "CUST",
        number_width: int = 6,
    ) -> None:
        """Initialize the store.

        Parameters
        ----------
        config : PostgresConfig | str
            Connection configuration or a libpq connection string.
        number_prefix : str
            Customer number prefix.
        number_width : int
            Zero-padded width of the customer number sequence.
        """
        if isinstance(config, PostgresConfig):
            config = config.connection_string
        self.conninfo = config
        self.number_prefix = number_prefix
        self.number_width = number_width

    @contextmanager
    def _cursor(self) -> Iterator[Any]:
        """Cursor inside one transaction, rolled back on any error."""
        try:
            conn = psycopg.connect(self.conninfo, row_factory=dict_row)
        except psycopg.Error as e:
            raise StoreError(f"Cannot connect to PostgreSQL: {e}") from e
        try:
            with conn as active:
                with active.cursor() as cur:
                    yield cur
        except UniqueViolation as e:
            raise DuplicateCustomerError(
                f"Customer with this id, email, national id or number already exists: {e}"
            ) from e
        except psycopg.Error as e:
            raise StoreError(f"PostgreSQL error: {e}") from e

    def init_schema(self) -> None:
        """Create the sequence, tables and indexes if missing."""
        with self._cursor() as cur:
            for statement in SCHEMA_STATEMENTS:
                cur.execute(statement)
        logger.info("Customer credit schema ready")

    def next_customer_number(self) -> str:
        """Allocate from the database sequence."""
        with self._cursor() as cur:
            return self._allocate_number(cur)

    def _allocate_number(self, cur: Any) -> str:
        cur.execute("SELECT nextval('customer_number_seq') AS seq")
        row = cur.fetchone()
        return format_customer_number(int(row["seq"]), self.number_prefix, self.number_width)

    def add_customer(self, customer: Customer) -> Customer:
        """Insert a customer row."""
        stored = replace(customer)
        with self._cursor() as cur:
            if not stored.customer_number:
                stored.customer_number = self._allocate_number(cur)
            cur.execute(INSERT_CUSTOMER, _customer_params(stored))
        logger.info("Registered customer %s as %s", stored.customer_id, stored.customer_number)
        return stored

    def get_customer(self, customer_id: str) -> Customer:
        """Fetch one customer row."""
        with self._cursor() as cur:
            cur.execute("SELECT * FROM customers WHERE customer_id = %s", (customer_id,))
            row = cur.fetchone()
        if row is None:
            raise CustomerNotFoundError(customer_id)
        return _row_to_customer(row)

    def update_credit(
        self,
        customer_id: str,
        credit: CreditInfo,
        expected_version: int,
        entry: LedgerEntry | None = None,
    ) -> Customer:
        """Conditional update on the version plus the entry insert, in one transaction."""
        with self._cursor() as cur:
            cur.execute(
                UPDATE_CREDIT,
                (
                    credit.credit_limit,
                    credit.current_balance,
                    credit.credit_terms,
                    credit.credit_status.value,
                    datetime.now(),
                    customer_id,
                    expected_version,
                ),
            )
            row = cur.fetchone()
            if row is None:
                cur.execute("SELECT version FROM customers WHERE customer_id = %s", (customer_id,))
                current = cur.fetchone()
                if current is None:
                    raise CustomerNotFoundError(customer_id)
                raise ConcurrentUpdateError(
                    f"Customer {customer_id} changed: expected version {expected_version}, "
                    f"found {current['version']}"
                )
            if entry is not None:
                cur.execute(INSERT_ENTRY, _entry_params(entry))
        return _row_to_customer(row)

    def update_status(self, customer_id: str, status: CustomerStatus) -> Customer:
        """Set the account status."""
        status = parse_enum(CustomerStatus, status, "status")
        return self._update_returning(
            "UPDATE customers SET status = %s, updated_at = %s, version = version + 1 "
            "WHERE customer_id = %s RETURNING *",
            (status.value, datetime.now(), customer_id),
            customer_id,
        )

    def update_details(self, customer: Customer) -> Customer:
        """Rewrite the contact and business columns."""
        params = {
            key: value
            for key, value in _customer_params(customer).items()
            if f"%({key})s" in UPDATE_DETAILS
        }
        params["updated_at"] = datetime.now()
        return self._update_returning(UPDATE_DETAILS, params, customer.customer_id)

    def record_sale_summary(
        self, customer_id: str, order_value: Decimal, when: datetime
    ) -> Customer:
        """Increment the sales aggregates in SQL."""
        return self._update_returning(
            """
            UPDATE customers
            SET total_orders = total_orders + 1,
                total_spent = total_spent + %s,
                last_order_date = %s,
                average_order_value = ROUND((total_spent + %s) / (total_orders + 1), 2),
                updated_at = %s
            WHERE customer_id = %s
            RETURNING *
            """,
            (order_value, when, order_value, datetime.now(), customer_id),
            customer_id,
        )

    def _update_returning(self, query: str, params: Any, customer_id: str) -> Customer:
        with self._cursor() as cur:
            cur.execute(query, params)
            row = cur.fetchone()
        if row is None:
            raise CustomerNotFoundError(customer_id)
        return _row_to_customer(row)

    def get_ledger_entries(self, customer_id: str) -> list[LedgerEntry]:
        """Entries for a customer in insertion time order."""
        with self._cursor() as cur:
            cur.execute(
                "SELECT * FROM ledger_entries WHERE customer_id = %s ORDER BY created_at",
                (customer_id,),
            )
            rows = cur.fetchall()
        return [_row_to_entry(row) for row in rows]

    def list_customers(self) -> list[Customer]:
        """All customers, oldest first."""
        with self._cursor() as cur:
            cur.execute("SELECT * FROM customers ORDER BY created_at")
            rows = cur.fetchall()
        return [_row_to_customer(row) for row in rows]

    def search_customers(
        self,
        search: str | None = None,
        status: CustomerStatus | None = None,
        credit_status: CreditStatus | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> CustomerPage:
        """ILIKE search with optional status filters."""
        clauses: list[str] = []
        params: list[Any] = []
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            clauses.append("(" + " OR ".join(f"{col} ILIKE %s" for col in SEARCH_COLUMNS) + ")")
            params.extend([pattern] * len(SEARCH_COLUMNS))
        if status is not None:
            clauses.append("status = %s")
            params.append(parse_enum(CustomerStatus, status, "status").value)
        if credit_status is not None:
            clauses.append("credit_status = %s")
            params.append(parse_enum(CreditStatus, credit_status, "credit_status").value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        page = max(page, 1)

        with self._cursor() as cur:
            cur.execute(f"SELECT COUNT(*) AS total FROM customers {where}", params)
            total = int(cur.fetchone()["total"])
            cur.execute(
                f"SELECT * FROM customers {where} "
                "ORDER BY created_at DESC LIMIT %s OFFSET %s",
                [*params, limit, (page - 1) * limit],
            )
            rows = cur.fetchall()

        return CustomerPage(
            customers=[_row_to_customer(row) for row in rows],
            total=total,
            page=page,
            limit=limit,
        )

    def credit_overview(self) -> CreditOverview:
        """Aggregate in one query instead of loading every row."""
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT
                    COUNT(*) AS total_customers,
                    COUNT(*) FILTER (WHERE status = 'Active') AS active_customers,
                    COUNT(*) FILTER (WHERE credit_limit > 0) AS customers_with_credit,
                    COUNT(*) FILTER (WHERE current_balance > credit_limit)
                        AS customers_over_limit,
                    COALESCE(SUM(credit_limit), 0) AS total_credit_limit,
                    COALESCE(SUM(current_balance), 0) AS total_outstanding,
                    COALESCE(SUM(total_spent), 0) AS total_revenue,
                    COALESCE(ROUND(AVG(average_order_value), 2), 0) AS average_order_value
                FROM customers
                """
            )
            row = cur.fetchone()
        return CreditOverview(
            total_customers=int(row["total_customers"]),
            active_customers=int(row["active_customers"]),
            customers_with_credit=int(row["customers_with_credit"]),
            customers_over_limit=int(row["customers_over_limit"]),
            total_credit_limit=Decimal(row["total_credit_limit"]),
            total_outstanding=Decimal(row["total_outstanding"]),
            total_revenue=Decimal(row["total_revenue"]),
            average_order_value=Decimal(row["average_order_value"]),
        )

    def top_customers(self, limit: int = 10) -> list[Customer]:
        """Active customers ordered by total spend."""
        with self._cursor() as cur:
            cur.execute(
                "SELECT * FROM customers WHERE status = 'Active' "
                "ORDER BY total_spent DESC, created_at LIMIT %s",
                (limit,),
            )
            rows = cur.fetchall()
        return [_row_to_customer(row) for row in rows]

    def customers_by_type(self) -> list[CustomerTypeSummary]:
        """Grouped in SQL, most common type first."""
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT customer_type, COUNT(*) AS count,
                       COALESCE(SUM(total_spent), 0) AS total_spent
                FROM customers
                GROUP BY customer_type
                ORDER BY count DESC, customer_type
                """
            )
            rows = cur.fetchall()
        return [
            CustomerTypeSummary(
                customer_type=parse_enum(CustomerType, row["customer_type"], "customer_type"),
                count=int(row["count"]),
                total_spent=Decimal(row["total_spent"]),
            )
            for row in rows
        ]


def _customer_params(customer: Customer) -> dict[str, Any]:
    """Flatten a customer into INSERT parameters."""
    return {
        "customer_id": customer.customer_id,
        "customer_number": customer.customer_number,
        "first_name": customer.first_name,
        "last_name": customer.last_name,
        "email": customer.email,
        "phone": customer.phone,
        "national_id": customer.national_id or None,
        "alternate_phone": customer.alternate_phone,
        "street": customer.address.street,
        "city": customer.address.city,
        "state": customer.address.state,
        "zip_code": customer.address.zip_code,
        "country": customer.address.country,
        "business_name": customer.business_name,
        "business_type": customer.business_type.value,
        "customer_type": customer.customer_type.value,
        "payment_terms": customer.payment_terms.value,
        "preferred_payment_method": customer.preferred_payment_method.value,
        "credit_limit": customer.credit.credit_limit,
        "current_balance": customer.credit.current_balance,
        "credit_terms": customer.credit.credit_terms,
        "credit_status": customer.credit.credit_status.value,
        "total_orders": customer.sales.total_orders,
        "total_spent": customer.sales.total_spent,
        "last_order_date": customer.sales.last_order_date,
        "average_order_value": customer.sales.average_order_value,
        "status": customer.status.value,
        "notes": customer.notes,
        "tags": list(customer.tags),
        "created_at": customer.created_at,
        "updated_at": customer.updated_at,
        "version": customer.version,
    }


def _entry_params(entry: LedgerEntry) -> tuple:
    return (
        entry.entry_id,
        entry.customer_id,
        entry.direction.value,
        entry.amount,
        entry.applied_amount,
        entry.balance_before,
        entry.balance_after,
        entry.reason.value,
        entry.reference,
        entry.created_at,
    )


def _row_to_customer(row: dict[str, Any]) -> Customer:
    """Rebuild a customer from a ``dict_row``."""
    return Customer(
        customer_id=row["customer_id"],
        customer_number=row["customer_number"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        email=row["email"],
        phone=row["phone"],
        national_id=row.get("national_id") or "",
        alternate_phone=row.get("alternate_phone") or "",
        address=Address(
            street=row.get("street") or "",
            city=row.get("city") or "",
            state=row.get("state") or "",
            zip_code=row.get("zip_code") or "",
            country=row.get("country") or "Pakistan",
        ),
        business_name=row.get("business_name") or "",
        business_type=row["business_type"],
        customer_type=row["customer_type"],
        payment_terms=row["payment_terms"],
        preferred_payment_method=row["preferred_payment_method"],
        credit=CreditInfo(
            credit_limit=row["credit_limit"],
            current_balance=row["current_balance"],
            credit_terms=row["credit_terms"],
            credit_status=row["credit_status"],
        ),
        sales=SalesSummary(
            total_orders=row["total_orders"],
            total_spent=Decimal(row["total_spent"]),
            last_order_date=row.get("last_order_date"),
            average_order_value=Decimal(row["average_order_value"]),
        ),
        status=row["status"],
        notes=row.get("notes") or "",
        tags=list(row.get("tags") or []),
        created_at=row["created_at"],
        updated_at=row.get("updated_at"),
        version=row.get("version", 0),
    )


def _row_to_entry(row: dict[str, Any]) -> LedgerEntry:
    return LedgerEntry(
        entry_id=row["entry_id"],
        customer_id=row["customer_id"],
        direction=parse_enum(BalanceDirection, row["direction"], "direction"),
        amount=Decimal(row["amount"]),
        applied_amount=Decimal(row["applied_amount"]),
        balance_before=Decimal(row["balance_before"]),
        balance_after=Decimal(row["balance_after"]),
        reason=parse_enum(EntryReason, row["reason"], "reason"),
        reference=row.get("reference") or "",
        created_at=row["created_at"],
    )
