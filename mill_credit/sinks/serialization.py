"""JSON-ready dictionaries for customers and ledger entries."""

from dataclasses import asdict, fields, is_dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from mill_credit.models.credit import Customer, LedgerEntry


def to_dict(record: Any) -> dict:
    """Convert a record handed to a sink into a JSON-ready dict.

    Customers gain their derived ``available_credit``. Ledger entries and
    other dataclasses map field by field, and dicts pass through unchanged.
    """
    if isinstance(record, Customer):
        return customer_to_dict(record)
    if isinstance(record, LedgerEntry):
        return entry_to_dict(record)
    if is_dataclass(record):
        return serialize_value(asdict(record))
    if isinstance(record, dict):
        return record
    return {"value": str(record)}


def customer_to_dict(customer: Customer) -> dict:
    data = serialize_value(asdict(customer))
    data["credit"]["available_credit"] = serialize_value(customer.credit.available_credit)
    return data


def entry_to_dict(entry: LedgerEntry) -> dict:
    """Field-by-field copy; entries hold no nested dataclasses."""
    return {f.name: serialize_value(getattr(entry, f.name)) for f in fields(entry)}


def serialize_value(value: Any) -> Any:
    """Make ``value`` JSON-safe.

    ``Decimal`` becomes its string form, never a float, so amounts stay
    exact.
    """
    if isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_value(v) for v in value]
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return value
