"""Pytest configuration and fixtures."""

import logging
from decimal import Decimal
from typing import Callable, Iterator

import pytest

from mill_credit.models.base import Address
from mill_credit.models.credit import CreditInfo, CreditStatus, Customer, CustomerStatus
from mill_credit.service import CreditLedgerService
from mill_credit.store import InMemoryCustomerStore


@pytest.fixture(autouse=True)
def restore_root_handlers() -> Iterator[None]:
    """Undo handlers installed by setup_logging so they do not outlive the test."""
    root = logging.getLogger()
    saved = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in saved:
            root.removeHandler(handler)
    root.setLevel(level)


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def sample_customer_id() -> str:
    """Sample customer ID."""
    return "cust-test-001"


@pytest.fixture
def make_customer() -> Callable[..., Customer]:
    """Factory for customers with unique contact details."""
    counter = {"n": 0}

    def factory(
        credit_limit: str = "10000",
        current_balance: str = "3000",
        status: CustomerStatus = CustomerStatus.ACTIVE,
        credit_status: CreditStatus = CreditStatus.ACTIVE,
        **kwargs: object,
    ) -> Customer:
        counter["n"] += 1
        n = counter["n"]
        fields: dict = {
            "first_name": "Ahmed",
            "last_name": f"Khan{n}",
            "email": f"ahmed.khan{n}@example.com",
            "phone": f"0300-{n:07d}",
            "address": Address(street="12 Mall Road", city="Lahore", state="Punjab"),
            "credit": CreditInfo(
                credit_limit=Decimal(credit_limit),
                current_balance=Decimal(current_balance),
                credit_status=credit_status,
            ),
            "status": status,
        }
        fields.update(kwargs)
        return Customer(**fields)

    return factory


@pytest.fixture
def store() -> InMemoryCustomerStore:
    """Create a fresh store for each test."""
    return InMemoryCustomerStore()


@pytest.fixture
def service(store: InMemoryCustomerStore) -> CreditLedgerService:
    """Ledger service over the in-memory store."""
    return CreditLedgerService(store)
