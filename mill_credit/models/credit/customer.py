"""Customer model with its credit sub-record."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from mill_credit.exceptions import ValidationError
from mill_credit.models.base import Address, to_money
from mill_credit.models.credit.enums import (
    BusinessType,
    CreditStatus,
    CustomerStatus,
    CustomerType,
    PaymentMethod,
    PaymentTerms,
    parse_enum,
)

EMAIL_PATTERN = re.compile(r"^\w+([.-]?\w+)*@\w+([.-]?\w+)*(\.\w{2,3})+$")

ZERO = Decimal("0")


def calculate_available_credit(credit_limit: Decimal, current_balance: Decimal) -> Decimal:
    """Headroom for new credit sales: ``max(0, credit_limit - current_balance)``."""
    return max(ZERO, credit_limit - current_balance)


@dataclass
class CreditInfo:
    """Credit sub-record of a customer.

    ``available_credit`` is derived on every read and cannot be set.
    """

    credit_limit: Decimal = ZERO
    current_balance: Decimal = ZERO
    credit_terms: int = 30  # days
    credit_status: CreditStatus = CreditStatus.ACTIVE

    def __post_init__(self) -> None:
        self.credit_limit = to_money(self.credit_limit, "credit_limit")
        self.current_balance = to_money(self.current_balance, "current_balance")
        self.credit_status = parse_enum(CreditStatus, self.credit_status, "credit_status")
        if self.credit_limit < 0:
            raise ValidationError(f"credit_limit cannot be negative, got {self.credit_limit}")
        if self.current_balance < 0:
            raise ValidationError(
                f"current_balance cannot be negative, got {self.current_balance}"
            )
        if isinstance(self.credit_terms, bool) or not isinstance(self.credit_terms, int):
            raise ValidationError(f"credit_terms must be whole days, got {self.credit_terms!r}")
        if self.credit_terms < 0:
            raise ValidationError(f"credit_terms cannot be negative, got {self.credit_terms}")

    @property
    def available_credit(self) -> Decimal:
        return calculate_available_credit(self.credit_limit, self.current_balance)


@dataclass
class SalesSummary:
    """Rolling sales aggregates; informational only."""

    total_orders: int = 0
    total_spent: Decimal = ZERO
    last_order_date: datetime | None = None
    average_order_value: Decimal = ZERO

    def record_order(self, order_value: Decimal, when: datetime | None = None) -> None:
        """Fold one sale into the aggregates."""
        self.total_orders += 1
        self.total_spent += order_value
        self.last_order_date = when or datetime.now()
        self.average_order_value = (self.total_spent / self.total_orders).quantize(
            Decimal("0.01")
        )


@dataclass
class Customer:
    """Mill customer entity.

    Enumerated fields accept either the enum member or its string value
    (``"Retailer"``, ``"Net 30"``...) and are normalized on construction.
    Anything outside the set raises ``ValidationError``.
    """

    first_name: str
    last_name: str
    email: str
    phone: str
    customer_id: str = field(default_factory=lambda: str(uuid4()))
    customer_number: str = ""  # assigned by the store
    national_id: str = ""  # CNIC
    alternate_phone: str = ""
    address: Address = field(default_factory=Address)
    business_name: str = ""
    business_type: BusinessType = BusinessType.INDIVIDUAL
    customer_type: CustomerType = CustomerType.NEW
    payment_terms: PaymentTerms = PaymentTerms.CASH
    preferred_payment_method: PaymentMethod = PaymentMethod.CASH
    credit: CreditInfo = field(default_factory=CreditInfo)
    sales: SalesSummary = field(default_factory=SalesSummary)
    status: CustomerStatus = CustomerStatus.ACTIVE
    notes: str = ""
    tags: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime | None = None
    version: int = 0  # bumped by the store on every write to credit, status or details

    def __post_init__(self) -> None:
        self.first_name = (self.first_name or "").strip()
        self.last_name = (self.last_name or "").strip()
        if not self.first_name:
            raise ValidationError("First name is required")
        if not self.last_name:
            raise ValidationError("Last name is required")
        if not (self.phone or "").strip():
            raise ValidationError("Phone number is required")

        self.email = (self.email or "").strip().lower()
        if not EMAIL_PATTERN.match(self.email):
            raise ValidationError(f"Please enter a valid email, got {self.email!r}")

        self.business_type = parse_enum(BusinessType, self.business_type, "business_type")
        self.customer_type = parse_enum(CustomerType, self.customer_type, "customer_type")
        self.payment_terms = parse_enum(PaymentTerms, self.payment_terms, "payment_terms")
        self.preferred_payment_method = parse_enum(
            PaymentMethod, self.preferred_payment_method, "preferred_payment_method"
        )
        self.status = parse_enum(CustomerStatus, self.status, "status")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_active(self) -> bool:
        return self.status == CustomerStatus.ACTIVE
