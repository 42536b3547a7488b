"""Tests for the pure credit ledger operations."""

from decimal import Decimal
from typing import Callable

import pytest

from mill_credit.exceptions import (
    CreditInactiveError,
    InsufficientCreditError,
    ValidationError,
)
from mill_credit.ledger import (
    CreditDecision,
    apply_balance_delta,
    check_credit,
    format_customer_number,
    preview_credit,
    validate_amount,
)
from mill_credit.models.credit import (
    BalanceDirection,
    CreditInfo,
    CreditStatus,
    Customer,
    CustomerStatus,
)


class TestValidateAmount:
    """Tests for amount validation."""

    def test_accepts_positive(self) -> None:
        assert validate_amount("12.50") == Decimal("12.50")

    @pytest.mark.parametrize("amount", [0, -1, "-0.01", "abc", None, "0.001", "99.999"])
    def test_rejects_non_positive_or_malformed(self, amount: object) -> None:
        with pytest.raises(ValidationError):
            validate_amount(amount)


class TestCheckCredit:
    """Tests for the credit availability gate."""

    def test_accepts_within_available(self, make_customer: Callable[..., Customer]) -> None:
        customer = make_customer(credit_limit="10000", current_balance="3000")

        decision = check_credit(customer, Decimal("6000"))

        assert decision == CreditDecision(
            approved=True,
            requested_amount=Decimal("6000"),
            available_credit=Decimal("7000"),
            remaining_credit=Decimal("1000"),
        )

    def test_accepts_exactly_available(self, make_customer: Callable[..., Customer]) -> None:
        customer = make_customer(credit_limit="10000", current_balance="3000")

        decision = check_credit(customer, Decimal("7000"))

        assert decision.remaining_credit == Decimal("0")

    def test_rejects_above_available(self, make_customer: Callable[..., Customer]) -> None:
        customer = make_customer(credit_limit="10000", current_balance="3000")

        with pytest.raises(InsufficientCreditError) as exc_info:
            check_credit(customer, Decimal("8000"))

        assert exc_info.value.available_credit == Decimal("7000")
        assert exc_info.value.requested_amount == Decimal("8000")
        assert "7000" in str(exc_info.value)

    @pytest.mark.parametrize("credit_status", [CreditStatus.SUSPENDED, CreditStatus.BLOCKED])
    def test_rejects_inactive_credit_regardless_of_amount(
        self, make_customer: Callable[..., Customer], credit_status: CreditStatus
    ) -> None:
        customer = make_customer(
            credit_limit="10000", current_balance="0", credit_status=credit_status
        )

        with pytest.raises(CreditInactiveError):
            check_credit(customer, Decimal("1"))

    @pytest.mark.parametrize("status", [CustomerStatus.INACTIVE, CustomerStatus.SUSPENDED])
    def test_rejects_inactive_account(
        self, make_customer: Callable[..., Customer], status: CustomerStatus
    ) -> None:
        customer = make_customer(status=status)

        with pytest.raises(CreditInactiveError):
            check_credit(customer, Decimal("1"))

    def test_amount_validated_before_status(self, make_customer: Callable[..., Customer]) -> None:
        customer = make_customer(credit_status=CreditStatus.BLOCKED)

        with pytest.raises(ValidationError):
            check_credit(customer, Decimal("0"))

    def test_status_checked_before_amount(self, make_customer: Callable[..., Customer]) -> None:
        customer = make_customer(
            credit_limit="100", current_balance="0", credit_status=CreditStatus.SUSPENDED
        )

        with pytest.raises(CreditInactiveError):
            check_credit(customer, Decimal("1000000"))

    def test_does_not_mutate(self, make_customer: Callable[..., Customer]) -> None:
        customer = make_customer(credit_limit="10000", current_balance="3000")

        check_credit(customer, Decimal("100"))

        assert customer.credit.current_balance == Decimal("3000")

    def test_over_limit_balance_has_no_headroom(
        self, make_customer: Callable[..., Customer]
    ) -> None:
        customer = make_customer(credit_limit="1000", current_balance="1500")

        with pytest.raises(InsufficientCreditError) as exc_info:
            check_credit(customer, Decimal("1"))

        assert exc_info.value.available_credit == Decimal("0")


class TestApplyBalanceDelta:
    """Tests for the balance mutator."""

    def test_debit_increases_balance(self) -> None:
        credit = CreditInfo(credit_limit=Decimal("10000"), current_balance=Decimal("3000"))

        updated, applied = apply_balance_delta(credit, Decimal("2000"), BalanceDirection.DEBIT)

        assert updated.current_balance == Decimal("5000")
        assert updated.available_credit == Decimal("5000")
        assert applied == Decimal("2000")

    def test_credit_floors_at_zero(self) -> None:
        credit = CreditInfo(credit_limit=Decimal("10000"), current_balance=Decimal("5000"))

        updated, applied = apply_balance_delta(credit, Decimal("9000"), BalanceDirection.CREDIT)

        assert updated.current_balance == Decimal("0")
        assert updated.available_credit == Decimal("10000")
        assert applied == Decimal("5000")

    def test_credit_of_50_on_80(self) -> None:
        credit = CreditInfo(credit_limit=Decimal("100"), current_balance=Decimal("50"))

        updated, _ = apply_balance_delta(credit, Decimal("80"), "credit")

        assert updated.current_balance == Decimal("0")

    def test_debit_then_credit_restores_balance(self) -> None:
        credit = CreditInfo(credit_limit=Decimal("10000"), current_balance=Decimal("1234.56"))

        debited, _ = apply_balance_delta(credit, Decimal("765.44"), BalanceDirection.DEBIT)
        restored, _ = apply_balance_delta(debited, Decimal("765.44"), BalanceDirection.CREDIT)

        assert restored.current_balance == Decimal("1234.56")

    def test_returns_new_record(self) -> None:
        credit = CreditInfo(credit_limit=Decimal("100"), current_balance=Decimal("10"))

        updated, _ = apply_balance_delta(credit, Decimal("5"), BalanceDirection.DEBIT)

        assert credit.current_balance == Decimal("10")
        assert updated is not credit
        assert updated.credit_limit == credit.credit_limit
        assert updated.credit_status == credit.credit_status

    def test_debit_is_not_gated(self) -> None:
        credit = CreditInfo(credit_limit=Decimal("100"), current_balance=Decimal("90"))

        updated, _ = apply_balance_delta(credit, Decimal("50"), BalanceDirection.DEBIT)

        assert updated.current_balance == Decimal("140")
        assert updated.available_credit == Decimal("0")

    def test_rejects_bad_direction(self) -> None:
        with pytest.raises(ValidationError, match="direction"):
            apply_balance_delta(CreditInfo(), Decimal("1"), "sideways")

    def test_rejects_non_positive_amount(self) -> None:
        with pytest.raises(ValidationError):
            apply_balance_delta(CreditInfo(), Decimal("0"), BalanceDirection.CREDIT)


class TestPreviewCredit:
    """Tests for the non-authoritative preview."""

    def test_within_limit(self) -> None:
        credit = CreditInfo(credit_limit=Decimal("10000"), current_balance=Decimal("3000"))

        preview = preview_credit(credit, Decimal("6000"))

        assert preview.available_credit == Decimal("7000")
        assert preview.remaining_after == Decimal("1000")
        assert preview.within_limit is True

    def test_over_limit_does_not_raise(self) -> None:
        credit = CreditInfo(credit_limit=Decimal("10000"), current_balance=Decimal("3000"))

        preview = preview_credit(credit, Decimal("8000"))

        assert preview.remaining_after == Decimal("-1000")
        assert preview.within_limit is False

    def test_ignores_credit_status(self) -> None:
        credit = CreditInfo(
            credit_limit=Decimal("500"), credit_status=CreditStatus.BLOCKED
        )

        assert preview_credit(credit, Decimal("100")).within_limit is True


class TestFormatCustomerNumber:
    """Tests for customer number formatting."""

    def test_default_format(self) -> None:
        assert format_customer_number(1) == "CUST-000001"
        assert format_customer_number(42) == "CUST-000042"

    def test_custom_prefix_and_width(self) -> None:
        assert format_customer_number(7, prefix="MILL", width=4) == "MILL-0007"

    def test_grows_past_width(self) -> None:
        assert format_customer_number(1234567) == "CUST-1234567"

    def test_rejects_zero(self) -> None:
        with pytest.raises(ValidationError):
            format_customer_number(0)
