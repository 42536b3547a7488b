"""Custom exception hierarchy for mill-credit."""

from decimal import Decimal


class MillCreditError(Exception):
    """Base exception for all mill-credit errors."""


class EntityNotFoundError(MillCreditError):
    """Raised when a referenced entity does not exist."""


class CustomerNotFoundError(EntityNotFoundError):
    """Raised when a customer id does not resolve."""

    def __init__(self, customer_id: str) -> None:
        super().__init__(f"Customer {customer_id} not found")
        self.customer_id = customer_id


class ValidationError(MillCreditError):
    """Raised when a field is malformed or outside its enumerated set."""


class DuplicateCustomerError(ValidationError):
    """Raised when a unique customer field is already taken."""


class CreditError(MillCreditError):
    """Base class for credit gate rejections."""


class CreditInactiveError(CreditError):
    """Raised when the customer or its credit line may not transact on credit."""


class InsufficientCreditError(CreditError):
    """Raised when the requested amount exceeds the available credit."""

    def __init__(self, available_credit: Decimal, requested_amount: Decimal) -> None:
        super().__init__(
            f"Insufficient credit: requested {requested_amount}, available {available_credit}"
        )
        self.available_credit = available_credit
        self.requested_amount = requested_amount


class ConcurrentUpdateError(MillCreditError):
    """Raised when a balance changed between read and conditional write."""


class ConfigurationError(MillCreditError):
    """Raised when configuration is invalid or missing."""


class StoreError(MillCreditError):
    """Raised when the backing store fails."""


class SinkError(MillCreditError):
    """Raised when a sink operation fails."""
