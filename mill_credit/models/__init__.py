"""Domain models for the mill credit ledger."""

from mill_credit.models.base import Address

__all__ = ["Address"]
