"""Customer credit ledger for a flour mill."""

__version__ = "0.1.0"
