"""Ledger package."""

from flourish.ledger.operations import RECONCILIATION_CATEGORY, Ledger, to_decimal

__all__ = ["Ledger", "RECONCILIATION_CATEGORY", "to_decimal"]
