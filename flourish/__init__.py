"""
Flourish - Finance Core Package

The bookkeeping and reminder engine behind the Flourish personal finance app:
account balances, budgets, split expenses, subscriptions, salary income,
scheduled transfers and the Action Center.

DESIGN PRINCIPLES:
1. Balances are derived by exact, reversible adjustments
2. Money never moves on a scheduled transfer without explicit approval
3. Reminders are regenerated idempotently from current state
4. Every mutation is persisted and announced to observers
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Flourish Team"
