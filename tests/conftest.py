"""
Shared fixtures for the Flourish test suite.

Every store runs on a FixedClock so the date rules are deterministic, and
on in-memory storage so no test touches the filesystem or the network.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from flourish.actions import ActionEngine
from flourish.config import AppSettings
from flourish.ledger import Ledger
from flourish.models.finance import Account, AccountType, BudgetCategory
from flourish.services.storage import InMemoryBlobStorage
from flourish.store import Collection, EntityStore
from flourish.transfers import ScheduledTransferService


# Mid-month: no current-month review reminder is due on this day
FIXED_NOW = datetime(2025, 10, 15, 9, 30)


class FixedClock:
    """Callable clock that only moves when a test moves it."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def set(self, now: datetime) -> None:
        self.current = now

    def advance(self, days: int = 0) -> None:
        self.current = self.current + timedelta(days=days)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def storage():
    return InMemoryBlobStorage()


@pytest.fixture
def store(storage, clock):
    return EntityStore(storage, clock=clock)


@pytest.fixture
def app_settings():
    return AppSettings(
        currency_code="USD",
        friend_balance_alert_threshold=Decimal("50"),
        salary_due_window_days=3,
        subscription_due_window_days=7,
        monthly_review_reminder_days="7,3,0",
        reconciliation_tolerance=Decimal("0.01"),
    )


@pytest.fixture
def actions(store, app_settings):
    return ActionEngine(store, app_settings)


@pytest.fixture
def ledger(store, actions, app_settings):
    return Ledger(store, actions, app_settings)


@pytest.fixture
def transfers(store, ledger, actions):
    return ScheduledTransferService(store, ledger, actions)


@pytest.fixture
def user_id():
    return uuid4()


@pytest.fixture
def checking(store, user_id):
    account = Account(
        user_id=user_id,
        name="Everyday Checking",
        type=AccountType.CHECKING,
        balance=Decimal("1000"),
    )
    store.save(Collection.ACCOUNTS, account)
    return account


@pytest.fixture
def savings(store, user_id):
    account = Account(
        user_id=user_id,
        name="Rainy Day Savings",
        type=AccountType.SAVINGS,
        balance=Decimal("500"),
    )
    store.save(Collection.ACCOUNTS, account)
    return account


@pytest.fixture
def groceries(store, user_id):
    category = BudgetCategory(
        user_id=user_id,
        name="Groceries",
        monthly_limit=Decimal("500"),
        month=FIXED_NOW.month,
        year=FIXED_NOW.year,
    )
    store.save(Collection.BUDGET_CATEGORIES, category)
    return category
