"""
Core Data Models for Flourish

These models define the strict schemas for every entity the finance core
keeps in its store. They are designed to:
1. Enforce type safety at runtime, including on in-place mutation
2. Round-trip the persisted field names exactly (camelCase aliases)
3. Keep money exact (Decimal) across repeated additive adjustments
4. Expose the derived values the ledger and rule engine depend on

DESIGN DECISION: Enum values are the raw strings already found in persisted
data ("Checking", "Credit Card", "Bi-weekly", ...), so existing blobs load
without a migration step.
"""

import calendar
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from dateutil.relativedelta import relativedelta
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)
from pydantic.alias_generators import to_camel


class FinanceModel(BaseModel):
    """Base for all persisted entities."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    def to_record(self) -> dict:
        """Convert to a field-name-keyed record for the blob store."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountType(str, Enum):
    """Kinds of accounts a user can hold."""
    CHECKING = "Checking"
    SAVINGS = "Savings"
    CREDIT_CARD = "Credit Card"


class IncomeFrequency(str, Enum):
    """How often a salary is paid."""
    WEEKLY = "Weekly"
    BIWEEKLY = "Bi-weekly"
    MONTHLY = "Monthly"
    SEMIMONTHLY = "Semi-monthly"
    CUSTOM = "Custom"


class IOUDirection(str, Enum):
    """Which way an IOU points."""
    OWED_TO_YOU = "They owe you"
    YOU_OWE = "You owe"


class SubscriptionFrequency(str, Enum):
    """How often a subscription renews."""
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    YEARLY = "Yearly"


class SavingsType(str, Enum):
    """Savings goal categories."""
    RETIREMENT_401K = "401(k)"
    RETIREMENT_IRA = "IRA"
    STOCKS = "Stocks/Investments"
    EMERGENCY_FUND = "Emergency Fund"
    CASH_SAVINGS = "Cash Savings"
    OTHER = "Other"


# Salary frequency -> offset to the next expected deposit
FREQUENCY_OFFSETS = {
    IncomeFrequency.WEEKLY: relativedelta(weeks=1),
    IncomeFrequency.BIWEEKLY: relativedelta(weeks=2),
    IncomeFrequency.SEMIMONTHLY: relativedelta(days=15),
    IncomeFrequency.MONTHLY: relativedelta(months=1),
}

DEFAULT_CUSTOM_INTERVAL_DAYS = 30

# Subscription frequency -> offset to the next renewal
SUBSCRIPTION_OFFSETS = {
    SubscriptionFrequency.WEEKLY: relativedelta(weeks=1),
    SubscriptionFrequency.MONTHLY: relativedelta(months=1),
    SubscriptionFrequency.YEARLY: relativedelta(years=1),
}


# =============================================================================
# ACCOUNTS & BUDGETS
# =============================================================================

class Account(FinanceModel):
    """
    A bank account or credit card.

    Credit-card balances are modeled as negative usage: spending still
    lowers the balance, exactly as for checking accounts.
    """

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    type: AccountType
    balance: Decimal = Decimal("0")
    credit_limit: Optional[Decimal] = Field(default=None, ge=0)
    credit_usage_warning: Optional[Decimal] = Field(
        default=None,
        ge=0,
        le=100,
        description="Utilization percentage that should trigger a warning"
    )
    created_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode='after')
    def validate_credit_fields(self) -> 'Account':
        """Credit settings only make sense on credit cards."""
        if self.type != AccountType.CREDIT_CARD:
            if self.credit_limit is not None or self.credit_usage_warning is not None:
                raise ValueError("Credit limit and usage warning apply only to credit cards")
        return self

    @property
    def is_credit_card(self) -> bool:
        return self.type == AccountType.CREDIT_CARD

    @property
    def credit_utilization(self) -> Optional[Decimal]:
        """Percentage of the credit limit in use, if a limit is set."""
        if not self.is_credit_card or not self.credit_limit:
            return None
        used = -self.balance if self.balance < 0 else Decimal("0")
        return used / self.credit_limit * 100


class BudgetCategory(FinanceModel):
    """
    Monthly spending limit for a named category.

    Unique per (user_id, name, month, year) by lookup-then-upsert only.
    """

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    monthly_limit: Decimal = Field(..., ge=0)
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1900)
    spent: Decimal = Decimal("0")

    @property
    def remaining(self) -> Decimal:
        return self.monthly_limit - self.spent

    @property
    def percent_used(self) -> Decimal:
        if self.monthly_limit <= 0:
            return Decimal("0")
        return self.spent / self.monthly_limit * 100

    @property
    def overage(self) -> Decimal:
        return max(self.spent - self.monthly_limit, Decimal("0"))


class SavingsBudget(FinanceModel):
    """A savings goal (401k, emergency fund, ...)."""

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    type: SavingsType
    target_amount: Decimal = Field(..., ge=0)
    current_amount: Decimal = Decimal("0")
    monthly_contribution: Decimal = Field(..., ge=0)
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def percent_complete(self) -> Decimal:
        if self.target_amount <= 0:
            return Decimal("0")
        return self.current_amount / self.target_amount * 100

    @property
    def remaining(self) -> Decimal:
        return self.target_amount - self.current_amount


# =============================================================================
# EXPENSES & SPLITS
# =============================================================================

class SplitParticipant(FinanceModel):
    """One person's share of a split expense."""

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0)
    is_current_user: bool = False


class Expense(FinanceModel):
    """
    A spending transaction.

    The account and budget are only ever charged the user's share; the
    other participants' shares become balances owed.
    """

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    amount: Decimal = Field(..., ge=0)
    date: datetime = Field(default_factory=datetime.now)
    description: str = Field(default="", max_length=500)
    category_name: str = Field(..., min_length=1, max_length=100)
    account_id: UUID
    is_subscription: bool = False
    subscription_id: Optional[UUID] = None
    split_participants: list[SplitParticipant] = Field(default_factory=list)
    is_pending: bool = False

    @property
    def user_share(self) -> Decimal:
        """Amount the current user actually bears."""
        if not self.split_participants:
            return self.amount
        for participant in self.split_participants:
            if participant.is_current_user:
                return participant.amount
        return self.amount

    @property
    def total_owed_by_others(self) -> Decimal:
        return sum(
            (p.amount for p in self.split_participants if not p.is_current_user),
            Decimal("0"),
        )

    @property
    def other_participants(self) -> list[SplitParticipant]:
        return [p for p in self.split_participants if not p.is_current_user]


class Subscription(FinanceModel):
    """A recurring charge (weekly, monthly or yearly)."""

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0)
    frequency: SubscriptionFrequency = SubscriptionFrequency.MONTHLY
    category_name: str = Field(..., min_length=1, max_length=100)
    account_id: UUID
    next_due_date: datetime
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.now)

    def days_until_due(self, today: date) -> int:
        return (self.next_due_date.date() - today).days

    def is_due_soon(self, today: date, window_days: int = 7) -> bool:
        return 0 <= self.days_until_due(today) <= window_days

    def calculate_next_due_date(self) -> datetime:
        return self.next_due_date + SUBSCRIPTION_OFFSETS[self.frequency]


# =============================================================================
# RECEIVABLES
# =============================================================================

class BalanceOwed(FinanceModel):
    """
    Money a person owes the user, accumulated from split expenses.

    Rows are removed once the amount reaches zero or below.
    """

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    person_name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal
    last_updated: datetime = Field(default_factory=datetime.now)
    is_owed_to_me: bool = True


class Repayment(FinanceModel):
    """Append-only record of money received against a balance owed."""

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    person_name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0)
    date: datetime = Field(default_factory=datetime.now)
    notes: str = ""


class FriendIOU(FinanceModel):
    """
    A free-standing IOU, independent of split expenses.

    Settling flags the IOU; it is never deleted by settlement.
    """

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    person_name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0)
    direction: IOUDirection
    notes: str = ""
    date: datetime = Field(default_factory=datetime.now)
    is_settled: bool = False
    settled_date: Optional[datetime] = None


# =============================================================================
# TRANSFERS
# =============================================================================

class Transfer(FinanceModel):
    """A completed movement of money between two of the user's accounts."""

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    from_account_id: UUID
    to_account_id: UUID
    amount: Decimal = Field(..., ge=0)
    date: datetime = Field(default_factory=datetime.now)
    notes: str = ""
    is_pending: bool = False


class ScheduledTransfer(FinanceModel):
    """
    A transfer awaiting explicit user approval.

    recurrence_days > 0 makes it recurring; otherwise it fires once.
    """

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    from_account_id: UUID
    to_account_id: UUID
    amount: Decimal = Field(..., ge=0)
    scheduled_date: datetime
    recurrence_days: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
    is_completed: bool = False
    completed_date: Optional[datetime] = None

    @property
    def is_recurring(self) -> bool:
        return bool(self.recurrence_days) and self.recurrence_days > 0

    def is_due(self, today: date) -> bool:
        """
        One-time transfers are due from their scheduled day onwards.
        Recurring ones only on days aligned with the recurrence.
        """
        elapsed = (today - self.scheduled_date.date()).days
        if elapsed < 0:
            return False
        if self.is_recurring:
            return elapsed % self.recurrence_days == 0
        return True


# =============================================================================
# INCOME
# =============================================================================

class SalaryIncome(FinanceModel):
    """A recurring expected deposit."""

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    name: str = Field(default="Salary", max_length=200)
    amount: Decimal = Field(..., ge=0)
    frequency: IncomeFrequency
    next_expected_date: datetime
    account_id: UUID
    custom_day_interval: Optional[int] = Field(default=None, gt=0)
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode='after')
    def validate_custom_interval(self) -> 'SalaryIncome':
        """Custom frequency needs an explicit interval."""
        if self.frequency == IncomeFrequency.CUSTOM and self.custom_day_interval is None:
            raise ValueError("custom_day_interval is required for custom frequency")
        return self

    def calculate_next_date(self, from_date: datetime) -> datetime:
        if self.frequency == IncomeFrequency.CUSTOM:
            days = self.custom_day_interval or DEFAULT_CUSTOM_INTERVAL_DAYS
            return from_date + relativedelta(days=days)
        return from_date + FREQUENCY_OFFSETS[self.frequency]

    def days_until_due(self, today: date) -> int:
        return (self.next_expected_date.date() - today).days

    def is_due_soon(self, today: date, window_days: int = 3) -> bool:
        return 0 <= self.days_until_due(today) <= window_days

    def is_overdue(self, today: date) -> bool:
        return self.days_until_due(today) < 0


class IncomeTransaction(FinanceModel):
    """Append-only record of a confirmed salary deposit."""

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    salary_id: UUID
    amount: Decimal = Field(..., ge=0)
    account_id: UUID
    date: datetime = Field(default_factory=datetime.now)
    notes: str = ""
    confirmed_at: datetime = Field(default_factory=datetime.now)


# =============================================================================
# MONTHLY REVIEW
# =============================================================================

class MonthlyReviewStatus(FinanceModel):
    """Completion flag for one user's review of one month."""

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1900)
    is_completed: bool = False
    completed_at: Optional[datetime] = None

    def is_current_month(self, today: date) -> bool:
        return self.month == today.month and self.year == today.year

    @property
    def month_year_label(self) -> str:
        """E.g. 'October 2025'."""
        return f"{calendar.month_name[self.month]} {self.year}"
