"""
Action Center Models

An ActionItem is a reminder surfaced to the user: a salary to confirm, a
subscription about to renew, a budget blown, a friend who owes money, a
scheduled transfer awaiting approval, or the monthly finance review.

DESIGN DECISION: Items are records, not views. They are kept until the user
dismisses them or the triggering action resolves them, and the rule engine
deduplicates against what is already stored.
"""

from datetime import datetime
from enum import Enum, IntEnum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import Field

from flourish.models.finance import FinanceModel


class ActionItemType(str, Enum):
    """
    Kinds of reminders.

    Values are the persisted raw strings. Several types are only ever
    created by callers outside the rule engine.
    """
    SALARY_PENDING = "Salary Pending"
    SUBSCRIPTION_DUE = "Subscription Due"
    BUDGET_WARNING = "Budget Warning"
    CREDIT_WARNING = "Credit Warning"
    FRIEND_BALANCE = "Friend Balance"
    OVERSPENDING = "Overspending"
    RECONCILIATION_NEEDED = "Reconciliation Needed"
    MISSED_EXPENSE = "Missed Expense"
    SCHEDULED_TRANSFER_DUE_TODAY = "Scheduled Transfer Due Today"
    PENDING_EXPENSE = "Pending Expense"
    PENDING_TRANSFER = "Pending Transfer"
    MONTHLY_FINANCE_REVIEW = "Monthly Finance Review"


class ActionItemPriority(IntEnum):
    """Higher value sorts first in the Action Center."""
    LOW = 1
    MEDIUM = 2
    HIGH = 3


class ActionItem(FinanceModel):
    """
    A single Action Center entry.

    At most one non-dismissed item exists per (user_id, type,
    related_entity_id); monthly review items are replaced outright.
    """

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    type: ActionItemType
    priority: ActionItemPriority = ActionItemPriority.MEDIUM
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(default="", max_length=1000)
    created_at: datetime = Field(default_factory=datetime.now)
    is_dismissed: bool = False
    related_entity_id: Optional[UUID] = Field(
        default=None,
        description="Salary, subscription, category, balance, transfer or review id"
    )

    def matches(
        self,
        user_id: UUID,
        item_type: ActionItemType,
        related_entity_id: Optional[UUID],
    ) -> bool:
        return (
            self.user_id == user_id
            and self.type == item_type
            and self.related_entity_id == related_entity_id
        )
