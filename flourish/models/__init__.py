"""
Data Models Package

This package contains all Pydantic models used by the Flourish finance core.
Everything kept in the entity store must conform to these schemas.
"""

from flourish.models.finance import (
    Account,
    AccountType,
    BalanceOwed,
    BudgetCategory,
    Expense,
    FinanceModel,
    FriendIOU,
    IncomeFrequency,
    IncomeTransaction,
    IOUDirection,
    MonthlyReviewStatus,
    Repayment,
    SalaryIncome,
    SavingsBudget,
    SavingsType,
    SubscriptionFrequency,
    ScheduledTransfer,
    SplitParticipant,
    Subscription,
    Transfer,
)
from flourish.models.actions import (
    ActionItem,
    ActionItemPriority,
    ActionItemType,
)
from flourish.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "Account",
    "AccountType",
    "BalanceOwed",
    "BudgetCategory",
    "Expense",
    "FinanceModel",
    "FriendIOU",
    "IncomeFrequency",
    "IncomeTransaction",
    "IOUDirection",
    "MonthlyReviewStatus",
    "Repayment",
    "SalaryIncome",
    "SavingsBudget",
    "SavingsType",
    "SubscriptionFrequency",
    "ScheduledTransfer",
    "SplitParticipant",
    "Subscription",
    "Transfer",
    # Action Center models
    "ActionItem",
    "ActionItemPriority",
    "ActionItemType",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
