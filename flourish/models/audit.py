"""
Audit Models for Flourish

Every mutation of the entity store is described by an AuditEvent. The store
hands the event to its observers once the new state has been persisted, so
observers double as the change-notification mechanism.

DESIGN DECISION: Events describe what happened, never what to do next.
Observers can log them, refresh views, or ignore them.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Each ledger, rule engine and scheduling operation has its own type.
    """
    # Generic entity changes
    ENTITY_SAVED = "entity_saved"
    ENTITY_DELETED = "entity_deleted"
    CURRENCY_CHANGED = "currency_changed"

    # Ledger
    ACCOUNT_BALANCE_ADJUSTED = "account_balance_adjusted"
    EXPENSE_APPLIED = "expense_applied"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    TRANSFER_APPLIED = "transfer_applied"
    REPAYMENT_RECORDED = "repayment_recorded"
    BALANCE_SETTLED = "balance_settled"
    ACCOUNT_RECONCILED = "account_reconciled"
    SUBSCRIPTIONS_PROCESSED = "subscriptions_processed"
    BUDGET_COPIED = "budget_copied"
    SALARY_DEPOSIT_CONFIRMED = "salary_deposit_confirmed"
    IOU_SETTLED = "iou_settled"
    SAVINGS_CONTRIBUTION = "savings_contribution"

    # Action Center
    ACTION_ITEMS_GENERATED = "action_items_generated"
    ACTION_ITEM_DISMISSED = "action_item_dismissed"
    ACTION_ITEMS_REMOVED = "action_items_removed"
    MONTHLY_REVIEW_COMPLETED = "monthly_review_completed"

    # Scheduled transfers
    SCHEDULED_TRANSFER_SAVED = "scheduled_transfer_saved"
    SCHEDULED_TRANSFER_CONFIRMED = "scheduled_transfer_confirmed"
    SCHEDULED_TRANSFER_DECLINED = "scheduled_transfer_declined"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of the change feed.
    Every mutating operation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the event occurred"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    user_id: Optional[UUID] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Collection of the entity (e.g., 'expenses', 'accounts')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": str(self.user_id) if self.user_id else None,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "description": self.description,
            "details": self.details,
        }


def _money(amount: Decimal) -> str:
    return str(amount)


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entity_saved("accounts", account.id, account.user_id)
        event = AuditEventBuilder.expense_applied(
            expense.id, expense.user_id, expense.user_share, expense.total_owed_by_others
        )
    """

    @staticmethod
    def entity_saved(
        collection: str,
        entity_id: UUID,
        user_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_SAVED,
            user_id=user_id,
            entity_type=collection,
            entity_id=entity_id,
            description=f"Saved {collection} entry",
        )

    @staticmethod
    def entity_deleted(
        collection: str,
        entity_id: UUID,
        user_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_DELETED,
            user_id=user_id,
            entity_type=collection,
            entity_id=entity_id,
            description=f"Deleted {collection} entry",
        )

    @staticmethod
    def currency_changed(currency_code: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CURRENCY_CHANGED,
            description=f"Currency set to {currency_code}",
            details={"currency_code": currency_code},
        )

    @staticmethod
    def balance_adjusted(account_id: UUID, delta: Decimal, balance: Decimal) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_BALANCE_ADJUSTED,
            entity_type="accounts",
            entity_id=account_id,
            description=f"Balance adjusted by {_money(delta)}",
            details={"delta": _money(delta), "balance": _money(balance)},
        )

    @staticmethod
    def expense_applied(
        expense_id: UUID,
        user_id: UUID,
        user_share: Decimal,
        owed_by_others: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_APPLIED,
            user_id=user_id,
            entity_type="expenses",
            entity_id=expense_id,
            description=f"Expense recorded, user share {_money(user_share)}",
            details={
                "user_share": _money(user_share),
                "owed_by_others": _money(owed_by_others),
            },
        )

    @staticmethod
    def expense_updated(
        expense_id: UUID,
        user_id: UUID,
        old_share: Decimal,
        new_share: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            user_id=user_id,
            entity_type="expenses",
            entity_id=expense_id,
            description="Expense edited and re-applied",
            details={"old_share": _money(old_share), "new_share": _money(new_share)},
        )

    @staticmethod
    def expense_deleted(expense_id: UUID, user_id: UUID, user_share: Decimal) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            user_id=user_id,
            entity_type="expenses",
            entity_id=expense_id,
            description=f"Expense deleted, {_money(user_share)} credited back",
            details={"user_share": _money(user_share)},
        )

    @staticmethod
    def transfer_applied(
        transfer_id: UUID,
        user_id: UUID,
        from_account_id: UUID,
        to_account_id: UUID,
        amount: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_APPLIED,
            user_id=user_id,
            entity_type="transfers",
            entity_id=transfer_id,
            description=f"Transferred {_money(amount)} between accounts",
            details={
                "from_account_id": str(from_account_id),
                "to_account_id": str(to_account_id),
                "amount": _money(amount),
            },
        )

    @staticmethod
    def repayment_recorded(
        repayment_id: UUID,
        user_id: UUID,
        person_name: str,
        amount: Decimal,
        remaining: Optional[Decimal],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPAYMENT_RECORDED,
            user_id=user_id,
            entity_type="repayments",
            entity_id=repayment_id,
            description=f"{person_name} repaid {_money(amount)}",
            details={
                "person_name": person_name,
                "amount": _money(amount),
                "remaining": _money(remaining) if remaining is not None else None,
            },
        )

    @staticmethod
    def balance_settled(
        balance_id: UUID,
        user_id: UUID,
        person_name: str,
        amount: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_SETTLED,
            user_id=user_id,
            entity_type="balancesOwed",
            entity_id=balance_id,
            description=f"Settled up with {person_name}",
            details={"person_name": person_name, "amount": _money(amount)},
        )

    @staticmethod
    def account_reconciled(
        account_id: UUID,
        user_id: UUID,
        previous: Decimal,
        actual: Decimal,
        adjusted: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_RECONCILED,
            severity=AuditSeverity.WARNING if adjusted else AuditSeverity.INFO,
            user_id=user_id,
            entity_type="accounts",
            entity_id=account_id,
            description=(
                "Account balance adjusted to match statement"
                if adjusted
                else "Account balance already matches statement"
            ),
            details={
                "previous_balance": _money(previous),
                "actual_balance": _money(actual),
            },
        )

    @staticmethod
    def subscriptions_processed(user_id: UUID, expense_ids: list[UUID]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTIONS_PROCESSED,
            user_id=user_id,
            entity_type="expenses",
            description=f"Recorded {len(expense_ids)} subscription charge(s)",
            details={"expense_ids": [str(e) for e in expense_ids]},
        )

    @staticmethod
    def budget_copied(user_id: UUID, month: int, year: int, count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_COPIED,
            user_id=user_id,
            entity_type="budgetCategories",
            description=f"Copied {count} budget categories to {month}/{year}",
            details={"month": month, "year": year, "count": count},
        )

    @staticmethod
    def salary_deposit_confirmed(
        transaction_id: UUID,
        user_id: UUID,
        salary_id: UUID,
        amount: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SALARY_DEPOSIT_CONFIRMED,
            user_id=user_id,
            entity_type="incomeTransactions",
            entity_id=transaction_id,
            description=f"Salary deposit of {_money(amount)} confirmed",
            details={"salary_id": str(salary_id), "amount": _money(amount)},
        )

    @staticmethod
    def iou_settled(iou_id: UUID, user_id: UUID, person_name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IOU_SETTLED,
            user_id=user_id,
            entity_type="friendIOUs",
            entity_id=iou_id,
            description=f"IOU with {person_name} settled",
        )

    @staticmethod
    def savings_contribution(budget_id: UUID, user_id: UUID, amount: Decimal) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVINGS_CONTRIBUTION,
            user_id=user_id,
            entity_type="savingsBudgets",
            entity_id=budget_id,
            description=f"Contributed {_money(amount)} to savings",
            details={"amount": _money(amount)},
        )

    @staticmethod
    def action_items_generated(user_id: UUID, created: int, total: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTION_ITEMS_GENERATED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            entity_type="actionItems",
            description=f"Action rules evaluated, {created} new item(s)",
            details={"created": created, "active": total},
        )

    @staticmethod
    def action_item_dismissed(item_id: UUID, user_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTION_ITEM_DISMISSED,
            user_id=user_id,
            entity_type="actionItems",
            entity_id=item_id,
            description="Action item dismissed",
        )

    @staticmethod
    def action_items_removed(
        user_id: UUID,
        item_type: str,
        related_entity_id: Optional[UUID],
        count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTION_ITEMS_REMOVED,
            user_id=user_id,
            entity_type="actionItems",
            entity_id=related_entity_id,
            description=f"Resolved {count} '{item_type}' item(s)",
            details={"type": item_type, "count": count},
        )

    @staticmethod
    def monthly_review_completed(
        status_id: UUID,
        user_id: UUID,
        month: int,
        year: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MONTHLY_REVIEW_COMPLETED,
            user_id=user_id,
            entity_type="monthlyReviewStatuses",
            entity_id=status_id,
            description=f"Monthly review for {month}/{year} completed",
            details={"month": month, "year": year},
        )

    @staticmethod
    def scheduled_transfer_saved(scheduled_id: UUID, user_id: UUID, is_new: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SCHEDULED_TRANSFER_SAVED,
            user_id=user_id,
            entity_type="scheduledTransfers",
            entity_id=scheduled_id,
            description="Transfer scheduled" if is_new else "Scheduled transfer updated",
            details={"is_new": is_new},
        )

    @staticmethod
    def scheduled_transfer_confirmed(
        scheduled_id: UUID,
        user_id: UUID,
        transfer_id: UUID,
        is_completed: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SCHEDULED_TRANSFER_CONFIRMED,
            user_id=user_id,
            entity_type="scheduledTransfers",
            entity_id=scheduled_id,
            description="Scheduled transfer approved",
            details={"transfer_id": str(transfer_id), "is_completed": is_completed},
        )

    @staticmethod
    def scheduled_transfer_declined(
        scheduled_id: UUID,
        user_id: UUID,
        is_completed: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SCHEDULED_TRANSFER_DECLINED,
            user_id=user_id,
            entity_type="scheduledTransfers",
            entity_id=scheduled_id,
            description=(
                "Scheduled transfer cancelled"
                if is_completed
                else "Scheduled transfer occurrence skipped"
            ),
            details={"is_completed": is_completed},
        )
