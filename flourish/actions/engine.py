"""
Action Rule Engine

DESIGN DECISION: Action items are DERIVED, but STORED.
Every refresh re-runs all rules against current state, and the creation
policy makes that idempotent:
- Ordinary items are skipped when a non-dismissed item already exists for
  the same (user, type, related entity)
- Monthly review items replace any existing item for the same
  (user, type, related entity), dismissed or not, so the 7-days-before
  reminder becomes the 3-days-before one in place. An active item with
  the same title and message is left untouched

Items stay until the user dismisses them or the triggering action
(confirming a deposit, approving a transfer, completing a review) resolves
them. The rules never delete anything themselves.

Rules, in evaluation order:
1. Salary pending      - deposit due within the window, or overdue
2. Subscription due    - renewal within the window
3. Overspending        - current-month category over its limit
4. Friend balance      - someone owes more than the threshold
5. Pending transfer    - scheduled transfer due today
6. Monthly review      - current month near its end, or previous month open
"""

import calendar
from datetime import date
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

from flourish.audit.logger import get_logger
from flourish.config import AppSettings, get_settings
from flourish.models.actions import ActionItem, ActionItemPriority, ActionItemType
from flourish.models.audit import AuditEventBuilder
from flourish.models.finance import MonthlyReviewStatus, ScheduledTransfer
from flourish.store import Collection, EntityStore


logger = get_logger(__name__)


def format_money(amount: Decimal, currency_code: str) -> str:
    return f"{currency_code} {amount:,.2f}"


def days_until_month_end(today: date) -> int:
    last_day = calendar.monthrange(today.year, today.month)[1]
    return last_day - today.day


def previous_month(today: date) -> tuple[int, int]:
    if today.month == 1:
        return 12, today.year - 1
    return today.month - 1, today.year


class ActionEngine:
    """
    Generates, deduplicates and retires Action Center items.

    GUARANTEES:
    - Running generate_action_items twice on unchanged state creates
      nothing the second time
    - At most one monthly review item per (user, month, year)
    """

    def __init__(
        self,
        store: EntityStore,
        settings: Optional[AppSettings] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().app

    def _money(self, amount: Decimal) -> str:
        return format_money(amount, self._store.currency_code)

    # -------------------------------------------------------------------------
    # Creation policy
    # -------------------------------------------------------------------------

    def _insert(self, item: ActionItem) -> bool:
        """Apply the creation policy without committing."""
        items = self._store.items(Collection.ACTION_ITEMS)

        if item.type == ActionItemType.MONTHLY_FINANCE_REVIEW:
            for existing in items:
                if (
                    not existing.is_dismissed
                    and existing.matches(item.user_id, item.type, item.related_entity_id)
                    and existing.title == item.title
                    and existing.message == item.message
                ):
                    return False
            self._store.remove_where(
                Collection.ACTION_ITEMS,
                lambda existing: existing.matches(
                    item.user_id, item.type, item.related_entity_id
                ),
            )
            items.append(item)
            return True

        for existing in items:
            if not existing.is_dismissed and existing.matches(
                item.user_id, item.type, item.related_entity_id
            ):
                return False

        items.append(item)
        return True

    def create_action_item(self, item: ActionItem, commit: bool = True) -> bool:
        """
        Store an action item unless an equivalent one is still active.

        Returns:
            True if the item was stored
        """
        with self._store.locked():
            inserted = self._insert(item)
            if inserted and commit:
                self._store.commit(
                    AuditEventBuilder.entity_saved(
                        Collection.ACTION_ITEMS.value, item.id, item.user_id
                    )
                )
            return inserted

    # -------------------------------------------------------------------------
    # Rule evaluation
    # -------------------------------------------------------------------------

    def generate_action_items(self, user_id: UUID) -> list[ActionItem]:
        """
        Evaluate every rule for a user.

        Returns:
            The items that were actually stored by this pass
        """
        with self._store.locked():
            today = self._store.today()
            candidates: list[ActionItem] = []
            candidates.extend(self._salary_items(user_id, today))
            candidates.extend(self._subscription_items(user_id, today))
            candidates.extend(self._overspending_items(user_id, today))
            candidates.extend(self._friend_balance_items(user_id))
            candidates.extend(self._pending_transfer_items(user_id, today))
            candidates.extend(self._monthly_review_items(user_id, today))

            created = [item for item in candidates if self._insert(item)]

            self._store.commit(
                AuditEventBuilder.action_items_generated(
                    user_id,
                    created=len(created),
                    total=len(self.get_action_items(user_id)),
                )
            )
            return created

    def _salary_items(self, user_id: UUID, today: date) -> list[ActionItem]:
        window = self._settings.salary_due_window_days
        items = []
        for salary in self._store.get_salary_incomes(user_id):
            if not salary.is_active:
                continue
            overdue = salary.is_overdue(today)
            if not overdue and not salary.is_due_soon(today, window):
                continue

            expected = salary.next_expected_date.strftime("%b %d")
            days = salary.days_until_due(today)
            if overdue:
                message = (
                    f"Your {salary.name} deposit of {self._money(salary.amount)} was "
                    f"expected on {expected}. Confirm it once it has arrived."
                )
            elif days == 0:
                message = (
                    f"Your {salary.name} deposit of {self._money(salary.amount)} "
                    f"is expected today."
                )
            else:
                message = (
                    f"Your {salary.name} deposit of {self._money(salary.amount)} "
                    f"is expected in {days} day{'s' if days != 1 else ''} ({expected})."
                )

            items.append(ActionItem(
                user_id=user_id,
                type=ActionItemType.SALARY_PENDING,
                priority=ActionItemPriority.HIGH if overdue else ActionItemPriority.MEDIUM,
                title="Salary Pending",
                message=message,
                created_at=self._store.now(),
                related_entity_id=salary.id,
            ))
        return items

    def _subscription_items(self, user_id: UUID, today: date) -> list[ActionItem]:
        window = self._settings.subscription_due_window_days
        items = []
        for subscription in self._store.get_subscriptions(user_id):
            if not subscription.is_due_soon(today, window):
                continue
            days = subscription.days_until_due(today)
            when = "today" if days == 0 else f"in {days} day{'s' if days != 1 else ''}"
            items.append(ActionItem(
                user_id=user_id,
                type=ActionItemType.SUBSCRIPTION_DUE,
                priority=ActionItemPriority.MEDIUM,
                title=f"{subscription.name} Due",
                message=f"{subscription.name} ({self._money(subscription.amount)}) renews {when}.",
                created_at=self._store.now(),
                related_entity_id=subscription.id,
            ))
        return items

    def _overspending_items(self, user_id: UUID, today: date) -> list[ActionItem]:
        items = []
        for category in self._store.get_budget_categories(user_id, today.month, today.year):
            if category.spent <= category.monthly_limit:
                continue
            items.append(ActionItem(
                user_id=user_id,
                type=ActionItemType.OVERSPENDING,
                priority=ActionItemPriority.HIGH,
                title=f"Over Budget: {category.name}",
                message=(
                    f"You are {self._money(category.overage)} over your {category.name} "
                    f"budget of {self._money(category.monthly_limit)}."
                ),
                created_at=self._store.now(),
                related_entity_id=category.id,
            ))
        return items

    def _friend_balance_items(self, user_id: UUID) -> list[ActionItem]:
        threshold = self._settings.friend_balance_alert_threshold
        items = []
        for balance in self._store.get_balances_owed(user_id):
            if balance.amount <= threshold:
                continue
            items.append(ActionItem(
                user_id=user_id,
                type=ActionItemType.FRIEND_BALANCE,
                priority=ActionItemPriority.LOW,
                title=f"{balance.person_name} Owes You",
                message=f"{balance.person_name} owes you {self._money(balance.amount)}.",
                created_at=self._store.now(),
                related_entity_id=balance.id,
            ))
        return items

    def pending_transfer_item(self, scheduled: ScheduledTransfer) -> ActionItem:
        """Build the approval reminder for a scheduled transfer."""
        from_account = self._store.get_account(scheduled.from_account_id)
        to_account = self._store.get_account(scheduled.to_account_id)
        from_name = from_account.name if from_account else "Unknown account"
        to_name = to_account.name if to_account else "Unknown account"

        return ActionItem(
            user_id=scheduled.user_id,
            type=ActionItemType.PENDING_TRANSFER,
            priority=ActionItemPriority.MEDIUM,
            title="Scheduled Transfer",
            message=(
                f"Transfer {self._money(scheduled.amount)} from {from_name} to {to_name} "
                f"is waiting for your approval."
            ),
            created_at=self._store.now(),
            related_entity_id=scheduled.id,
        )

    def _pending_transfer_items(self, user_id: UUID, today: date) -> list[ActionItem]:
        return [
            self.pending_transfer_item(scheduled)
            for scheduled in self._store.get_scheduled_transfers(user_id)
            if scheduled.is_due(today)
        ]

    def _monthly_review_items(self, user_id: UUID, today: date) -> list[ActionItem]:
        items = []

        days_left = days_until_month_end(today)
        if days_left in self._settings.review_reminder_days_list:
            existing = self._store.find_review_status(user_id, today.month, today.year)
            if existing is None or not existing.is_completed:
                status = existing or self._create_review_status(user_id, today.month, today.year)
                if days_left == 0:
                    message = (
                        f"Today is the last day of {status.month_year_label}. "
                        f"Take a few minutes to review your accounts and budgets."
                    )
                else:
                    message = (
                        f"{status.month_year_label} ends in {days_left} days. "
                        f"Review your accounts and budgets before the month closes."
                    )
                items.append(ActionItem(
                    user_id=user_id,
                    type=ActionItemType.MONTHLY_FINANCE_REVIEW,
                    priority=ActionItemPriority.HIGH,
                    title="Monthly Finance Review",
                    message=message,
                    created_at=self._store.now(),
                    related_entity_id=status.id,
                ))

        month, year = previous_month(today)
        existing = self._store.find_review_status(user_id, month, year)
        if existing is None or not existing.is_completed:
            status = existing or self._create_review_status(user_id, month, year)
            items.append(ActionItem(
                user_id=user_id,
                type=ActionItemType.MONTHLY_FINANCE_REVIEW,
                priority=ActionItemPriority.HIGH,
                title=f"Overdue: {status.month_year_label} Review",
                message=(
                    f"You haven't reviewed {status.month_year_label} yet. "
                    f"Confirm your balances match your statements to close the month."
                ),
                created_at=self._store.now(),
                related_entity_id=status.id,
            ))

        return items

    # -------------------------------------------------------------------------
    # Monthly review status
    # -------------------------------------------------------------------------

    def _create_review_status(self, user_id: UUID, month: int, year: int) -> MonthlyReviewStatus:
        status = MonthlyReviewStatus(user_id=user_id, month=month, year=year)
        self._store.upsert(Collection.MONTHLY_REVIEW_STATUSES, status)
        return status

    def get_review_status(self, user_id: UUID, month: int, year: int) -> Optional[MonthlyReviewStatus]:
        return self._store.find_review_status(user_id, month, year)

    def complete_monthly_review(self, user_id: UUID, month: int, year: int) -> MonthlyReviewStatus:
        """
        Mark a month reviewed and retire its reminder.

        Only the reminder for this (month, year) is removed; another open
        month keeps nagging.
        """
        with self._store.locked():
            status = (
                self._store.find_review_status(user_id, month, year)
                or self._create_review_status(user_id, month, year)
            )
            status.is_completed = True
            status.completed_at = self._store.now()

            self.remove_action_items(
                user_id,
                ActionItemType.MONTHLY_FINANCE_REVIEW,
                related_entity_id=status.id,
                commit=False,
            )
            self._store.commit(
                AuditEventBuilder.monthly_review_completed(status.id, user_id, month, year)
            )
            return status

    # -------------------------------------------------------------------------
    # Retrieval & resolution
    # -------------------------------------------------------------------------

    def get_action_items(self, user_id: UUID) -> list[ActionItem]:
        """Active items for a user, highest priority first (stable within a priority)."""
        active = self._store.filter(
            Collection.ACTION_ITEMS,
            lambda item: item.user_id == user_id and not item.is_dismissed,
        )
        return sorted(active, key=lambda item: item.priority, reverse=True)

    def dismiss_action_item(self, item: Union[ActionItem, UUID]) -> bool:
        item_id = item.id if isinstance(item, ActionItem) else item
        with self._store.locked():
            stored = self._store.get(Collection.ACTION_ITEMS, item_id)
            if stored is None:
                logger.debug("action_item_missing", item_id=str(item_id))
                return False
            stored.is_dismissed = True
            self._store.commit(
                AuditEventBuilder.action_item_dismissed(stored.id, stored.user_id)
            )
            return True

    def _matching(
        self,
        user_id: UUID,
        item_type: ActionItemType,
        related_entity_id: Optional[UUID],
    ):
        def predicate(item: ActionItem) -> bool:
            if item.user_id != user_id or item.type != item_type:
                return False
            return related_entity_id is None or item.related_entity_id == related_entity_id
        return predicate

    def remove_action_items(
        self,
        user_id: UUID,
        item_type: ActionItemType,
        related_entity_id: Optional[UUID] = None,
        commit: bool = True,
    ) -> int:
        """
        Delete items of a type for a user.

        Args:
            related_entity_id: Restrict to one related entity; None removes all
            commit: Persist immediately (False when part of a larger operation)

        Returns:
            Number of items removed
        """
        with self._store.locked():
            removed = self._store.remove_where(
                Collection.ACTION_ITEMS,
                self._matching(user_id, item_type, related_entity_id),
            )
            if removed and commit:
                self._store.commit(
                    AuditEventBuilder.action_items_removed(
                        user_id, item_type.value, related_entity_id, len(removed)
                    )
                )
            return len(removed)

    def dismiss_action_items(
        self,
        user_id: UUID,
        item_type: ActionItemType,
        related_entity_id: Optional[UUID] = None,
        commit: bool = True,
    ) -> int:
        """Flag matching items dismissed. Returns how many changed."""
        with self._store.locked():
            matches = self._matching(user_id, item_type, related_entity_id)
            changed = 0
            for item in self._store.items(Collection.ACTION_ITEMS):
                if matches(item) and not item.is_dismissed:
                    item.is_dismissed = True
                    changed += 1
            if changed and commit:
                self._store.commit(
                    AuditEventBuilder.action_items_removed(
                        user_id, item_type.value, related_entity_id, changed
                    )
                )
            return changed
