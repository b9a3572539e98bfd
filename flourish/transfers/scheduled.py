"""
Scheduled Transfer State Machine

A scheduled transfer moves no money until the user approves it.

States:
    Scheduled (pending approval)
      -> Completed                  one-time, on confirm or decline
      -> Scheduled (next occurrence) recurring, on confirm or decline

DESIGN DECISION: Two-phase commit.
- Saving proposes the transfer
- confirm_scheduled_transfer commits it through Ledger.apply_transfer
- decline_scheduled_transfer skips the occurrence (recurring) or cancels
  the transfer for good (one-time)

Either resolution removes the related pendingTransfer action items.
"""

from datetime import timedelta
from typing import Optional
from uuid import UUID

from flourish.actions.engine import ActionEngine
from flourish.audit.logger import get_logger
from flourish.ledger.operations import Ledger
from flourish.models.actions import ActionItemType
from flourish.models.audit import AuditEventBuilder
from flourish.models.finance import ScheduledTransfer, Transfer
from flourish.store import Collection, EntityStore


logger = get_logger(__name__)


class ScheduledTransferService:
    """Approval workflow for scheduled transfers."""

    def __init__(self, store: EntityStore, ledger: Ledger, actions: ActionEngine):
        self._store = store
        self._ledger = ledger
        self._actions = actions

    def save_scheduled_transfer(self, scheduled: ScheduledTransfer) -> bool:
        """
        Insert or replace a scheduled transfer.

        A new transfer scheduled for today or earlier gets its approval
        reminder straight away instead of waiting for the next refresh.

        Returns:
            True if the transfer was new
        """
        with self._store.locked():
            is_new = self._store.upsert(Collection.SCHEDULED_TRANSFERS, scheduled)
            if is_new and scheduled.scheduled_date.date() <= self._store.today():
                self._actions.create_action_item(
                    self._actions.pending_transfer_item(scheduled),
                    commit=False,
                )
            self._store.commit(
                AuditEventBuilder.scheduled_transfer_saved(scheduled.id, scheduled.user_id, is_new)
            )
            return is_new

    def delete_scheduled_transfer(self, scheduled_id: UUID) -> bool:
        with self._store.locked():
            scheduled = self._store.get(Collection.SCHEDULED_TRANSFERS, scheduled_id)
            if scheduled is None:
                return False
            self._remove_reminders(scheduled)
            return self._store.delete(Collection.SCHEDULED_TRANSFERS, scheduled_id)

    def get_scheduled_transfers(
        self,
        user_id: UUID,
        include_completed: bool = False,
    ) -> list[ScheduledTransfer]:
        transfers = self._store.get_scheduled_transfers(user_id, include_completed)
        return sorted(transfers, key=lambda s: s.scheduled_date)

    def get_due_transfers(self, user_id: UUID) -> list[ScheduledTransfer]:
        """Incomplete transfers waiting for approval today."""
        today = self._store.today()
        return [s for s in self.get_scheduled_transfers(user_id) if s.is_due(today)]

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def _advance_or_complete(self, scheduled: ScheduledTransfer) -> None:
        if scheduled.is_recurring:
            scheduled.scheduled_date = scheduled.scheduled_date + timedelta(
                days=scheduled.recurrence_days
            )
        else:
            scheduled.is_completed = True
            scheduled.completed_date = self._store.now()

    def _remove_reminders(self, scheduled: ScheduledTransfer) -> None:
        self._actions.remove_action_items(
            scheduled.user_id,
            ActionItemType.PENDING_TRANSFER,
            related_entity_id=scheduled.id,
            commit=False,
        )

    def _resolve(self, scheduled: ScheduledTransfer) -> Optional[ScheduledTransfer]:
        """Store the caller's copy and refuse transfers already finished."""
        self._store.upsert(Collection.SCHEDULED_TRANSFERS, scheduled)
        if scheduled.is_completed:
            logger.warning(
                "scheduled_transfer_already_completed",
                scheduled_id=str(scheduled.id),
            )
            return None
        return scheduled

    def confirm_scheduled_transfer(self, scheduled: ScheduledTransfer) -> Optional[Transfer]:
        """
        Approve the pending occurrence and move the money.

        Returns:
            The completed Transfer, or None if nothing was pending
        """
        with self._store.locked():
            if self._resolve(scheduled) is None:
                return None

            transfer = Transfer(
                user_id=scheduled.user_id,
                from_account_id=scheduled.from_account_id,
                to_account_id=scheduled.to_account_id,
                amount=scheduled.amount,
                date=self._store.now(),
                notes=scheduled.notes or "",
            )
            self._ledger.apply_transfer(transfer, commit=False)
            self._advance_or_complete(scheduled)
            self._remove_reminders(scheduled)

            self._store.commit(
                AuditEventBuilder.scheduled_transfer_confirmed(
                    scheduled.id, scheduled.user_id, transfer.id, scheduled.is_completed
                )
            )
            return transfer

    def decline_scheduled_transfer(self, scheduled: ScheduledTransfer) -> Optional[ScheduledTransfer]:
        """
        Reject the pending occurrence without moving money.

        Returns:
            The updated scheduled transfer, or None if nothing was pending
        """
        with self._store.locked():
            if self._resolve(scheduled) is None:
                return None

            self._advance_or_complete(scheduled)
            self._remove_reminders(scheduled)

            self._store.commit(
                AuditEventBuilder.scheduled_transfer_declined(
                    scheduled.id, scheduled.user_id, scheduled.is_completed
                )
            )
            return scheduled
