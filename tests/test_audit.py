"""
Tests for the audit logger and the events operations emit
"""

from decimal import Decimal

from flourish.audit import AuditLogger
from flourish.models.audit import AuditEvent, AuditEventType, AuditSeverity
from flourish.models.finance import Expense


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_history_is_bounded(self):
        """Test only the most recent events are kept."""
        logger = AuditLogger(history_size=2)
        for description in ("one", "two", "three"):
            logger(AuditEvent(event_type=AuditEventType.ENTITY_SAVED, description=description))

        assert [e.description for e in logger.history] == ["two", "three"]

    def test_no_history_by_default(self):
        """Test history is empty unless requested."""
        logger = AuditLogger()
        logger.log(AuditEvent(event_type=AuditEventType.ENTITY_SAVED, description="x"))
        assert logger.history == []

    def test_logs_every_severity(self):
        """Test each severity is accepted."""
        logger = AuditLogger(history_size=10)
        for severity in AuditSeverity:
            logger.log(AuditEvent(
                event_type=AuditEventType.ENTITY_SAVED,
                severity=severity,
                description=severity.value,
            ))
        assert len(logger.history) == len(AuditSeverity)


class TestOperationEvents:
    """Tests that ledger operations emit descriptive events."""

    def test_expense_lifecycle_events(self, store, ledger, user_id, checking):
        """Test apply, update and delete each emit their own event."""
        audit = AuditLogger(history_size=10)
        store.subscribe(audit)

        expense = Expense(
            user_id=user_id,
            amount=Decimal("50"),
            category_name="Groceries",
            account_id=checking.id,
        )
        ledger.apply_expense(expense)
        ledger.update_expense(expense.model_copy(update={"amount": Decimal("60")}))
        ledger.delete_expense(expense.id)

        assert [e.event_type for e in audit.history] == [
            AuditEventType.EXPENSE_APPLIED,
            AuditEventType.EXPENSE_UPDATED,
            AuditEventType.EXPENSE_DELETED,
        ]
        assert all(e.entity_id == expense.id for e in audit.history)
