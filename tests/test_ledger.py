"""
Tests for ledger operations

Balances are checked after every step: each effect must have an exact
inverse, so round trips always come back to the starting figures.
"""

import pytest
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from flourish.ledger import RECONCILIATION_CATEGORY
from flourish.models.actions import ActionItemType
from flourish.models.finance import (
    Account,
    AccountType,
    BalanceOwed,
    BudgetCategory,
    Expense,
    FriendIOU,
    IncomeFrequency,
    IOUDirection,
    Repayment,
    SalaryIncome,
    SavingsBudget,
    SavingsType,
    SplitParticipant,
    Subscription,
    SubscriptionFrequency,
    Transfer,
)
from flourish.store import Collection

from tests.conftest import FIXED_NOW


def make_expense(user_id, account, amount, category="Groceries", **kwargs):
    return Expense(
        user_id=user_id,
        amount=Decimal(amount),
        date=kwargs.pop("date", FIXED_NOW),
        category_name=category,
        account_id=account.id,
        **kwargs,
    )


def split_with_friend(you="30", friend="20"):
    return [
        SplitParticipant(name="You", amount=Decimal(you), is_current_user=True),
        SplitParticipant(name="Friend", amount=Decimal(friend)),
    ]


def items_for(store, related_entity_id):
    return store.filter(
        Collection.ACTION_ITEMS,
        lambda item: item.related_entity_id == related_entity_id,
    )


class TestExpenseLedger:
    """Tests for applying, editing and deleting expenses."""

    def test_expense_round_trip(self, ledger, store, user_id, checking, groceries):
        """Test save then delete leaves balance and spending untouched."""
        expense = make_expense(user_id, checking, "50")

        assert ledger.apply_expense(expense) is True
        assert checking.balance == Decimal("950")
        assert groceries.spent == Decimal("50")

        assert ledger.delete_expense(expense) is True
        assert checking.balance == Decimal("1000")
        assert groceries.spent == Decimal("0")
        assert store.get(Collection.EXPENSES, expense.id) is None

    def test_complete_expense_flow(self, ledger, user_id, checking, groceries):
        """Test a single purchase updates account and budget."""
        ledger.apply_expense(make_expense(user_id, checking, "75"))

        assert checking.balance == Decimal("925")
        assert groceries.spent == Decimal("75")
        assert groceries.remaining == Decimal("425")

    def test_split_expense_debits_only_user_share(self, ledger, store, user_id, checking, groceries):
        """Test a split expense debits the user's share and records what others owe."""
        expense = make_expense(
            user_id, checking, "50", split_participants=split_with_friend()
        )
        ledger.apply_expense(expense)

        assert checking.balance == Decimal("970")
        assert groceries.spent == Decimal("30")
        owed = store.find_balance_owed(user_id, "Friend")
        assert owed is not None
        assert owed.amount == Decimal("20")
        assert owed.last_updated == FIXED_NOW

    def test_split_accumulates_existing_balance(self, ledger, store, user_id, checking):
        """Test a second split adds to the existing balance owed."""
        ledger.apply_expense(make_expense(user_id, checking, "50", split_participants=split_with_friend()))
        ledger.apply_expense(make_expense(user_id, checking, "40", split_participants=split_with_friend("25", "15")))

        assert len(store.get_balances_owed(user_id)) == 1
        assert store.find_balance_owed(user_id, "Friend").amount == Decimal("35")

    def test_resaving_existing_expense_does_not_reapply(self, ledger, user_id, checking, groceries):
        """Test re-saving the same id replaces without a second debit."""
        expense = make_expense(user_id, checking, "50")
        ledger.apply_expense(expense)

        assert ledger.apply_expense(expense) is False
        assert checking.balance == Decimal("950")
        assert groceries.spent == Decimal("50")

    def test_update_then_delete_is_neutral(self, ledger, user_id, checking, groceries):
        """Test edits followed by deletion net out to zero."""
        expense = make_expense(user_id, checking, "50")
        ledger.apply_expense(expense)

        ledger.update_expense(expense.model_copy(update={"amount": Decimal("80")}))
        assert checking.balance == Decimal("920")
        assert groceries.spent == Decimal("80")

        ledger.update_expense(expense.model_copy(update={"amount": Decimal("10")}))
        assert checking.balance == Decimal("990")
        assert groceries.spent == Decimal("10")

        ledger.delete_expense(expense.id)
        assert checking.balance == Decimal("1000")
        assert groceries.spent == Decimal("0")

    def test_update_unrelated_field_is_noop(self, ledger, store, user_id, checking, groceries):
        """Test changing only the description leaves balances alone."""
        expense = make_expense(user_id, checking, "50", description="Market")
        ledger.apply_expense(expense)

        ledger.update_expense(expense.model_copy(update={"description": "Farmers market"}))

        assert checking.balance == Decimal("950")
        assert groceries.spent == Decimal("50")
        assert store.get(Collection.EXPENSES, expense.id).description == "Farmers market"

    def test_update_moves_between_accounts(self, ledger, user_id, checking, savings):
        """Test changing the account credits the old one and debits the new one."""
        expense = make_expense(user_id, checking, "50")
        ledger.apply_expense(expense)

        ledger.update_expense(expense.model_copy(update={"account_id": savings.id}))

        assert checking.balance == Decimal("1000")
        assert savings.balance == Decimal("450")

    def test_update_moves_budget_month(self, ledger, user_id, checking, groceries):
        """Test re-dating into a month without a budget releases this month's spending."""
        expense = make_expense(user_id, checking, "50")
        ledger.apply_expense(expense)

        ledger.update_expense(expense.model_copy(update={"date": datetime(2025, 9, 30)}))

        assert groceries.spent == Decimal("0")
        assert checking.balance == Decimal("950")

    def test_update_removes_split_balance(self, ledger, store, user_id, checking):
        """Test dropping a split reverses what the friend owed."""
        expense = make_expense(user_id, checking, "50", split_participants=split_with_friend())
        ledger.apply_expense(expense)

        ledger.update_expense(expense.model_copy(update={"split_participants": []}))

        assert store.find_balance_owed(user_id, "Friend") is None
        assert checking.balance == Decimal("950")

    def test_update_requires_a_copy(self, ledger, user_id, checking):
        """Test passing the stored instance itself is rejected."""
        expense = make_expense(user_id, checking, "50")
        ledger.apply_expense(expense)

        with pytest.raises(ValueError):
            ledger.update_expense(expense)

    def test_delete_reverses_balances_owed(self, ledger, store, user_id, checking):
        """Test deleting a split expense also clears what was owed."""
        expense = make_expense(user_id, checking, "50", split_participants=split_with_friend())
        ledger.apply_expense(expense)

        ledger.delete_expense(expense)

        assert store.find_balance_owed(user_id, "Friend") is None
        assert checking.balance == Decimal("1000")

    def test_delete_unknown_expense(self, ledger):
        """Test deleting an unknown expense is a no-op."""
        assert ledger.delete_expense(uuid4()) is False

    def test_missing_account_is_ignored(self, ledger, store, user_id, groceries):
        """Test an unknown account id skips only the balance effect."""
        ghost = Account(user_id=user_id, name="Ghost", type=AccountType.CHECKING)
        expense = make_expense(user_id, ghost, "50")

        ledger.apply_expense(expense)

        assert groceries.spent == Decimal("50")
        assert store.get(Collection.EXPENSES, expense.id) is not None


class TestTransfers:
    """Tests for immediate transfers."""

    def test_transfer_moves_money(self, ledger, store, user_id, checking, savings):
        """Test a transfer debits one account and credits the other."""
        transfer = Transfer(
            user_id=user_id,
            from_account_id=checking.id,
            to_account_id=savings.id,
            amount=Decimal("200"),
            date=FIXED_NOW,
        )
        ledger.apply_transfer(transfer)

        assert checking.balance == Decimal("800")
        assert savings.balance == Decimal("700")
        assert store.get_transfers(user_id) == [transfer]

    def test_update_account_balance(self, ledger, checking):
        """Test a direct balance adjustment accepts plain numbers."""
        ledger.update_account_balance(checking.id, -12.5)
        assert checking.balance == Decimal("987.5")

    def test_update_unknown_account(self, ledger):
        """Test adjusting an unknown account returns None."""
        assert ledger.update_account_balance(uuid4(), 10) is None


class TestBalancesOwed:
    """Tests for repayments and settling up."""

    def _owed(self, ledger, user_id, amount="100"):
        balance = BalanceOwed(user_id=user_id, person_name="Alex", amount=Decimal(amount))
        ledger.save_balance_owed(balance)
        return balance

    def test_partial_repayment(self, ledger, store, user_id):
        """Test a partial repayment reduces the balance."""
        self._owed(ledger, user_id)

        remaining = ledger.record_repayment(
            Repayment(user_id=user_id, person_name="Alex", amount=Decimal("50"))
        )

        assert remaining.amount == Decimal("50")
        assert len(store.get_repayments(user_id)) == 1

    def test_full_repayment_removes_balance(self, ledger, store, user_id):
        """Test paying everything back removes the row entirely."""
        self._owed(ledger, user_id)

        remaining = ledger.record_repayment(
            Repayment(user_id=user_id, person_name="Alex", amount=Decimal("100"))
        )

        assert remaining is None
        assert store.get_balances_owed(user_id) == []

    def test_settle_up(self, ledger, actions, store, user_id):
        """Test settling up records a full repayment and retires the reminder."""
        balance = self._owed(ledger, user_id, "120")
        actions.generate_action_items(user_id)
        assert any(
            item.type == ActionItemType.FRIEND_BALANCE
            for item in actions.get_action_items(user_id)
        )

        repayment = ledger.settle_up_balance(user_id, "Alex")

        assert repayment.amount == Decimal("120")
        assert store.find_balance_owed(user_id, "Alex") is None
        assert not any(
            item.type == ActionItemType.FRIEND_BALANCE
            for item in actions.get_action_items(user_id)
        )
        dismissed = store.filter(
            Collection.ACTION_ITEMS, lambda item: item.related_entity_id == balance.id
        )
        assert dismissed and all(item.is_dismissed for item in dismissed)

    def test_settle_up_only_dismisses_that_person(self, ledger, actions, user_id):
        """Test other friends keep their reminders."""
        self._owed(ledger, user_id, "120")
        ledger.save_balance_owed(
            BalanceOwed(user_id=user_id, person_name="Sam", amount=Decimal("80"))
        )
        actions.generate_action_items(user_id)

        ledger.settle_up_balance(user_id, "Alex")

        remaining = [
            item for item in actions.get_action_items(user_id)
            if item.type == ActionItemType.FRIEND_BALANCE
        ]
        assert [item.title for item in remaining] == ["Sam Owes You"]

    def test_settle_up_unknown_person(self, ledger, user_id):
        """Test settling up with nobody owing returns None."""
        assert ledger.settle_up_balance(user_id, "Nobody") is None

    def test_full_repayment_dismisses_reminder(self, ledger, actions, store, user_id):
        """Test paying a balance off retires its friend balance reminder."""
        balance = self._owed(ledger, user_id, "120")
        actions.generate_action_items(user_id)

        ledger.record_repayment(
            Repayment(user_id=user_id, person_name="Alex", amount=Decimal("120"))
        )

        assert items_for(store, balance.id)
        assert all(item.is_dismissed for item in items_for(store, balance.id))
        assert not any(
            item.type == ActionItemType.FRIEND_BALANCE
            for item in actions.get_action_items(user_id)
        )

    def test_partial_repayment_keeps_reminder(self, ledger, actions, store, user_id):
        """Test a balance still owed keeps its reminder active."""
        balance = self._owed(ledger, user_id, "120")
        actions.generate_action_items(user_id)

        ledger.record_repayment(
            Repayment(user_id=user_id, person_name="Alex", amount=Decimal("20"))
        )

        assert not any(item.is_dismissed for item in items_for(store, balance.id))

    def test_deleting_split_dismisses_reminder(self, ledger, actions, store, user_id, checking):
        """Test deleting the split that created a balance retires its reminder."""
        expense = make_expense(
            user_id, checking, "100", split_participants=split_with_friend("40", "60")
        )
        ledger.apply_expense(expense)
        balance = store.find_balance_owed(user_id, "Friend")
        actions.generate_action_items(user_id)
        assert items_for(store, balance.id)

        ledger.delete_expense(expense)

        assert store.find_balance_owed(user_id, "Friend") is None
        assert all(item.is_dismissed for item in items_for(store, balance.id))

    def test_unsplitting_expense_dismisses_reminder(self, ledger, actions, store, user_id, checking):
        """Test editing away the split retires the reminder too."""
        expense = make_expense(
            user_id, checking, "100", split_participants=split_with_friend("40", "60")
        )
        ledger.apply_expense(expense)
        balance = store.find_balance_owed(user_id, "Friend")
        actions.generate_action_items(user_id)

        ledger.update_expense(expense.model_copy(update={"split_participants": []}))

        assert items_for(store, balance.id)
        assert all(item.is_dismissed for item in items_for(store, balance.id))


class TestReconciliation:
    """Tests for statement reconciliation."""

    def _account(self, store, user_id, balance="100"):
        account = Account(
            user_id=user_id,
            name="Checking",
            type=AccountType.CHECKING,
            balance=Decimal(balance),
        )
        store.save(Collection.ACCOUNTS, account)
        return account

    def test_within_tolerance(self, ledger, store, user_id):
        """Test sub-cent differences produce no record."""
        account = self._account(store, user_id)

        assert ledger.reconcile_account(account, Decimal("100.005")) is None
        assert account.balance == Decimal("100")
        assert store.get_expenses(user_id) == []

    def test_difference_creates_reconciliation_expense(self, ledger, store, user_id):
        """Test a real difference is recorded and the balance is forced."""
        account = self._account(store, user_id)

        adjustment = ledger.reconcile_account(account, 105, notes="Bank interest")

        assert adjustment.amount == Decimal("5")
        assert adjustment.category_name == RECONCILIATION_CATEGORY
        assert "Bank interest" in adjustment.description
        assert account.balance == Decimal("105")
        assert store.get_expenses(user_id) == [adjustment]

    def test_reconciliation_records_absolute_difference(self, ledger, user_id, store):
        """Test a shortfall is also recorded as a positive amount."""
        account = self._account(store, user_id)

        adjustment = ledger.reconcile_account(account.id, Decimal("90"))

        assert adjustment.amount == Decimal("10")
        assert account.balance == Decimal("90")

    def test_reconcile_accounts_for_review(self, ledger, store, user_id, checking, savings):
        """Test only accounts that differ produce adjustments."""
        adjustments = ledger.reconcile_accounts_for_review(
            user_id,
            {checking.id: Decimal("1000"), savings.id: Decimal("525")},
        )

        assert len(adjustments) == 1
        assert adjustments[0].account_id == savings.id
        assert savings.balance == Decimal("525")
        assert checking.balance == Decimal("1000")


class TestBudgets:
    """Tests for budget maintenance."""

    def test_copy_budget_to_next_month(self, ledger, store, user_id):
        """Test limits carry over with nothing spent."""
        ledger.save_budget_category(BudgetCategory(
            user_id=user_id,
            name="Groceries",
            monthly_limit=Decimal("500"),
            month=11,
            year=2025,
            spent=Decimal("320"),
        ))

        copies = ledger.copy_budget_to_next_month(user_id, 11, 2025)

        assert len(copies) == 1
        december = store.get_budget_categories(user_id, 12, 2025)
        assert december[0].monthly_limit == Decimal("500")
        assert december[0].spent == Decimal("0")

    def test_copy_budget_rolls_year(self, ledger, store, user_id):
        """Test December copies into January of the next year."""
        ledger.save_budget_category(BudgetCategory(
            user_id=user_id, name="Rent", monthly_limit=Decimal("1200"), month=12, year=2025,
        ))

        ledger.copy_budget_to_next_month(user_id, 12, 2025)

        assert len(store.get_budget_categories(user_id, 1, 2026)) == 1

    def test_copy_budget_skips_existing_month(self, ledger, store, user_id):
        """Test nothing is copied when the next month is already budgeted."""
        for month in (11, 12):
            ledger.save_budget_category(BudgetCategory(
                user_id=user_id, name="Rent", monthly_limit=Decimal("1200"), month=month, year=2025,
            ))

        assert ledger.copy_budget_to_next_month(user_id, 11, 2025) == []
        assert len(store.get_budget_categories(user_id, 12, 2025)) == 1


class TestSubscriptions:
    """Tests for subscription processing."""

    def _subscription(self, user_id, account, due, **kwargs):
        return Subscription(
            user_id=user_id,
            name="Streaming",
            amount=Decimal("15"),
            category_name="Entertainment",
            account_id=account.id,
            next_due_date=due,
            **kwargs,
        )

    def test_due_subscription_is_charged(self, ledger, store, user_id, checking):
        """Test a due subscription becomes an expense and rolls forward."""
        subscription = self._subscription(user_id, checking, datetime(2025, 10, 10))
        ledger.save_subscription(subscription)

        charged = ledger.process_subscriptions(user_id)

        assert len(charged) == 1
        assert charged[0].is_subscription
        assert charged[0].subscription_id == subscription.id
        assert checking.balance == Decimal("985")
        assert subscription.next_due_date == datetime(2025, 11, 10)

        assert ledger.process_subscriptions(user_id) == []
        assert checking.balance == Decimal("985")

    def test_future_and_inactive_subscriptions_skipped(self, ledger, user_id, checking):
        """Test only active, due subscriptions are charged."""
        ledger.save_subscription(self._subscription(user_id, checking, datetime(2025, 10, 20)))
        ledger.save_subscription(
            self._subscription(user_id, checking, datetime(2025, 10, 1), is_active=False)
        )

        assert ledger.process_subscriptions(user_id) == []
        assert checking.balance == Decimal("1000")

    def test_yearly_subscription_rolls_a_year(self, ledger, user_id, checking):
        """Test a yearly subscription is charged once and moves to next year."""
        subscription = self._subscription(
            user_id, checking, datetime(2025, 10, 1), frequency=SubscriptionFrequency.YEARLY
        )
        ledger.save_subscription(subscription)

        charged = ledger.process_subscriptions(user_id)

        assert len(charged) == 1
        assert checking.balance == Decimal("985")
        assert subscription.next_due_date == datetime(2026, 10, 1)

    def test_weekly_subscription_rolls_a_week(self, ledger, user_id, checking):
        """Test a weekly subscription advances seven days per charge."""
        subscription = self._subscription(
            user_id, checking, datetime(2025, 10, 6), frequency=SubscriptionFrequency.WEEKLY
        )
        ledger.save_subscription(subscription)

        ledger.process_subscriptions(user_id)
        assert subscription.next_due_date == datetime(2025, 10, 13)

        ledger.process_subscriptions(user_id)
        assert subscription.next_due_date == datetime(2025, 10, 20)
        assert checking.balance == Decimal("970")


class TestSalaryDeposits:
    """Tests for confirming salary deposits."""

    def _salary(self, user_id, account):
        return SalaryIncome(
            user_id=user_id,
            amount=Decimal("3000"),
            frequency=IncomeFrequency.MONTHLY,
            next_expected_date=datetime(2025, 10, 16),
            account_id=account.id,
        )

    def test_confirm_deposit(self, ledger, actions, store, user_id, checking):
        """Test confirming credits the account and retires the reminder."""
        salary = self._salary(user_id, checking)
        ledger.save_salary_income(salary)
        actions.generate_action_items(user_id)

        transaction = ledger.confirm_salary_deposit(salary)

        assert transaction.amount == Decimal("3000")
        assert checking.balance == Decimal("4000")
        assert salary.next_expected_date == datetime(2025, 11, 16)
        assert store.get_income_transactions(user_id) == [transaction]
        assert not any(
            item.type == ActionItemType.SALARY_PENDING
            for item in actions.get_action_items(user_id)
        )

    def test_confirm_deposit_with_different_amount(self, ledger, user_id, checking):
        """Test the confirmed amount can differ from the expected one."""
        salary = self._salary(user_id, checking)
        ledger.save_salary_income(salary)

        transaction = ledger.confirm_salary_deposit(salary.id, amount="2950.50")

        assert transaction.amount == Decimal("2950.50")
        assert checking.balance == Decimal("3950.50")

    def test_confirmed_deposit_is_timestamped(self, ledger, store, user_id, checking):
        """Test the income record carries the confirmation time and empty notes."""
        salary = self._salary(user_id, checking)
        ledger.save_salary_income(salary)

        transaction = ledger.confirm_salary_deposit(salary, deposit_date=datetime(2025, 10, 14))

        assert transaction.date == datetime(2025, 10, 14)
        assert transaction.confirmed_at == FIXED_NOW
        assert transaction.notes == ""
        record = store.get_income_transactions(user_id)[0].to_record()
        assert record["confirmedAt"] == FIXED_NOW.isoformat()
        assert record["notes"] == ""


class TestFriendIOUsAndSavings:
    """Tests for IOUs and savings goals."""

    def test_settled_iou_moves_to_history(self, ledger, clock, user_id):
        """Test settling flags the IOU instead of deleting it."""
        lunch = FriendIOU(
            user_id=user_id, person_name="Alex", amount=Decimal("12"),
            direction=IOUDirection.YOU_OWE, date=datetime(2025, 10, 1),
        )
        tickets = FriendIOU(
            user_id=user_id, person_name="Sam", amount=Decimal("40"),
            direction=IOUDirection.OWED_TO_YOU, date=datetime(2025, 10, 5),
        )
        ledger.save_friend_iou(lunch)
        ledger.save_friend_iou(tickets)

        ledger.settle_friend_iou(lunch)

        assert ledger.get_active_friend_ious(user_id) == [tickets]
        history = ledger.get_friend_iou_history(user_id)
        assert history == [lunch]
        assert history[0].settled_date == clock()

    def test_contribute_to_savings(self, ledger, user_id):
        """Test contributions add to the current amount."""
        goal = SavingsBudget(
            user_id=user_id,
            name="Emergency",
            type=SavingsType.EMERGENCY_FUND,
            target_amount=Decimal("1000"),
            monthly_contribution=Decimal("100"),
        )
        ledger.save_savings_budget(goal)

        ledger.contribute_to_savings(goal.id, 100)

        assert goal.current_amount == Decimal("100")
        assert goal.percent_complete == Decimal("10")
