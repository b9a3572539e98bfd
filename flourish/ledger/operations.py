"""
Ledger Operations

Keeps Account.balance, BudgetCategory.spent and BalanceOwed in step with
expenses, transfers, repayments and reconciliations.

DESIGN DECISION: Every balance effect has an exact inverse.
- Saving a new expense debits the account and the month's budget category
  by the user's share, and adds each other participant's share to what
  they owe
- Editing an expense first applies the inverse of the stored version, then
  applies the new version, so any sequence of edits nets out exactly
- Deleting an expense applies the inverse, including balances owed

Missing references (an account or category id that no longer exists) are
not errors: that side effect is skipped and logged at debug level. Callers
are responsible for passing valid ids.

Each public operation ends with exactly one store commit.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

from flourish.actions.engine import ActionEngine, format_money
from flourish.audit.logger import get_logger
from flourish.config import AppSettings, get_settings
from flourish.models.actions import ActionItemType
from flourish.models.audit import AuditEventBuilder
from flourish.models.finance import (
    Account,
    BalanceOwed,
    BudgetCategory,
    Expense,
    FriendIOU,
    IncomeTransaction,
    Repayment,
    SalaryIncome,
    SavingsBudget,
    Subscription,
    Transfer,
)
from flourish.store import Collection, EntityStore


logger = get_logger(__name__)

RECONCILIATION_CATEGORY = "Reconciliation"

Amount = Union[Decimal, int, float, str]


def to_decimal(value: Amount) -> Decimal:
    """Convert user-facing numbers to Decimal without float artifacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class Ledger:
    """
    Balance bookkeeping over an EntityStore.

    Resolution side effects on Action Center items (confirming a deposit,
    settling up) go through the ActionEngine.
    """

    def __init__(
        self,
        store: EntityStore,
        actions: ActionEngine,
        settings: Optional[AppSettings] = None,
    ):
        self._store = store
        self._actions = actions
        self._settings = settings or get_settings().app

    # =========================================================================
    # Primitive adjustments (no commit)
    # =========================================================================

    def _adjust_balance(self, account_id: UUID, delta: Decimal) -> Optional[Account]:
        account = self._store.get_account(account_id)
        if account is None:
            logger.debug("account_missing", account_id=str(account_id))
            return None
        account.balance = account.balance + delta
        return account

    def _adjust_budget_spending(
        self,
        user_id: UUID,
        category_name: str,
        amount: Decimal,
        when: datetime,
    ) -> Optional[BudgetCategory]:
        category = self._store.find_budget_category(
            user_id, category_name, when.month, when.year
        )
        if category is None:
            logger.debug(
                "budget_category_missing",
                category=category_name,
                month=when.month,
                year=when.year,
            )
            return None
        category.spent = category.spent + amount
        return category

    def _add_balances_owed(self, expense: Expense) -> None:
        now = self._store.now()
        for participant in expense.other_participants:
            balance = self._store.find_balance_owed(expense.user_id, participant.name)
            if balance is not None:
                balance.amount = balance.amount + participant.amount
                balance.last_updated = now
            else:
                self._store.upsert(
                    Collection.BALANCES_OWED,
                    BalanceOwed(
                        user_id=expense.user_id,
                        person_name=participant.name,
                        amount=participant.amount,
                        last_updated=now,
                    ),
                )

    def _reverse_balances_owed(self, expense: Expense) -> None:
        now = self._store.now()
        for participant in expense.other_participants:
            balance = self._store.find_balance_owed(expense.user_id, participant.name)
            if balance is None:
                continue
            balance.amount = balance.amount - participant.amount
            balance.last_updated = now
            if balance.amount <= 0:
                self._clear_balance_owed(balance)

    def _clear_balance_owed(self, balance: BalanceOwed) -> None:
        """Drop a paid-off balance and dismiss its reminder."""
        self._store.remove(Collection.BALANCES_OWED, balance.id)
        self._actions.dismiss_action_items(
            balance.user_id,
            ActionItemType.FRIEND_BALANCE,
            related_entity_id=balance.id,
            commit=False,
        )

    def _apply_expense_effects(self, expense: Expense) -> None:
        share = expense.user_share
        self._adjust_balance(expense.account_id, -share)
        self._adjust_budget_spending(expense.user_id, expense.category_name, share, expense.date)
        self._add_balances_owed(expense)

    def _reverse_expense_effects(self, expense: Expense) -> None:
        share = expense.user_share
        self._adjust_balance(expense.account_id, share)
        self._adjust_budget_spending(expense.user_id, expense.category_name, -share, expense.date)
        self._reverse_balances_owed(expense)

    # =========================================================================
    # Accounts
    # =========================================================================

    def save_account(self, account: Account) -> bool:
        return self._store.save(Collection.ACCOUNTS, account)

    def delete_account(self, account_id: UUID) -> bool:
        return self._store.delete(Collection.ACCOUNTS, account_id)

    def update_account_balance(self, account_id: UUID, delta: Amount) -> Optional[Account]:
        """Add delta (negative to debit) to an account's balance."""
        delta = to_decimal(delta)
        with self._store.locked():
            account = self._adjust_balance(account_id, delta)
            if account is None:
                return None
            self._store.commit(
                AuditEventBuilder.balance_adjusted(account.id, delta, account.balance)
            )
            return account

    # =========================================================================
    # Budgets
    # =========================================================================

    def save_budget_category(self, category: BudgetCategory) -> bool:
        return self._store.save(Collection.BUDGET_CATEGORIES, category)

    def delete_budget_category(self, category_id: UUID) -> bool:
        return self._store.delete(Collection.BUDGET_CATEGORIES, category_id)

    def copy_budget_to_next_month(
        self,
        user_id: UUID,
        from_month: int,
        from_year: int,
    ) -> list[BudgetCategory]:
        """
        Carry a month's limits into the next month with nothing spent.

        Does nothing if the next month already has a budget.
        """
        next_month, next_year = from_month + 1, from_year
        if next_month > 12:
            next_month, next_year = 1, from_year + 1

        with self._store.locked():
            if self._store.get_budget_categories(user_id, next_month, next_year):
                return []

            copies = [
                BudgetCategory(
                    user_id=user_id,
                    name=category.name,
                    monthly_limit=category.monthly_limit,
                    month=next_month,
                    year=next_year,
                )
                for category in self._store.get_budget_categories(user_id, from_month, from_year)
            ]
            for copy in copies:
                self._store.upsert(Collection.BUDGET_CATEGORIES, copy)

            if copies:
                self._store.commit(
                    AuditEventBuilder.budget_copied(user_id, next_month, next_year, len(copies))
                )
            return copies

    # =========================================================================
    # Expenses
    # =========================================================================

    def apply_expense(self, expense: Expense) -> bool:
        """
        Save an expense; on first save, apply its balance effects.

        Re-saving an existing id replaces the record without touching
        balances (use update_expense for edits).

        Returns:
            True if the expense was new
        """
        with self._store.locked():
            is_new = self._store.upsert(Collection.EXPENSES, expense)
            if is_new:
                self._apply_expense_effects(expense)
                event = AuditEventBuilder.expense_applied(
                    expense.id,
                    expense.user_id,
                    expense.user_share,
                    expense.total_owed_by_others,
                )
            else:
                event = AuditEventBuilder.entity_saved(
                    Collection.EXPENSES.value, expense.id, expense.user_id
                )
            self._store.commit(event)
            return is_new

    def update_expense(self, updated: Expense) -> None:
        """
        Replace a stored expense, reversing the old effects before
        applying the new ones.

        Pass a copy (``expense.model_copy(update=...)``), not the stored
        instance mutated in place, or there is nothing left to reverse.
        """
        with self._store.locked():
            old = self._store.get(Collection.EXPENSES, updated.id)
            if old is None:
                self.apply_expense(updated)
                return
            if old is updated:
                raise ValueError(
                    "update_expense needs a modified copy, not the stored instance"
                )

            self._reverse_expense_effects(old)
            self._store.upsert(Collection.EXPENSES, updated)
            self._apply_expense_effects(updated)

            self._store.commit(
                AuditEventBuilder.expense_updated(
                    updated.id, updated.user_id, old.user_share, updated.user_share
                )
            )

    def delete_expense(self, expense: Union[Expense, UUID]) -> bool:
        """
        Remove an expense and reverse its account, budget and
        balances-owed effects.
        """
        expense_id = expense.id if isinstance(expense, Expense) else expense
        with self._store.locked():
            stored = self._store.get(Collection.EXPENSES, expense_id)
            if stored is None:
                logger.debug("expense_missing", expense_id=str(expense_id))
                return False

            self._reverse_expense_effects(stored)
            self._store.remove(Collection.EXPENSES, stored.id)
            self._store.commit(
                AuditEventBuilder.expense_deleted(stored.id, stored.user_id, stored.user_share)
            )
            return True

    # =========================================================================
    # Transfers
    # =========================================================================

    def apply_transfer(self, transfer: Transfer, commit: bool = True) -> Transfer:
        """Log a completed transfer and move the money immediately."""
        with self._store.locked():
            self._store.upsert(Collection.TRANSFERS, transfer)
            self._adjust_balance(transfer.from_account_id, -transfer.amount)
            self._adjust_balance(transfer.to_account_id, transfer.amount)
            if commit:
                self._store.commit(
                    AuditEventBuilder.transfer_applied(
                        transfer.id,
                        transfer.user_id,
                        transfer.from_account_id,
                        transfer.to_account_id,
                        transfer.amount,
                    )
                )
            return transfer

    # =========================================================================
    # Balances owed
    # =========================================================================

    def save_balance_owed(self, balance: BalanceOwed) -> bool:
        return self._store.save(Collection.BALANCES_OWED, balance)

    def record_repayment(self, repayment: Repayment) -> Optional[BalanceOwed]:
        """
        Log a repayment and reduce what that person owes.

        Returns:
            The remaining balance, or None if it was paid off (or never existed)
        """
        with self._store.locked():
            self._store.items(Collection.REPAYMENTS).append(repayment)

            balance = self._store.find_balance_owed(repayment.user_id, repayment.person_name)
            remaining = None
            if balance is not None:
                balance.amount = balance.amount - repayment.amount
                balance.last_updated = self._store.now()
                if balance.amount <= 0:
                    self._clear_balance_owed(balance)
                else:
                    remaining = balance

            self._store.commit(
                AuditEventBuilder.repayment_recorded(
                    repayment.id,
                    repayment.user_id,
                    repayment.person_name,
                    repayment.amount,
                    remaining.amount if remaining else None,
                )
            )
            return remaining

    def settle_up_balance(
        self,
        user_id: UUID,
        person_name: str,
        notes: str = "",
    ) -> Optional[Repayment]:
        """
        Record a repayment for everything a person owes and clear the balance.

        The matching friend-balance reminder is dismissed.
        """
        with self._store.locked():
            balance = self._store.find_balance_owed(user_id, person_name)
            if balance is None:
                logger.debug("balance_owed_missing", person_name=person_name)
                return None

            repayment = Repayment(
                user_id=user_id,
                person_name=person_name,
                amount=balance.amount,
                date=self._store.now(),
                notes=notes or f"Settled up with {person_name}",
            )
            self._store.items(Collection.REPAYMENTS).append(repayment)
            self._clear_balance_owed(balance)

            self._store.commit(
                AuditEventBuilder.balance_settled(balance.id, user_id, person_name, balance.amount)
            )
            return repayment

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def reconcile_account(
        self,
        account: Union[Account, UUID],
        actual_balance: Amount,
        notes: str = "",
    ) -> Optional[Expense]:
        """
        Force an account to match its statement.

        Differences within the reconciliation tolerance are treated as
        matching. Otherwise a Reconciliation expense records the absolute
        difference and the balance is set to the actual value.

        Returns:
            The reconciliation expense, or None if nothing changed
        """
        account_id = account.id if isinstance(account, Account) else account
        actual = to_decimal(actual_balance)

        with self._store.locked():
            stored = self._store.get_account(account_id)
            if stored is None:
                logger.debug("account_missing", account_id=str(account_id))
                return None

            previous = stored.balance
            difference = actual - previous
            if abs(difference) <= self._settings.reconciliation_tolerance:
                logger.debug(
                    "reconciliation_within_tolerance",
                    account_id=str(account_id),
                    difference=str(difference),
                )
                return None

            direction = "more" if difference > 0 else "less"
            description = (
                f"Balance reconciliation: account had "
                f"{format_money(abs(difference), self._store.currency_code)} "
                f"{direction} than recorded"
            )
            if notes:
                description = f"{description}. {notes}"

            adjustment = Expense(
                user_id=stored.user_id,
                amount=abs(difference),
                date=self._store.now(),
                description=description[:500],
                category_name=RECONCILIATION_CATEGORY,
                account_id=stored.id,
            )
            self._store.upsert(Collection.EXPENSES, adjustment)
            stored.balance = actual

            self._store.commit(
                AuditEventBuilder.account_reconciled(
                    stored.id, stored.user_id, previous, actual, adjusted=True
                )
            )
            return adjustment

    def reconcile_accounts_for_review(
        self,
        user_id: UUID,
        account_balances: dict[UUID, Amount],
    ) -> list[Expense]:
        """Reconcile each listed account of the user against its statement balance."""
        adjustments = []
        with self._store.locked():
            for account in self._store.get_accounts(user_id):
                if account.id not in account_balances:
                    continue
                adjustment = self.reconcile_account(
                    account,
                    account_balances[account.id],
                    notes="Monthly review adjustment",
                )
                if adjustment is not None:
                    adjustments.append(adjustment)
        return adjustments

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def save_subscription(self, subscription: Subscription) -> bool:
        return self._store.save(Collection.SUBSCRIPTIONS, subscription)

    def delete_subscription(self, subscription_id: UUID) -> bool:
        return self._store.delete(Collection.SUBSCRIPTIONS, subscription_id)

    def process_subscriptions(self, user_id: UUID) -> list[Expense]:
        """
        Charge every active subscription that has come due.

        Each due subscription is charged once per call and moved one
        month forward.
        """
        charged = []
        with self._store.locked():
            now = self._store.now()
            for subscription in self._store.get_subscriptions(user_id):
                if subscription.next_due_date > now:
                    continue

                expense = Expense(
                    user_id=user_id,
                    amount=subscription.amount,
                    date=subscription.next_due_date,
                    description=subscription.name,
                    category_name=subscription.category_name,
                    account_id=subscription.account_id,
                    is_subscription=True,
                    subscription_id=subscription.id,
                )
                self._store.upsert(Collection.EXPENSES, expense)
                self._apply_expense_effects(expense)
                subscription.next_due_date = subscription.calculate_next_due_date()
                charged.append(expense)

            if charged:
                self._store.commit(
                    AuditEventBuilder.subscriptions_processed(user_id, [e.id for e in charged])
                )
        return charged

    # =========================================================================
    # Income
    # =========================================================================

    def save_salary_income(self, salary: SalaryIncome) -> bool:
        return self._store.save(Collection.SALARY_INCOMES, salary)

    def delete_salary_income(self, salary_id: UUID) -> bool:
        with self._store.locked():
            salary = self._store.get(Collection.SALARY_INCOMES, salary_id)
            if salary is None:
                return False
            self._actions.remove_action_items(
                salary.user_id,
                ActionItemType.SALARY_PENDING,
                related_entity_id=salary.id,
                commit=False,
            )
            return self._store.delete(Collection.SALARY_INCOMES, salary_id)

    def confirm_salary_deposit(
        self,
        salary: Union[SalaryIncome, UUID],
        amount: Optional[Amount] = None,
        deposit_date: Optional[datetime] = None,
    ) -> Optional[IncomeTransaction]:
        """
        Record that an expected deposit arrived.

        Credits the account, logs an IncomeTransaction, moves the next
        expected date forward by one period and retires the reminder.
        """
        salary_id = salary.id if isinstance(salary, SalaryIncome) else salary
        with self._store.locked():
            stored = self._store.get(Collection.SALARY_INCOMES, salary_id)
            if stored is None:
                logger.debug("salary_missing", salary_id=str(salary_id))
                return None

            deposit = to_decimal(amount) if amount is not None else stored.amount
            transaction = IncomeTransaction(
                user_id=stored.user_id,
                salary_id=stored.id,
                amount=deposit,
                account_id=stored.account_id,
                date=deposit_date or self._store.now(),
                confirmed_at=self._store.now(),
            )
            self._store.items(Collection.INCOME_TRANSACTIONS).append(transaction)
            self._adjust_balance(stored.account_id, deposit)
            stored.next_expected_date = stored.calculate_next_date(stored.next_expected_date)

            self._actions.remove_action_items(
                stored.user_id,
                ActionItemType.SALARY_PENDING,
                related_entity_id=stored.id,
                commit=False,
            )
            self._store.commit(
                AuditEventBuilder.salary_deposit_confirmed(
                    transaction.id, stored.user_id, stored.id, deposit
                )
            )
            return transaction

    # =========================================================================
    # Friend IOUs
    # =========================================================================

    def save_friend_iou(self, iou: FriendIOU) -> bool:
        return self._store.save(Collection.FRIEND_IOUS, iou)

    def delete_friend_iou(self, iou_id: UUID) -> bool:
        return self._store.delete(Collection.FRIEND_IOUS, iou_id)

    def settle_friend_iou(self, iou: Union[FriendIOU, UUID]) -> Optional[FriendIOU]:
        """Flag an IOU settled. Settled IOUs stay in the history."""
        iou_id = iou.id if isinstance(iou, FriendIOU) else iou
        with self._store.locked():
            stored = self._store.get(Collection.FRIEND_IOUS, iou_id)
            if stored is None:
                return None
            stored.is_settled = True
            stored.settled_date = self._store.now()
            self._store.commit(
                AuditEventBuilder.iou_settled(stored.id, stored.user_id, stored.person_name)
            )
            return stored

    def get_active_friend_ious(self, user_id: UUID) -> list[FriendIOU]:
        active = [iou for iou in self._store.get_friend_ious(user_id) if not iou.is_settled]
        return sorted(active, key=lambda iou: iou.date, reverse=True)

    def get_friend_iou_history(self, user_id: UUID) -> list[FriendIOU]:
        settled = [iou for iou in self._store.get_friend_ious(user_id) if iou.is_settled]
        return sorted(settled, key=lambda iou: iou.settled_date or iou.date, reverse=True)

    # =========================================================================
    # Savings
    # =========================================================================

    def save_savings_budget(self, budget: SavingsBudget) -> bool:
        return self._store.save(Collection.SAVINGS_BUDGETS, budget)

    def delete_savings_budget(self, budget_id: UUID) -> bool:
        return self._store.delete(Collection.SAVINGS_BUDGETS, budget_id)

    def contribute_to_savings(self, budget_id: UUID, amount: Amount) -> Optional[SavingsBudget]:
        amount = to_decimal(amount)
        with self._store.locked():
            budget = self._store.get(Collection.SAVINGS_BUDGETS, budget_id)
            if budget is None:
                return None
            budget.current_amount = budget.current_amount + amount
            self._store.commit(
                AuditEventBuilder.savings_contribution(budget.id, budget.user_id, amount)
            )
            return budget
