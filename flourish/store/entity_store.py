"""
Entity Store

The single owner of every collection the finance core works on. Ledger,
rule engine and scheduling code read and mutate the live entities held here
and then call commit(), which:
1. Re-serializes every collection to the blob store (full write, as the
   persisted layout expects)
2. Notifies observers, in registration order, with an AuditEvent

DESIGN DECISION: The store is an explicitly constructed object passed to
whoever needs it, never a module-level singleton, so tests can run many
isolated stores side by side.

Concurrency: a re-entrant lock guards every public mutation. Operations
spanning several collections hold it for their whole duration, so a store
shared by several callers has a single writer at a time. There is still no
transaction across the blob store writes.
"""

import threading
from contextlib import contextmanager
from datetime import date, datetime
from enum import Enum
from typing import Callable, Iterator, Optional, TypeVar
from uuid import UUID

from pydantic import ValidationError

from flourish.audit.logger import get_logger
from flourish.models.actions import ActionItem
from flourish.models.audit import AuditEvent, AuditEventBuilder
from flourish.models.finance import (
    Account,
    BalanceOwed,
    BudgetCategory,
    Expense,
    FinanceModel,
    FriendIOU,
    IncomeTransaction,
    MonthlyReviewStatus,
    Repayment,
    SalaryIncome,
    SavingsBudget,
    ScheduledTransfer,
    Subscription,
    Transfer,
)
from flourish.services.storage.interface import (
    BlobStorageInterface,
    SerializationError,
)


logger = get_logger(__name__)

EntityT = TypeVar("EntityT", bound=FinanceModel)
Observer = Callable[[AuditEvent], None]

CURRENCY_KEY = "currencyCode"
DEFAULT_CURRENCY = "USD"


class Collection(str, Enum):
    """Named collections; the value is the persisted blob key."""
    ACCOUNTS = "accounts"
    BUDGET_CATEGORIES = "budgetCategories"
    EXPENSES = "expenses"
    SUBSCRIPTIONS = "subscriptions"
    BALANCES_OWED = "balancesOwed"
    REPAYMENTS = "repayments"
    TRANSFERS = "transfers"
    SCHEDULED_TRANSFERS = "scheduledTransfers"
    SALARY_INCOMES = "salaryIncomes"
    INCOME_TRANSACTIONS = "incomeTransactions"
    ACTION_ITEMS = "actionItems"
    FRIEND_IOUS = "friendIOUs"
    MONTHLY_REVIEW_STATUSES = "monthlyReviewStatuses"
    SAVINGS_BUDGETS = "savingsBudgets"


COLLECTION_MODELS: dict[Collection, type[FinanceModel]] = {
    Collection.ACCOUNTS: Account,
    Collection.BUDGET_CATEGORIES: BudgetCategory,
    Collection.EXPENSES: Expense,
    Collection.SUBSCRIPTIONS: Subscription,
    Collection.BALANCES_OWED: BalanceOwed,
    Collection.REPAYMENTS: Repayment,
    Collection.TRANSFERS: Transfer,
    Collection.SCHEDULED_TRANSFERS: ScheduledTransfer,
    Collection.SALARY_INCOMES: SalaryIncome,
    Collection.INCOME_TRANSACTIONS: IncomeTransaction,
    Collection.ACTION_ITEMS: ActionItem,
    Collection.FRIEND_IOUS: FriendIOU,
    Collection.MONTHLY_REVIEW_STATUSES: MonthlyReviewStatus,
    Collection.SAVINGS_BUDGETS: SavingsBudget,
}


class EntityStore:
    """
    In-memory entity collections backed by a blob store.

    Args:
        storage: Where collections are persisted
        clock: Returns "now"; injectable so date rules are deterministic
        default_currency: Used until a currency code has been persisted
        autoload: Load persisted collections immediately
    """

    def __init__(
        self,
        storage: BlobStorageInterface,
        clock: Optional[Callable[[], datetime]] = None,
        default_currency: str = DEFAULT_CURRENCY,
        autoload: bool = True,
    ):
        self._storage = storage
        self._clock = clock or datetime.now
        self._collections: dict[Collection, list[FinanceModel]] = {
            collection: [] for collection in Collection
        }
        self._observers: list[Observer] = []
        self._currency_code = default_currency
        self._lock = threading.RLock()

        if autoload:
            self.load()

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def load(self) -> None:
        """
        Replace in-memory state with what the blob store holds.

        Raises:
            SerializationError: If a persisted record no longer validates
            StorageError: If the backend cannot be read
        """
        with self._lock:
            for collection, model in COLLECTION_MODELS.items():
                records = self._storage.load(collection.value)
                if records is None:
                    self._collections[collection] = []
                    continue
                try:
                    self._collections[collection] = [
                        model.model_validate(record) for record in records
                    ]
                except ValidationError as e:
                    raise SerializationError(
                        f"Invalid record in '{collection.value}': {e}"
                    ) from e

            currency = self._storage.load_value(CURRENCY_KEY)
            if currency:
                self._currency_code = currency

            logger.debug(
                "store_loaded",
                counts={c.value: len(items) for c, items in self._collections.items()},
            )

    def persist(self) -> None:
        """Write every collection to the blob store."""
        with self._lock:
            for collection, items in self._collections.items():
                self._storage.save(
                    collection.value,
                    [item.to_record() for item in items],
                )

    def commit(self, event: Optional[AuditEvent] = None) -> None:
        """Persist everything, then tell observers what happened."""
        with self._lock:
            self.persist()
            if event is not None:
                self._notify(event)

    @contextmanager
    def locked(self) -> Iterator["EntityStore"]:
        """Hold the writer lock across a multi-step operation."""
        with self._lock:
            yield self

    # -------------------------------------------------------------------------
    # Observers
    # -------------------------------------------------------------------------

    def subscribe(self, observer: Observer) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def unsubscribe(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self, event: AuditEvent) -> None:
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception as e:
                # Observers must not undo a committed mutation
                logger.error(
                    "observer_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                    event_type=event.event_type.value,
                )

    # -------------------------------------------------------------------------
    # Clock & settings
    # -------------------------------------------------------------------------

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> date:
        return self._clock().date()

    @property
    def currency_code(self) -> str:
        return self._currency_code

    @currency_code.setter
    def currency_code(self, value: str) -> None:
        self.set_currency_code(value)

    def set_currency_code(self, currency_code: str) -> None:
        with self._lock:
            self._storage.save_value(CURRENCY_KEY, currency_code)
            self._currency_code = currency_code
            self._notify(AuditEventBuilder.currency_changed(currency_code))

    # -------------------------------------------------------------------------
    # Generic access
    # -------------------------------------------------------------------------

    def items(self, collection: Collection) -> list:
        """The live list for a collection. Mutate only under the lock."""
        return self._collections[collection]

    def all(self, collection: Collection) -> list:
        return list(self._collections[collection])

    def get(self, collection: Collection, entity_id: UUID):
        for item in self._collections[collection]:
            if item.id == entity_id:
                return item
        return None

    def find(self, collection: Collection, predicate: Callable[[FinanceModel], bool]):
        for item in self._collections[collection]:
            if predicate(item):
                return item
        return None

    def filter(self, collection: Collection, predicate: Callable[[FinanceModel], bool]) -> list:
        return [item for item in self._collections[collection] if predicate(item)]

    def for_user(self, collection: Collection, user_id: UUID) -> list:
        return self.filter(collection, lambda item: item.user_id == user_id)

    def upsert(self, collection: Collection, entity: EntityT) -> bool:
        """
        Insert if no entity has this id, else replace it. No commit.

        Returns:
            True if the entity was inserted
        """
        with self._lock:
            items = self._collections[collection]
            for idx, item in enumerate(items):
                if item.id == entity.id:
                    items[idx] = entity
                    return False
            items.append(entity)
            return True

    def remove(self, collection: Collection, entity_id: UUID):
        """Remove by id without committing. Returns the removed entity."""
        with self._lock:
            items = self._collections[collection]
            for idx, item in enumerate(items):
                if item.id == entity_id:
                    return items.pop(idx)
            return None

    def remove_where(
        self,
        collection: Collection,
        predicate: Callable[[FinanceModel], bool],
    ) -> list:
        """Remove every matching entity without committing."""
        with self._lock:
            items = self._collections[collection]
            removed = [item for item in items if predicate(item)]
            if removed:
                items[:] = [item for item in items if not predicate(item)]
            return removed

    def save(self, collection: Collection, entity: EntityT) -> bool:
        """Upsert and commit. Returns True if the entity is new."""
        with self._lock:
            is_new = self.upsert(collection, entity)
            self.commit(
                AuditEventBuilder.entity_saved(
                    collection.value,
                    entity.id,
                    getattr(entity, "user_id", None),
                )
            )
            return is_new

    def delete(self, collection: Collection, entity_id: UUID) -> bool:
        """Remove and commit. Returns False if nothing had this id."""
        with self._lock:
            removed = self.remove(collection, entity_id)
            if removed is None:
                return False
            self.commit(
                AuditEventBuilder.entity_deleted(
                    collection.value,
                    entity_id,
                    getattr(removed, "user_id", None),
                )
            )
            return True

    # -------------------------------------------------------------------------
    # Typed queries
    # -------------------------------------------------------------------------

    def get_accounts(self, user_id: UUID) -> list[Account]:
        return self.for_user(Collection.ACCOUNTS, user_id)

    def get_account(self, account_id: UUID) -> Optional[Account]:
        return self.get(Collection.ACCOUNTS, account_id)

    def get_budget_categories(self, user_id: UUID, month: int, year: int) -> list[BudgetCategory]:
        return self.filter(
            Collection.BUDGET_CATEGORIES,
            lambda c: c.user_id == user_id and c.month == month and c.year == year,
        )

    def find_budget_category(
        self,
        user_id: UUID,
        name: str,
        month: int,
        year: int,
    ) -> Optional[BudgetCategory]:
        return self.find(
            Collection.BUDGET_CATEGORIES,
            lambda c: (
                c.user_id == user_id
                and c.name == name
                and c.month == month
                and c.year == year
            ),
        )

    def get_expenses(
        self,
        user_id: UUID,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[Expense]:
        def matches(expense: Expense) -> bool:
            if expense.user_id != user_id:
                return False
            if month is not None and expense.date.month != month:
                return False
            if year is not None and expense.date.year != year:
                return False
            return True

        return self.filter(Collection.EXPENSES, matches)

    def get_subscriptions(self, user_id: UUID) -> list[Subscription]:
        """Active subscriptions only."""
        return self.filter(
            Collection.SUBSCRIPTIONS,
            lambda s: s.user_id == user_id and s.is_active,
        )

    def get_balances_owed(self, user_id: UUID) -> list[BalanceOwed]:
        return self.for_user(Collection.BALANCES_OWED, user_id)

    def find_balance_owed(self, user_id: UUID, person_name: str) -> Optional[BalanceOwed]:
        return self.find(
            Collection.BALANCES_OWED,
            lambda b: b.user_id == user_id and b.person_name == person_name,
        )

    def get_repayments(self, user_id: UUID) -> list[Repayment]:
        return self.for_user(Collection.REPAYMENTS, user_id)

    def get_transfers(self, user_id: UUID) -> list[Transfer]:
        return self.for_user(Collection.TRANSFERS, user_id)

    def get_scheduled_transfers(
        self,
        user_id: UUID,
        include_completed: bool = False,
    ) -> list[ScheduledTransfer]:
        return self.filter(
            Collection.SCHEDULED_TRANSFERS,
            lambda s: s.user_id == user_id and (include_completed or not s.is_completed),
        )

    def get_salary_incomes(self, user_id: UUID) -> list[SalaryIncome]:
        return self.for_user(Collection.SALARY_INCOMES, user_id)

    def get_income_transactions(self, user_id: UUID) -> list[IncomeTransaction]:
        return self.for_user(Collection.INCOME_TRANSACTIONS, user_id)

    def get_savings_budgets(self, user_id: UUID) -> list[SavingsBudget]:
        return self.for_user(Collection.SAVINGS_BUDGETS, user_id)

    def get_friend_ious(self, user_id: UUID) -> list[FriendIOU]:
        return self.for_user(Collection.FRIEND_IOUS, user_id)

    def find_review_status(
        self,
        user_id: UUID,
        month: int,
        year: int,
    ) -> Optional[MonthlyReviewStatus]:
        return self.find(
            Collection.MONTHLY_REVIEW_STATUSES,
            lambda s: s.user_id == user_id and s.month == month and s.year == year,
        )
