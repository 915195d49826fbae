"""
Ledger services: CRUD over expenses, transactions, budgets and categories.

Collection reads go through the cache (``<collection>:<user_id>``, one hour);
every write deletes the affected keys before returning, so a read issued
after a write completes never sees the pre-write collection.
"""
import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from spendwise.core.config import settings
from spendwise.core.errors import NotFound, ValidationFailure
from spendwise.db import keys
from spendwise.db.cache import Cache
from spendwise.db.dynamo import RecordStore
from spendwise.models.base import utcnow_iso
from spendwise.models.budget import BudgetCreate, BudgetInDB, BudgetUpdate
from spendwise.models.category import CategoryCreate, CategoryInDB, CategoryUpdate, DEFAULT_OWNER
from spendwise.models.expense import ExpenseCreate, ExpenseInDB, ExpenseUpdate
from spendwise.models.transaction import TransactionCreate, TransactionFilters, TransactionInDB, TransactionUpdate
from spendwise.utils.aggregation import is_spike, percentage_used, round_money, to_datetime, total_amount

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def _newest_first(items: List[dict]) -> List[dict]:
    return sorted(items, key=lambda item: item.get("date", ""), reverse=True)


def budget_spending(store: RecordStore, budget: dict, now: datetime) -> float:
    """Owner's spend in the budget's category between its start and its end (or ``now``)."""
    end = to_datetime(budget["end_date"]) if budget.get("end_date") else now
    return total_amount(store.list_expenses(
        budget["user_id"],
        start=to_datetime(budget["start_date"]),
        end=end,
        category_id=budget["category_id"],
    ))


class _CachedCollection:
    collection = ""

    def __init__(self, store: RecordStore, cache: Cache):
        self.store = store
        self.cache = cache

    def _cached(self, user_id: str, loader):
        return self.cache.remember(keys.collection(self.collection, user_id), settings.COLLECTION_CACHE_TTL, loader)

    def _invalidate(self, user_id: str) -> None:
        self.cache.delete(keys.collection(self.collection, user_id))

    def _require_category(self, user_id: str, category_id: str) -> dict:
        category = self.store.find_visible_category(user_id, category_id)
        if not category:
            raise NotFound("Category not found")
        return category


class ExpenseService(_CachedCollection):
    collection = "expenses"

    def __init__(self, store: RecordStore, cache: Cache, dispatcher=None):
        super().__init__(store, cache)
        self.dispatcher = dispatcher

    def list(self, user_id: str) -> List[dict]:
        return self._cached(user_id, lambda: _newest_first(self.store.list_expenses(user_id)))

    def get(self, user_id: str, expense_id: str) -> dict:
        expense = self.store.get_expense(user_id, expense_id)
        if not expense:
            raise NotFound("Expense not found")
        return expense

    def create(self, user_id: str, expense: ExpenseCreate) -> dict:
        self._require_category(user_id, expense.category_id)
        history = self.list(user_id) if self.dispatcher is not None else []

        expense_db = ExpenseInDB(user_id=user_id, **expense.model_dump())
        stored = self.store.put_expense(expense_db.model_dump(mode="json"))
        self._invalidate(user_id)

        if self.dispatcher is not None and is_spike(expense.amount, history):
            try:
                self.dispatcher.send_unusual_activity_alert(user_id, stored)
            except Exception as e:
                logger.warning(f"Unusual activity alert for user {user_id} failed: {e}")
        return stored

    def update(self, user_id: str, expense_id: str, expense_update: ExpenseUpdate) -> dict:
        updates = expense_update.model_dump(mode="json", exclude_unset=True)
        if not updates:
            raise ValidationFailure("No fields to update")
        if updates.get("category_id"):
            self._require_category(user_id, updates["category_id"])

        updates["updated_at"] = utcnow_iso()
        updated = self.store.update_expense(user_id, expense_id, updates)
        if not updated:
            raise NotFound("Expense not found")
        self._invalidate(user_id)
        return updated

    def delete(self, user_id: str, expense_id: str) -> None:
        if not self.store.delete_expense(user_id, expense_id):
            raise NotFound("Expense not found")
        self._invalidate(user_id)

    def _invalidate(self, user_id: str) -> None:
        # The budget listing embeds spending derived from expenses
        self.cache.delete(keys.collection("expenses", user_id), keys.collection("budgets", user_id))


class TransactionService(_CachedCollection):
    """
    The unfiltered first page lives under ``transactions:<user_id>``; any other
    filter/page combination is keyed with the user's generation counter, which
    every write bumps, so stale filtered pages are never read again.
    """

    collection = "transactions"

    def list(
        self,
        user_id: str,
        filters: Optional[TransactionFilters] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        filters = filters or TransactionFilters()
        if page < 1:
            raise ValidationFailure("page must be at least 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationFailure(f"limit must be between 1 and {MAX_PAGE_SIZE}")

        signature = filters.signature()
        if signature == "all" and page == 1 and limit == DEFAULT_PAGE_SIZE:
            key = keys.collection(self.collection, user_id)
        else:
            generation = self.cache.generation(keys.transactions_generation(user_id))
            key = keys.transactions_listing(user_id, generation, f"{signature}:page={page}:limit={limit}")

        def _load():
            items = _newest_first(self.store.list_transactions(
                user_id,
                type=filters.type.value if filters.type else None,
                status=filters.status.value if filters.status else None,
                start=filters.start_date,
                end=filters.end_date,
            ))
            start_index = (page - 1) * limit
            page_items = items[start_index:start_index + limit]
            return {
                "data": page_items,
                "pagination": {
                    "current": page,
                    "total": math.ceil(len(items) / limit),
                    "count": len(page_items),
                    "total_items": len(items),
                },
            }

        return self.cache.remember(key, settings.COLLECTION_CACHE_TTL, _load)

    def list_recurring(self, user_id: str) -> List[dict]:
        return _newest_first(self.store.list_transactions(user_id, status="active", is_recurring=True))

    def get(self, user_id: str, transaction_id: str) -> dict:
        transaction = self.store.get_transaction(user_id, transaction_id)
        if not transaction:
            raise NotFound("Transaction not found")
        return transaction

    def create(self, user_id: str, transaction: TransactionCreate) -> dict:
        self._require_category(user_id, transaction.category_id)
        transaction_db = TransactionInDB(user_id=user_id, **transaction.model_dump())
        stored = self.store.put_transaction(transaction_db.model_dump(mode="json"))
        self._invalidate(user_id)
        return stored

    def update(self, user_id: str, transaction_id: str, transaction_update: TransactionUpdate) -> dict:
        updates = transaction_update.model_dump(mode="json", exclude_unset=True)
        if not updates:
            raise ValidationFailure("No fields to update")
        if updates.get("category_id"):
            self._require_category(user_id, updates["category_id"])
        if updates.get("is_recurring"):
            current = self.get(user_id, transaction_id)
            if not (updates.get("recurring_frequency") or current.get("recurring_frequency")):
                raise ValidationFailure("recurring_frequency is required for recurring transactions")

        updates["updated_at"] = utcnow_iso()
        updated = self.store.update_transaction(user_id, transaction_id, updates)
        if not updated:
            raise NotFound("Transaction not found")
        self._invalidate(user_id)
        return updated

    def delete(self, user_id: str, transaction_id: str) -> None:
        if not self.store.delete_transaction(user_id, transaction_id):
            raise NotFound("Transaction not found")
        self._invalidate(user_id)

    def _invalidate(self, user_id: str) -> None:
        self.cache.delete(keys.collection(self.collection, user_id))
        self.cache.bump_generation(keys.transactions_generation(user_id))


class BudgetService(_CachedCollection):
    collection = "budgets"

    def __init__(self, store: RecordStore, cache: Cache, clock=datetime.utcnow):
        super().__init__(store, cache)
        self.clock = clock

    def with_spending(self, budget: dict) -> dict:
        """Attach current_spending, remaining_amount and percentage_used."""
        spent = budget_spending(self.store, budget, self.clock())
        return {
            **budget,
            "current_spending": spent,
            "remaining_amount": round_money(budget["amount"] - spent),
            "percentage_used": round_money(percentage_used(spent, budget["amount"])),
        }

    def list(self, user_id: str) -> List[dict]:
        return self._cached(
            user_id,
            lambda: [self.with_spending(budget) for budget in self.store.list_budgets(user_id)],
        )

    def get(self, user_id: str, budget_id: str) -> dict:
        budget = self.store.get_budget(user_id, budget_id) or self.store.get_shared_budget(user_id, budget_id)
        if not budget:
            raise NotFound("Budget not found")
        return self.with_spending(budget)

    def create(self, user_id: str, budget: BudgetCreate) -> dict:
        self._require_category(user_id, budget.category_id)
        budget_db = BudgetInDB(user_id=user_id, **budget.model_dump())
        stored = self.store.put_budget(budget_db.model_dump(mode="json"))
        self._invalidate(user_id)
        return stored

    def update(self, user_id: str, budget_id: str, budget_update: BudgetUpdate) -> dict:
        updates = budget_update.model_dump(mode="json", exclude_unset=True)
        if not updates:
            raise ValidationFailure("No fields to update")

        current = self.store.get_budget(user_id, budget_id)
        if not current:
            raise NotFound("Budget not found")
        if updates.get("category_id"):
            self._require_category(user_id, updates["category_id"])

        start = updates.get("start_date") or current.get("start_date")
        end = updates["end_date"] if "end_date" in updates else current.get("end_date")
        if start and end and to_datetime(end) < to_datetime(start):
            raise ValidationFailure("end_date must not be before start_date")
        if "shared" in updates:
            updates["shared_user_ids"] = [share["user_id"] for share in updates["shared"] or []]

        updates["updated_at"] = utcnow_iso()
        updated = self.store.update_budget(user_id, budget_id, updates)
        if not updated:
            raise NotFound("Budget not found")
        self._invalidate(user_id)
        return updated

    def delete(self, user_id: str, budget_id: str) -> None:
        if not self.store.delete_budget(user_id, budget_id):
            raise NotFound("Budget not found")
        self._invalidate(user_id)


class CategoryService(_CachedCollection):
    collection = "categories"

    def list(self, user_id: str) -> List[dict]:
        return self._cached(user_id, lambda: self.store.list_categories(user_id))

    def get(self, user_id: str, category_id: str) -> dict:
        return self._require_category(user_id, category_id)

    def create(self, user_id: str, category: CategoryCreate) -> dict:
        self._ensure_unique_name(user_id, category.name)
        category_db = CategoryInDB(owner_id=user_id, user_id=user_id, **category.model_dump())
        stored = self.store.put_category(category_db.model_dump(mode="json"))
        self._invalidate(user_id)
        return stored

    def update(self, user_id: str, category_id: str, category_update: CategoryUpdate) -> dict:
        updates = category_update.model_dump(mode="json", exclude_unset=True)
        if not updates:
            raise ValidationFailure("No fields to update")
        self._require_owned(user_id, category_id, "modified")
        if updates.get("name"):
            self._ensure_unique_name(user_id, updates["name"], exclude_id=category_id)

        updated = self.store.update_category(user_id, category_id, updates)
        if not updated:
            raise NotFound("Category not found")
        self._invalidate(user_id)
        return updated

    def delete(self, user_id: str, category_id: str) -> None:
        self._require_owned(user_id, category_id, "deleted")
        if not self.store.delete_category(user_id, category_id):
            raise NotFound("Category not found")
        self._invalidate(user_id)

    def _require_owned(self, user_id: str, category_id: str, action: str) -> dict:
        category = self.store.get_category(user_id, category_id)
        if category:
            return category
        if self.store.get_category(DEFAULT_OWNER, category_id):
            raise ValidationFailure(f"Default categories cannot be {action}")
        raise NotFound("Category not found")

    def _ensure_unique_name(self, user_id: str, name: str, exclude_id: Optional[str] = None) -> None:
        wanted = name.lower()
        for existing in self.store.list_categories(user_id):
            if existing["category_id"] != exclude_id and existing["name"].lower() == wanted:
                raise ValidationFailure("Category already exists")
