from datetime import datetime

import pytest

from helpers import OTHER_USER_ID, USER_ID, default_category_id
from spendwise.core.errors import NotFound, ValidationFailure
from spendwise.models.budget import BudgetCreate, BudgetUpdate
from spendwise.models.category import CategoryCreate, CategoryUpdate
from spendwise.models.expense import ExpenseCreate, ExpenseUpdate
from spendwise.models.transaction import TransactionCreate, TransactionFilters, TransactionUpdate
from spendwise.utils.ledger import BudgetService, CategoryService, ExpenseService, TransactionService
from spendwise.utils.reports import ReportBuilder

NOW = datetime(2025, 6, 30, 12, 0)


def _expense(store, amount, day=1, category="Food"):
    return ExpenseCreate(
        amount=amount,
        description=f"spent {amount}",
        category_id=default_category_id(store, category),
        date=datetime(2025, 6, day),
    )


def _transaction(store, amount, type="expense", day=1, **extra):
    return TransactionCreate(
        type=type,
        amount=amount,
        description=f"{type} {amount}",
        category_id=default_category_id(store, "Salary" if type == "income" else "Utilities"),
        date=datetime(2025, 6, day),
        **extra,
    )


def test_expense_write_then_read_is_fresh(store, cache):
    service = ExpenseService(store, cache)
    assert service.list(USER_ID) == []

    created = service.create(USER_ID, _expense(store, 42.0))
    assert [item["expense_id"] for item in service.list(USER_ID)] == [created["expense_id"]]

    service.update(USER_ID, created["expense_id"], ExpenseUpdate(amount=50.0))
    assert service.list(USER_ID)[0]["amount"] == 50

    service.delete(USER_ID, created["expense_id"])
    assert service.list(USER_ID) == []


def test_expense_listing_is_newest_first(store, cache):
    service = ExpenseService(store, cache)
    service.create(USER_ID, _expense(store, 1, day=3))
    service.create(USER_ID, _expense(store, 2, day=20))
    service.create(USER_ID, _expense(store, 3, day=10))
    assert [item["amount"] for item in service.list(USER_ID)] == [2, 3, 1]


def test_expense_ownership_and_validation(store, cache):
    service = ExpenseService(store, cache)
    created = service.create(USER_ID, _expense(store, 10))

    with pytest.raises(NotFound):
        service.get(OTHER_USER_ID, created["expense_id"])
    with pytest.raises(NotFound):
        service.delete(OTHER_USER_ID, created["expense_id"])
    with pytest.raises(ValidationFailure):
        service.update(USER_ID, created["expense_id"], ExpenseUpdate())
    with pytest.raises(NotFound):
        service.create(USER_ID, ExpenseCreate(amount=1, description="x", category_id="unknown"))


def test_updates_cannot_clear_required_fields():
    with pytest.raises(ValueError):
        ExpenseUpdate.model_validate({"date": None, "amount": None})
    with pytest.raises(ValueError):
        TransactionUpdate.model_validate({"date": None})
    with pytest.raises(ValueError):
        BudgetUpdate.model_validate({"amount": None})
    with pytest.raises(ValueError):
        CategoryUpdate.model_validate({"name": None})

    assert ExpenseUpdate.model_validate({"location": None}).model_dump(exclude_unset=True) == {"location": None}
    assert BudgetUpdate.model_validate({"end_date": None}).model_dump(exclude_unset=True) == {"end_date": None}


def test_clearing_optional_expense_field_keeps_record_usable(store, cache):
    service = ExpenseService(store, cache)
    created = service.create(USER_ID, _expense(store, 30.0).model_copy(update={"location": "Market"}))
    assert created["location"] == "Market"

    updated = service.update(USER_ID, created["expense_id"], ExpenseUpdate.model_validate({"location": None}))
    assert "location" not in updated or updated["location"] is None
    assert updated["amount"] == 30
    assert updated["date"] == created["date"]

    predictions = ReportBuilder(store, cache, clock=lambda: NOW).predictive_analysis(USER_ID)
    assert predictions["next_month"]["expected_expenses"] == {"Food": 30.0}


def test_unusual_expense_sends_alert(store, cache, dispatcher, registry):
    service = ExpenseService(store, cache, dispatcher)
    for _ in range(10):
        service.create(USER_ID, _expense(store, 20.0))
    assert registry.emitted == []

    big = service.create(USER_ID, _expense(store, 1000.0))
    assert len(registry.emitted) == 1
    user_id, event, payload = registry.emitted[0]
    assert (user_id, event, payload["type"]) == (USER_ID, "notification", "UNUSUAL_ACTIVITY")
    assert payload["data"]["record_id"] == big["expense_id"]


def test_filtered_transaction_pages_see_new_writes(store, cache):
    service = TransactionService(store, cache)
    service.create(USER_ID, _transaction(store, 1000, type="income", day=1))
    service.create(USER_ID, _transaction(store, 30, day=2))

    income = TransactionFilters(type="income")
    first = service.list(USER_ID, income)
    assert first["pagination"]["total_items"] == 1

    service.create(USER_ID, _transaction(store, 2000, type="income", day=3))
    second = service.list(USER_ID, income)
    assert second["pagination"]["total_items"] == 2
    assert second["data"][0]["amount"] == 2000


def test_transaction_pagination(store, cache):
    service = TransactionService(store, cache)
    for day in range(1, 8):
        service.create(USER_ID, _transaction(store, day, day=day))

    page = service.list(USER_ID, page=2, limit=3)
    assert [item["amount"] for item in page["data"]] == [4, 3, 2]
    assert page["pagination"] == {"current": 2, "total": 3, "count": 3, "total_items": 7}

    unfiltered = service.list(USER_ID)
    assert unfiltered["pagination"]["count"] == 7
    assert cache.get_json(f"transactions:{USER_ID}") == unfiltered


def test_recurring_transactions(store, cache):
    service = TransactionService(store, cache)
    service.create(USER_ID, _transaction(store, 15, is_recurring=True, recurring_frequency="monthly"))
    service.create(USER_ID, _transaction(store, 99))
    recurring = service.list_recurring(USER_ID)
    assert [item["amount"] for item in recurring] == [15]

    with pytest.raises(ValueError):
        _transaction(store, 15, is_recurring=True)


def test_budget_listing_tracks_spending(store, cache):
    budgets = BudgetService(store, cache, clock=lambda: NOW)
    expenses = ExpenseService(store, cache)
    food = default_category_id(store, "Food")
    budgets.create(USER_ID, BudgetCreate(name="Food", amount=200, category_id=food, start_date=datetime(2025, 6, 1)))

    assert budgets.list(USER_ID)[0]["current_spending"] == 0
    expenses.create(USER_ID, _expense(store, 150.0, day=5))

    listed = budgets.list(USER_ID)[0]
    assert listed["current_spending"] == 150.0
    assert listed["remaining_amount"] == 50.0
    assert listed["percentage_used"] == 75.0


def test_shared_budget_visible_to_member(store, cache):
    budgets = BudgetService(store, cache, clock=lambda: NOW)
    food = default_category_id(store, "Food")
    created = budgets.create(OTHER_USER_ID, BudgetCreate(
        name="Household",
        amount=500,
        category_id=food,
        start_date=datetime(2025, 6, 1),
        shared=[{"user_id": USER_ID, "permission": "view"}],
    ))
    assert budgets.get(USER_ID, created["budget_id"])["name"] == "Household"
    with pytest.raises(NotFound):
        budgets.get("stranger", created["budget_id"])
    with pytest.raises(NotFound):
        budgets.update(USER_ID, created["budget_id"], BudgetUpdate(amount=10))


def test_budget_update_rejects_inverted_range(store, cache):
    budgets = BudgetService(store, cache, clock=lambda: NOW)
    created = budgets.create(USER_ID, BudgetCreate(
        name="Food", amount=200, category_id=default_category_id(store, "Food"), start_date=datetime(2025, 6, 1),
    ))
    with pytest.raises(ValidationFailure):
        budgets.update(USER_ID, created["budget_id"], BudgetUpdate(end_date=datetime(2025, 5, 1)))


def test_categories(store, cache):
    service = CategoryService(store, cache)
    assert len(service.list(USER_ID)) == 10

    created = service.create(USER_ID, CategoryCreate(name="Pets", type="expense", color="#123456"))
    assert "Pets" in [item["name"] for item in service.list(USER_ID)]

    with pytest.raises(ValidationFailure):
        service.create(USER_ID, CategoryCreate(name="food", type="expense"))
    with pytest.raises(ValidationFailure):
        service.update(USER_ID, default_category_id(store, "Food"), CategoryUpdate(name="Meals"))
    with pytest.raises(ValidationFailure):
        service.delete(USER_ID, default_category_id(store, "Food"))
    with pytest.raises(NotFound):
        service.delete(OTHER_USER_ID, created["category_id"])

    renamed = service.update(USER_ID, created["category_id"], CategoryUpdate(name="Animals"))
    assert renamed["name"] == "Animals"
    service.delete(USER_ID, created["category_id"])
    assert len(service.list(USER_ID)) == 10
