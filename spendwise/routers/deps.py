"""
Shared router dependencies: one store and one cache per process, the
application's connection registry, and the services built on top of them.
Tests swap ``get_store`` / ``get_cache`` through ``app.dependency_overrides``.
"""
from functools import lru_cache
from typing import Any, Dict

from fastapi import Depends, Request

from spendwise.db.cache import Cache
from spendwise.db.dynamo import RecordStore
from spendwise.utils.ledger import BudgetService, CategoryService, ExpenseService, TransactionService
from spendwise.utils.live import ConnectionRegistry
from spendwise.utils.notifications import NotificationDispatcher
from spendwise.utils.reports import ReportBuilder


@lru_cache()
def get_store() -> RecordStore:
    return RecordStore()


@lru_cache()
def get_cache() -> Cache:
    return Cache.from_url()


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.registry


def get_dispatcher(
    cache: Cache = Depends(get_cache),
    registry: ConnectionRegistry = Depends(get_registry),
) -> NotificationDispatcher:
    return NotificationDispatcher(cache, registry)


def get_expense_service(
    store: RecordStore = Depends(get_store),
    cache: Cache = Depends(get_cache),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> ExpenseService:
    return ExpenseService(store, cache, dispatcher)


def get_transaction_service(store: RecordStore = Depends(get_store), cache: Cache = Depends(get_cache)) -> TransactionService:
    return TransactionService(store, cache)


def get_budget_service(store: RecordStore = Depends(get_store), cache: Cache = Depends(get_cache)) -> BudgetService:
    return BudgetService(store, cache)


def get_category_service(store: RecordStore = Depends(get_store), cache: Cache = Depends(get_cache)) -> CategoryService:
    return CategoryService(store, cache)


def get_report_builder(store: RecordStore = Depends(get_store), cache: Cache = Depends(get_cache)) -> ReportBuilder:
    return ReportBuilder(store, cache)


def ok(data: Any = None) -> Dict[str, Any]:
    return {"success": True, "data": data}
