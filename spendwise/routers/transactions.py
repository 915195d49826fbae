from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import ValidationError

from spendwise.core.errors import ValidationFailure
from spendwise.core.security import get_current_user_id
from spendwise.models.transaction import (
    TransactionCreate,
    TransactionFilters,
    TransactionStatus,
    TransactionType,
    TransactionUpdate,
)
from spendwise.routers.deps import get_transaction_service, ok
from spendwise.utils.ledger import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, TransactionService

router = APIRouter()


@router.get("/")
def list_transactions(
    type: Optional[TransactionType] = None,
    status_filter: Optional[TransactionStatus] = Query(None, alias="status"),
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user_id: str = Depends(get_current_user_id),
    service: TransactionService = Depends(get_transaction_service),
):
    """
    Paginated, newest first. Example: /api/transactions?type=income&page=2&limit=20
    """
    try:
        filters = TransactionFilters(type=type, status=status_filter, start_date=start_date, end_date=end_date)
    except ValidationError as e:
        raise ValidationFailure(e.errors()[0]["msg"])

    listing = service.list(user_id, filters, page=page, limit=limit)
    return {"success": True, **listing}


@router.get("/recurring")
def list_recurring_transactions(
    user_id: str = Depends(get_current_user_id),
    service: TransactionService = Depends(get_transaction_service),
):
    return ok(service.list_recurring(user_id))


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_transaction(
    transaction: TransactionCreate,
    user_id: str = Depends(get_current_user_id),
    service: TransactionService = Depends(get_transaction_service),
):
    return ok(service.create(user_id, transaction))


@router.get("/{transaction_id}")
def get_transaction(
    transaction_id: str,
    user_id: str = Depends(get_current_user_id),
    service: TransactionService = Depends(get_transaction_service),
):
    return ok(service.get(user_id, transaction_id))


@router.put("/{transaction_id}")
def update_transaction(
    transaction_id: str,
    transaction_update: TransactionUpdate,
    user_id: str = Depends(get_current_user_id),
    service: TransactionService = Depends(get_transaction_service),
):
    return ok(service.update(user_id, transaction_id, transaction_update))


@router.delete("/{transaction_id}")
def delete_transaction(
    transaction_id: str,
    user_id: str = Depends(get_current_user_id),
    service: TransactionService = Depends(get_transaction_service),
):
    service.delete(user_id, transaction_id)
    return ok()
