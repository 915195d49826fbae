from fastapi import APIRouter, Depends, status

from spendwise.core.security import get_current_user_id
from spendwise.models.expense import ExpenseCreate, ExpenseUpdate
from spendwise.routers.deps import get_expense_service, ok
from spendwise.utils.ledger import ExpenseService

router = APIRouter()


@router.get("/")
def list_expenses(
    user_id: str = Depends(get_current_user_id),
    service: ExpenseService = Depends(get_expense_service),
):
    return ok(service.list(user_id))


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_expense(
    expense: ExpenseCreate,
    user_id: str = Depends(get_current_user_id),
    service: ExpenseService = Depends(get_expense_service),
):
    return ok(service.create(user_id, expense))


@router.get("/{expense_id}")
def get_expense(
    expense_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ExpenseService = Depends(get_expense_service),
):
    return ok(service.get(user_id, expense_id))


@router.put("/{expense_id}")
def update_expense(
    expense_id: str,
    expense_update: ExpenseUpdate,
    user_id: str = Depends(get_current_user_id),
    service: ExpenseService = Depends(get_expense_service),
):
    return ok(service.update(user_id, expense_id, expense_update))


@router.delete("/{expense_id}")
def delete_expense(
    expense_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ExpenseService = Depends(get_expense_service),
):
    service.delete(user_id, expense_id)
    return ok()
