from fastapi import APIRouter, Depends, status

from spendwise.core.security import get_current_user_id
from spendwise.models.budget import BudgetCreate, BudgetUpdate
from spendwise.routers.deps import get_budget_service, ok
from spendwise.utils.ledger import BudgetService

router = APIRouter()


@router.get("/")
def list_budgets(
    user_id: str = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service),
):
    """Owned budgets with current spending attached."""
    return ok(service.list(user_id))


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_budget(
    budget: BudgetCreate,
    user_id: str = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service),
):
    return ok(service.create(user_id, budget))


@router.get("/{budget_id}")
def get_budget(
    budget_id: str,
    user_id: str = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service),
):
    return ok(service.get(user_id, budget_id))


@router.put("/{budget_id}")
def update_budget(
    budget_id: str,
    budget_update: BudgetUpdate,
    user_id: str = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service),
):
    return ok(service.update(user_id, budget_id, budget_update))


@router.delete("/{budget_id}")
def delete_budget(
    budget_id: str,
    user_id: str = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service),
):
    service.delete(user_id, budget_id)
    return ok()
