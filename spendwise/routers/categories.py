from fastapi import APIRouter, Depends, status

from spendwise.core.security import get_current_user_id
from spendwise.models.category import CategoryCreate, CategoryUpdate
from spendwise.routers.deps import get_category_service, ok
from spendwise.utils.ledger import CategoryService

router = APIRouter()


@router.get("/")
def list_categories(
    user_id: str = Depends(get_current_user_id),
    service: CategoryService = Depends(get_category_service),
):
    """The user's own categories together with the defaults."""
    return ok(service.list(user_id))


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_category(
    category: CategoryCreate,
    user_id: str = Depends(get_current_user_id),
    service: CategoryService = Depends(get_category_service),
):
    return ok(service.create(user_id, category))


@router.get("/{category_id}")
def get_category(
    category_id: str,
    user_id: str = Depends(get_current_user_id),
    service: CategoryService = Depends(get_category_service),
):
    return ok(service.get(user_id, category_id))


@router.put("/{category_id}")
def update_category(
    category_id: str,
    category_update: CategoryUpdate,
    user_id: str = Depends(get_current_user_id),
    service: CategoryService = Depends(get_category_service),
):
    return ok(service.update(user_id, category_id, category_update))


@router.delete("/{category_id}")
def delete_category(
    category_id: str,
    user_id: str = Depends(get_current_user_id),
    service: CategoryService = Depends(get_category_service),
):
    service.delete(user_id, category_id)
    return ok()
