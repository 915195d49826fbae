"""
Notifications Router
Lists a user's notification log and marks entries as read
"""
from fastapi import APIRouter, Depends

from spendwise.core.security import get_current_user_id
from spendwise.routers.deps import get_dispatcher, ok
from spendwise.utils.notifications import NotificationDispatcher

router = APIRouter()


@router.get("/")
def list_notifications(
    user_id: str = Depends(get_current_user_id),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Newest first, at most the last 50."""
    return ok(dispatcher.list(user_id))


@router.put("/{notification_id}/read")
def mark_notification_read(
    notification_id: int,
    user_id: str = Depends(get_current_user_id),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    updated = dispatcher.mark_as_read(user_id, notification_id)
    return ok({"id": notification_id, "updated": updated})
