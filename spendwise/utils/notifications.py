"""
Notification Service
Keeps a bounded per-user notification log in the cache and pushes each new
entry to the user's live connections.
"""
import logging
import time
from typing import Any, Dict, List, Optional

from spendwise.core.config import settings
from spendwise.db import keys
from spendwise.db.cache import Cache
from spendwise.models.base import utcnow_iso
from spendwise.models.notification import NotificationType, Severity

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(self, cache: Cache, registry, log_size: Optional[int] = None):
        self.cache = cache
        self.registry = registry
        self.log_size = log_size or settings.NOTIFICATION_LOG_SIZE

    def send(self, user_id: str, notification: Dict[str, Any]) -> Dict[str, Any]:
        """
        Prepend a new entry to the user's log (trimmed to ``log_size``), then
        emit it live. The live emit never undoes or retries the log write.
        """
        entry = {
            **notification,
            "id": time.time_ns(),
            "timestamp": utcnow_iso(),
            "read": False,
        }
        if not self.cache.push_bounded(keys.notifications(user_id), entry, self.log_size):
            logger.warning(f"Notification {entry['id']} for user {user_id} was not persisted")

        try:
            self.registry.emit(user_id, "notification", entry)
        except Exception as e:
            logger.warning(f"Live notification for user {user_id} failed: {e}")
        return entry

    def list(self, user_id: str) -> List[Dict[str, Any]]:
        """Newest first."""
        return self.cache.list_json(keys.notifications(user_id))

    def mark_as_read(self, user_id: str, notification_id: int) -> bool:
        """Flip the read flag. Unknown ids are ignored and return False."""
        return self.cache.update_list_item(
            keys.notifications(user_id),
            match=lambda entry: entry.get("id") == notification_id,
            change=lambda entry: {**entry, "read": True},
        )

    def send_budget_alert(self, user_id: str, budget: Dict[str, Any], category_name: str, percentage_used: float):
        return self.send(user_id, {
            "type": NotificationType.budget_alert.value,
            "title": "Budget Alert",
            "message": f"You've used {percentage_used:.1f}% of your {category_name} budget",
            "severity": (Severity.high if percentage_used > 90 else Severity.medium).value,
            "data": {
                "budget_id": budget.get("budget_id"),
                "category": category_name,
                "percentage_used": round(percentage_used, 2),
            },
        })

    def send_payment_reminder(self, user_id: str, transaction: Dict[str, Any]):
        return self.send(user_id, {
            "type": NotificationType.payment_reminder.value,
            "title": "Upcoming Payment",
            "message": f"Reminder: {transaction.get('description')} payment of {transaction.get('amount')} due soon",
            "severity": Severity.low.value,
            "data": {
                "transaction_id": transaction.get("transaction_id"),
                "amount": transaction.get("amount"),
                "due_date": transaction.get("next_due_date"),
            },
        })

    def send_savings_goal_update(self, user_id: str, goal: Dict[str, Any], progress: float):
        return self.send(user_id, {
            "type": NotificationType.savings_goal.value,
            "title": "Savings Goal Update",
            "message": f"You're {progress:g}% of the way to your {goal.get('name')} savings goal!",
            "severity": Severity.info.value,
            "data": {
                "goal_id": goal.get("goal_id"),
                "progress": progress,
            },
        })

    def send_unusual_activity_alert(self, user_id: str, record: Dict[str, Any]):
        return self.send(user_id, {
            "type": NotificationType.unusual_activity.value,
            "title": "Unusual Activity Detected",
            "message": f"We noticed an unusual transaction: {record.get('description')} for {record.get('amount')}",
            "severity": Severity.high.value,
            "data": {
                "record_id": record.get("expense_id") or record.get("transaction_id"),
                "amount": record.get("amount"),
                "category_id": record.get("category_id"),
            },
        })
