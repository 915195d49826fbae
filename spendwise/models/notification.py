from enum import Enum


class NotificationType(str, Enum):
    budget_alert = "BUDGET_ALERT"
    payment_reminder = "PAYMENT_REMINDER"
    savings_goal = "SAVINGS_GOAL"
    unusual_activity = "UNUSUAL_ACTIVITY"
    system = "SYSTEM"


class Severity(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"
    info = "info"
