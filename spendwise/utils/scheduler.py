"""
Scheduler Service
Runs the budget alert and payment reminder sweeps using APScheduler
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from spendwise.core.config import settings
from spendwise.db import keys
from spendwise.db.cache import Cache
from spendwise.db.dynamo import RecordStore
from spendwise.utils.aggregation import percentage_used
from spendwise.utils.ledger import budget_spending
from spendwise.utils.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)

# Scheduler instance
scheduler: Optional[BackgroundScheduler] = None


def budget_alert_sweep(store: RecordStore, cache: Cache, dispatcher: NotificationDispatcher, now: Optional[datetime] = None) -> int:
    """
    Send a budget alert for every threshold a budget has reached but not yet
    notified, then persist the thresholds as notified. Returns the number of
    alerts sent.
    """
    now = now or datetime.utcnow()
    sent = 0
    for budget in store.scan_budgets_with_alerts():
        try:
            thresholds = budget.get("alerts", {}).get("thresholds", [])
            pending = [threshold for threshold in thresholds if not threshold.get("notified")]
            if not pending:
                continue

            used = percentage_used(budget_spending(store, budget, now), float(budget["amount"]))
            reached = [threshold for threshold in pending if used >= float(threshold["percentage"])]
            if not reached:
                continue

            category = store.find_visible_category(budget["user_id"], budget["category_id"])
            category_name = category["name"] if category else "Uncategorized"
            dispatcher.send_budget_alert(budget["user_id"], budget, category_name, used)
            sent += 1

            for threshold in reached:
                threshold["notified"] = True
            store.update_budget(budget["user_id"], budget["budget_id"], {
                "alerts": {**budget["alerts"], "thresholds": thresholds},
            })
            cache.delete(keys.collection("budgets", budget["user_id"]))
        except Exception as e:
            logger.error(f"Budget alert sweep failed for budget {budget.get('budget_id')}: {e}", exc_info=True)
    logger.info(f"Budget alert sweep sent {sent} alerts")
    return sent


def payment_reminder_sweep(store: RecordStore, cache: Cache, dispatcher: NotificationDispatcher, now: Optional[datetime] = None) -> int:
    """
    Remind users of active recurring transactions due within
    ``PAYMENT_REMINDER_DAYS``. One reminder per due date.
    """
    now = now or datetime.utcnow()
    due_before = now + timedelta(days=settings.PAYMENT_REMINDER_DAYS)
    sent = 0
    for transaction in store.scan_due_recurring_transactions(due_before):
        due_date = transaction.get("next_due_date")
        if transaction.get("reminder_sent_for") == due_date:
            continue
        try:
            dispatcher.send_payment_reminder(transaction["user_id"], transaction)
            sent += 1
            store.update_transaction(transaction["user_id"], transaction["transaction_id"], {
                "reminder_sent_for": due_date,
            })
            cache.delete(keys.collection("transactions", transaction["user_id"]))
            cache.bump_generation(keys.transactions_generation(transaction["user_id"]))
        except Exception as e:
            logger.error(f"Payment reminder failed for transaction {transaction.get('transaction_id')}: {e}", exc_info=True)
    logger.info(f"Payment reminder sweep sent {sent} reminders")
    return sent


def start_scheduler(store: RecordStore, cache: Cache, dispatcher: NotificationDispatcher):
    """Start the background scheduler with both sweeps"""
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler is already running")
        return

    scheduler = BackgroundScheduler()
    trigger_minutes = settings.ALERT_SWEEP_MINUTES

    scheduler.add_job(
        budget_alert_sweep,
        args=[store, cache, dispatcher],
        trigger=IntervalTrigger(minutes=trigger_minutes),
        id="budget_alert_sweep",
        name="Budget Alert Sweep",
        replace_existing=True,
    )
    scheduler.add_job(
        payment_reminder_sweep,
        args=[store, cache, dispatcher],
        trigger=IntervalTrigger(minutes=trigger_minutes),
        id="payment_reminder_sweep",
        name="Payment Reminder Sweep",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(f"Scheduler started; sweeps run every {trigger_minutes} minutes.")


def stop_scheduler():
    """Stop the background scheduler"""
    global scheduler

    if scheduler is not None:
        scheduler.shutdown()
        scheduler = None
        logger.info("Scheduler stopped")


def get_scheduler_status():
    """Get current scheduler status"""
    if scheduler is None:
        return {"running": False}

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": str(job.next_run_time) if job.next_run_time else None
        })

    return {
        "running": scheduler.running,
        "jobs": jobs
    }
