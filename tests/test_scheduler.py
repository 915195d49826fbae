from datetime import datetime, timedelta

from helpers import USER_ID, default_category_id
from spendwise.utils.scheduler import budget_alert_sweep, payment_reminder_sweep

NOW = datetime(2025, 7, 15, 9, 0)


def _put_budget(store, thresholds):
    store.put_budget({
        "user_id": USER_ID,
        "budget_id": "b1",
        "name": "Food",
        "amount": 200,
        "category_id": default_category_id(store, "Food"),
        "start_date": "2025-07-01T00:00:00",
        "alerts": {"enabled": True, "thresholds": [{"percentage": p, "notified": False} for p in thresholds]},
    })


def test_budget_alert_sweep_notifies_each_threshold_once(store, cache, dispatcher, registry):
    _put_budget(store, [50, 80])
    store.put_expense({
        "user_id": USER_ID,
        "expense_id": "e1",
        "amount": 120,
        "description": "groceries",
        "category_id": default_category_id(store, "Food"),
        "date": "2025-07-03T00:00:00",
    })

    assert budget_alert_sweep(store, cache, dispatcher, now=NOW) == 1
    thresholds = store.get_budget(USER_ID, "b1")["alerts"]["thresholds"]
    assert [t["notified"] for t in thresholds] == [True, False]
    alert = dispatcher.list(USER_ID)[0]
    assert alert["type"] == "BUDGET_ALERT"
    assert alert["data"]["category"] == "Food"
    assert registry.emitted[0][1] == "notification"

    assert budget_alert_sweep(store, cache, dispatcher, now=NOW) == 0


def test_budget_alert_sweep_skips_budgets_below_thresholds(store, cache, dispatcher):
    _put_budget(store, [90])
    assert budget_alert_sweep(store, cache, dispatcher, now=NOW) == 0
    assert dispatcher.list(USER_ID) == []


def _put_recurring(store, transaction_id, due):
    store.put_transaction({
        "user_id": USER_ID,
        "transaction_id": transaction_id,
        "type": "expense",
        "amount": 900,
        "description": "Rent",
        "category_id": default_category_id(store, "Housing"),
        "date": "2025-06-01T00:00:00",
        "is_recurring": True,
        "recurring_frequency": "monthly",
        "status": "active",
        "next_due_date": due.isoformat(),
    })


def test_payment_reminder_sweep_sends_one_reminder_per_due_date(store, cache, dispatcher):
    _put_recurring(store, "soon", NOW + timedelta(days=1))
    _put_recurring(store, "later", NOW + timedelta(days=10))

    assert payment_reminder_sweep(store, cache, dispatcher, now=NOW) == 1
    reminder = dispatcher.list(USER_ID)[0]
    assert reminder["type"] == "PAYMENT_REMINDER"
    assert reminder["data"]["transaction_id"] == "soon"
    assert store.get_transaction(USER_ID, "soon")["reminder_sent_for"] == (NOW + timedelta(days=1)).isoformat()

    assert payment_reminder_sweep(store, cache, dispatcher, now=NOW) == 0
