from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List

from spendwise.core.config import settings
from spendwise.core.errors import ReportGenerationError
from spendwise.db import keys
from spendwise.db.cache import Cache
from spendwise.db.dynamo import RecordStore
from spendwise.utils.aggregation import (
    amount_of,
    calculate_trend,
    calculate_variance,
    category_totals,
    classify_budget,
    detect_spending_spikes,
    expense_to_income_ratio,
    group_by_bucket_and_category,
    group_by_category,
    health_score,
    is_significant_trend,
    month_bounds,
    month_index_bucket,
    month_year_bucket,
    months_ago,
    overall_status,
    percentage_used,
    round_money,
    savings_rate,
    top_categories,
    total_amount,
    trend_direction,
    year_bounds,
)
from spendwise.utils.ledger import budget_spending

logger = logging.getLogger(__name__)

TRAILING_MONTHS = 6
UNCATEGORIZED = "Uncategorized"

# Multipliers that turn one occurrence into a monthly amount
MONTHLY_EQUIVALENT = {
    "daily": 30.0,
    "weekly": 52.0 / 12,
    "monthly": 1.0,
    "yearly": 1.0 / 12,
}


class ReportBuilder:
    """
    Turns a user's stored records into derived documents: monthly and annual
    reports, spending insights, budget analysis, savings opportunities,
    financial health and next-month predictions.

    Every document is cached under its own key. Any failure while computing
    one surfaces as ``ReportGenerationError`` and nothing is cached for it.
    """

    def __init__(self, store: RecordStore, cache: Cache, clock: Callable[[], datetime] = datetime.utcnow) -> None:
        self.store = store
        self.cache = cache
        self.clock = clock

    def monthly_report(self, user_id: str, month: int, year: int) -> Dict[str, Any]:
        def _build():
            start, end = month_bounds(year, month)
            expenses = self._named(user_id, self.store.list_expenses(user_id, start=start, end=end))
            income = self.store.list_transactions(user_id, type="income", start=start, end=end)

            breakdown = [
                {
                    "category": category,
                    "total": total_amount(items),
                    "count": len(items),
                    "transactions": items,
                }
                for category, items in group_by_category(expenses).items()
            ]
            total_income = total_amount(income)
            total_expenses = total_amount(expenses)
            return {
                "period": {"month": month, "year": year},
                "summary": {
                    "total_income": total_income,
                    "total_expenses": total_expenses,
                    "total_transactions": len(expenses),
                },
                "category_breakdown": breakdown,
                "savings_rate": round_money(savings_rate(total_income, total_expenses)),
            }

        return self._cached("monthly report", keys.monthly_report(user_id, year, month), settings.REPORT_CACHE_TTL, _build)

    def annual_report(self, user_id: str, year: int) -> Dict[str, Any]:
        def _build():
            start, end = year_bounds(year)
            expenses = self._named(user_id, self.store.list_expenses(user_id, start=start, end=end))

            by_month = group_by_bucket_and_category(expenses, month_index_bucket)
            monthly_breakdown = [
                {"month": month, "total": by_month.bucket_total(month), "count": by_month.bucket_count(month)}
                for month in by_month.buckets()
            ]
            by_category = group_by_category(expenses)
            category_breakdown = sorted(
                (
                    {"category": category, "total": total_amount(items), "count": len(items)}
                    for category, items in by_category.items()
                ),
                key=lambda entry: entry["total"],
                reverse=True,
            )

            total_expenses = total_amount(expenses)
            trends: Dict[str, Any] = {}
            if len(monthly_breakdown) > 1:
                monthly_totals = [entry["total"] for entry in monthly_breakdown]
                trends = {
                    "highest_month": max(monthly_totals),
                    "lowest_month": min(monthly_totals),
                    "monthly_variance": round_money(calculate_variance(monthly_totals)),
                }

            return {
                "year": year,
                "summary": {
                    "total_expenses": total_expenses,
                    "total_transactions": len(expenses),
                    "average_monthly_expense": round_money(total_expenses / 12),
                },
                "monthly_breakdown": monthly_breakdown,
                "category_breakdown": category_breakdown,
                "trends": trends,
            }

        return self._cached("annual report", keys.annual_report(user_id, year), settings.REPORT_CACHE_TTL, _build)

    def spending_insights(self, user_id: str) -> Dict[str, Any]:
        def _build():
            since = months_ago(self.clock(), TRAILING_MONTHS)
            expenses = self._named(user_id, self.store.list_expenses(user_id, start=since))

            groups = group_by_bucket_and_category(expenses, month_year_bucket)
            monthly_trends = {
                f"{year}-{month}": {
                    "total": groups.bucket_total((year, month)),
                    "categories": groups.sums[(year, month)],
                }
                for year, month in groups.buckets(descending=True)
            }
            ranked = top_categories(category_totals(expenses))
            return {
                "monthly_trends": monthly_trends,
                "top_categories": ranked,
                "unusual_spending": detect_spending_spikes(expenses),
                "recommendations": _spending_recommendations(monthly_trends, ranked),
            }

        return self._cached("spending insights", keys.spending_insights(user_id), settings.INSIGHT_CACHE_TTL, _build)

    def budget_analysis(self, user_id: str) -> Dict[str, Any]:
        def _build():
            names = self._category_names(user_id)
            now = self.clock()
            budget_statuses = []
            for budget in self.store.list_budgets(user_id):
                spent = budget_spending(self.store, budget, now)
                allocated = float(budget["amount"])
                used = percentage_used(spent, allocated)
                budget_statuses.append({
                    "budget_id": budget["budget_id"],
                    "category": names.get(budget["category_id"], UNCATEGORIZED),
                    "allocated": allocated,
                    "spent": spent,
                    "remaining": round_money(allocated - spent),
                    "percentage_used": round_money(used),
                    "status": classify_budget(used),
                })

            return {
                "overall_status": overall_status(status["status"] for status in budget_statuses),
                "budget_statuses": budget_statuses,
                "recommendations": _budget_recommendations(budget_statuses),
            }

        return self._cached("budget analysis", keys.budget_analysis(user_id), settings.INSIGHT_CACHE_TTL, _build)

    def savings_opportunities(self, user_id: str) -> Dict[str, Any]:
        def _build():
            names = self._category_names(user_id)
            recurring = self.store.list_transactions(user_id, type="expense", status="active", is_recurring=True)
            recurring_expenses = [
                {
                    "id": transaction["transaction_id"],
                    "description": transaction.get("description"),
                    "amount": amount_of(transaction),
                    "category": names.get(transaction.get("category_id"), UNCATEGORIZED),
                    "frequency": transaction.get("recurring_frequency"),
                    "monthly_equivalent": round_money(
                        amount_of(transaction) * MONTHLY_EQUIVALENT.get(transaction.get("recurring_frequency"), 1.0)
                    ),
                }
                for transaction in recurring
            ]

            duplicates = {
                category: items
                for category, items in group_by_category(recurring_expenses).items()
                if len(items) > 1
            }
            potential_savings = [
                {
                    "category": category,
                    "count": len(items),
                    "monthly_total": round_money(sum(item["monthly_equivalent"] for item in items)),
                    "items": [item["id"] for item in items],
                }
                for category, items in duplicates.items()
            ]
            return {
                "recurring_expenses": recurring_expenses,
                "potential_savings": potential_savings,
                "recommendations": _savings_recommendations(recurring_expenses, duplicates),
            }

        return self._cached("savings opportunities", keys.savings_opportunities(user_id), settings.INSIGHT_CACHE_TTL, _build)

    def financial_health(self, user_id: str) -> Dict[str, Any]:
        def _build():
            since = months_ago(self.clock(), TRAILING_MONTHS)
            total_expenses = total_amount(self.store.list_expenses(user_id, start=since))
            total_income = total_amount(self.store.list_transactions(user_id, type="income", start=since))

            rate = savings_rate(total_income, total_expenses)
            ratio = expense_to_income_ratio(total_income, total_expenses)
            monthly_savings = (total_income - total_expenses) / TRAILING_MONTHS
            metrics = {
                "savings_rate": round_money(rate),
                "monthly_savings": round_money(monthly_savings),
                "expense_to_income_ratio": round_money(ratio * 100) if ratio is not None else None,
                "average_monthly_expense": round_money(total_expenses / TRAILING_MONTHS),
                "average_monthly_income": round_money(total_income / TRAILING_MONTHS),
            }
            return {
                "score": health_score(rate, ratio, monthly_savings),
                "metrics": metrics,
                "recommendations": _health_recommendations(rate, ratio, monthly_savings),
            }

        return self._cached("financial health", keys.financial_health(user_id), settings.INSIGHT_CACHE_TTL, _build)

    def predictive_analysis(self, user_id: str) -> Dict[str, Any]:
        def _build():
            expenses = self._named(user_id, self.store.list_expenses(user_id))
            expenses.sort(key=lambda expense: expense["date"])

            expected: Dict[str, float] = {}
            trends: Dict[str, Dict[str, Any]] = {}
            alerts: List[Dict[str, str]] = []
            for category, items in group_by_category(expenses).items():
                amounts = [amount_of(item) for item in items]
                average = sum(amounts) / len(amounts)
                trend = calculate_trend(amounts)
                direction = trend_direction(trend)

                expected[category] = round_money(average + trend)
                trends[category] = {
                    "trend": direction,
                    "percentage": round_money(trend / average * 100) if average else 0.0,
                }
                if is_significant_trend(trend, average):
                    alerts.append({
                        "category": category,
                        "message": f"{category} expenses are {direction} significantly",
                    })

            return {
                "next_month": {
                    "expected_expenses": expected,
                    "total_predicted": round_money(sum(expected.values())),
                },
                "trends": trends,
                "alerts": alerts,
            }

        return self._cached("predictive analysis", keys.predictions(user_id), settings.INSIGHT_CACHE_TTL, _build)

    def _cached(self, name: str, key: str, ttl: int, build: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
        def _load():
            try:
                return build()
            except Exception as e:
                logger.error(f"Error generating {name} ({key}): {e}", exc_info=True)
                raise ReportGenerationError(f"Error generating {name}", cause=e) from e

        return self.cache.remember(key, ttl, _load)

    def _category_names(self, user_id: str) -> Dict[str, str]:
        return {category["category_id"]: category["name"] for category in self.store.list_categories(user_id)}

    def _named(self, user_id: str, records: List[dict]) -> List[dict]:
        """Copy of ``records`` with each category id resolved to its name."""
        names = self._category_names(user_id)
        return [
            {**record, "category": names.get(record.get("category_id"), UNCATEGORIZED)}
            for record in records
        ]


def _spending_recommendations(monthly_trends: Dict[str, Any], ranked: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    recommendations = []

    months = list(monthly_trends.values())
    if len(months) >= 2 and months[0]["total"] > months[1]["total"] * 1.2:
        recommendations.append({
            "type": "warning",
            "message": "Your spending has increased by more than 20% compared to last month",
        })

    if ranked:
        recommendations.append({
            "type": "info",
            "message": f"Your highest spending category is {ranked[0]['category']}",
        })
    return recommendations


def _budget_recommendations(budget_statuses: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    recommendations = []
    for status in budget_statuses:
        if status["percentage_used"] > 90:
            recommendations.append({
                "type": "critical",
                "category": status["category"],
                "message": f"You've used {status['percentage_used']:.1f}% of your {status['category']} budget",
            })
        elif status["percentage_used"] < 20:
            recommendations.append({
                "type": "success",
                "category": status["category"],
                "message": f"Great job keeping {status['category']} expenses low!",
            })
    return recommendations


def _savings_recommendations(
    recurring_expenses: List[Dict[str, Any]],
    duplicates: Dict[str, List[Dict[str, Any]]],
) -> List[Dict[str, str]]:
    if not recurring_expenses:
        return []

    total_recurring = round_money(sum(item["amount"] for item in recurring_expenses))
    recommendations = [{
        "type": "info",
        "message": f"You have {len(recurring_expenses)} recurring expenses totaling {total_recurring}",
    }]
    for category in duplicates:
        recommendations.append({
            "type": "warning",
            "message": f"You have multiple subscriptions in {category}. Consider consolidating them.",
        })
    return recommendations


def _health_recommendations(rate: float, ratio, monthly_savings: float) -> List[Dict[str, str]]:
    recommendations = []
    if rate < 20:
        recommendations.append({
            "type": "warning",
            "message": "Your savings rate is below recommended levels. Try to save at least 20% of your income.",
        })
    if ratio is not None and ratio > 0.8:
        recommendations.append({
            "type": "warning",
            "message": "Your expenses are high relative to your income. Look for areas to reduce spending.",
        })
    if monthly_savings <= 0:
        recommendations.append({
            "type": "critical",
            "message": "You are not saving money monthly. Review your budget and find ways to cut expenses.",
        })
    return recommendations
