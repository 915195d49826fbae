from __future__ import annotations

import calendar
import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple

Record = Dict[str, Any]

SIGNIFICANT_TREND_RATIO = 0.10
STATUS_RANK = {"good": 0, "warning": 1, "critical": 2}


def round_money(value: float) -> float:
    return round(value, 2)


def amount_of(record: Record) -> float:
    return float(record.get("amount", 0))


def to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def total_amount(records: Iterable[Record]) -> float:
    return round_money(sum(amount_of(record) for record in records))


def month_bounds(year: int, month: int) -> Tuple[datetime, datetime]:
    """First instant and last instant of a calendar month."""
    last_day = calendar.monthrange(year, month)[1]
    return datetime(year, month, 1), datetime.combine(date(year, month, last_day), time.max)


def year_bounds(year: int) -> Tuple[datetime, datetime]:
    return datetime(year, 1, 1), datetime.combine(date(year, 12, 31), time.max)


def months_ago(moment: datetime, months: int) -> datetime:
    """Same day-of-month ``months`` earlier, clamped to the end of shorter months."""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def month_year_bucket(record: Record) -> Tuple[int, int]:
    moment = to_datetime(record["date"])
    return moment.year, moment.month


def month_index_bucket(record: Record) -> int:
    return to_datetime(record["date"]).month


def record_category(record: Record) -> str:
    return record.get("category") or "Uncategorized"


@dataclass
class BucketGroups:
    """bucket -> category -> sum, and bucket -> category -> count."""

    sums: Dict[Hashable, Dict[str, float]] = field(default_factory=dict)
    counts: Dict[Hashable, Dict[str, int]] = field(default_factory=dict)

    def buckets(self, descending: bool = False) -> List[Hashable]:
        return sorted(self.sums, reverse=descending)

    def bucket_total(self, bucket: Hashable) -> float:
        return round_money(sum(self.sums.get(bucket, {}).values()))

    def bucket_count(self, bucket: Hashable) -> int:
        return sum(self.counts.get(bucket, {}).values())


def group_by_bucket_and_category(
    records: Iterable[Record],
    bucket_fn: Callable[[Record], Hashable],
    category_fn: Callable[[Record], str] = record_category,
) -> BucketGroups:
    sums: Dict[Hashable, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
    counts: Dict[Hashable, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for record in records:
        bucket = bucket_fn(record)
        category = category_fn(record)
        sums[bucket][category] += amount_of(record)
        counts[bucket][category] += 1
    return BucketGroups(
        sums={bucket: {cat: round_money(total) for cat, total in cats.items()} for bucket, cats in sums.items()},
        counts={bucket: dict(cats) for bucket, cats in counts.items()},
    )


def group_by_category(
    records: Iterable[Record],
    category_fn: Callable[[Record], str] = record_category,
) -> Dict[str, List[Record]]:
    """Records per category, categories in order of first encounter."""
    category_map: Dict[str, List[Record]] = defaultdict(list)
    for record in records:
        category_map[category_fn(record)].append(record)
    return dict(category_map)


def category_totals(
    records: Iterable[Record],
    category_fn: Callable[[Record], str] = record_category,
) -> Dict[str, float]:
    totals: Dict[str, float] = defaultdict(float)
    for record in records:
        totals[category_fn(record)] += amount_of(record)
    return {category: round_money(total) for category, total in totals.items()}


def top_categories(totals: Dict[str, float], limit: int = 5) -> List[Dict[str, Any]]:
    """Highest totals first. Equal totals keep their first-encounter order."""
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [{"category": category, "total": total} for category, total in ranked[:limit]]


def calculate_trend(amounts: Sequence[float]) -> float:
    """
    Mean of the last three amounts minus mean of the first three. Shorter
    sequences average whatever is there; fewer than two amounts have no trend.
    """
    if len(amounts) < 2:
        return 0.0
    recent = amounts[-3:]
    oldest = amounts[:3]
    return statistics.fmean(recent) - statistics.fmean(oldest)


def trend_direction(trend: float) -> str:
    if trend > 0:
        return "increasing"
    if trend < 0:
        return "decreasing"
    return "stable"


def is_significant_trend(trend: float, average: float) -> bool:
    if average == 0:
        return False
    return abs(trend / average) > SIGNIFICANT_TREND_RATIO


def calculate_variance(numbers: Sequence[float]) -> float:
    """Population standard deviation. A single number has none."""
    if not numbers:
        raise ValueError("variance requires at least one value")
    return statistics.pstdev(numbers)


def savings_rate(income: float, expenses: float) -> float:
    if income <= 0:
        return 0.0
    return (income - expenses) / income * 100


def expense_to_income_ratio(income: float, expenses: float) -> Optional[float]:
    """None when there is no income to compare against."""
    if income <= 0:
        return None
    return expenses / income


def health_score(rate: float, ratio: Optional[float], monthly_savings: float) -> int:
    score = 100

    if rate < 20:
        score -= 20
    if rate < 10:
        score -= 20

    if ratio is not None:
        if ratio > 0.9:
            score -= 20
        if ratio > 0.8:
            score -= 10

    if monthly_savings <= 0:
        score -= 30

    return max(0, min(100, score))


def percentage_used(spent: float, allocated: float) -> float:
    if allocated <= 0:
        return 0.0
    return spent / allocated * 100


def classify_budget(used: float) -> str:
    if used > 90:
        return "critical"
    if used > 75:
        return "warning"
    return "good"


def overall_status(statuses: Iterable[str]) -> str:
    worst = "good"
    for status in statuses:
        if STATUS_RANK[status] > STATUS_RANK[worst]:
            worst = status
    return worst


def detect_spending_spikes(
    records: Sequence[Record],
    spike_sigma: float = 2.5,
    minimum_spike_amount: float = 250.0,
) -> List[Record]:
    """
    Detect outliers using Z-score heuristics to highlight unusual spends.
    """
    if not records:
        return []

    amounts = [amount_of(record) for record in records]
    mean = statistics.fmean(amounts)
    stdev = statistics.pstdev(amounts)

    anomalies: List[Record] = []
    for record in records:
        amount = amount_of(record)
        if amount < minimum_spike_amount:
            continue
        if stdev == 0:
            z_score = 0
        else:
            z_score = (amount - mean) / stdev
        if z_score >= spike_sigma:
            anomalies.append(record)
    return anomalies


def is_spike(
    amount: float,
    history: Sequence[Record],
    spike_sigma: float = 2.5,
    minimum_spike_amount: float = 250.0,
) -> bool:
    """Whether a new amount would stand out against the existing history."""
    if amount < minimum_spike_amount or len(history) < 2:
        return False
    candidate = {"amount": amount}
    spikes = detect_spending_spikes(
        list(history) + [candidate],
        spike_sigma=spike_sigma,
        minimum_spike_amount=minimum_spike_amount,
    )
    return any(spike is candidate for spike in spikes)
