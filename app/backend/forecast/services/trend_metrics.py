"""Derived trend metrics layered on the metrics aggregator."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from forecast.models.entities import (
    ClientTrend,
    MonthlyDistribution,
    PriorityTrend,
    SkillTrend,
    TaskCategory,
    TaskMetrics,
    TrendMetrics,
    WorkItem,
)
from forecast.services.demand import month_label
from forecast.services.skill_normalizer import skill_key
from forecast.services.task_metrics import MetricsAccumulator, safe_div

ZERO = Decimal("0")
UTILIZATION_CAP = Decimal("100")
UTILIZATION_DIVISOR = Decimal("10")
DEFAULT_PRIORITY_SCORE = 2
PRIORITY_SCORES = {"High": 3, "Medium": 2, "Low": 1}


def priority_score(priority: str) -> int:
    return PRIORITY_SCORES.get(priority, DEFAULT_PRIORITY_SCORE)


def utilization_score(task_count: int, avg_hours_per_task: Decimal) -> Decimal:
    """Bounded demand-intensity proxy: ``min(100, count * avg / 10)``."""

    return min(UTILIZATION_CAP, task_count * avg_hours_per_task / UTILIZATION_DIVISOR)


@dataclass(slots=True)
class _ClientTrendBucket:
    client_name: str
    task_count: int = 0
    total_hours: Decimal = ZERO
    priority_total: int = 0
    skills: set[str] = field(default_factory=set)


@dataclass(slots=True)
class _MonthBucket:
    label: str
    recurring_tasks: int = 0
    ad_hoc_tasks: int = 0
    total_hours: Decimal = ZERO


def _skill_trends(accumulator: MetricsAccumulator) -> list[SkillTrend]:
    rows = []
    for group in accumulator.skill_groups():
        average = safe_div(group.hours, group.task_count)
        rows.append(
            SkillTrend(
                skill=group.label,
                total_hours=group.hours,
                task_count=group.task_count,
                avg_hours_per_task=average,
                utilization_score=utilization_score(group.task_count, average),
            )
        )
    return sorted(rows, key=lambda row: row.total_hours, reverse=True)


def calculate_trends(items: Iterable[WorkItem]) -> TrendMetrics:
    items = list(items)
    accumulator = MetricsAccumulator().extend(items)

    clients: dict[str, _ClientTrendBucket] = {}
    priorities: dict[str, tuple[int, Decimal]] = {}
    months: dict[tuple[int, int], _MonthBucket] = {}

    for item in items:
        bucket = clients.setdefault(item.client_id, _ClientTrendBucket(client_name=item.client_name))
        bucket.task_count += 1
        bucket.total_hours += item.estimated_hours
        bucket.priority_total += priority_score(item.priority)
        bucket.skills.update(skill_key(name) for name in item.required_skills if name.strip())

        count, hours = priorities.get(item.priority, (0, ZERO))
        priorities[item.priority] = (count + 1, hours + item.estimated_hours)

        if item.due_date is None:
            continue
        month_key = (item.due_date.year, item.due_date.month)
        month = months.setdefault(month_key, _MonthBucket(label=month_label(item.due_date)))
        if item.category is TaskCategory.RECURRING:
            month.recurring_tasks += 1
        else:
            month.ad_hoc_tasks += 1
        month.total_hours += item.estimated_hours

    client_trends = sorted(
        (
            ClientTrend(
                client_name=bucket.client_name,
                task_count=bucket.task_count,
                total_hours=bucket.total_hours,
                avg_priority=safe_div(Decimal(bucket.priority_total), bucket.task_count),
                skill_diversity=len(bucket.skills),
            )
            for bucket in clients.values()
        ),
        key=lambda row: row.total_hours,
        reverse=True,
    )

    priority_trends = sorted(
        (
            PriorityTrend(
                priority=priority,
                count=count,
                total_hours=hours,
                avg_hours_per_task=safe_div(hours, count),
            )
            for priority, (count, hours) in priorities.items()
        ),
        key=lambda row: row.count,
        reverse=True,
    )

    monthly_distribution = [
        MonthlyDistribution(
            month=f"{year:04d}-{month:02d}",
            label=bucket.label,
            recurring_tasks=bucket.recurring_tasks,
            ad_hoc_tasks=bucket.ad_hoc_tasks,
            total_hours=bucket.total_hours,
        )
        for (year, month), bucket in sorted(months.items())
    ]

    return TrendMetrics(
        skill_trends=_skill_trends(accumulator),
        client_trends=client_trends,
        priority_trends=priority_trends,
        monthly_distribution=monthly_distribution,
    )


# ---------- Period comparison ----------
@dataclass(frozen=True, slots=True)
class MetricsComparison:
    total_tasks_change: Decimal | None
    total_hours_change: Decimal | None
    average_hours_change: Decimal | None


def percent_change(current: Decimal | int, previous: Decimal | int) -> Decimal | None:
    """Percent change from ``previous``; ``None`` when there is no baseline."""

    if not previous:
        return None
    return (Decimal(current) - Decimal(previous)) / Decimal(previous) * 100


def compare_metrics(current: TaskMetrics, previous: TaskMetrics) -> MetricsComparison:
    return MetricsComparison(
        total_tasks_change=percent_change(current.total_tasks, previous.total_tasks),
        total_hours_change=percent_change(current.total_estimated_hours, previous.total_estimated_hours),
        average_hours_change=percent_change(current.average_hours_per_task, previous.average_hours_per_task),
    )
