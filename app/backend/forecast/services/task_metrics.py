"""Scalar and grouped statistics over work items."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from forecast.models.entities import (
    ClientLoad,
    LabelCount,
    SkillHours,
    TaskCategory,
    TaskMetrics,
    WorkItem,
)
from forecast.services.skill_normalizer import SkillLabels

ZERO = Decimal("0")


def safe_div(numerator: Decimal, denominator: Decimal | int) -> Decimal:
    if not denominator:
        return ZERO
    return numerator / Decimal(denominator)


def status_label(item: WorkItem) -> str:
    if item.status:
        return item.status
    if item.category is TaskCategory.RECURRING:
        return "Active" if item.is_active else "Inactive"
    return "Unknown"


@dataclass(slots=True)
class SkillGroup:
    label: str
    hours: Decimal
    task_count: int


@dataclass(slots=True)
class _ClientBucket:
    client_name: str
    task_count: int = 0
    hours: Decimal = ZERO


class MetricsAccumulator:
    """Running aggregate; ``merge`` combines partitions with sums and label union."""

    def __init__(self) -> None:
        self.total_tasks = 0
        self.total_hours = ZERO
        self.recurring_count = 0
        self.ad_hoc_count = 0
        self.recurring_hours = ZERO
        self.ad_hoc_hours = ZERO
        self.assigned_count = 0
        self.unassigned_count = 0
        self.skill_labels = SkillLabels()
        self._skill_hours: dict[str, Decimal] = {}
        self._skill_counts: dict[str, int] = {}
        self._clients: dict[str, _ClientBucket] = {}
        self._priorities: dict[str, int] = {}
        self._statuses: dict[str, int] = {}

    def add(self, item: WorkItem) -> MetricsAccumulator:
        hours = item.estimated_hours
        self.total_tasks += 1
        self.total_hours += hours

        if item.category is TaskCategory.RECURRING:
            self.recurring_count += 1
            self.recurring_hours += hours
        else:
            self.ad_hoc_count += 1
            self.ad_hoc_hours += hours

        if item.assigned_staff_id:
            self.assigned_count += 1
        else:
            self.unassigned_count += 1

        seen: set[str] = set()
        for name in item.required_skills:
            label = self.skill_labels.add(name)
            if label is None:
                continue
            key = label.casefold()
            if key in seen:
                continue
            seen.add(key)
            self._skill_hours[key] = self._skill_hours.get(key, ZERO) + hours
            self._skill_counts[key] = self._skill_counts.get(key, 0) + 1

        bucket = self._clients.setdefault(item.client_id, _ClientBucket(client_name=item.client_name))
        bucket.task_count += 1
        bucket.hours += hours

        self._priorities[item.priority] = self._priorities.get(item.priority, 0) + 1
        status = status_label(item)
        self._statuses[status] = self._statuses.get(status, 0) + 1
        return self

    def extend(self, items: Iterable[WorkItem]) -> MetricsAccumulator:
        for item in items:
            self.add(item)
        return self

    def merge(self, other: MetricsAccumulator) -> MetricsAccumulator:
        self.total_tasks += other.total_tasks
        self.total_hours += other.total_hours
        self.recurring_count += other.recurring_count
        self.ad_hoc_count += other.ad_hoc_count
        self.recurring_hours += other.recurring_hours
        self.ad_hoc_hours += other.ad_hoc_hours
        self.assigned_count += other.assigned_count
        self.unassigned_count += other.unassigned_count
        self.skill_labels.merge(other.skill_labels)
        for key, hours in other._skill_hours.items():
            self._skill_hours[key] = self._skill_hours.get(key, ZERO) + hours
        for key, count in other._skill_counts.items():
            self._skill_counts[key] = self._skill_counts.get(key, 0) + count
        for client_id, theirs in other._clients.items():
            bucket = self._clients.setdefault(client_id, _ClientBucket(client_name=theirs.client_name))
            bucket.task_count += theirs.task_count
            bucket.hours += theirs.hours
        for label, count in other._priorities.items():
            self._priorities[label] = self._priorities.get(label, 0) + count
        for label, count in other._statuses.items():
            self._statuses[label] = self._statuses.get(label, 0) + count
        return self

    def skill_groups(self) -> list[SkillGroup]:
        """Per-skill totals in first-seen order."""

        return [
            SkillGroup(
                label=self.skill_labels.label(key),
                hours=self._skill_hours[key],
                task_count=self._skill_counts[key],
            )
            for key in self._skill_hours
        ]

    def result(self) -> TaskMetrics:
        hours_by_skill = sorted(
            (SkillHours(skill=group.label, hours=group.hours) for group in self.skill_groups()),
            key=lambda row: row.hours,
            reverse=True,
        )
        by_client = sorted(
            (
                ClientLoad(
                    client_id=client_id,
                    client_name=bucket.client_name,
                    task_count=bucket.task_count,
                    hours=bucket.hours,
                )
                for client_id, bucket in self._clients.items()
            ),
            key=lambda row: row.task_count,
            reverse=True,
        )
        return TaskMetrics(
            total_tasks=self.total_tasks,
            total_estimated_hours=self.total_hours,
            average_hours_per_task=safe_div(self.total_hours, self.total_tasks),
            hours_by_skill=hours_by_skill,
            by_client=by_client,
            by_priority=_label_counts(self._priorities),
            by_status=_label_counts(self._statuses),
            recurring_count=self.recurring_count,
            ad_hoc_count=self.ad_hoc_count,
            recurring_hours=self.recurring_hours,
            ad_hoc_hours=self.ad_hoc_hours,
            assigned_count=self.assigned_count,
            unassigned_count=self.unassigned_count,
        )


def _label_counts(counts: dict[str, int]) -> list[LabelCount]:
    rows = [LabelCount(label=label, count=count) for label, count in counts.items()]
    return sorted(rows, key=lambda row: row.count, reverse=True)


def aggregate_metrics(items: Iterable[WorkItem]) -> TaskMetrics:
    return MetricsAccumulator().extend(items).result()
