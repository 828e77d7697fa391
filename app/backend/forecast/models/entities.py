"""Domain entities for the demand forecast pipeline."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

ALL = "all"
UNASSIGNED = "unassigned"
UNSPECIFIED_SKILL = "Unspecified"


class InvalidCriteriaError(ValueError):
    """Raised when a caller passes criteria no implementation could honour."""


class TaskCategory(str, enum.Enum):
    RECURRING = "Recurring"
    AD_HOC = "AdHoc"


class GroupingMode(str, enum.Enum):
    SKILL = "skill"
    CLIENT = "client"

    @classmethod
    def parse(cls, value: GroupingMode | str) -> GroupingMode:
        try:
            return cls(value)
        except ValueError as exc:
            raise InvalidCriteriaError(f"Unknown grouping mode: {value!r}.") from exc


class TimeHorizon(str, enum.Enum):
    QUARTER = "quarter"
    HALF_YEAR = "half-year"
    YEAR = "year"
    CUSTOM = "custom"


class RecurrenceType(str, enum.Enum):
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    ANNUALLY = "Annually"


class DiagnosticSeverity(str, enum.Enum):
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class WorkItem:
    id: str
    client_id: str
    client_name: str
    name: str
    category: TaskCategory
    estimated_hours: Decimal
    required_skills: tuple[str, ...] = ()
    priority: str = "Medium"
    status: str = ""
    due_date: date | None = None
    is_active: bool = True
    assigned_staff_id: str | None = None
    assigned_staff_name: str | None = None
    liaison_id: str | None = None
    liaison_name: str | None = None
    recurrence_type: RecurrenceType | None = None
    recurrence_interval: int = 1
    month_of_year: int | None = None

    @property
    def is_recurring(self) -> bool:
        return self.category is TaskCategory.RECURRING


@dataclass(frozen=True, slots=True)
class FilterCriteria:
    search: str = ""
    category: str = ALL
    client_id: str = ALL
    skills: tuple[str, ...] = ()
    priority: str = ALL
    status: str = ALL
    assigned_staff: tuple[str, ...] = ()
    due_from: date | None = None
    due_to: date | None = None


@dataclass(frozen=True, slots=True)
class Diagnostic:
    severity: DiagnosticSeverity
    code: str
    message: str
    record_id: str | None = None


@dataclass(frozen=True, slots=True)
class MonthColumn:
    key: str
    label: str
    start: date


@dataclass(frozen=True, slots=True)
class BreakdownEntry:
    task_id: str
    task_name: str
    client_id: str
    client_name: str
    skill: str
    month: str
    monthly_hours: Decimal
    category: TaskCategory
    priority: str
    assigned_staff_id: str | None = None
    assigned_staff_name: str | None = None


@dataclass(slots=True)
class DemandDataPoint:
    skill: str
    month: str
    demand_hours: Decimal
    task_breakdown: list[BreakdownEntry] = field(default_factory=list)


@dataclass(slots=True)
class MatrixCell:
    row: str
    month: str
    hours: Decimal
    task_count: int
    client_count: int
    task_breakdown: list[BreakdownEntry] = field(default_factory=list)


@dataclass(slots=True)
class MatrixData:
    grouping_mode: GroupingMode
    rows: list[str]
    months: list[MonthColumn]
    cells: list[MatrixCell]
    data_points: list[DemandDataPoint]
    breakdown: list[BreakdownEntry]

    def cell(self, row: str, month: str) -> MatrixCell | None:
        for candidate in self.cells:
            if candidate.row == row and candidate.month == month:
                return candidate
        return None

    def row_cells(self, row: str) -> list[MatrixCell]:
        return [candidate for candidate in self.cells if candidate.row == row]

    @property
    def total_hours(self) -> Decimal:
        return sum((entry.monthly_hours for entry in self.breakdown), Decimal("0"))

    @property
    def total_tasks(self) -> int:
        return len({entry.task_id for entry in self.breakdown})

    @property
    def total_clients(self) -> int:
        return len({entry.client_id for entry in self.breakdown})


@dataclass(slots=True)
class SkillHours:
    skill: str
    hours: Decimal


@dataclass(slots=True)
class ClientLoad:
    client_id: str
    client_name: str
    task_count: int
    hours: Decimal


@dataclass(slots=True)
class LabelCount:
    label: str
    count: int


@dataclass(slots=True)
class TaskMetrics:
    total_tasks: int
    total_estimated_hours: Decimal
    average_hours_per_task: Decimal
    hours_by_skill: list[SkillHours]
    by_client: list[ClientLoad]
    by_priority: list[LabelCount]
    by_status: list[LabelCount]
    recurring_count: int
    ad_hoc_count: int
    recurring_hours: Decimal
    ad_hoc_hours: Decimal
    assigned_count: int
    unassigned_count: int


@dataclass(slots=True)
class SkillTrend:
    skill: str
    total_hours: Decimal
    task_count: int
    avg_hours_per_task: Decimal
    utilization_score: Decimal


@dataclass(slots=True)
class ClientTrend:
    client_name: str
    task_count: int
    total_hours: Decimal
    avg_priority: Decimal
    skill_diversity: int


@dataclass(slots=True)
class PriorityTrend:
    priority: str
    count: int
    total_hours: Decimal
    avg_hours_per_task: Decimal


@dataclass(slots=True)
class MonthlyDistribution:
    month: str
    label: str
    recurring_tasks: int
    ad_hoc_tasks: int
    total_hours: Decimal


@dataclass(slots=True)
class TrendMetrics:
    skill_trends: list[SkillTrend]
    client_trends: list[ClientTrend]
    priority_trends: list[PriorityTrend]
    monthly_distribution: list[MonthlyDistribution]


@dataclass(slots=True)
class ClientRevenue:
    client_name: str
    total_hours: Decimal
    expected_revenue: Decimal
    hourly_rate: Decimal
    suggested_revenue: Decimal
    expected_less_suggested: Decimal


@dataclass(slots=True)
class RevenueTotals:
    total_hours: Decimal
    expected_revenue: Decimal
    hourly_rate: Decimal
    suggested_revenue: Decimal
    expected_less_suggested: Decimal


@dataclass(slots=True)
class RevenueReport:
    rows: list[ClientRevenue]
    totals: RevenueTotals
    fallback_skills: list[str] = field(default_factory=list)
