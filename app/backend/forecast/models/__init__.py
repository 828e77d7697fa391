"""Domain model package."""

from forecast.models.entities import (
    ALL,
    UNASSIGNED,
    UNSPECIFIED_SKILL,
    BreakdownEntry,
    ClientLoad,
    ClientRevenue,
    ClientTrend,
    DemandDataPoint,
    Diagnostic,
    DiagnosticSeverity,
    FilterCriteria,
    GroupingMode,
    InvalidCriteriaError,
    LabelCount,
    MatrixCell,
    MatrixData,
    MonthColumn,
    MonthlyDistribution,
    PriorityTrend,
    RecurrenceType,
    RevenueReport,
    RevenueTotals,
    SkillHours,
    SkillTrend,
    TaskCategory,
    TaskMetrics,
    TimeHorizon,
    TrendMetrics,
    WorkItem,
)

__all__ = [
    "ALL",
    "UNASSIGNED",
    "UNSPECIFIED_SKILL",
    "BreakdownEntry",
    "ClientLoad",
    "ClientRevenue",
    "ClientTrend",
    "DemandDataPoint",
    "Diagnostic",
    "DiagnosticSeverity",
    "FilterCriteria",
    "GroupingMode",
    "InvalidCriteriaError",
    "LabelCount",
    "MatrixCell",
    "MatrixData",
    "MonthColumn",
    "MonthlyDistribution",
    "PriorityTrend",
    "RecurrenceType",
    "RevenueReport",
    "RevenueTotals",
    "SkillHours",
    "SkillTrend",
    "TaskCategory",
    "TaskMetrics",
    "TimeHorizon",
    "TrendMetrics",
    "WorkItem",
]
