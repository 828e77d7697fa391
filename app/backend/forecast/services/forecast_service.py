"""Application service wiring the forecast pipeline for the HTTP layer."""

from __future__ import annotations

import hashlib
import logging
from collections import OrderedDict
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from functools import lru_cache

from fastapi import HTTPException, status

from forecast.core.config import Settings, get_settings
from forecast.models.entities import (
    BreakdownEntry,
    Diagnostic,
    DiagnosticSeverity,
    FilterCriteria,
    GroupingMode,
    InvalidCriteriaError,
    MatrixData,
    MonthColumn,
    RevenueReport,
    TaskMetrics,
    TimeHorizon,
    TrendMetrics,
    WorkItem,
)
from forecast.services.demand import month_window
from forecast.services.matrix_builder import build_matrix, row_total
from forecast.services.revenue import (
    DEFAULT_SKILL_FEE_RATES,
    StaticFeeRates,
    calculate_client_revenue,
    derive_expected_revenue,
    present_hours,
    present_money,
    present_rate,
)
from forecast.services.skill_normalizer import normalize_skills
from forecast.services.skill_resolver import CatalogSkillLookup, SkillNameCache, SkillResolver
from forecast.services.task_filters import FilterStep, apply_filters, trace_filters
from forecast.services.task_formatter import FormattingResult, format_work_items
from forecast.services.task_metrics import aggregate_metrics
from forecast.services.trend_metrics import MetricsComparison, calculate_trends, compare_metrics

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RecordBatch:
    recurring: list[object] = field(default_factory=list)
    ad_hoc: list[object] = field(default_factory=list)
    staff: list[Mapping[str, object]] | None = None


@dataclass(slots=True)
class MonthWindowInput:
    horizon: TimeHorizon | str = TimeHorizon.HALF_YEAR
    today: date | None = None
    custom_start: date | None = None
    custom_end: date | None = None


class ResultCache:
    """Bounded LRU of computed results keyed by a content hash of their inputs."""

    def __init__(self, max_size: int = 32) -> None:
        self.max_size = max_size
        self._entries: OrderedDict[str, dict[str, object]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> dict[str, object] | None:
        value = self._entries.get(key)
        if value is None:
            self.misses += 1
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        return value

    def put(self, key: str, value: dict[str, object]) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def content_key(*parts: object) -> str:
    return hashlib.sha256(repr(parts).encode("utf-8")).hexdigest()


def _unprocessable(exc: InvalidCriteriaError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


class ForecastService:
    """Stateless pipeline facade; only the skill-name and result caches persist."""

    def __init__(
        self,
        *,
        resolver: SkillResolver,
        fee_rates: StaticFeeRates,
        default_fee_rate: Decimal,
        result_cache: ResultCache | None = None,
    ) -> None:
        self.resolver = resolver
        self.fee_rates = fee_rates
        self.default_fee_rate = default_fee_rate
        self.result_cache = result_cache if result_cache is not None else ResultCache()

    @classmethod
    def from_settings(cls, settings: Settings) -> ForecastService:
        resolver = SkillResolver(
            CatalogSkillLookup(settings.skill_catalog),
            SkillNameCache(ttl_seconds=settings.skill_cache_ttl_seconds),
            placeholder_length=settings.placeholder_id_length,
        )
        return cls(
            resolver=resolver,
            fee_rates=StaticFeeRates(settings.skill_fee_rates or DEFAULT_SKILL_FEE_RATES),
            default_fee_rate=settings.default_fee_rate,
            result_cache=ResultCache(settings.result_cache_size),
        )

    # ---------- Serialization ----------
    @staticmethod
    def serialize_diagnostic(diagnostic: Diagnostic) -> dict[str, object]:
        return {
            "severity": diagnostic.severity.value,
            "code": diagnostic.code,
            "message": diagnostic.message,
            "record_id": diagnostic.record_id,
        }

    @staticmethod
    def serialize_metrics(metrics: TaskMetrics) -> dict[str, object]:
        return {
            "total_tasks": metrics.total_tasks,
            "total_estimated_hours": str(present_hours(metrics.total_estimated_hours)),
            "average_hours_per_task": str(present_hours(metrics.average_hours_per_task)),
            "hours_by_skill": [
                {"skill": row.skill, "hours": str(present_hours(row.hours))} for row in metrics.hours_by_skill
            ],
            "by_client": [
                {
                    "client_id": row.client_id,
                    "client_name": row.client_name,
                    "task_count": row.task_count,
                    "hours": str(present_hours(row.hours)),
                }
                for row in metrics.by_client
            ],
            "by_priority": [{"priority": row.label, "count": row.count} for row in metrics.by_priority],
            "by_status": [{"status": row.label, "count": row.count} for row in metrics.by_status],
            "recurring_count": metrics.recurring_count,
            "ad_hoc_count": metrics.ad_hoc_count,
            "recurring_hours": str(present_hours(metrics.recurring_hours)),
            "ad_hoc_hours": str(present_hours(metrics.ad_hoc_hours)),
            "assigned_count": metrics.assigned_count,
            "unassigned_count": metrics.unassigned_count,
        }

    @staticmethod
    def serialize_trends(trends: TrendMetrics) -> dict[str, object]:
        return {
            "skill_trends": [
                {
                    "skill": row.skill,
                    "total_hours": str(present_hours(row.total_hours)),
                    "task_count": row.task_count,
                    "avg_hours_per_task": str(present_hours(row.avg_hours_per_task)),
                    "utilization_score": str(present_rate(row.utilization_score)),
                }
                for row in trends.skill_trends
            ],
            "client_trends": [
                {
                    "client_name": row.client_name,
                    "task_count": row.task_count,
                    "total_hours": str(present_hours(row.total_hours)),
                    "avg_priority": str(present_rate(row.avg_priority)),
                    "skill_diversity": row.skill_diversity,
                }
                for row in trends.client_trends
            ],
            "priority_trends": [
                {
                    "priority": row.priority,
                    "count": row.count,
                    "total_hours": str(present_hours(row.total_hours)),
                    "avg_hours_per_task": str(present_hours(row.avg_hours_per_task)),
                }
                for row in trends.priority_trends
            ],
            "monthly_distribution": [
                {
                    "month": row.month,
                    "label": row.label,
                    "recurring_tasks": row.recurring_tasks,
                    "ad_hoc_tasks": row.ad_hoc_tasks,
                    "total_hours": str(present_hours(row.total_hours)),
                }
                for row in trends.monthly_distribution
            ],
        }

    @staticmethod
    def serialize_comparison(comparison: MetricsComparison) -> dict[str, object]:
        def _percent(value: Decimal | None) -> str | None:
            return None if value is None else str(present_rate(value))

        return {
            "total_tasks_change": _percent(comparison.total_tasks_change),
            "total_hours_change": _percent(comparison.total_hours_change),
            "average_hours_change": _percent(comparison.average_hours_change),
        }

    @staticmethod
    def serialize_filter_step(step: FilterStep) -> dict[str, object]:
        return {"name": step.name, "remaining": step.remaining}

    @staticmethod
    def serialize_month(month: MonthColumn) -> dict[str, object]:
        return {"key": month.key, "label": month.label, "month_start": month.start.isoformat()}

    @staticmethod
    def serialize_breakdown_entry(entry: BreakdownEntry) -> dict[str, object]:
        return {
            "task_id": entry.task_id,
            "task_name": entry.task_name,
            "client_id": entry.client_id,
            "client_name": entry.client_name,
            "skill": entry.skill,
            "month": entry.month,
            "monthly_hours": str(present_hours(entry.monthly_hours)),
            "category": entry.category.value,
            "priority": entry.priority,
            "assigned_staff_id": entry.assigned_staff_id,
            "assigned_staff_name": entry.assigned_staff_name,
        }

    def serialize_matrix(self, matrix: MatrixData) -> dict[str, object]:
        return {
            "grouping_mode": matrix.grouping_mode.value,
            "months": [self.serialize_month(month) for month in matrix.months],
            "rows": list(matrix.rows),
            "cells": [
                {
                    "row": cell.row,
                    "month": cell.month,
                    "hours": str(present_hours(cell.hours)),
                    "task_count": cell.task_count,
                    "client_count": cell.client_count,
                    "task_breakdown": [self.serialize_breakdown_entry(entry) for entry in cell.task_breakdown],
                }
                for cell in matrix.cells
            ],
            "row_totals": [
                {"row": row, "hours": str(present_hours(row_total(matrix, row)))} for row in matrix.rows
            ],
            "totals": {
                "hours": str(present_hours(matrix.total_hours)),
                "tasks": matrix.total_tasks,
                "clients": matrix.total_clients,
            },
        }

    @staticmethod
    def serialize_revenue(report: RevenueReport) -> dict[str, object]:
        return {
            "rows": [
                {
                    "client_name": row.client_name,
                    "total_hours": str(present_hours(row.total_hours)),
                    "expected_revenue": str(present_money(row.expected_revenue)),
                    "hourly_rate": str(present_rate(row.hourly_rate)),
                    "suggested_revenue": str(present_money(row.suggested_revenue)),
                    "expected_less_suggested": str(
                        present_money(row.expected_revenue) - present_money(row.suggested_revenue)
                    ),
                }
                for row in report.rows
            ],
            "totals": {
                "total_hours": str(present_hours(report.totals.total_hours)),
                "expected_revenue": str(present_money(report.totals.expected_revenue)),
                "hourly_rate": str(present_rate(report.totals.hourly_rate)),
                "suggested_revenue": str(present_money(report.totals.suggested_revenue)),
                "expected_less_suggested": str(
                    present_money(report.totals.expected_revenue) - present_money(report.totals.suggested_revenue)
                ),
            },
            "fallback_skills": list(report.fallback_skills),
        }

    # ---------- Record preparation ----------
    async def prepare_items(self, batch: RecordBatch) -> FormattingResult:
        """Resolve skill ids in one batched lookup, then format every record."""

        records = [*batch.recurring, *batch.ad_hoc]
        id_lists = [_skill_ids(record) for record in records]
        resolved = await self.resolver.resolve_batch(id_lists)

        prepared: list[object] = []
        for record, names in zip(records, resolved):
            existing = record.get("required_skills") if isinstance(record, Mapping) else None
            if existing is None:
                existing = []
            elif isinstance(existing, str):
                existing = [existing]
            if not names or not isinstance(existing, (list, tuple)):
                # Left untouched so the formatter reports it per record.
                prepared.append(record)
                continue
            prepared.append({**record, "required_skills": [*existing, *names]})

        split = len(batch.recurring)
        return format_work_items(prepared[:split], prepared[split:], staff_records=batch.staff)

    async def resolve_skills(self, skill_ids: Sequence[str]) -> dict[str, object]:
        names = await self.resolver.resolve(skill_ids)
        return {"names": names, "normalized": normalize_skills(names)}

    # ---------- Metrics ----------
    def compute_metrics(
        self,
        items: Sequence[WorkItem],
        criteria: FilterCriteria,
        *,
        previous_items: Sequence[WorkItem] | None = None,
    ) -> dict[str, object]:
        key = content_key("metrics", tuple(items), criteria, None if previous_items is None else tuple(previous_items))
        cached = self.result_cache.get(key)
        if cached is not None:
            return cached

        try:
            filtered = apply_filters(items, criteria)
            trace = trace_filters(items, criteria)
            previous = apply_filters(previous_items, criteria) if previous_items is not None else None
        except InvalidCriteriaError as exc:
            raise _unprocessable(exc) from exc

        metrics = aggregate_metrics(filtered)
        result: dict[str, object] = {
            "total_items": len(items),
            "filtered_items": len(filtered),
            "filter_trace": [self.serialize_filter_step(step) for step in trace],
            "metrics": self.serialize_metrics(metrics),
            "trends": self.serialize_trends(calculate_trends(filtered)),
            "comparison": (
                self.serialize_comparison(compare_metrics(metrics, aggregate_metrics(previous)))
                if previous is not None
                else None
            ),
        }
        self.result_cache.put(key, result)
        return result

    async def metrics_report(
        self,
        batch: RecordBatch,
        criteria: FilterCriteria,
        *,
        previous_batch: RecordBatch | None = None,
    ) -> dict[str, object]:
        prepared = await self.prepare_items(batch)
        diagnostics = list(prepared.diagnostics)
        previous_items = None
        if previous_batch is not None:
            previous = await self.prepare_items(previous_batch)
            previous_items = previous.items
            diagnostics.extend(previous.diagnostics)

        result = self.compute_metrics(prepared.items, criteria, previous_items=previous_items)
        return {**result, "diagnostics": [self.serialize_diagnostic(row) for row in diagnostics]}

    # ---------- Matrix ----------
    def compute_matrix(
        self,
        items: Sequence[WorkItem],
        criteria: FilterCriteria,
        *,
        grouping_mode: GroupingMode | str,
        months: Sequence[MonthColumn],
        expected_monthly_revenue: Mapping[str, Decimal] | None = None,
        fee_rates: StaticFeeRates | None = None,
    ) -> dict[str, object]:
        rates = fee_rates if fee_rates is not None else self.fee_rates
        expected_monthly_revenue = expected_monthly_revenue or {}
        key = content_key(
            "matrix",
            tuple(items),
            criteria,
            str(grouping_mode),
            tuple(months),
            tuple(sorted(expected_monthly_revenue.items())),
            tuple(sorted(rates.rates.items())),
            self.default_fee_rate,
        )
        cached = self.result_cache.get(key)
        if cached is not None:
            return cached

        try:
            filtered = apply_filters(items, criteria)
            matrix = build_matrix(filtered, grouping_mode, months)
        except InvalidCriteriaError as exc:
            raise _unprocessable(exc) from exc

        diagnostics: list[Diagnostic] = []
        revenue = None
        if matrix.grouping_mode is GroupingMode.CLIENT:
            expected = {
                client_name: derive_expected_revenue(monthly, len(months))
                for client_name, monthly in expected_monthly_revenue.items()
            }
            for client_name in matrix.rows:
                if client_name not in expected:
                    diagnostics.append(
                        Diagnostic(
                            severity=DiagnosticSeverity.WARNING,
                            code="missing_expected_revenue",
                            message=f"No expected revenue supplied for client {client_name}.",
                        )
                    )
            report = calculate_client_revenue(matrix, expected, rates, self.default_fee_rate)
            for skill in report.fallback_skills:
                diagnostics.append(
                    Diagnostic(
                        severity=DiagnosticSeverity.WARNING,
                        code="default_fee_rate",
                        message=f"Skill {skill} has no fee rate; default rate {self.default_fee_rate} applied.",
                    )
                )
            revenue = self.serialize_revenue(report)

        result: dict[str, object] = {
            **self.serialize_matrix(matrix),
            "revenue": revenue,
            "warnings": [self.serialize_diagnostic(row) for row in diagnostics],
        }
        self.result_cache.put(key, result)
        return result

    async def matrix_report(
        self,
        batch: RecordBatch,
        criteria: FilterCriteria,
        *,
        grouping_mode: GroupingMode | str,
        window: MonthWindowInput,
        expected_monthly_revenue: Mapping[str, Decimal] | None = None,
        fee_rates: Mapping[str, Decimal] | None = None,
    ) -> dict[str, object]:
        try:
            months = month_window(
                window.horizon,
                window.today or date.today(),
                window.custom_start,
                window.custom_end,
            )
        except InvalidCriteriaError as exc:
            raise _unprocessable(exc) from exc

        prepared = await self.prepare_items(batch)
        result = self.compute_matrix(
            prepared.items,
            criteria,
            grouping_mode=grouping_mode,
            months=months,
            expected_monthly_revenue=expected_monthly_revenue,
            fee_rates=StaticFeeRates(fee_rates) if fee_rates is not None else None,
        )
        diagnostics = [self.serialize_diagnostic(row) for row in prepared.diagnostics]
        return {**result, "diagnostics": diagnostics + list(result["warnings"])}


def _skill_ids(record: object) -> list[str]:
    if not isinstance(record, Mapping):
        return []
    raw = record.get("required_skill_ids") or []
    if isinstance(raw, str):
        return [raw]
    if not isinstance(raw, (list, tuple)):
        return []
    return [str(skill_id) for skill_id in raw if skill_id]


@lru_cache
def get_forecast_service() -> ForecastService:
    return ForecastService.from_settings(get_settings())
