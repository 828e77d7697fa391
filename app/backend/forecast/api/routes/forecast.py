"""Metrics and matrix endpoints over posted work-item records."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from forecast.models.entities import ALL, FilterCriteria, TimeHorizon
from forecast.services.forecast_service import (
    ForecastService,
    MonthWindowInput,
    RecordBatch,
    get_forecast_service,
)

router = APIRouter(prefix="/forecast", tags=["forecast"])


class StaffPayload(BaseModel):
    id: str
    name: str | None = None
    active: bool = True


class FilterCriteriaPayload(BaseModel):
    search: str = ""
    category: str = ALL
    client_id: str = ALL
    skills: list[str] = Field(default_factory=list)
    priority: str = ALL
    status: str = ALL
    assigned_staff: list[str] = Field(default_factory=list)
    due_from: date | None = None
    due_to: date | None = None

    def to_criteria(self) -> FilterCriteria:
        return FilterCriteria(
            search=self.search,
            category=self.category,
            client_id=self.client_id,
            skills=tuple(self.skills),
            priority=self.priority,
            status=self.status,
            assigned_staff=tuple(self.assigned_staff),
            due_from=self.due_from,
            due_to=self.due_to,
        )


class RecordsPayload(BaseModel):
    # Records stay loosely typed so one malformed record is reported, not rejected.
    recurring_tasks: list[Any] = Field(default_factory=list)
    ad_hoc_tasks: list[Any] = Field(default_factory=list)
    staff: list[StaffPayload] | None = None

    def to_batch(self) -> RecordBatch:
        return RecordBatch(
            recurring=list(self.recurring_tasks),
            ad_hoc=list(self.ad_hoc_tasks),
            staff=[staff.model_dump() for staff in self.staff] if self.staff is not None else None,
        )


class MetricsPayload(RecordsPayload):
    filters: FilterCriteriaPayload = Field(default_factory=FilterCriteriaPayload)
    previous_period: RecordsPayload | None = None


class MonthWindowPayload(BaseModel):
    horizon: TimeHorizon = TimeHorizon.HALF_YEAR
    today: date | None = None
    custom_start: date | None = None
    custom_end: date | None = None


class MatrixPayload(RecordsPayload):
    filters: FilterCriteriaPayload = Field(default_factory=FilterCriteriaPayload)
    grouping_mode: str = "skill"
    window: MonthWindowPayload = Field(default_factory=MonthWindowPayload)
    expected_monthly_revenue: dict[str, Decimal] = Field(default_factory=dict)
    fee_rates: dict[str, Decimal] | None = None


@router.post("/metrics")
async def post_metrics(
    payload: MetricsPayload,
    service: ForecastService = Depends(get_forecast_service),
) -> dict[str, object]:
    return await service.metrics_report(
        payload.to_batch(),
        payload.filters.to_criteria(),
        previous_batch=payload.previous_period.to_batch() if payload.previous_period is not None else None,
    )


@router.post("/matrix")
async def post_matrix(
    payload: MatrixPayload,
    service: ForecastService = Depends(get_forecast_service),
) -> dict[str, object]:
    return await service.matrix_report(
        payload.to_batch(),
        payload.filters.to_criteria(),
        grouping_mode=payload.grouping_mode,
        window=MonthWindowInput(
            horizon=payload.window.horizon,
            today=payload.window.today,
            custom_start=payload.window.custom_start,
            custom_end=payload.window.custom_end,
        ),
        expected_monthly_revenue=payload.expected_monthly_revenue,
        fee_rates=payload.fee_rates,
    )
