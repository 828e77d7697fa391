from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal

import pytest
from fastapi import HTTPException

from forecast.models.entities import (
    ClientRevenue,
    FilterCriteria,
    GroupingMode,
    RevenueReport,
    RevenueTotals,
    TaskCategory,
    WorkItem,
)
from forecast.services.demand import month_window
from forecast.services.forecast_service import (
    ForecastService,
    MonthWindowInput,
    RecordBatch,
    ResultCache,
    content_key,
)
from forecast.services.revenue import StaticFeeRates
from forecast.services.skill_resolver import SkillLookupError, SkillResolver

TAX_ID = "a1b2c3d4-0000-0000-0000-000000000001"
AUDIT_ID = "a1b2c3d4-0000-0000-0000-000000000002"


def _item(item_id: str, hours: str, *, skills: tuple[str, ...] = ("Tax",), due: date | None = None) -> WorkItem:
    return WorkItem(
        id=item_id,
        client_id="client-1",
        client_name="Acme Ltd",
        name=f"Task {item_id}",
        category=TaskCategory.AD_HOC,
        estimated_hours=Decimal(hours),
        required_skills=skills,
        due_date=due,
    )


class _BrokenLookup:
    async def fetch_skill_names(self, skill_ids: Sequence[str]) -> Mapping[str, str]:
        raise SkillLookupError("timeout")


def test_result_cache_evicts_least_recently_used() -> None:
    cache = ResultCache(max_size=2)
    cache.put("a", {"value": 1})
    cache.put("b", {"value": 2})
    assert cache.get("a") == {"value": 1}

    cache.put("c", {"value": 3})

    assert cache.get("b") is None
    assert cache.get("a") == {"value": 1}
    assert len(cache) == 2
    assert (cache.hits, cache.misses) == (2, 1)


def test_content_key_depends_on_values_not_identity() -> None:
    first = content_key((_item("1", "5"),), FilterCriteria(search="x"))
    second = content_key((_item("1", "5"),), FilterCriteria(search="x"))

    assert first == second
    assert first != content_key((_item("1", "6"),), FilterCriteria(search="x"))


def test_compute_metrics_is_memoized(service: ForecastService) -> None:
    items = [_item("1", "4"), _item("2", "6")]

    first = service.compute_metrics(items, FilterCriteria())
    second = service.compute_metrics(list(items), FilterCriteria())

    assert second is first
    assert service.result_cache.hits == 1
    assert first["metrics"]["total_estimated_hours"] == "10.0"


def test_invalid_criteria_become_unprocessable(service: ForecastService) -> None:
    with pytest.raises(HTTPException) as exc_info:
        service.compute_metrics([_item("1", "4")], FilterCriteria(category="monthly"))

    assert exc_info.value.status_code == 422
    assert "category" in str(exc_info.value.detail)


def test_unknown_grouping_mode_is_unprocessable(service: ForecastService) -> None:
    with pytest.raises(HTTPException) as exc_info:
        service.compute_matrix(
            [_item("1", "4")],
            FilterCriteria(),
            grouping_mode="staff",
            months=month_window("quarter", date(2026, 1, 1)),
        )

    assert exc_info.value.status_code == 422


def test_client_matrix_reports_revenue_and_warnings(service: ForecastService) -> None:
    result = service.compute_matrix(
        [_item("1", "10", due=date(2026, 1, 5)), _item("2", "2", skills=("Payroll",), due=date(2026, 2, 5))],
        FilterCriteria(),
        grouping_mode=GroupingMode.CLIENT,
        months=month_window("custom", date(2026, 1, 1), date(2026, 1, 1), date(2026, 2, 28)),
        expected_monthly_revenue={"Acme Ltd": Decimal("600")},
    )

    revenue = result["revenue"]
    assert revenue["rows"][0]["expected_revenue"] == "1200"
    assert revenue["rows"][0]["suggested_revenue"] == "1150"
    assert revenue["rows"][0]["hourly_rate"] == "100.00"
    assert revenue["fallback_skills"] == ["Payroll"]
    assert [row["code"] for row in result["warnings"]] == ["default_fee_rate"]


@pytest.mark.asyncio
async def test_prepare_items_resolves_skill_ids_in_one_batch(service: ForecastService) -> None:
    batch = RecordBatch(
        recurring=[
            {
                "id": "rec-1",
                "client_id": "client-1",
                "client_name": "Acme Ltd",
                "name": "Monthly close",
                "estimated_hours": "3",
                "required_skill_ids": [TAX_ID, AUDIT_ID],
                "recurrence_type": "Monthly",
            }
        ],
        ad_hoc=[
            {
                "id": "adhoc-1",
                "client_id": "client-1",
                "client_name": "Acme Ltd",
                "name": "Ad-hoc review",
                "estimated_hours": "1",
                "required_skills": ["tax"],
                "required_skill_ids": [TAX_ID],
            }
        ],
    )

    prepared = await service.prepare_items(batch)

    assert [item.required_skills for item in prepared.items] == [("Audit", "Tax"), ("tax",)]
    assert prepared.items[0].category is TaskCategory.RECURRING
    assert prepared.diagnostics == []


@pytest.mark.asyncio
async def test_failed_skill_lookup_still_produces_metrics() -> None:
    service = ForecastService(
        resolver=SkillResolver(_BrokenLookup()),
        fee_rates=StaticFeeRates({}),
        default_fee_rate=Decimal("75.00"),
    )
    batch = RecordBatch(
        ad_hoc=[
            {
                "id": "adhoc-1",
                "client_id": "client-1",
                "client_name": "Acme Ltd",
                "name": "Review",
                "estimated_hours": "5",
                "required_skill_ids": [TAX_ID, AUDIT_ID],
            }
        ]
    )

    result = await service.metrics_report(batch, FilterCriteria())

    skills = [row["skill"] for row in result["metrics"]["hours_by_skill"]]
    assert skills == ["Fallback Skill (a1b2c3d4)"]
    assert result["metrics"]["total_tasks"] == 1


@pytest.mark.asyncio
async def test_matrix_report_combines_record_and_revenue_diagnostics(service: ForecastService) -> None:
    batch = RecordBatch(
        ad_hoc=[
            {
                "id": "adhoc-1",
                "client_id": "client-1",
                "client_name": "Acme Ltd",
                "name": "Review",
                "estimated_hours": "5",
                "required_skills": ["Tax"],
                "due_date": "2026-03-10",
            },
            {"id": "adhoc-2", "client_id": "client-1", "name": "Broken"},
        ]
    )

    result = await service.matrix_report(
        batch,
        FilterCriteria(),
        grouping_mode="client",
        window=MonthWindowInput(horizon="quarter", today=date(2026, 3, 1)),
    )

    assert result["rows"] == ["Acme Ltd"]
    assert [row["code"] for row in result["diagnostics"]] == ["invalid_record", "missing_expected_revenue"]


@pytest.mark.asyncio
async def test_prepare_items_reports_malformed_records_individually(service: ForecastService) -> None:
    good = {
        "id": "adhoc-1",
        "client_id": "client-1",
        "client_name": "Acme Ltd",
        "name": "Review",
        "estimated_hours": "2",
        "required_skill_ids": [TAX_ID],
    }
    batch = RecordBatch(
        ad_hoc=[
            good,
            {**good, "id": "adhoc-2", "required_skills": 7},
            "oops",
        ]
    )

    prepared = await service.prepare_items(batch)

    assert [item.id for item in prepared.items] == ["adhoc-1"]
    assert prepared.items[0].required_skills == ("Tax",)
    assert [(row.code, row.record_id) for row in prepared.diagnostics] == [
        ("invalid_record", "adhoc-2"),
        ("invalid_record", None),
    ]


def test_serialized_revenue_delta_matches_displayed_figures() -> None:
    row = ClientRevenue(
        client_name="Acme Ltd",
        total_hours=Decimal("1"),
        expected_revenue=Decimal("0.5"),
        hourly_rate=Decimal("0.5"),
        suggested_revenue=Decimal("0.4"),
        expected_less_suggested=Decimal("0.1"),
    )
    totals = RevenueTotals(
        total_hours=Decimal("1"),
        expected_revenue=Decimal("0.5"),
        hourly_rate=Decimal("0.5"),
        suggested_revenue=Decimal("0.4"),
        expected_less_suggested=Decimal("0.1"),
    )

    result = ForecastService.serialize_revenue(RevenueReport(rows=[row], totals=totals))

    [serialized] = result["rows"]
    assert (serialized["expected_revenue"], serialized["suggested_revenue"]) == ("1", "0")
    assert serialized["expected_less_suggested"] == "1"
    assert result["totals"]["expected_less_suggested"] == "1"
