from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from forecast.models.entities import InvalidCriteriaError, RecurrenceType, TaskCategory, WorkItem
from forecast.services.demand import (
    build_breakdown,
    month_column,
    month_label,
    month_sequence,
    month_window,
    monthly_hours,
)


def _recurring(
    recurrence: RecurrenceType,
    *,
    hours: str = "6",
    interval: int = 1,
    month_of_year: int | None = None,
    is_active: bool = True,
    due_date: date | None = None,
) -> WorkItem:
    return WorkItem(
        id="rec-1",
        client_id="client-1",
        client_name="Acme Ltd",
        name="Recurring work",
        category=TaskCategory.RECURRING,
        estimated_hours=Decimal(hours),
        required_skills=("Tax",),
        is_active=is_active,
        due_date=due_date,
        recurrence_type=recurrence,
        recurrence_interval=interval,
        month_of_year=month_of_year,
    )


def _ad_hoc(item_id: str, due_date: date | None, *, skills: tuple[str, ...] = ("Tax",), hours: str = "8") -> WorkItem:
    return WorkItem(
        id=item_id,
        client_id="client-1",
        client_name="Acme Ltd",
        name="One-off",
        category=TaskCategory.AD_HOC,
        estimated_hours=Decimal(hours),
        required_skills=skills,
        due_date=due_date,
    )


def test_month_sequence_crosses_year_boundary() -> None:
    assert month_sequence(date(2025, 11, 20), date(2026, 2, 1)) == [
        date(2025, 11, 1),
        date(2025, 12, 1),
        date(2026, 1, 1),
        date(2026, 2, 1),
    ]


def test_month_column_key_and_label() -> None:
    column = month_column(date(2026, 7, 19))

    assert (column.key, column.label, column.start) == ("2026-07", "Jul 2026", date(2026, 7, 1))


@pytest.mark.parametrize(("horizon", "count"), [("quarter", 3), ("half-year", 6), ("year", 12)])
def test_fixed_horizons_start_at_current_month(horizon: str, count: int) -> None:
    months = month_window(horizon, date(2026, 11, 15))

    assert len(months) == count
    assert months[0].key == "2026-11"
    assert months[1].key == "2026-12"
    assert months[2].key == "2027-01"


def test_custom_range_snaps_to_month_boundaries() -> None:
    months = month_window("custom", date(2026, 1, 1), date(2026, 2, 14), date(2026, 4, 3))

    assert [month.key for month in months] == ["2026-02", "2026-03", "2026-04"]


def test_same_day_custom_range_becomes_that_month() -> None:
    months = month_window("custom", date(2026, 1, 1), date(2026, 5, 9), date(2026, 5, 9))

    assert [month.key for month in months] == ["2026-05"]


def test_short_custom_range_is_expanded_past_thirty_days() -> None:
    months = month_window("custom", date(2026, 1, 1), date(2026, 5, 20), date(2026, 5, 23))

    assert [month.key for month in months] == ["2026-05", "2026-06"]


def test_invalid_window_requests_raise() -> None:
    with pytest.raises(InvalidCriteriaError):
        month_window("fortnight", date(2026, 1, 1))
    with pytest.raises(InvalidCriteriaError):
        month_window("custom", date(2026, 1, 1), date(2026, 3, 1), None)
    with pytest.raises(InvalidCriteriaError):
        month_window("custom", date(2026, 1, 1), date(2026, 3, 1), date(2026, 2, 1))


def test_ad_hoc_hours_land_in_due_month_only() -> None:
    item = _ad_hoc("a-1", date(2026, 3, 30))

    assert monthly_hours(item, date(2026, 3, 1)) == Decimal("8")
    assert monthly_hours(item, date(2026, 4, 1)) == Decimal("0")
    assert monthly_hours(_ad_hoc("a-2", None), date(2026, 3, 1)) == Decimal("0")


@pytest.mark.parametrize(
    ("recurrence", "interval", "expected"),
    [
        (RecurrenceType.DAILY, 1, Decimal("180")),
        (RecurrenceType.DAILY, 2, Decimal("90")),
        (RecurrenceType.WEEKLY, 1, Decimal("25.98")),
        (RecurrenceType.MONTHLY, 1, Decimal("6")),
        (RecurrenceType.MONTHLY, 2, Decimal("3")),
        (RecurrenceType.QUARTERLY, 1, Decimal("2")),
    ],
)
def test_recurring_hours_per_month(recurrence: RecurrenceType, interval: int, expected: Decimal) -> None:
    item = _recurring(recurrence, interval=interval)

    assert monthly_hours(item, date(2026, 6, 1)) == expected


def test_annual_task_only_in_configured_month() -> None:
    item = _recurring(RecurrenceType.ANNUALLY, month_of_year=4)

    assert monthly_hours(item, date(2026, 4, 1)) == Decimal("6")
    assert monthly_hours(item, date(2026, 5, 1)) == Decimal("0")


def test_annual_task_falls_back_to_due_month() -> None:
    item = _recurring(RecurrenceType.ANNUALLY, due_date=date(2025, 9, 30))

    assert monthly_hours(item, date(2026, 9, 1)) == Decimal("6")
    assert monthly_hours(item, date(2026, 10, 1)) == Decimal("0")


def test_inactive_recurring_task_has_no_demand() -> None:
    item = _recurring(RecurrenceType.MONTHLY, is_active=False)

    assert monthly_hours(item, date(2026, 6, 1)) == Decimal("0")


def test_breakdown_uses_batch_wide_skill_labels_and_unspecified_fallback() -> None:
    months = month_window("quarter", date(2026, 3, 1))
    items = [
        _ad_hoc("a-1", date(2026, 3, 5), skills=("Tax",)),
        _ad_hoc("a-2", date(2026, 4, 5), skills=("tax",), hours="2"),
        _ad_hoc("a-3", date(2026, 5, 5), skills=()),
        _ad_hoc("a-4", date(2026, 9, 5)),
    ]

    entries = build_breakdown(items, months)

    assert [(entry.task_id, entry.skill, entry.month, entry.monthly_hours) for entry in entries] == [
        ("a-1", "Tax", "2026-03", Decimal("8")),
        ("a-2", "Tax", "2026-04", Decimal("2")),
        ("a-3", "Unspecified", "2026-05", Decimal("8")),
    ]


def test_month_labels_use_fixed_english_abbreviations() -> None:
    labels = [month_label(date(2026, month, 1)) for month in range(1, 13)]

    assert labels == [
        "Jan 2026",
        "Feb 2026",
        "Mar 2026",
        "Apr 2026",
        "May 2026",
        "Jun 2026",
        "Jul 2026",
        "Aug 2026",
        "Sep 2026",
        "Oct 2026",
        "Nov 2026",
        "Dec 2026",
    ]
    assert month_column(date(987, 9, 14)).label == "Sep 0987"
