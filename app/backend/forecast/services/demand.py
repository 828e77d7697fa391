"""Month windows and per-month demand expansion of work items."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, timedelta
from decimal import Decimal

from forecast.models.entities import (
    UNSPECIFIED_SKILL,
    BreakdownEntry,
    InvalidCriteriaError,
    MonthColumn,
    RecurrenceType,
    TimeHorizon,
    WorkItem,
)
from forecast.services.skill_normalizer import SkillLabels

ZERO = Decimal("0")
DAYS_PER_MONTH = Decimal("30")
WEEKS_PER_MONTH = Decimal("4.33")
MONTHS_PER_QUARTER = Decimal("3")
SHORT_RANGE_DAYS = 7
SHORT_RANGE_EXTENSION_DAYS = 30

HORIZON_MONTHS = {
    TimeHorizon.QUARTER: 3,
    TimeHorizon.HALF_YEAR: 6,
    TimeHorizon.YEAR: 12,
}
MONTH_ABBREVIATIONS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def month_start(value: date) -> date:
    return date(value.year, value.month, 1)


def add_months(value: date, count: int) -> date:
    index = value.year * 12 + value.month - 1 + count
    return date(index // 12, index % 12 + 1, 1)


def month_sequence(start_month: date, end_month: date) -> list[date]:
    current = month_start(start_month)
    end = month_start(end_month)
    months: list[date] = []
    while current <= end:
        months.append(current)
        current = add_months(current, 1)
    return months


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def month_label(value: date) -> str:
    # Independent of the process locale.
    return f"{MONTH_ABBREVIATIONS[value.month - 1]} {value.year:04d}"


def month_column(value: date) -> MonthColumn:
    start = month_start(value)
    return MonthColumn(key=month_key(start), label=month_label(start), start=start)


def month_window(
    horizon: TimeHorizon | str,
    today: date,
    custom_start: date | None = None,
    custom_end: date | None = None,
) -> list[MonthColumn]:
    """Consecutive calendar months for a forecast horizon.

    Fixed horizons start at the month containing ``today``. Custom ranges snap
    to month boundaries; a range shorter than a week is widened so the window
    always holds whole months: a same-day range becomes that month, and a range
    of one to six days runs through the month containing ``start + 30 days``.
    """

    try:
        horizon = TimeHorizon(horizon)
    except ValueError as exc:
        raise InvalidCriteriaError(f"Unknown time horizon: {horizon!r}.") from exc

    if horizon is not TimeHorizon.CUSTOM:
        first = month_start(today)
        return [month_column(add_months(first, offset)) for offset in range(HORIZON_MONTHS[horizon])]

    if custom_start is None or custom_end is None:
        raise InvalidCriteriaError("Custom horizon requires both start and end dates.")
    if custom_end < custom_start:
        raise InvalidCriteriaError("Custom horizon end must be greater than or equal to start.")

    span_days = (custom_end - custom_start).days
    if span_days == 0:
        end = custom_start
    elif span_days < SHORT_RANGE_DAYS:
        end = custom_start + timedelta(days=SHORT_RANGE_EXTENSION_DAYS)
    else:
        end = custom_end
    return [month_column(month) for month in month_sequence(custom_start, end)]


def _in_month(value: date | None, month: date) -> bool:
    return value is not None and value.year == month.year and value.month == month.month


def monthly_hours(item: WorkItem, month: date) -> Decimal:
    """Hours of demand ``item`` places on the calendar month starting at ``month``."""

    if not item.is_recurring or item.recurrence_type is None:
        return item.estimated_hours if _in_month(item.due_date, month) else ZERO
    if not item.is_active:
        return ZERO

    hours = item.estimated_hours
    interval = Decimal(item.recurrence_interval)
    recurrence = item.recurrence_type
    if recurrence is RecurrenceType.DAILY:
        return hours * DAYS_PER_MONTH / interval
    if recurrence is RecurrenceType.WEEKLY:
        return hours * WEEKS_PER_MONTH / interval
    if recurrence is RecurrenceType.MONTHLY:
        return hours / interval
    if recurrence is RecurrenceType.QUARTERLY:
        return hours / interval / MONTHS_PER_QUARTER

    target_month = item.month_of_year or (item.due_date.month if item.due_date else None)
    if target_month is None or month.month != target_month:
        return ZERO
    return hours / interval


def build_breakdown(items: Iterable[WorkItem], months: Sequence[MonthColumn]) -> list[BreakdownEntry]:
    """One entry per (item, skill, month) with demand; skills share batch-wide labels."""

    items = list(items)
    labels = SkillLabels()
    for item in items:
        for name in item.required_skills:
            labels.add(name)

    entries: list[BreakdownEntry] = []
    for item in items:
        skills = [labels.label(name) for name in item.required_skills if name.strip()] or [UNSPECIFIED_SKILL]
        skills = list(dict.fromkeys(skills))
        for month in months:
            hours = monthly_hours(item, month.start)
            if hours <= ZERO:
                continue
            for skill in skills:
                entries.append(
                    BreakdownEntry(
                        task_id=item.id,
                        task_name=item.name,
                        client_id=item.client_id,
                        client_name=item.client_name,
                        skill=skill,
                        month=month.key,
                        monthly_hours=hours,
                        category=item.category,
                        priority=item.priority,
                        assigned_staff_id=item.assigned_staff_id,
                        assigned_staff_name=item.assigned_staff_name,
                    )
                )
    return entries
