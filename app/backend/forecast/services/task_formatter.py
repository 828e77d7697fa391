"""Builds immutable work items from upstream record mappings."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from forecast.models.entities import (
    Diagnostic,
    DiagnosticSeverity,
    RecurrenceType,
    TaskCategory,
    WorkItem,
)
from forecast.services.skill_normalizer import normalize_skills

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

_RECURRENCE_ALIASES = {
    "daily": RecurrenceType.DAILY,
    "weekly": RecurrenceType.WEEKLY,
    "monthly": RecurrenceType.MONTHLY,
    "quarterly": RecurrenceType.QUARTERLY,
    "annually": RecurrenceType.ANNUALLY,
    "annual": RecurrenceType.ANNUALLY,
    "yearly": RecurrenceType.ANNUALLY,
}


class RecordFormatError(ValueError):
    """A single upstream record cannot be turned into a work item."""


@dataclass(slots=True)
class FormattingResult:
    items: list[WorkItem] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return sum(1 for row in self.diagnostics if row.severity is DiagnosticSeverity.ERROR)


def _text(record: Mapping[str, object], key: str) -> str | None:
    value = record.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _required_text(record: Mapping[str, object], key: str) -> str:
    value = _text(record, key)
    if value is None:
        raise RecordFormatError(f"{key} is required.")
    return value


def _client_name(record: Mapping[str, object]) -> str:
    name = _text(record, "client_name")
    if name is None:
        client = record.get("client")
        if isinstance(client, Mapping):
            name = _text(client, "legal_name") or _text(client, "name")
    if name is None:
        raise RecordFormatError("client_name is required.")
    return name


def _hours(record: Mapping[str, object]) -> Decimal:
    raw = record.get("estimated_hours")
    if raw is None or raw == "":
        return ZERO
    try:
        hours = Decimal(str(raw))
    except InvalidOperation as exc:
        raise RecordFormatError(f"estimated_hours is not a number: {raw!r}.") from exc
    if not hours.is_finite() or hours < ZERO:
        raise RecordFormatError("estimated_hours must be a finite number greater or equal zero.")
    return hours


def _due_date(record: Mapping[str, object]) -> date | None:
    raw = record.get("due_date")
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    text = str(raw).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError as exc:
        raise RecordFormatError(f"due_date is not an ISO date: {raw!r}.") from exc


def _skills(record: Mapping[str, object]) -> tuple[str, ...]:
    raw = record.get("required_skills") or []
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, Iterable):
        raise RecordFormatError("required_skills must be a list of names.")
    return tuple(normalize_skills(str(name) for name in raw if name is not None))


def _integer(record: Mapping[str, object], key: str) -> int | None:
    raw = record.get(key)
    if raw is None or raw == "":
        return None
    if isinstance(raw, bool):
        raise RecordFormatError(f"{key} must be an integer.")
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation as exc:
        raise RecordFormatError(f"{key} must be an integer.") from exc
    if not value.is_finite() or value != value.to_integral_value():
        raise RecordFormatError(f"{key} must be an integer.")
    return int(value)


def _flag(record: Mapping[str, object], key: str, default: bool) -> bool:
    raw = record.get(key)
    if raw is None:
        return default
    if not isinstance(raw, bool):
        raise RecordFormatError(f"{key} must be true or false.")
    return raw


def _recurrence(record: Mapping[str, object]) -> tuple[RecurrenceType | None, int, int | None]:
    recurrence_text = _text(record, "recurrence_type")
    recurrence = None
    if recurrence_text is not None:
        recurrence = _RECURRENCE_ALIASES.get(recurrence_text.lower())
        if recurrence is None:
            raise RecordFormatError(f"Unsupported recurrence_type: {recurrence_text!r}.")

    interval = _integer(record, "recurrence_interval")
    if interval is None:
        interval = 1
    if interval < 1:
        raise RecordFormatError("recurrence_interval must be greater or equal one.")

    month_of_year = _integer(record, "month_of_year")
    if month_of_year is not None and not 1 <= month_of_year <= 12:
        raise RecordFormatError("month_of_year must be between 1 and 12.")
    return recurrence, interval, month_of_year


def format_record(record: Mapping[str, object], category: TaskCategory) -> WorkItem:
    """Format one upstream record; raises ``RecordFormatError`` when malformed."""

    if category is TaskCategory.RECURRING:
        recurrence, interval, month_of_year = _recurrence(record)
        is_active = _flag(record, "is_active", True)
    else:
        recurrence, interval, month_of_year = None, 1, None
        is_active = True

    return WorkItem(
        id=_required_text(record, "id"),
        client_id=_required_text(record, "client_id"),
        client_name=_client_name(record),
        name=_required_text(record, "name"),
        category=category,
        estimated_hours=_hours(record),
        required_skills=_skills(record),
        priority=_text(record, "priority") or "Medium",
        status=_text(record, "status") or "",
        due_date=_due_date(record),
        is_active=is_active,
        assigned_staff_id=_text(record, "preferred_staff_id") or _text(record, "assigned_staff_id"),
        assigned_staff_name=_text(record, "preferred_staff_name") or _text(record, "assigned_staff_name"),
        liaison_id=_text(record, "liaison_id"),
        liaison_name=_text(record, "liaison_name"),
        recurrence_type=recurrence,
        recurrence_interval=interval,
        month_of_year=month_of_year,
    )


def _active_staff(staff_records: Iterable[Mapping[str, object]]) -> dict[str, str]:
    active: dict[str, str] = {}
    for staff in staff_records:
        staff_id = _text(staff, "id")
        if staff_id is None or not staff.get("active", True):
            continue
        active[staff_id] = _text(staff, "name") or staff_id
    return active


def format_work_items(
    recurring_records: Iterable[object],
    ad_hoc_records: Iterable[object],
    *,
    staff_records: Iterable[Mapping[str, object]] | None = None,
) -> FormattingResult:
    """Format a whole batch; bad records are skipped and reported, not raised."""

    result = FormattingResult()
    staff_by_id = _active_staff(staff_records) if staff_records is not None else None
    seen_ids: set[str] = set()

    batches = (
        (TaskCategory.RECURRING, recurring_records),
        (TaskCategory.AD_HOC, ad_hoc_records),
    )
    for category, records in batches:
        for index, record in enumerate(records):
            record_id = _text(record, "id") if isinstance(record, Mapping) else None
            try:
                if not isinstance(record, Mapping):
                    raise RecordFormatError("record must be an object.")
                item = format_record(record, category)
            except RecordFormatError as exc:
                logger.warning("Skipping %s record #%d (%s): %s", category.value, index, record_id, exc)
                result.diagnostics.append(
                    Diagnostic(
                        severity=DiagnosticSeverity.ERROR,
                        code="invalid_record",
                        message=str(exc),
                        record_id=record_id,
                    )
                )
                continue

            if item.id in seen_ids:
                result.diagnostics.append(
                    Diagnostic(
                        severity=DiagnosticSeverity.WARNING,
                        code="duplicate_record",
                        message=f"Record {item.id} appears more than once; later copies are ignored.",
                        record_id=item.id,
                    )
                )
                continue
            seen_ids.add(item.id)

            if staff_by_id is not None and item.assigned_staff_id is not None:
                staff_name = staff_by_id.get(item.assigned_staff_id)
                if staff_name is None:
                    result.diagnostics.append(
                        Diagnostic(
                            severity=DiagnosticSeverity.WARNING,
                            code="unknown_staff",
                            message=(
                                f"Assigned staff {item.assigned_staff_id} has no matching active staff record."
                            ),
                            record_id=item.id,
                        )
                    )
                elif item.assigned_staff_name is None:
                    item = replace(item, assigned_staff_name=staff_name)

            result.items.append(item)

    logger.debug(
        "Formatted %d work items (%d skipped, %d diagnostics).",
        len(result.items),
        result.skipped,
        len(result.diagnostics),
    )
    return result
