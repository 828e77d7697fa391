from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from forecast.models.entities import GroupingMode, InvalidCriteriaError, RecurrenceType, TaskCategory, WorkItem
from forecast.services.demand import month_window
from forecast.services.matrix_builder import build_matrix, row_total

MONTHS = month_window("quarter", date(2026, 1, 10))


def _item(
    item_id: str,
    hours: str,
    *,
    skills: tuple[str, ...],
    client_id: str = "client-1",
    client_name: str = "Acme Ltd",
    due_date: date | None = None,
    recurrence: RecurrenceType | None = None,
) -> WorkItem:
    return WorkItem(
        id=item_id,
        client_id=client_id,
        client_name=client_name,
        name=f"Task {item_id}",
        category=TaskCategory.RECURRING if recurrence else TaskCategory.AD_HOC,
        estimated_hours=Decimal(hours),
        required_skills=skills,
        due_date=due_date,
        recurrence_type=recurrence,
    )


def _sample() -> list[WorkItem]:
    return [
        _item("1", "10", skills=("Tax",), recurrence=RecurrenceType.MONTHLY),
        _item("2", "6", skills=("tax",), client_id="client-2", client_name="beta llp", due_date=date(2026, 2, 3)),
        _item("3", "4", skills=("Audit", "Tax"), due_date=date(2026, 3, 9)),
        _item("4", "2.5", skills=("Audit",), client_id="client-3", client_name="Zeta", due_date=date(2026, 1, 31)),
    ]


def test_skill_mode_rows_are_normalized_skills() -> None:
    matrix = build_matrix(_sample(), GroupingMode.SKILL, MONTHS)

    assert matrix.rows == ["Audit", "Tax"]
    assert [month.key for month in matrix.months] == ["2026-01", "2026-02", "2026-03"]
    assert len(matrix.cells) == 6


def test_skill_mode_cell_counts() -> None:
    matrix = build_matrix(_sample(), "skill", MONTHS)

    february = matrix.cell("Tax", "2026-02")
    assert february is not None
    assert february.hours == Decimal("16")
    assert february.task_count == 2
    assert february.client_count == 2

    january_audit = matrix.cell("Audit", "2026-01")
    assert (january_audit.hours, january_audit.task_count, january_audit.client_count) == (Decimal("2.5"), 1, 1)


def test_client_mode_rows_come_from_breakdown() -> None:
    outside_window = _item(
        "5",
        "3",
        skills=("Tax",),
        client_id="client-4",
        client_name="Outside",
        due_date=date(2026, 8, 1),
    )
    items = [*_sample(), outside_window]

    matrix = build_matrix(items, GroupingMode.CLIENT, MONTHS)

    assert matrix.rows == ["Acme Ltd", "beta llp", "Zeta"]


def test_client_mode_cells_filter_each_data_point_by_client() -> None:
    matrix = build_matrix(_sample(), GroupingMode.CLIENT, MONTHS)

    march = matrix.cell("Acme Ltd", "2026-03")
    assert march.hours == Decimal("18")
    assert march.task_count == 3
    assert march.client_count == 1
    assert {entry.skill for entry in march.task_breakdown} == {"Audit", "Tax"}

    empty = matrix.cell("beta llp", "2026-03")
    assert (empty.hours, empty.task_count, empty.client_count) == (Decimal("0"), 0, 0)


@pytest.mark.parametrize("mode", [GroupingMode.SKILL, GroupingMode.CLIENT])
def test_row_cells_sum_to_row_total(mode: GroupingMode) -> None:
    matrix = build_matrix(_sample(), mode, MONTHS)

    for row in matrix.rows:
        assert sum(cell.hours for cell in matrix.row_cells(row)) == row_total(matrix, row)


def test_matrix_totals() -> None:
    matrix = build_matrix(_sample(), GroupingMode.SKILL, MONTHS)

    assert matrix.total_hours == Decimal("46.5")
    assert matrix.total_tasks == 4
    assert matrix.total_clients == 3


def test_unknown_grouping_mode_raises() -> None:
    with pytest.raises(InvalidCriteriaError):
        build_matrix(_sample(), "staff", MONTHS)


def test_empty_input_builds_empty_client_matrix() -> None:
    matrix = build_matrix([], GroupingMode.CLIENT, MONTHS)

    assert matrix.rows == []
    assert matrix.cells == []
    assert matrix.total_hours == Decimal("0")
