"""Row x month demand matrix in skill or client grouping mode."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from decimal import Decimal

from forecast.models.entities import (
    BreakdownEntry,
    DemandDataPoint,
    GroupingMode,
    MatrixCell,
    MatrixData,
    MonthColumn,
    WorkItem,
)
from forecast.services.demand import build_breakdown
from forecast.services.skill_normalizer import SkillLabels

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _hours(entries: Iterable[BreakdownEntry]) -> Decimal:
    return sum((entry.monthly_hours for entry in entries), ZERO)


def build_data_points(
    breakdown: Sequence[BreakdownEntry],
    skills: Sequence[str],
    months: Sequence[MonthColumn],
) -> list[DemandDataPoint]:
    """One data point per (skill, month), holding the entries that feed it."""

    grouped: dict[tuple[str, str], list[BreakdownEntry]] = {}
    for entry in breakdown:
        grouped.setdefault((entry.skill, entry.month), []).append(entry)

    points: list[DemandDataPoint] = []
    for skill in skills:
        for month in months:
            entries = grouped.get((skill, month.key), [])
            points.append(
                DemandDataPoint(
                    skill=skill,
                    month=month.key,
                    demand_hours=_hours(entries),
                    task_breakdown=entries,
                )
            )
    return points


def _skill_rows(items: Sequence[WorkItem], breakdown: Sequence[BreakdownEntry]) -> list[str]:
    labels = SkillLabels()
    for item in items:
        for name in item.required_skills:
            labels.add(name)
    for entry in breakdown:
        labels.add(entry.skill)
    return labels.sorted_labels()


def _client_rows(breakdown: Sequence[BreakdownEntry]) -> list[str]:
    names = dict.fromkeys(entry.client_name for entry in breakdown)
    return sorted(names, key=lambda name: (name.casefold(), name))


def _skill_cells(data_points: Sequence[DemandDataPoint]) -> list[MatrixCell]:
    return [
        MatrixCell(
            row=point.skill,
            month=point.month,
            hours=point.demand_hours,
            task_count=len(point.task_breakdown),
            client_count=len({entry.client_id for entry in point.task_breakdown}),
            task_breakdown=list(point.task_breakdown),
        )
        for point in data_points
    ]


def _client_cells(
    rows: Sequence[str],
    months: Sequence[MonthColumn],
    data_points: Sequence[DemandDataPoint],
) -> list[MatrixCell]:
    points_by_month: dict[str, list[DemandDataPoint]] = {}
    for point in data_points:
        points_by_month.setdefault(point.month, []).append(point)

    cells: list[MatrixCell] = []
    for client_name in rows:
        for month in months:
            # A data point may carry several clients' entries, so filter each one.
            matched = [
                entry
                for point in points_by_month.get(month.key, [])
                for entry in point.task_breakdown
                if entry.client_name == client_name
            ]
            hours = _hours(matched)
            cells.append(
                MatrixCell(
                    row=client_name,
                    month=month.key,
                    hours=hours,
                    task_count=len(matched),
                    client_count=1 if hours > ZERO else 0,
                    task_breakdown=matched,
                )
            )
    return cells


def build_matrix(
    items: Iterable[WorkItem],
    grouping_mode: GroupingMode | str,
    months: Sequence[MonthColumn],
) -> MatrixData:
    mode = GroupingMode.parse(grouping_mode)
    items = list(items)
    breakdown = build_breakdown(items, months)
    skills = _skill_rows(items, breakdown)
    data_points = build_data_points(breakdown, skills, months)

    if mode is GroupingMode.SKILL:
        rows = skills
        cells = _skill_cells(data_points)
    else:
        rows = _client_rows(breakdown)
        cells = _client_cells(rows, months, data_points)

    logger.debug(
        "Built %s matrix: %d rows x %d months from %d items.",
        mode.value,
        len(rows),
        len(months),
        len(items),
    )
    return MatrixData(
        grouping_mode=mode,
        rows=rows,
        months=list(months),
        cells=cells,
        data_points=data_points,
        breakdown=breakdown,
    )


def row_total(matrix: MatrixData, row: str) -> Decimal:
    """Grand total of a row computed from the breakdown, not from the cells."""

    if matrix.grouping_mode is GroupingMode.SKILL:
        return _hours(entry for entry in matrix.breakdown if entry.skill == row)
    return _hours(entry for entry in matrix.breakdown if entry.client_name == row)
