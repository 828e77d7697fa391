"""Conjunctive filter pipeline over work items."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from forecast.models.entities import (
    ALL,
    UNASSIGNED,
    FilterCriteria,
    InvalidCriteriaError,
    TaskCategory,
    WorkItem,
)
from forecast.services.skill_normalizer import skill_key

CANCELED_STATUS = "Canceled"
ACTIVE_STATUS = "active"
PAUSED_STATUS = "paused"

_CATEGORY_SELECTORS = {
    "recurring": TaskCategory.RECURRING,
    "adhoc": TaskCategory.AD_HOC,
    "ad-hoc": TaskCategory.AD_HOC,
}

Predicate = Callable[[WorkItem], bool]


@dataclass(frozen=True, slots=True)
class FilterStep:
    name: str
    remaining: int


def _is_all(value: str | None) -> bool:
    return value is None or value == "" or value == ALL


def search_predicate(search: str) -> Predicate | None:
    needle = search.strip().casefold()
    if not needle:
        return None
    return lambda item: needle in item.name.casefold() or needle in item.client_name.casefold()


def category_predicate(category: str) -> Predicate | None:
    if _is_all(category):
        return None
    wanted = _CATEGORY_SELECTORS.get(category.strip().lower())
    if wanted is None:
        raise InvalidCriteriaError(f"Unknown category selector: {category!r}.")
    return lambda item: item.category is wanted


def client_predicate(client_id: str) -> Predicate | None:
    if _is_all(client_id):
        return None
    return lambda item: item.client_id == client_id


def skill_predicate(skills: Sequence[str]) -> Predicate | None:
    wanted = {skill_key(name) for name in skills if name and name.strip()}
    if not wanted:
        return None
    return lambda item: any(skill_key(name) in wanted for name in item.required_skills)


def priority_predicate(priority: str) -> Predicate | None:
    if _is_all(priority):
        return None
    return lambda item: item.priority == priority


def is_active(item: WorkItem) -> bool:
    if item.category is TaskCategory.RECURRING:
        return item.is_active
    return item.status != CANCELED_STATUS


def is_paused(item: WorkItem) -> bool:
    if item.category is TaskCategory.RECURRING:
        return not item.is_active
    return item.status == CANCELED_STATUS


def status_predicate(status: str) -> Predicate | None:
    if _is_all(status):
        return None
    if status == ACTIVE_STATUS:
        return is_active
    if status == PAUSED_STATUS:
        return is_paused
    return lambda item: item.status == status


def assigned_staff_predicate(staff: Sequence[str]) -> Predicate | None:
    wanted = {value for value in staff if value and value != ALL}
    if not wanted:
        return None
    match_unassigned = UNASSIGNED in wanted

    def predicate(item: WorkItem) -> bool:
        if item.assigned_staff_id is None:
            return match_unassigned
        return item.assigned_staff_id in wanted

    return predicate


def due_date_predicate(criteria: FilterCriteria) -> Predicate | None:
    due_from, due_to = criteria.due_from, criteria.due_to
    if due_from is None and due_to is None:
        return None
    if due_from is not None and due_to is not None and due_to < due_from:
        raise InvalidCriteriaError("due_to must be greater than or equal to due_from.")

    def predicate(item: WorkItem) -> bool:
        if item.due_date is None:
            return False
        if due_from is not None and item.due_date < due_from:
            return False
        if due_to is not None and item.due_date > due_to:
            return False
        return True

    return predicate


def build_predicates(criteria: FilterCriteria) -> list[tuple[str, Predicate]]:
    """Active predicates in canonical order; unconstrained dimensions are omitted."""

    candidates = (
        ("search", search_predicate(criteria.search)),
        ("category", category_predicate(criteria.category)),
        ("client", client_predicate(criteria.client_id)),
        ("skill", skill_predicate(criteria.skills)),
        ("priority", priority_predicate(criteria.priority)),
        ("status", status_predicate(criteria.status)),
        ("assigned_staff", assigned_staff_predicate(criteria.assigned_staff)),
        ("due_date", due_date_predicate(criteria)),
    )
    return [(name, predicate) for name, predicate in candidates if predicate is not None]


def apply_filters(items: Iterable[WorkItem], criteria: FilterCriteria) -> list[WorkItem]:
    """Return a new list of the items matching every constrained dimension."""

    predicates = [predicate for _, predicate in build_predicates(criteria)]
    return [item for item in items if all(predicate(item) for predicate in predicates)]


def trace_filters(items: Iterable[WorkItem], criteria: FilterCriteria) -> list[FilterStep]:
    """Remaining item count after each active predicate, in canonical order."""

    remaining = list(items)
    steps: list[FilterStep] = []
    for name, predicate in build_predicates(criteria):
        remaining = [item for item in remaining if predicate(item)]
        steps.append(FilterStep(name=name, remaining=len(remaining)))
    return steps
