"""Canonical skill names for every grouping boundary."""

from __future__ import annotations

from collections.abc import Iterable


def skill_key(name: str) -> str:
    """Comparison key: trimmed and case-folded."""

    return name.strip().casefold()


def normalize_skills(names: Iterable[str | None]) -> list[str]:
    """Trim, drop empties, dedupe case-insensitively, sort case-insensitively.

    The display form of each skill is the trimmed text of its first occurrence.
    """

    labels = SkillLabels()
    for name in names:
        labels.add(name)
    return labels.sorted_labels()


class SkillLabels:
    """First-seen display label per skill key, in insertion order."""

    def __init__(self) -> None:
        self._labels: dict[str, str] = {}

    def add(self, name: str | None) -> str | None:
        if name is None:
            return None
        display = name.strip()
        if not display:
            return None
        key = display.casefold()
        return self._labels.setdefault(key, display)

    def label(self, name: str) -> str:
        return self._labels.get(skill_key(name), name.strip())

    def merge(self, other: SkillLabels) -> None:
        for key, display in other._labels.items():
            self._labels.setdefault(key, display)

    def keys(self) -> list[str]:
        return list(self._labels)

    def sorted_labels(self) -> list[str]:
        return sorted(self._labels.values(), key=lambda value: (value.casefold(), value))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and skill_key(name) in self._labels

    def __len__(self) -> int:
        return len(self._labels)
