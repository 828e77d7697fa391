"""Skill id to display-name resolution with graceful degradation."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Protocol

logger = logging.getLogger(__name__)

FALLBACK_PREFIX = "Fallback Skill"
UNKNOWN_PREFIX = "Unknown Skill"


class SkillLookup(Protocol):
    """External collaborator returning display names for a batch of skill ids."""

    async def fetch_skill_names(self, skill_ids: Sequence[str]) -> Mapping[str, str]: ...


class SkillLookupError(RuntimeError):
    """Raised by lookups that fail as a unit."""


class CatalogSkillLookup:
    """Lookup backed by an in-memory id -> name catalog."""

    def __init__(self, catalog: Mapping[str, str]) -> None:
        self.catalog = dict(catalog)

    async def fetch_skill_names(self, skill_ids: Sequence[str]) -> Mapping[str, str]:
        return {skill_id: self.catalog[skill_id] for skill_id in skill_ids if skill_id in self.catalog}


class SkillNameCache:
    """TTL cache of resolved skill names, owned by whoever builds the resolver."""

    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}

    def get(self, skill_id: str) -> str | None:
        entry = self._entries.get(skill_id)
        if entry is None:
            return None
        name, stored_at = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[skill_id]
            return None
        return name

    def put_many(self, names: Mapping[str, str]) -> None:
        now = self._clock()
        for skill_id, name in names.items():
            self._entries[skill_id] = (name, now)

    def invalidate(self, skill_ids: Sequence[str] | None = None) -> None:
        if skill_ids is None:
            self._entries.clear()
            return
        for skill_id in skill_ids:
            self._entries.pop(skill_id, None)

    def __len__(self) -> int:
        return len(self._entries)


class SkillResolver:
    """Resolves opaque skill ids to names; never raises lookup errors to callers.

    Names are returned in input order and are not deduplicated; callers run
    them through ``normalize_skills``. Each request is stamped with a
    generation for its id set, and a lookup that finishes after a newer request
    for the same id set started does not write to the cache.
    """

    def __init__(
        self,
        lookup: SkillLookup,
        cache: SkillNameCache | None = None,
        *,
        placeholder_length: int = 8,
    ) -> None:
        self.lookup = lookup
        self.cache = cache if cache is not None else SkillNameCache()
        self.placeholder_length = placeholder_length
        self._generations: dict[frozenset[str], int] = {}
        self.stale_discards = 0

    def placeholder(self, skill_id: str, prefix: str = FALLBACK_PREFIX) -> str:
        return f"{prefix} ({skill_id[: self.placeholder_length]})"

    async def resolve(self, skill_ids: Sequence[str]) -> list[str]:
        if not skill_ids:
            return []
        resolved = await self.resolve_batch([skill_ids])
        return resolved[0]

    async def resolve_batch(self, id_lists: Sequence[Sequence[str]]) -> list[list[str]]:
        """Resolve several id lists with a single lookup for their union."""

        unique_ids = list(dict.fromkeys(skill_id for ids in id_lists for skill_id in ids))
        if not unique_ids:
            return [[] for _ in id_lists]

        request_key = frozenset(unique_ids)
        generation = self._generations.get(request_key, 0) + 1
        self._generations[request_key] = generation

        names: dict[str, str] = {}
        misses: list[str] = []
        for skill_id in unique_ids:
            cached = self.cache.get(skill_id)
            if cached is None:
                misses.append(skill_id)
            else:
                names[skill_id] = cached

        if misses:
            try:
                fetched = dict(await self.lookup.fetch_skill_names(misses))
            except Exception:
                logger.exception("Skill lookup failed for %d ids; using placeholder names.", len(misses))
                return [[self.placeholder(skill_id) for skill_id in ids] for ids in id_lists]

            if self._generations.get(request_key) != generation:
                self.stale_discards += 1
                logger.debug("Discarding stale skill lookup result for %d ids.", len(misses))
            else:
                self.cache.put_many({key: value.strip() for key, value in fetched.items() if value and value.strip()})

            for skill_id in misses:
                name = fetched.get(skill_id)
                if not name or not name.strip():
                    logger.warning("Skill id %s not found by lookup.", skill_id)
                    names[skill_id] = self.placeholder(skill_id, UNKNOWN_PREFIX)
                else:
                    names[skill_id] = name.strip()

        return [[names[skill_id] for skill_id in ids] for ids in id_lists]
