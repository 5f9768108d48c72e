"""Manual ("my order") ordering of occurrences within a lane, and explicit sorts."""

from __future__ import annotations

import datetime as dt
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from choreboard import log
from choreboard.chores.model import Occurrence, Template

SortKey = Callable[[Occurrence], Any]


class SortField(str, Enum):
    MY_ORDER = "my_order"
    DATE = "instanceDate"
    TITLE = "title"
    REWARD = "rewardAmount"


@dataclass(frozen=True)
class SortCriteria:
    field: SortField = SortField.MY_ORDER
    descending: bool = False


def default_key(o: Occurrence) -> tuple[dt.date, str]:
    """Date ascending, then id: a total order over occurrences."""
    return o.date, o.id


class OrderBook:
    """Stored manual orders keyed by (dependent id, lane id).

    Not authoritative for existence: ids that no longer resolve are simply
    skipped when an order is applied.
    """

    def __init__(self, entries: Mapping[str, Mapping[str, list[str]]] | None = None) -> None:
        self._entries: dict[tuple[str, str], list[str]] = {}
        for dependent_id, lanes in (entries or {}).items():
            for lane_id, ids in lanes.items():
                self._entries[(dependent_id, lane_id)] = list(ids)

    def get_order(self, dependent_id: str, lane_id: str) -> list[str]:
        return list(self._entries.get((dependent_id, lane_id), []))

    def set_order(self, dependent_id: str, lane_id: str, ordered_ids: Iterable[str]) -> None:
        """Replace the stored order outright."""
        self._entries[(dependent_id, lane_id)] = list(dict.fromkeys(ordered_ids))
        log.debug(f"Order set for {dependent_id}/{lane_id}: {len(self._entries[(dependent_id, lane_id)])} ids")

    def clear(self, dependent_id: str, lane_ids: Iterable[str]) -> int:
        """Drop stored orders for *lane_ids*; return how many entries existed."""
        removed = 0
        for lane_id in lane_ids:
            if self._entries.pop((dependent_id, lane_id), None) is not None:
                removed += 1
        return removed

    def to_dict(self) -> dict[str, dict[str, list[str]]]:
        out: dict[str, dict[str, list[str]]] = {}
        for (dependent_id, lane_id), ids in sorted(self._entries.items()):
            out.setdefault(dependent_id, {})[lane_id] = list(ids)
        return out

    # ── presentation order ───────────────────────────────────────

    def resolve_order(
        self,
        dependent_id: str,
        lane_id: str,
        candidates: Iterable[Occurrence],
        key: SortKey = default_key,
    ) -> list[Occurrence]:
        """Stored order first, then the remaining candidates sorted by *key*."""
        pool = {o.id: o for o in candidates}
        ordered: list[Occurrence] = []
        for oid in self._entries.get((dependent_id, lane_id), []):
            occ = pool.pop(oid, None)
            if occ is not None:
                ordered.append(occ)
        ordered.extend(sorted(pool.values(), key=key))
        return ordered

    def apply_sort(
        self,
        dependent_id: str,
        lanes_in_view: Mapping[str, Iterable[Occurrence]],
        criteria: SortCriteria,
        templates: Mapping[str, Template],
    ) -> dict[str, list[Occurrence]]:
        """Order every lane in view according to *criteria*.

        An explicit sort and a manual order are mutually exclusive: choosing
        any field other than ``my_order`` discards the stored orders of the
        lanes in view.
        """
        if criteria.field == SortField.MY_ORDER:
            return {
                lane_id: self.resolve_order(dependent_id, lane_id, occs)
                for lane_id, occs in lanes_in_view.items()
            }
        cleared = self.clear(dependent_id, lanes_in_view.keys())
        if cleared:
            log.debug(f"Explicit sort by {criteria.field.value}: cleared {cleared} manual order(s)")
        return {
            lane_id: sort_occurrences(occs, criteria, templates)
            for lane_id, occs in lanes_in_view.items()
        }


def _field_value(o: Occurrence, sort_field: SortField, templates: Mapping[str, Template]) -> Any:
    if sort_field == SortField.DATE:
        return o.date
    template = templates.get(o.template_id)
    if template is None:
        return None
    if sort_field == SortField.TITLE:
        return template.title.lower()
    if sort_field == SortField.REWARD:
        return template.reward_amount
    return None


def sort_occurrences(
    occurrences: Iterable[Occurrence],
    criteria: SortCriteria,
    templates: Mapping[str, Template],
) -> list[Occurrence]:
    """Sort by *criteria*; missing values go last in either direction."""
    base = sorted(occurrences, key=default_key)
    if criteria.field == SortField.MY_ORDER:
        return base
    present = [o for o in base if _field_value(o, criteria.field, templates) is not None]
    missing = [o for o in base if _field_value(o, criteria.field, templates) is None]
    present.sort(key=lambda o: _field_value(o, criteria.field, templates), reverse=criteria.descending)
    return present + missing
