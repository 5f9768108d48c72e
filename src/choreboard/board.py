"""Category state machine for occurrences on the date x category board."""

from __future__ import annotations

import datetime as dt
from collections.abc import MutableMapping

from choreboard import log
from choreboard.chores.model import Category, Clock, Occurrence, now_iso
from choreboard.errors import NotFoundError, Outcome


class CategoryBoard:
    """Tracks progress categories and completion of occurrences.

    Category and completion are independent: moving an occurrence into
    COMPLETED does not mark it complete, and marking it complete does not
    move it. Any category is reachable from any other.

    Usage::

        board = CategoryBoard(instances)
        board.move(iid, day, Category.IN_PROGRESS)   # drag within a date
        board.set_complete(iid, True)                 # explicit action
    """

    def __init__(
        self,
        instances: MutableMapping[str, Occurrence],
        clock: Clock = now_iso,
        actor: str = "System",
    ) -> None:
        self._instances = instances
        self._clock = clock
        self._actor = actor

    def _get(self, instance_id: str) -> Occurrence:
        occ = self._instances.get(instance_id)
        if occ is None:
            raise NotFoundError("occurrence", instance_id)
        return occ

    # ── queries ──────────────────────────────────────────────────

    def category(self, instance_id: str) -> Category:
        return self._get(instance_id).category

    def cell(self, day: dt.date, category: Category) -> list[Occurrence]:
        """Occurrences in one date x category cell, skipped ones excluded."""
        return [
            o for o in self._instances.values()
            if o.date == day and o.category == category and not o.skipped
        ]

    def counts(self, day: dt.date | None = None) -> dict[Category, int]:
        totals = {c: 0 for c in Category}
        for o in self._instances.values():
            if day is None or o.date == day:
                totals[o.category] += 1
        return totals

    # ── transitions ──────────────────────────────────────────────

    def move(
        self,
        instance_id: str,
        target_date: dt.date,
        target_category: Category,
        actor: str | None = None,
    ) -> Outcome:
        """Apply a drag-initiated move, rejecting cross-date targets."""
        occ = self._instances.get(instance_id)
        if occ is None:
            reason = f"Chore instance {instance_id} not found."
            log.warn(reason)
            return Outcome.rejected(reason)
        if target_date != occ.date:
            reason = (
                f"Cannot move chore to a different date ({occ.date} -> {target_date}); "
                "only category changes within the same date are supported."
            )
            log.warn(reason)
            return Outcome.rejected(reason)
        self.set_category(instance_id, target_category, actor)
        return Outcome.accepted()

    def set_category(self, instance_id: str, category: Category, actor: str | None = None) -> bool:
        """Set the category; return ``True`` if it changed."""
        occ = self._get(instance_id)
        if occ.category == category:
            return False
        previous = occ.category
        occ.category = category
        occ.log(
            self._clock(),
            actor or self._actor,
            "Category changed",
            f"{previous.value} -> {category.value}",
        )
        log.debug(f"Instance {instance_id}: {previous.value} -> {category.value}")
        return True

    def set_complete(self, instance_id: str, complete: bool, actor: str | None = None) -> bool:
        """Set the completion flag; return ``True`` if it changed."""
        occ = self._get(instance_id)
        if occ.is_complete == complete:
            return False
        occ.is_complete = complete
        occ.log(
            self._clock(),
            actor or self._actor,
            "Marked complete" if complete else "Marked incomplete",
        )
        log.debug(f"Instance {instance_id}: complete={complete}")
        return True
