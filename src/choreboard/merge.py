"""Reconcile persisted occurrences with freshly evaluated recurrence dates."""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable

from choreboard import log
from choreboard.chores.model import Occurrence, Template, occurrence_id
from choreboard.recurrence import candidate_dates


def new_occurrence(template: Template, day: dt.date) -> Occurrence:
    """A fresh TO_DO occurrence of *template* on *day*."""
    return Occurrence(
        id=occurrence_id(template.id, day),
        template_id=template.id,
        date=day,
        dependent_id=template.assigned_dependent_id,
    )


def sort_key(o: Occurrence) -> tuple[dt.date, str]:
    return o.date, o.id


def reconcile(
    existing: Iterable[Occurrence],
    templates: Iterable[Template],
    window_start: dt.date,
    window_end: dt.date,
) -> list[Occurrence]:
    """Return the occurrence set after regenerating ``[window_start, window_end]``.

    Existing occurrences whose id is still a candidate are kept as the same
    object, so completion, category, overrides, comments and activity survive.
    In-window occurrences that are not candidates are dropped, including
    those whose template no longer exists. Occurrences outside the window
    and occurrences of archived templates are left untouched. The result is
    sorted by (date, id) so repeated calls with the same inputs are identical.
    """
    by_id: dict[str, Occurrence] = {}
    for occ in existing:
        by_id.setdefault(occ.id, occ)

    templates = list(templates)
    active = {t.id: t for t in templates if not t.archived}
    archived = {t.id for t in templates if t.archived}
    result: dict[str, Occurrence] = {}
    created = 0

    for template in active.values():
        for day in candidate_dates(template, window_start, window_end):
            oid = occurrence_id(template.id, day)
            kept = by_id.get(oid)
            if kept is None:
                kept = new_occurrence(template, day)
                created += 1
            result[oid] = kept

    dropped = 0
    for oid, occ in by_id.items():
        if oid in result:
            continue
        in_window = window_start <= occ.date <= window_end
        if in_window and occ.template_id not in archived:
            dropped += 1
            continue
        result[oid] = occ

    log.debug(
        f"Reconciled {window_start}..{window_end}: "
        f"{created} created, {dropped} dropped, {len(result)} total"
    )
    return sorted(result.values(), key=sort_key)
