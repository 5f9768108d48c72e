"""Best-effort batch operations with partial-failure results."""

from __future__ import annotations

from collections.abc import Callable, Iterable, MutableMapping

from choreboard import log
from choreboard.board import CategoryBoard
from choreboard.chores.model import BatchResult, Category, Occurrence, Template
from choreboard.errors import ChoreError, NotFoundError


def run_batch(ids: Iterable[str], op: Callable[[str], object], label: str = "batch") -> BatchResult:
    """Apply *op* to each id independently.

    A :class:`ChoreError` from one item marks that id failed and processing
    continues; anything else is a programmer error and propagates.
    """
    result = BatchResult()
    for item_id in ids:
        try:
            op(item_id)
        except ChoreError as exc:
            log.debug(f"{label}: {item_id} failed: {exc}")
            result.failed_ids.append(item_id)
        else:
            result.succeeded_ids.append(item_id)
    if result.failed_count:
        log.warn(f"{label}: {result.succeeded_count} succeeded, {result.failed_count} failed")
    else:
        log.debug(f"{label}: {result.succeeded_count} succeeded")
    return result


def batch_set_complete(board: CategoryBoard, ids: Iterable[str], complete: bool, actor: str | None = None) -> BatchResult:
    return run_batch(ids, lambda iid: board.set_complete(iid, complete, actor), "set complete")


def batch_set_category(board: CategoryBoard, ids: Iterable[str], category: Category, actor: str | None = None) -> BatchResult:
    """Bulk re-categorization; not bound to the same-date drag rule."""
    return run_batch(ids, lambda iid: board.set_category(iid, category, actor), "set category")


def batch_reassign_templates(
    templates: MutableMapping[str, Template],
    template_ids: Iterable[str],
    dependent_id: str | None,
    timestamp: str = "",
) -> BatchResult:
    """Change the assignee of each template.

    Existing occurrences keep the dependent they were generated for; only
    occurrences created by later regeneration pick up the new one.
    """

    def _reassign(template_id: str) -> None:
        template = templates.get(template_id)
        if template is None:
            raise NotFoundError("template", template_id)
        template.assigned_dependent_id = dependent_id
        if timestamp:
            template.updated_at = timestamp

    return run_batch(template_ids, _reassign, "reassign templates")


def batch_delete_instances(instances: MutableMapping[str, Occurrence], ids: Iterable[str]) -> BatchResult:
    def _delete(instance_id: str) -> None:
        if instances.pop(instance_id, None) is None:
            raise NotFoundError("occurrence", instance_id)

    return run_batch(ids, _delete, "delete instances")


class Selection:
    """Ordered, duplicate-free set of selected occurrence ids."""

    def __init__(self) -> None:
        self._ids: list[str] = []

    @property
    def ids(self) -> list[str]:
        return list(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, instance_id: object) -> bool:
        return instance_id in self._ids

    def toggle(self, instance_id: str, selected: bool) -> None:
        if selected:
            if instance_id not in self._ids:
                self._ids.append(instance_id)
        else:
            self._ids = [i for i in self._ids if i != instance_id]

    def clear(self) -> None:
        self._ids = []
