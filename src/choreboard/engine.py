"""ChoreEngine: the operations the presentation layer calls.

One engine owns one in-memory snapshot (templates, occurrences, manual
orders, swimlanes) loaded from an injected key-value store. Operations are
synchronous; the batch methods are coroutines only so a networked backend
can be swapped in without changing callers, and they complete without
suspending.
"""

from __future__ import annotations

import datetime as dt
import uuid
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from choreboard import batch, log
from choreboard.board import CategoryBoard
from choreboard.chores import codec
from choreboard.chores.model import (
    BatchResult,
    Category,
    Clock,
    Comment,
    Occurrence,
    Priority,
    RecurrenceRule,
    SubtaskTemplate,
    SwimlaneConfig,
    Template,
    now_iso,
)
from choreboard.config import Config
from choreboard.errors import ChoreError, InvalidTemplateError, NotFoundError, Outcome
from choreboard.filters import BoardFilter
from choreboard.lanes import LaneManager
from choreboard.merge import reconcile, sort_key
from choreboard.ordering import OrderBook, SortCriteria, SortKey, default_key
from choreboard.recurrence import rule_problems
from choreboard.scope import EditableField, EditScope, apply_field_edit
from choreboard.store import KeyValueStore, MemoryStore, dump, load_list, load_mapping


def _new_id(prefix: str) -> str:
    return f"{prefix}{uuid.uuid4().hex[:12]}"


def template_errors(t: Template) -> list[str]:
    """Hard invariants a template must satisfy to be stored."""
    errors: list[str] = []
    if not t.title.strip():
        errors.append("title is required")
    if t.early_start_date and t.early_start_date > t.anchor_date:
        errors.append(f"early start {t.early_start_date} is after due date {t.anchor_date}")
    if t.recurrence.end_date and t.recurrence.end_date < t.anchor_date:
        errors.append(f"recurrence end {t.recurrence.end_date} is before due date {t.anchor_date}")
    return errors


class ChoreEngine:
    """Recurring chore scheduling and Kanban board engine."""

    def __init__(
        self,
        store: KeyValueStore | None = None,
        cfg: Config | None = None,
        clock: Clock = now_iso,
        id_factory: Callable[[str], str] = _new_id,
    ) -> None:
        self.store: KeyValueStore = store if store is not None else MemoryStore()
        self.cfg = cfg or Config()
        self._clock = clock
        self._new_id = id_factory

        self._templates: dict[str, Template] = {}
        self._instances: dict[str, Occurrence] = {}
        self.orders = OrderBook()
        self.lanes = LaneManager(
            loader=self._load_lanes,
            id_factory=lambda: self._new_id("swim_"),
            clock=clock,
        )
        self.board = CategoryBoard(self._instances, clock=clock, actor=self.cfg.actor)
        self.load()

    # ── persistence ──────────────────────────────────────────────

    def _load_lanes(self, dependent_id: str) -> list[SwimlaneConfig]:
        return load_list(self.store, self.cfg.lanes_key(dependent_id), codec.lane_from_dict)

    def load(self) -> None:
        """Replace the in-memory snapshot with what the store holds."""
        templates = load_list(self.store, self.cfg.templates_key, codec.template_from_dict)
        instances = load_list(self.store, self.cfg.instances_key, codec.occurrence_from_dict)
        self._templates.clear()
        self._templates.update((t.id, t) for t in templates)
        self._instances.clear()
        self._instances.update((o.id, o) for o in sorted(instances, key=sort_key))
        self.orders = OrderBook(load_mapping(self.store, self.cfg.order_key))
        self.lanes.reset()
        log.debug(f"Loaded {len(self._templates)} templates, {len(self._instances)} instances")

    def save(self) -> None:
        self.store.write(self.cfg.templates_key, dump([codec.template_to_dict(t) for t in self._templates.values()]))
        self.store.write(self.cfg.instances_key, dump([codec.occurrence_to_dict(o) for o in self._instances.values()]))
        self.store.write(self.cfg.order_key, dump(self.orders.to_dict()))
        for dependent_id in self.lanes.loaded_dependents():
            self.store.write(
                self.cfg.lanes_key(dependent_id),
                dump([codec.lane_to_dict(c) for c in self.lanes.lanes(dependent_id)]),
            )

    def _changed(self) -> None:
        if self.cfg.autosave:
            self.save()

    # ── lookups ──────────────────────────────────────────────────

    @property
    def templates(self) -> list[Template]:
        return list(self._templates.values())

    @property
    def instances(self) -> list[Occurrence]:
        return list(self._instances.values())

    def get_template(self, template_id: str) -> Template | None:
        return self._templates.get(template_id)

    def get_instance(self, instance_id: str) -> Occurrence | None:
        return self._instances.get(instance_id)

    def _missing(self, kind: str, item_id: str) -> Outcome:
        reason = f"{kind.capitalize()} {item_id} not found."
        log.warn(reason)
        return Outcome.rejected(reason)

    # ── regeneration ─────────────────────────────────────────────

    def ensure_instances(self, window_start: dt.date, window_end: dt.date) -> list[Occurrence]:
        """Regenerate ``[window_start, window_end]`` and return its occurrences."""
        if window_start > window_end:
            log.warn(f"Empty window {window_start}..{window_end}; nothing to generate")
            return []
        for t in self._templates.values():
            if t.archived:
                continue
            for problem in rule_problems(t.recurrence):
                log.warn(f"Chore '{t.title}' ({t.id}): {problem}; no instances generated")

        merged = reconcile(self._instances.values(), self._templates.values(), window_start, window_end)
        self._instances.clear()
        self._instances.update((o.id, o) for o in merged)
        self._changed()
        return [o for o in merged if window_start <= o.date <= window_end]

    # ── templates ────────────────────────────────────────────────

    def add_template(
        self,
        title: str,
        anchor_date: dt.date,
        *,
        description: str | None = None,
        assigned_dependent_id: str | None = None,
        early_start_date: dt.date | None = None,
        reward_amount: float | None = None,
        priority: Priority | None = None,
        tags: Iterable[str] = (),
        subtasks: Iterable[SubtaskTemplate | str] = (),
        recurrence: RecurrenceRule | None = None,
    ) -> Template:
        """Create and store a new active template.

        Raises :class:`InvalidTemplateError` when a hard invariant is broken.
        """
        now = self._clock()
        template = Template(
            id=self._new_id("cd_"),
            title=title,
            anchor_date=anchor_date,
            description=description,
            assigned_dependent_id=assigned_dependent_id,
            early_start_date=early_start_date,
            reward_amount=reward_amount,
            priority=priority,
            tags=list(tags),
            subtasks=[
                st if isinstance(st, SubtaskTemplate) else SubtaskTemplate(self._new_id("st_"), st)
                for st in subtasks
            ],
            recurrence=recurrence or RecurrenceRule(),
            created_at=now,
            updated_at=now,
        )
        errors = template_errors(template)
        if errors:
            raise InvalidTemplateError(f"Invalid chore '{title}': {'; '.join(errors)}")
        for problem in rule_problems(template.recurrence):
            log.warn(f"Chore '{title}': {problem}")
        self._templates[template.id] = template
        log.debug(f"Template {template.id} added ({template.recurrence.kind.value})")
        self._changed()
        return template

    def update_template(self, template: Template) -> Outcome:
        """Replace a stored template; creation time is preserved."""
        current = self._templates.get(template.id)
        if current is None:
            return self._missing("chore", template.id)
        errors = template_errors(template)
        if errors:
            raise InvalidTemplateError(f"Invalid chore '{template.title}': {'; '.join(errors)}")
        template.created_at = current.created_at
        template.updated_at = self._clock()
        self._templates[template.id] = template
        self._changed()
        return Outcome.accepted()

    def set_template_archived(self, template_id: str, archived: bool) -> Outcome:
        """Stop (or resume) generation; existing occurrences are untouched."""
        template = self._templates.get(template_id)
        if template is None:
            return self._missing("chore", template_id)
        if template.archived != archived:
            template.archived = archived
            template.updated_at = self._clock()
            self._changed()
        return Outcome.accepted()

    def list_templates_for_dependent(self, dependent_id: str) -> list[Template]:
        return [t for t in self._templates.values() if t.assigned_dependent_id == dependent_id]

    # ── single occurrences ───────────────────────────────────────

    def instances_for_dependent(
        self,
        dependent_id: str,
        window_start: dt.date,
        window_end: dt.date,
        board_filter: BoardFilter | None = None,
        include_skipped: bool = False,
    ) -> list[Occurrence]:
        found = [
            o for o in self._instances.values()
            if o.dependent_id == dependent_id
            and window_start <= o.date <= window_end
            and (include_skipped or not o.skipped)
        ]
        if board_filter is not None:
            found = board_filter.apply(found, self._templates)
        return found

    def set_instance_complete(self, instance_id: str, complete: bool, actor: str | None = None) -> Outcome:
        if instance_id not in self._instances:
            return self._missing("chore instance", instance_id)
        if self.board.set_complete(instance_id, complete, actor):
            self._changed()
        return Outcome.accepted()

    def set_instance_category(
        self,
        instance_id: str,
        category: Category,
        target_date: dt.date | None = None,
        actor: str | None = None,
    ) -> Outcome:
        """Drag-style move; rejected when *target_date* differs from the occurrence's date."""
        occ = self._instances.get(instance_id)
        if occ is None:
            return self._missing("chore instance", instance_id)
        before = occ.category
        outcome = self.board.move(instance_id, target_date or occ.date, category, actor)
        if outcome and occ.category != before:
            self._changed()
        return outcome

    def set_instance_field(
        self,
        instance_id: str,
        field: EditableField,
        value: Any,
        scope: EditScope | None = None,
        actor: str | None = None,
    ) -> Outcome:
        occ = self._instances.get(instance_id)
        if occ is None:
            return self._missing("chore instance", instance_id)
        template = self._templates.get(occ.template_id)
        try:
            applied = apply_field_edit(occ, template, field, value, scope)
        except ChoreError as exc:
            log.warn(str(exc))
            return Outcome.rejected(str(exc))
        now = self._clock()
        if applied == EditScope.SERIES and template is not None:
            template.updated_at = now
        shown = value.value if isinstance(value, Priority) else value
        occ.log(now, actor or self.cfg.actor, f"{field.value.capitalize()} updated ({applied.value})", repr(shown))
        self._changed()
        return Outcome.accepted()

    def set_instance_skipped(self, instance_id: str, skipped: bool, actor: str | None = None) -> Outcome:
        occ = self._instances.get(instance_id)
        if occ is None:
            return self._missing("chore instance", instance_id)
        if occ.skipped != skipped:
            occ.skipped = skipped
            occ.log(self._clock(), actor or self.cfg.actor, "Skipped" if skipped else "Unskipped")
            self._changed()
        return Outcome.accepted()

    def toggle_subtask(self, instance_id: str, subtask_id: str, actor: str | None = None) -> Outcome:
        occ = self._instances.get(instance_id)
        if occ is None:
            return self._missing("chore instance", instance_id)
        template = self._templates.get(occ.template_id)
        known = subtask_id in occ.subtask_completions or (template is not None and template.has_subtask(subtask_id))
        if not known:
            return self._missing("sub-task", subtask_id)
        done = not occ.subtask_completions.get(subtask_id, False)
        occ.subtask_completions[subtask_id] = done
        occ.log(self._clock(), actor or self.cfg.actor, "Sub-task completed" if done else "Sub-task reopened", subtask_id)
        self._changed()
        return Outcome.accepted()

    def add_comment(self, instance_id: str, text: str, author_id: str, author_name: str) -> Outcome:
        occ = self._instances.get(instance_id)
        if occ is None:
            return self._missing("chore instance", instance_id)
        text = text.strip()
        if not text:
            log.warn(f"Ignoring empty comment on {instance_id}")
            return Outcome.rejected("Comment text is empty.")
        now = self._clock()
        occ.comments.append(Comment(self._new_id("cmt_"), author_id, author_name, text, now))
        occ.log(now, author_name, "Comment added")
        self._changed()
        return Outcome.accepted()

    def assign_lane(self, instance_id: str, lane_id: str | None) -> Outcome:
        occ = self._instances.get(instance_id)
        if occ is None:
            return self._missing("chore instance", instance_id)
        if lane_id is not None and occ.dependent_id is not None:
            if not any(c.id == lane_id for c in self.lanes.lanes(occ.dependent_id)):
                return self._missing("swimlane", lane_id)
        occ.swimlane_id = lane_id
        self._changed()
        return Outcome.accepted()

    # ── ordering ─────────────────────────────────────────────────

    def set_order(self, dependent_id: str, lane_id: str, ordered_ids: Iterable[str]) -> None:
        self.orders.set_order(dependent_id, lane_id, ordered_ids)
        self._changed()

    def resolve_order(
        self,
        dependent_id: str,
        lane_id: str,
        candidates: Iterable[Occurrence],
        key: SortKey = default_key,
    ) -> list[Occurrence]:
        return self.orders.resolve_order(dependent_id, lane_id, candidates, key)

    def apply_sort(
        self,
        dependent_id: str,
        lanes_in_view: Mapping[str, Iterable[Occurrence]],
        criteria: SortCriteria,
    ) -> dict[str, list[Occurrence]]:
        before = self.orders.to_dict()
        ordered = self.orders.apply_sort(dependent_id, lanes_in_view, criteria, self._templates)
        if self.orders.to_dict() != before:
            self._changed()
        return ordered

    # ── batch ────────────────────────────────────────────────────

    def _after_batch(self, result: BatchResult) -> BatchResult:
        if result.succeeded_count:
            self._changed()
        return result

    async def batch_set_complete(self, ids: Iterable[str], complete: bool, actor: str | None = None) -> BatchResult:
        return self._after_batch(batch.batch_set_complete(self.board, ids, complete, actor))

    async def batch_set_category(self, ids: Iterable[str], category: Category, actor: str | None = None) -> BatchResult:
        return self._after_batch(batch.batch_set_category(self.board, ids, category, actor))

    async def batch_reassign_templates(self, template_ids: Iterable[str], dependent_id: str | None) -> BatchResult:
        return self._after_batch(
            batch.batch_reassign_templates(self._templates, template_ids, dependent_id, self._clock())
        )

    async def batch_delete_instances(self, ids: Iterable[str]) -> BatchResult:
        return self._after_batch(batch.batch_delete_instances(self._instances, ids))

    # ── swimlanes ────────────────────────────────────────────────

    def lanes_for(self, dependent_id: str) -> list[SwimlaneConfig]:
        return self.lanes.lanes(dependent_id)

    def add_lane(self, dependent_id: str, title: str, color: str = "#FFFFFF") -> SwimlaneConfig:
        lane = self.lanes.add_lane(dependent_id, title, color)
        self._changed()
        return lane

    def update_lane(self, config: SwimlaneConfig) -> Outcome:
        try:
            self.lanes.update_lane(config)
        except NotFoundError:
            return self._missing("swimlane", config.id)
        self._changed()
        return Outcome.accepted()

    def delete_lane(self, dependent_id: str, lane_id: str) -> list[str]:
        """Delete a lane and return the ids of occurrences left without one.

        The caller is expected to reassign those occurrences to a default lane.
        """
        try:
            self.lanes.delete_lane(dependent_id, lane_id)
        except NotFoundError:
            self._missing("swimlane", lane_id)
            return []
        orphaned: list[str] = []
        for occ in self._instances.values():
            if occ.swimlane_id == lane_id:
                occ.swimlane_id = None
                orphaned.append(occ.id)
        self.orders.clear(dependent_id, [lane_id])
        if orphaned:
            log.info(f"{len(orphaned)} chore instance(s) need a new swimlane")
        self._changed()
        return orphaned

    def reorder_lanes(self, dependent_id: str, ordered: Iterable[SwimlaneConfig | str]) -> list[SwimlaneConfig]:
        lanes = self.lanes.reorder_lanes(dependent_id, ordered)
        self._changed()
        return lanes

    def setup_default_lanes(self, dependent_id: str) -> list[SwimlaneConfig]:
        created = self.lanes.setup_default_lanes(dependent_id)
        if created:
            self._changed()
        return created
