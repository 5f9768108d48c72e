"""Tests for choreboard.engine: the facade the presentation layer calls."""

from __future__ import annotations

import asyncio
import dataclasses
import datetime as dt
import json

import pytest

from choreboard.chores.model import Category, Priority, RecurrenceKind, RecurrenceRule
from choreboard.errors import InvalidTemplateError
from choreboard.filters import BoardFilter, RewardStatus
from choreboard.ordering import SortCriteria, SortField
from choreboard.scope import EditableField, EditScope
from choreboard.store import MemoryStore


def _d(text: str) -> dt.date:
    return dt.date.fromisoformat(text)


def _weekly(engine, weekdays=frozenset({1}), **kwargs):
    return engine.add_template(
        kwargs.pop("title", "Walk the dog"),
        _d("2024-01-01"),
        assigned_dependent_id=kwargs.pop("kid", "kid_a"),
        recurrence=RecurrenceRule(RecurrenceKind.WEEKLY, weekdays=weekdays),
        **kwargs,
    )


# ═══════════════════════════════════════════════════════════════════
#  Templates and regeneration
# ═══════════════════════════════════════════════════════════════════


class TestTemplates:
    def test_add_template_assigns_id_and_timestamps(self, engine):
        t = engine.add_template("Homework", _d("2024-01-15"), subtasks=["Read", "Write"])
        assert t.id == "cd_1"
        assert t.created_at == t.updated_at == "2024-05-01T08:00:00+00:00"
        assert [st.title for st in t.subtasks] == ["Read", "Write"]
        assert engine.get_template(t.id) is t

    def test_invalid_template_raises(self, engine):
        with pytest.raises(InvalidTemplateError):
            engine.add_template("Bad", _d("2024-01-10"), early_start_date=_d("2024-01-11"))
        with pytest.raises(InvalidTemplateError):
            engine.add_template(
                "Bad", _d("2024-01-10"),
                recurrence=RecurrenceRule(RecurrenceKind.DAILY, end_date=_d("2024-01-09")),
            )
        assert engine.templates == []

    def test_structural_rule_problem_is_a_warning(self, engine, capsys):
        t = _weekly(engine, weekdays=frozenset())
        assert engine.ensure_instances(_d("2024-01-01"), _d("2024-01-31")) == []
        assert "no weekdays" in capsys.readouterr().err
        assert engine.get_template(t.id) is not None

    def test_list_templates_for_dependent(self, engine):
        _weekly(engine, kid="kid_a")
        _weekly(engine, kid="kid_b")
        assert [t.assigned_dependent_id for t in engine.list_templates_for_dependent("kid_b")] == ["kid_b"]

    def test_update_template_preserves_created_at(self, engine):
        t = _weekly(engine)
        edited = dataclasses.replace(t, title="Walk the cat", created_at="tampered")
        assert engine.update_template(edited)
        assert engine.get_template(t.id).title == "Walk the cat"
        assert engine.get_template(t.id).created_at == "2024-05-01T08:00:00+00:00"

    def test_update_unknown_template_is_noop(self, engine, make_template):
        outcome = engine.update_template(make_template("ghost"))
        assert not outcome
        assert engine.templates == []


class TestEnsureInstances:
    def test_weekly_generation(self, engine):
        _weekly(engine)
        generated = engine.ensure_instances(_d("2024-01-01"), _d("2024-01-31"))
        assert [o.date.isoformat() for o in generated] == [
            "2024-01-01", "2024-01-08", "2024-01-15", "2024-01-22", "2024-01-29",
        ]

    def test_regeneration_preserves_completion(self, engine):
        t = _weekly(engine)
        engine.ensure_instances(_d("2024-01-01"), _d("2024-01-31"))
        first = f"{t.id}_2024-01-01"
        assert engine.set_instance_complete(first, True)
        engine.ensure_instances(_d("2024-01-01"), _d("2024-01-31"))
        assert engine.get_instance(first).is_complete is True

    def test_archiving_stops_generation_but_keeps_existing(self, engine):
        t = _weekly(engine)
        engine.ensure_instances(_d("2024-01-01"), _d("2024-01-07"))
        assert engine.set_template_archived(t.id, True)
        engine.ensure_instances(_d("2024-01-01"), _d("2024-01-31"))
        assert [o.id for o in engine.instances] == [f"{t.id}_2024-01-01"]

    def test_reassignment_only_affects_new_occurrences(self, engine):
        t = _weekly(engine)
        engine.ensure_instances(_d("2024-01-01"), _d("2024-01-07"))
        result = asyncio.run(engine.batch_reassign_templates([t.id], "kid_b"))
        assert result.succeeded_count == 1
        engine.ensure_instances(_d("2024-01-01"), _d("2024-01-14"))
        assert engine.get_instance(f"{t.id}_2024-01-01").dependent_id == "kid_a"
        assert engine.get_instance(f"{t.id}_2024-01-08").dependent_id == "kid_b"

    def test_inverted_window(self, engine):
        _weekly(engine)
        assert engine.ensure_instances(_d("2024-01-31"), _d("2024-01-01")) == []


# ═══════════════════════════════════════════════════════════════════
#  Single-occurrence operations
# ═══════════════════════════════════════════════════════════════════


@pytest.fixture
def dog(engine):
    t = engine.add_template(
        "Walk the dog",
        _d("2024-05-01"),
        assigned_dependent_id="kid_a",
        recurrence=RecurrenceRule(RecurrenceKind.DAILY),
        subtasks=["Leash"],
        tags=["pet"],
        reward_amount=2,
    )
    engine.ensure_instances(_d("2024-05-01"), _d("2024-05-03"))
    return t


class TestInstanceOperations:
    def test_same_date_category_move(self, engine, dog):
        iid = f"{dog.id}_2024-05-01"
        assert engine.set_instance_category(iid, Category.IN_PROGRESS, _d("2024-05-01"))
        assert engine.get_instance(iid).category == Category.IN_PROGRESS

    def test_cross_date_category_move_rejected(self, engine, dog):
        iid = f"{dog.id}_2024-05-01"
        outcome = engine.set_instance_category(iid, Category.IN_PROGRESS, _d("2024-05-02"))
        assert not outcome
        assert outcome.reason
        assert engine.get_instance(iid).category == Category.TO_DO

    def test_lookup_failure_is_a_noop(self, engine, dog, capsys):
        assert not engine.set_instance_complete("missing", True)
        assert not engine.toggle_subtask("missing", "st")
        assert not engine.add_comment("missing", "hi", "u1", "Parent")
        assert "not found" in capsys.readouterr().err

    def test_toggle_subtask(self, engine, dog):
        iid = f"{dog.id}_2024-05-02"
        st = dog.subtasks[0].id
        assert engine.toggle_subtask(iid, st)
        assert engine.get_instance(iid).subtask_completions == {st: True}
        assert engine.toggle_subtask(iid, st)
        assert engine.get_instance(iid).subtask_completions == {st: False}
        assert not engine.toggle_subtask(iid, "unknown-subtask")

    def test_add_comment(self, engine, dog):
        iid = f"{dog.id}_2024-05-02"
        assert engine.add_comment(iid, "  Good job  ", "u1", "Parent")
        occ = engine.get_instance(iid)
        assert [(c.author_name, c.text) for c in occ.comments] == [("Parent", "Good job")]
        assert occ.activity[-1].action == "Comment added"
        assert not engine.add_comment(iid, "   ", "u1", "Parent")

    def test_recurring_field_edit_needs_scope(self, engine, dog):
        iid = f"{dog.id}_2024-05-02"
        outcome = engine.set_instance_field(iid, EditableField.DESCRIPTION, "today only")
        assert not outcome
        assert "instance or the series" in outcome.reason

    def test_instance_and_series_edits(self, engine, dog):
        today, tomorrow = f"{dog.id}_2024-05-02", f"{dog.id}_2024-05-03"
        assert engine.set_instance_field(today, EditableField.PRIORITY, Priority.LOW, EditScope.INSTANCE)
        assert engine.set_instance_field(tomorrow, EditableField.PRIORITY, "High", EditScope.SERIES)
        assert engine.get_template(dog.id).priority == Priority.HIGH
        assert engine.get_instance(today).effective_priority(dog) == Priority.LOW
        assert engine.get_instance(f"{dog.id}_2024-05-01").effective_priority(dog) == Priority.HIGH

    def test_skip_hides_from_listing(self, engine, dog):
        iid = f"{dog.id}_2024-05-02"
        assert engine.set_instance_skipped(iid, True)
        listed = engine.instances_for_dependent("kid_a", _d("2024-05-01"), _d("2024-05-03"))
        assert iid not in [o.id for o in listed]
        engine.ensure_instances(_d("2024-05-01"), _d("2024-05-03"))
        assert engine.get_instance(iid).skipped is True

    def test_filtered_listing(self, engine, dog):
        engine.add_template("Unpaid", _d("2024-05-01"), assigned_dependent_id="kid_a")
        engine.ensure_instances(_d("2024-05-01"), _d("2024-05-01"))
        rewarded = engine.instances_for_dependent(
            "kid_a", _d("2024-05-01"), _d("2024-05-01"),
            BoardFilter(reward_status=RewardStatus.REWARDED),
        )
        assert [o.template_id for o in rewarded] == [dog.id]


# ═══════════════════════════════════════════════════════════════════
#  Batch, ordering, lanes
# ═══════════════════════════════════════════════════════════════════


class TestBatchFacade:
    def test_batch_set_complete_partial(self, engine, dog):
        ids = [f"{dog.id}_2024-05-01", "missing", f"{dog.id}_2024-05-02"]
        result = asyncio.run(engine.batch_set_complete(ids, True))
        assert (result.succeeded_count, result.failed_count) == (2, 1)
        assert result.failed_ids == ["missing"]
        assert engine.get_instance(ids[0]).is_complete
        assert engine.get_instance(ids[2]).is_complete

    def test_batch_set_category(self, engine, dog):
        ids = [o.id for o in engine.instances]
        result = asyncio.run(engine.batch_set_category(ids, Category.COMPLETED))
        assert result.all_succeeded
        assert {o.category for o in engine.instances} == {Category.COMPLETED}

    def test_batch_delete_leaves_siblings_and_template(self, engine, dog):
        result = asyncio.run(engine.batch_delete_instances([f"{dog.id}_2024-05-02"]))
        assert result.succeeded_count == 1
        assert [o.date.day for o in engine.instances] == [1, 3]
        assert engine.get_template(dog.id) is not None


class TestOrderingFacade:
    def test_explicit_sort_invalidates_my_order(self, engine, dog):
        occs = engine.instances
        engine.set_order("kid_a", "lane1", [occs[2].id, occs[0].id])
        mine = engine.resolve_order("kid_a", "lane1", occs)
        assert [o.id for o in mine] == [occs[2].id, occs[0].id, occs[1].id]

        engine.apply_sort("kid_a", {"lane1": occs}, SortCriteria(SortField.DATE, descending=True))
        again = engine.resolve_order("kid_a", "lane1", occs)
        assert [o.id for o in again] == [o.id for o in occs]


class TestLanesFacade:
    def test_delete_lane_unassigns_instances(self, engine, dog):
        lanes = engine.setup_default_lanes("kid_a")
        iid = f"{dog.id}_2024-05-01"
        assert engine.assign_lane(iid, lanes[1].id)
        orphaned = engine.delete_lane("kid_a", lanes[1].id)
        assert orphaned == [iid]
        assert engine.get_instance(iid).swimlane_id is None
        assert [(c.title, c.order) for c in engine.lanes_for("kid_a")] == [("To Do", 0), ("Done", 1)]

    def test_assign_unknown_lane(self, engine, dog):
        assert not engine.assign_lane(f"{dog.id}_2024-05-01", "nope")


# ═══════════════════════════════════════════════════════════════════
#  Persistence
# ═══════════════════════════════════════════════════════════════════


class TestPersistence:
    def test_state_survives_reload(self, make_engine, store, dog, engine):
        iid = f"{dog.id}_2024-05-01"
        engine.set_instance_category(iid, Category.IN_PROGRESS)
        engine.add_lane("kid_a", "Chores")
        engine.set_order("kid_a", "lane1", [iid])

        reloaded = make_engine()
        assert reloaded.get_instance(iid).category == Category.IN_PROGRESS
        assert reloaded.get_template(dog.id).title == "Walk the dog"
        assert [c.title for c in reloaded.lanes_for("kid_a")] == ["Chores"]
        assert reloaded.orders.get_order("kid_a", "lane1") == [iid]

    def test_corrupt_keys_load_empty(self, make_engine, capsys):
        broken = MemoryStore({"choreDefinitions": "oops", "choreInstances": json.dumps({"x": 1})})
        e = make_engine(broken)
        assert e.templates == [] and e.instances == []
        assert "WARN" in capsys.readouterr().err

    def test_autosave_disabled(self, make_engine):
        target = MemoryStore()
        e = make_engine(target, autosave=False)
        e.add_template("Quiet", _d("2024-01-01"))
        assert target.data == {}
        e.save()
        assert "choreDefinitions" in target.data

    def test_reload_drops_cached_lanes(self, make_engine, engine):
        lane = engine.add_lane("kid_a", "Chores")
        writer = make_engine()
        writer.delete_lane("kid_a", lane.id)

        engine.load()
        assert engine.lanes_for("kid_a") == []
        engine.save()
        assert make_engine().lanes_for("kid_a") == []

    def test_text_day_of_month_generates(self, make_engine):
        record = {"id": "cd4", "dueDate": "2024-01-01", "recurrenceType": "monthly", "recurrenceDay": "15"}
        e = make_engine(MemoryStore({"choreDefinitions": json.dumps([record])}))
        generated = e.ensure_instances(_d("2024-01-01"), _d("2024-01-31"))
        assert [o.id for o in generated] == ["cd4_2024-01-15"]
