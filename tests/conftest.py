"""Shared fixtures for choreboard tests.

File handling in tests:
- Use tmp_path for any directory or file creation so tests are isolated and cleaned up.
- Engines built here use a MemoryStore, a fixed clock and sequential ids.
"""

from __future__ import annotations

import datetime as dt
import itertools

import pytest

from choreboard.chores.model import (
    Occurrence,
    RecurrenceKind,
    RecurrenceRule,
    SubtaskTemplate,
    Template,
    occurrence_id,
)
from choreboard.config import Config
from choreboard.engine import ChoreEngine
from choreboard.store import MemoryStore

FIXED_NOW = "2024-05-01T08:00:00+00:00"


def d(text: str) -> dt.date:
    return dt.date.fromisoformat(text)


def _make_template(
    id: str = "t1",
    title: str = "",
    anchor: str = "2024-01-01",
    kind: RecurrenceKind = RecurrenceKind.NONE,
    weekdays: set[int] | None = None,
    day_of_month: int | None = None,
    end: str | None = None,
    early_start: str | None = None,
    dependent: str | None = "kid_a",
    reward: float | None = None,
    tags: list[str] | None = None,
    subtasks: list[SubtaskTemplate] | None = None,
    archived: bool = False,
) -> Template:
    return Template(
        id=id,
        title=title or f"Chore {id}",
        anchor_date=d(anchor),
        assigned_dependent_id=dependent,
        early_start_date=d(early_start) if early_start else None,
        reward_amount=reward,
        tags=tags or [],
        subtasks=subtasks or [],
        recurrence=RecurrenceRule(
            kind=kind,
            weekdays=frozenset(weekdays or ()),
            day_of_month=day_of_month,
            end_date=d(end) if end else None,
        ),
        archived=archived,
    )


def _make_occurrence(template_id: str = "t1", day: str = "2024-01-01", **kwargs) -> Occurrence:
    return Occurrence(
        id=occurrence_id(template_id, d(day)),
        template_id=template_id,
        date=d(day),
        dependent_id=kwargs.pop("dependent_id", "kid_a"),
        **kwargs,
    )


@pytest.fixture
def make_template():
    """Factory fixture that creates Template instances."""
    return _make_template


@pytest.fixture
def make_occurrence():
    """Factory fixture that creates Occurrence instances."""
    return _make_occurrence


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def make_engine(store: MemoryStore):
    """Factory for engines sharing the ``store`` fixture, with deterministic ids and clock."""

    def _build(target: MemoryStore | None = None, **cfg_kwargs) -> ChoreEngine:
        counter = itertools.count(1)
        return ChoreEngine(
            target if target is not None else store,
            Config(data_dir="unused", **cfg_kwargs),
            clock=lambda: FIXED_NOW,
            id_factory=lambda prefix: f"{prefix}{next(counter)}",
        )

    return _build


@pytest.fixture
def engine(make_engine) -> ChoreEngine:
    return make_engine()
