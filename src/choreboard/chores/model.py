"""Template, Occurrence and Swimlane data models shared by every engine component."""

from __future__ import annotations

import datetime as dt
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

Clock = Callable[[], str]


def now_iso() -> str:
    """Current UTC time as an ISO-8601 timestamp."""
    return dt.datetime.now(dt.timezone.utc).isoformat(timespec="seconds")


class RecurrenceKind(str, Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Category(str, Enum):
    TO_DO = "TO_DO"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


@dataclass
class RecurrenceRule:
    """How a template repeats.

    ``weekdays`` holds 0 (Sunday) .. 6 (Saturday) and is only meaningful for
    weekly rules; ``day_of_month`` (1..31) only for monthly rules.
    """

    kind: RecurrenceKind = RecurrenceKind.NONE
    weekdays: frozenset[int] = frozenset()
    day_of_month: int | None = None
    end_date: dt.date | None = None

    @property
    def is_recurring(self) -> bool:
        return self.kind != RecurrenceKind.NONE


@dataclass
class SubtaskTemplate:
    id: str
    title: str


@dataclass
class Template:
    """A chore definition: the pattern occurrences are generated from."""

    id: str
    title: str
    anchor_date: dt.date
    description: str | None = None
    assigned_dependent_id: str | None = None
    early_start_date: dt.date | None = None
    reward_amount: float | None = None
    priority: Priority | None = None
    tags: list[str] = field(default_factory=list)
    subtasks: list[SubtaskTemplate] = field(default_factory=list)
    recurrence: RecurrenceRule = field(default_factory=RecurrenceRule)
    archived: bool = False
    created_at: str = ""
    updated_at: str = ""

    @property
    def start_date(self) -> dt.date:
        """First date an occurrence may exist on."""
        return self.early_start_date or self.anchor_date

    def has_subtask(self, subtask_id: str) -> bool:
        return any(st.id == subtask_id for st in self.subtasks)


@dataclass
class Comment:
    id: str
    author_id: str
    author_name: str
    text: str
    created_at: str


@dataclass
class ActivityEntry:
    timestamp: str
    actor: str
    action: str
    detail: str | None = None


@dataclass
class Occurrence:
    """A single dated materialization of a template."""

    id: str
    template_id: str
    date: dt.date
    is_complete: bool = False
    category: Category = Category.TO_DO
    dependent_id: str | None = None
    swimlane_id: str | None = None
    description_override: str | None = None
    priority_override: Priority | None = None
    subtask_completions: dict[str, bool] = field(default_factory=dict)
    comments: list[Comment] = field(default_factory=list)
    activity: list[ActivityEntry] = field(default_factory=list)
    skipped: bool = False

    def log(self, timestamp: str, actor: str, action: str, detail: str | None = None) -> None:
        self.activity.append(ActivityEntry(timestamp, actor, action, detail))

    def effective_description(self, template: Template | None) -> str | None:
        if self.description_override is not None:
            return self.description_override
        return template.description if template else None

    def effective_priority(self, template: Template | None) -> Priority | None:
        if self.priority_override is not None:
            return self.priority_override
        return template.priority if template else None


@dataclass
class SwimlaneConfig:
    id: str
    dependent_id: str
    title: str
    order: int
    color: str = "#FFFFFF"
    created_at: str = ""
    updated_at: str = ""


@dataclass
class BatchResult:
    """Partial-success report of a bulk mutation."""

    succeeded_ids: list[str] = field(default_factory=list)
    failed_ids: list[str] = field(default_factory=list)

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded_ids)

    @property
    def failed_count(self) -> int:
        return len(self.failed_ids)

    @property
    def all_succeeded(self) -> bool:
        return self.failed_count == 0


def occurrence_id(template_id: str, day: dt.date) -> str:
    """Stable identity of the occurrence of *template_id* on *day*."""
    return f"{template_id}_{day.isoformat()}"
