"""Dict codec for persisted entities.

Dates travel as ``YYYY-MM-DD`` strings and enums by value. Decoding is
lenient about missing optional keys so older stored documents still load;
a structurally broken record raises ``ValueError``/``KeyError``/``TypeError``
and is handled by the store's loaders.
"""

from __future__ import annotations

import datetime as dt
from typing import Any

from choreboard.chores.model import (
    ActivityEntry,
    Category,
    Comment,
    Occurrence,
    Priority,
    RecurrenceKind,
    RecurrenceRule,
    SubtaskTemplate,
    SwimlaneConfig,
    Template,
)


_LEGACY_KINDS = {"one-time": RecurrenceKind.NONE.value}


def _date_or_none(raw: Any) -> dt.date | None:
    if not raw:
        return None
    return dt.date.fromisoformat(str(raw))


def _iso_or_none(day: dt.date | None) -> str | None:
    return day.isoformat() if day else None


def _priority_or_none(raw: Any) -> Priority | None:
    return Priority(raw) if raw else None


# ── templates ────────────────────────────────────────────────────────

def template_to_dict(t: Template) -> dict[str, Any]:
    rule = t.recurrence
    return {
        "id": t.id,
        "title": t.title,
        "description": t.description,
        "assignedKidId": t.assigned_dependent_id,
        "dueDate": t.anchor_date.isoformat(),
        "earlyStartDate": _iso_or_none(t.early_start_date),
        "rewardAmount": t.reward_amount,
        "priority": t.priority.value if t.priority else None,
        "tags": list(t.tags),
        "subTasks": [{"id": st.id, "title": st.title} for st in t.subtasks],
        "recurrenceType": rule.kind.value,
        "recurrenceWeekdays": sorted(rule.weekdays),
        "recurrenceDay": rule.day_of_month,
        "recurrenceEndDate": _iso_or_none(rule.end_date),
        "archived": t.archived,
        "createdAt": t.created_at,
        "updatedAt": t.updated_at,
    }


def template_from_dict(data: dict[str, Any]) -> Template:
    raw_kind = data.get("recurrenceType") or RecurrenceKind.NONE.value
    kind = RecurrenceKind(_LEGACY_KINDS.get(raw_kind, raw_kind))
    weekdays = frozenset(int(d) for d in data.get("recurrenceWeekdays") or ())
    raw_day = data.get("recurrenceDay")
    day = int(raw_day) if raw_day is not None else None
    if kind == RecurrenceKind.WEEKLY and not weekdays and day is not None:
        # Older documents stored a single weekday in recurrenceDay.
        weekdays, day = frozenset({day}), None
    rule = RecurrenceRule(
        kind=kind,
        weekdays=weekdays,
        day_of_month=day if kind == RecurrenceKind.MONTHLY else None,
        end_date=_date_or_none(data.get("recurrenceEndDate")),
    )
    return Template(
        id=str(data["id"]),
        title=str(data.get("title", "")),
        anchor_date=dt.date.fromisoformat(data["dueDate"]),
        description=data.get("description"),
        assigned_dependent_id=data.get("assignedKidId"),
        early_start_date=_date_or_none(data.get("earlyStartDate")),
        reward_amount=data.get("rewardAmount"),
        priority=_priority_or_none(data.get("priority")),
        tags=list(data.get("tags") or []),
        subtasks=[
            SubtaskTemplate(id=str(st["id"]), title=str(st.get("title", "")))
            for st in data.get("subTasks") or []
        ],
        recurrence=rule,
        archived=bool(data.get("archived", False)),
        created_at=data.get("createdAt", ""),
        updated_at=data.get("updatedAt", ""),
    )


# ── occurrences ──────────────────────────────────────────────────────

def occurrence_to_dict(o: Occurrence) -> dict[str, Any]:
    return {
        "id": o.id,
        "choreDefinitionId": o.template_id,
        "instanceDate": o.date.isoformat(),
        "isComplete": o.is_complete,
        "categoryStatus": o.category.value,
        "kidId": o.dependent_id,
        "swimlaneId": o.swimlane_id,
        "instanceDescription": o.description_override,
        "priority": o.priority_override.value if o.priority_override else None,
        "subtaskCompletions": dict(o.subtask_completions),
        "instanceComments": [
            {
                "id": c.id,
                "userId": c.author_id,
                "userName": c.author_name,
                "text": c.text,
                "createdAt": c.created_at,
            }
            for c in o.comments
        ],
        "activityLog": [
            {"timestamp": a.timestamp, "actor": a.actor, "action": a.action, "details": a.detail}
            for a in o.activity
        ],
        "isSkipped": o.skipped,
    }


def occurrence_from_dict(data: dict[str, Any]) -> Occurrence:
    return Occurrence(
        id=str(data["id"]),
        template_id=str(data["choreDefinitionId"]),
        date=dt.date.fromisoformat(data["instanceDate"]),
        is_complete=bool(data.get("isComplete", False)),
        category=Category(data.get("categoryStatus") or Category.TO_DO.value),
        dependent_id=data.get("kidId"),
        swimlane_id=data.get("swimlaneId"),
        description_override=data.get("instanceDescription"),
        priority_override=_priority_or_none(data.get("priority")),
        subtask_completions={str(k): bool(v) for k, v in (data.get("subtaskCompletions") or {}).items()},
        comments=[
            Comment(
                id=str(c["id"]),
                author_id=str(c.get("userId", "")),
                author_name=str(c.get("userName", "")),
                text=str(c.get("text", "")),
                created_at=str(c.get("createdAt", "")),
            )
            for c in data.get("instanceComments") or []
        ],
        activity=[
            ActivityEntry(
                timestamp=str(a.get("timestamp", "")),
                actor=str(a.get("actor", "")),
                action=str(a.get("action", "")),
                detail=a.get("details"),
            )
            for a in data.get("activityLog") or []
        ],
        skipped=bool(data.get("isSkipped", False)),
    )


# ── swimlanes ────────────────────────────────────────────────────────

def lane_to_dict(lane: SwimlaneConfig) -> dict[str, Any]:
    return {
        "id": lane.id,
        "kidId": lane.dependent_id,
        "title": lane.title,
        "order": lane.order,
        "color": lane.color,
        "createdAt": lane.created_at,
        "updatedAt": lane.updated_at,
    }


def lane_from_dict(data: dict[str, Any]) -> SwimlaneConfig:
    return SwimlaneConfig(
        id=str(data["id"]),
        dependent_id=str(data["kidId"]),
        title=str(data.get("title", "")),
        order=int(data["order"]),
        color=str(data.get("color") or "#FFFFFF"),
        created_at=str(data.get("createdAt", "")),
        updated_at=str(data.get("updatedAt", "")),
    )
