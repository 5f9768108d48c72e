"""Recurrence evaluation: template + date window -> candidate occurrence dates.

Expansion is delegated to ``dateutil.rrule``. Monthly rules use
``bymonthday``, which skips months too short for the day instead of
clamping to the month's last day.
"""

from __future__ import annotations

import datetime as dt

from dateutil.relativedelta import relativedelta
from dateutil.rrule import DAILY, FR, MO, MONTHLY, SA, SU, TH, TU, WE, WEEKLY, rrule

from choreboard.chores.model import RecurrenceKind, RecurrenceRule, Template

# Indexed by weekday number: 0 is Sunday.
_RRULE_WEEKDAYS = (SU, MO, TU, WE, TH, FR, SA)


def weekday_number(day: dt.date) -> int:
    """Weekday as 0 (Sunday) .. 6 (Saturday)."""
    return (day.weekday() + 1) % 7


def _midnight(day: dt.date) -> dt.datetime:
    return dt.datetime.combine(day, dt.time())


def _expand(freq: int, start: dt.date, end: dt.date, **by) -> set[dt.date]:
    rule = rrule(freq, dtstart=_midnight(start), until=_midnight(end), **by)
    return {occurrence.date() for occurrence in rule}


def rule_problems(rule: RecurrenceRule) -> list[str]:
    """Describe structural problems that make *rule* generate nothing."""
    problems: list[str] = []
    if rule.kind == RecurrenceKind.WEEKLY:
        if not rule.weekdays:
            problems.append("weekly recurrence has no weekdays")
        elif any(d < 0 or d > 6 for d in rule.weekdays):
            problems.append(f"weekly recurrence has weekdays outside 0-6: {sorted(rule.weekdays)}")
    elif rule.kind == RecurrenceKind.MONTHLY:
        if rule.day_of_month is None:
            problems.append("monthly recurrence has no day of month")
        elif not 1 <= rule.day_of_month <= 31:
            problems.append(f"monthly recurrence day {rule.day_of_month} is outside 1-31")
    return problems


def candidate_dates(template: Template, window_start: dt.date, window_end: dt.date) -> set[dt.date]:
    """Dates in ``[window_start, window_end]`` on which *template* should have an occurrence.

    Pure and total: archived templates and structurally invalid rules yield
    an empty set instead of raising.
    """
    if template.archived:
        return set()

    rule = template.recurrence
    start = max(window_start, template.start_date)
    end = min(window_end, rule.end_date) if rule.end_date else window_end
    if start > end:
        return set()

    match rule.kind:
        case RecurrenceKind.NONE:
            return {template.anchor_date} if start <= template.anchor_date <= end else set()
        case RecurrenceKind.DAILY:
            return _expand(DAILY, start, end)
        case RecurrenceKind.WEEKLY:
            if rule_problems(rule):
                return set()
            byweekday = [_RRULE_WEEKDAYS[d] for d in sorted(rule.weekdays)]
            return _expand(WEEKLY, start, end, byweekday=byweekday)
        case RecurrenceKind.MONTHLY:
            if rule_problems(rule):
                return set()
            return _expand(MONTHLY, start, end, bymonthday=rule.day_of_month)
    return set()


# ── period windows ───────────────────────────────────────────────────

def week_range(day: dt.date) -> tuple[dt.date, dt.date]:
    """Monday..Sunday week containing *day*."""
    start = day - dt.timedelta(days=day.weekday())
    return start, start + dt.timedelta(days=6)


def month_range(day: dt.date) -> tuple[dt.date, dt.date]:
    """First..last day of the month containing *day*."""
    first = day.replace(day=1)
    return first, first + relativedelta(months=1, days=-1)
