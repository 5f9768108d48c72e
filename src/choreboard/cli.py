"""CHOREBOARD CLI: manage recurring chores and their Kanban board from a terminal.

Installed as ``choreboard`` console_script via pip.
"""

from __future__ import annotations

import asyncio
import datetime as dt

import click
from rich.table import Table

from choreboard import __version__, log
from choreboard.chores.model import Category, Priority, RecurrenceKind, RecurrenceRule
from choreboard.config import Config
from choreboard.engine import ChoreEngine
from choreboard.errors import InvalidTemplateError
from choreboard.recurrence import month_range, week_range
from choreboard.store import FileStore


CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])

DATE = click.DateTime(formats=["%Y-%m-%d"])

CATEGORY_ALIASES: dict[str, Category] = {
    "todo": Category.TO_DO,
    "to_do": Category.TO_DO,
    "t": Category.TO_DO,
    "in_progress": Category.IN_PROGRESS,
    "in-progress": Category.IN_PROGRESS,
    "ip": Category.IN_PROGRESS,
    "completed": Category.COMPLETED,
    "done": Category.COMPLETED,
    "d": Category.COMPLETED,
}


def _day(value: dt.datetime | None) -> dt.date | None:
    return value.date() if value is not None else None


def _parse_category(raw: str) -> Category:
    category = CATEGORY_ALIASES.get(raw.strip().lower())
    if category is None:
        allowed = ", ".join(sorted(CATEGORY_ALIASES))
        raise click.BadParameter(f"Unknown category '{raw}'. Valid values: {allowed}.", param_hint="CATEGORY")
    return category


def _resolve_window(
    start: dt.datetime | None,
    end: dt.datetime | None,
    week: dt.datetime | None,
    month: dt.datetime | None,
) -> tuple[dt.date, dt.date]:
    picked = sum(x is not None for x in (week, month)) + (1 if start or end else 0)
    if picked > 1:
        raise click.UsageError("Use only one of --week, --month, or --start/--end.")
    if week is not None:
        return week_range(week.date())
    if month is not None:
        return month_range(month.date())
    if start is not None or end is not None:
        if start is None or end is None:
            raise click.UsageError("--start and --end must be given together.")
        if start > end:
            raise click.UsageError("--start must not be after --end.")
        return start.date(), end.date()
    return week_range(dt.date.today())


def _window_options(fn):
    fn = click.option("--month", type=DATE, default=None, help="Month containing this date")(fn)
    fn = click.option("--week", type=DATE, default=None, help="Monday-Sunday week containing this date")(fn)
    fn = click.option("--end", type=DATE, default=None, help="Window end (YYYY-MM-DD)")(fn)
    fn = click.option("--start", type=DATE, default=None, help="Window start (YYYY-MM-DD)")(fn)
    return fn


def _engine(ctx: click.Context) -> ChoreEngine:
    return ctx.obj["engine"]


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option("--data-dir", default="", help="Directory holding the board data (default: $CHOREBOARD_DATA_DIR)")
@click.option("--actor", default="", help="Name recorded in activity logs")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
@click.version_option(__version__, prog_name="choreboard")
@click.pass_context
def main(ctx: click.Context, data_dir: str, actor: str, verbose: bool) -> None:
    """CHOREBOARD: recurring chores on a date x category Kanban board.

    \b
    Typical flow:
      1. choreboard add "Walk the dog" --due 2024-01-01 --repeat weekly --weekday 1 --kid kid_a
      2. choreboard ensure --month 2024-01-01
      3. choreboard show kid_a --week 2024-01-01
      4. choreboard move <instance-id> in_progress
    """
    cfg = Config(data_dir=data_dir, actor=actor, verbose=verbose)
    log.set_verbose(cfg.verbose)
    ctx.ensure_object(dict)
    ctx.obj["cfg"] = cfg
    ctx.obj["engine"] = ChoreEngine(FileStore(cfg.data_dir), cfg)


@main.command()
@click.argument("title")
@click.option("--due", type=DATE, required=True, help="Due date; first date of a recurring chore")
@click.option("--repeat", type=click.Choice([k.value for k in RecurrenceKind]), default="none", show_default=True)
@click.option("--weekday", type=click.IntRange(0, 6), multiple=True, help="Weekly: 0=Sunday .. 6=Saturday (repeatable)")
@click.option("--day", type=click.IntRange(1, 31), default=None, help="Monthly: day of month")
@click.option("--until", type=DATE, default=None, help="Last date a recurring chore may occur")
@click.option("--early-start", type=DATE, default=None, help="Show the chore from this date before it is due")
@click.option("--kid", default=None, help="Assigned dependent id")
@click.option("--reward", type=float, default=None, help="Reward amount")
@click.option("--priority", type=click.Choice([p.value for p in Priority]), default=None)
@click.option("--tag", multiple=True, help="Tag (repeatable)")
@click.option("--subtask", multiple=True, help="Sub-task title (repeatable)")
@click.option("--description", default=None)
@click.pass_context
def add(
    ctx: click.Context,
    title: str,
    due: dt.datetime,
    repeat: str,
    weekday: tuple[int, ...],
    day: int | None,
    until: dt.datetime | None,
    early_start: dt.datetime | None,
    kid: str | None,
    reward: float | None,
    priority: str | None,
    tag: tuple[str, ...],
    subtask: tuple[str, ...],
    description: str | None,
) -> None:
    """Add a chore template."""
    rule = RecurrenceRule(
        kind=RecurrenceKind(repeat),
        weekdays=frozenset(weekday),
        day_of_month=day,
        end_date=_day(until),
    )
    try:
        template = _engine(ctx).add_template(
            title,
            due.date(),
            description=description,
            assigned_dependent_id=kid,
            early_start_date=_day(early_start),
            reward_amount=reward,
            priority=Priority(priority) if priority else None,
            tags=tag,
            subtasks=subtask,
            recurrence=rule,
        )
    except InvalidTemplateError as exc:
        log.error(str(exc))
        ctx.exit(1)
    log.success(f"Added chore {template.id}: {template.title}")


@main.command()
@_window_options
@click.pass_context
def ensure(ctx: click.Context, start, end, week, month) -> None:
    """Generate chore instances for a window (default: this week)."""
    window_start, window_end = _resolve_window(start, end, week, month)
    generated = _engine(ctx).ensure_instances(window_start, window_end)
    log.success(f"{len(generated)} instance(s) between {window_start} and {window_end}")


@main.command()
@click.argument("kid")
@_window_options
@click.option("--all", "include_skipped", is_flag=True, help="Include skipped instances")
@click.pass_context
def show(ctx: click.Context, kid: str, start, end, week, month, include_skipped: bool) -> None:
    """Show a dependent's chore instances as a table."""
    engine = _engine(ctx)
    window_start, window_end = _resolve_window(start, end, week, month)
    instances = engine.instances_for_dependent(kid, window_start, window_end, include_skipped=include_skipped)
    if not instances:
        log.info(f"No chores for {kid} between {window_start} and {window_end}")
        return

    table = Table(title=f"{kid}: {window_start} .. {window_end}")
    table.add_column("Date")
    table.add_column("Category")
    table.add_column("Done", justify="center")
    table.add_column("Chore")
    table.add_column("Instance ID", style="dim")
    for occ in sorted(instances, key=lambda o: (o.date, list(Category).index(o.category), o.id)):
        template = engine.get_template(occ.template_id)
        title = template.title if template else "(deleted chore)"
        if occ.skipped:
            title = f"[strike]{title}[/strike]"
        table.add_row(
            occ.date.isoformat(),
            occ.category.value,
            "x" if occ.is_complete else "",
            title,
            occ.id,
        )
    log.console.print(table)


@main.command()
@click.argument("instance_id")
@click.argument("category")
@click.option("--date", "target_date", type=DATE, default=None, help="Target date (must match the instance's date)")
@click.pass_context
def move(ctx: click.Context, instance_id: str, category: str, target_date: dt.datetime | None) -> None:
    """Move an instance to another category on the same date."""
    target = _parse_category(category)
    outcome = _engine(ctx).set_instance_category(instance_id, target, _day(target_date))
    if not outcome:
        log.error(outcome.reason)
        ctx.exit(1)
    log.success(f"{instance_id} -> {target.value}")


@main.command()
@click.argument("instance_ids", nargs=-1, required=True)
@click.option("--undo", is_flag=True, help="Mark incomplete instead")
@click.pass_context
def done(ctx: click.Context, instance_ids: tuple[str, ...], undo: bool) -> None:
    """Mark one or more instances complete."""
    result = asyncio.run(_engine(ctx).batch_set_complete(list(instance_ids), not undo))
    state = "incomplete" if undo else "complete"
    log.success(f"{result.succeeded_count} instance(s) marked {state}")
    if result.failed_count:
        log.error(f"Not found: {', '.join(result.failed_ids)}")
        ctx.exit(1)


# ── swimlanes ────────────────────────────────────────────────────────

@main.group()
def lanes() -> None:
    """Manage a dependent's swimlanes."""


@lanes.command("list")
@click.argument("kid")
@click.pass_context
def lanes_list(ctx: click.Context, kid: str) -> None:
    configs = _engine(ctx).lanes_for(kid)
    if not configs:
        log.info(f"No swimlanes for {kid}; run 'choreboard lanes defaults {kid}'")
        return
    for lane in configs:
        log.console.print(f"{lane.order}. {lane.title} [dim]({lane.id}, {lane.color})[/dim]")


@lanes.command("add")
@click.argument("kid")
@click.argument("title")
@click.option("--color", default="#FFFFFF", show_default=True)
@click.pass_context
def lanes_add(ctx: click.Context, kid: str, title: str, color: str) -> None:
    lane = _engine(ctx).add_lane(kid, title, color)
    log.success(f"Added swimlane {lane.id} at position {lane.order}")


@lanes.command("delete")
@click.argument("kid")
@click.argument("lane_id")
@click.pass_context
def lanes_delete(ctx: click.Context, kid: str, lane_id: str) -> None:
    engine = _engine(ctx)
    if not any(c.id == lane_id for c in engine.lanes_for(kid)):
        log.error(f"Swimlane {lane_id} not found for {kid}")
        ctx.exit(1)
    orphaned = engine.delete_lane(kid, lane_id)
    log.success(f"Deleted swimlane {lane_id}")
    for iid in orphaned:
        log.warn(f"{iid} has no swimlane now")


@lanes.command("defaults")
@click.argument("kid")
@click.pass_context
def lanes_defaults(ctx: click.Context, kid: str) -> None:
    created = _engine(ctx).setup_default_lanes(kid)
    if created:
        log.success(f"Created {len(created)} default swimlanes for {kid}")
    else:
        log.info(f"{kid} already has swimlanes")
