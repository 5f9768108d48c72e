"""Swimlane configuration: per-dependent named lanes with a dense 0..N-1 order."""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable

from choreboard import log
from choreboard.chores.model import Clock, SwimlaneConfig, now_iso
from choreboard.errors import NotFoundError

DEFAULT_LANES: tuple[tuple[str, str], ...] = (
    ("To Do", "#FFFFFF"),
    ("In Progress", "#FFFFE0"),
    ("Done", "#90EE90"),
)

LaneLoader = Callable[[str], list[SwimlaneConfig]]


def _new_lane_id() -> str:
    return f"swim_{uuid.uuid4().hex[:12]}"


class LaneManager:
    """CRUD and reordering over swimlanes, scoped by dependent.

    Lanes of a dependent are loaded lazily through *loader* the first time
    they are touched. For every dependent the ``order`` values always form
    a contiguous permutation of ``0..N-1``.
    """

    def __init__(
        self,
        loader: LaneLoader | None = None,
        id_factory: Callable[[], str] = _new_lane_id,
        clock: Clock = now_iso,
    ) -> None:
        self._loader = loader
        self._id_factory = id_factory
        self._clock = clock
        self._lanes: dict[str, list[SwimlaneConfig]] = {}

    def _for(self, dependent_id: str) -> list[SwimlaneConfig]:
        if dependent_id not in self._lanes:
            loaded = self._loader(dependent_id) if self._loader else []
            loaded.sort(key=lambda c: c.order)
            self._renumber(loaded)
            self._lanes[dependent_id] = loaded
        return self._lanes[dependent_id]

    @staticmethod
    def _renumber(lanes: list[SwimlaneConfig]) -> None:
        for index, lane in enumerate(lanes):
            lane.order = index

    def _find(self, dependent_id: str, lane_id: str) -> SwimlaneConfig:
        for lane in self._for(dependent_id):
            if lane.id == lane_id:
                return lane
        raise NotFoundError("swimlane", lane_id)

    # ── queries ──────────────────────────────────────────────────

    def lanes(self, dependent_id: str) -> list[SwimlaneConfig]:
        return list(self._for(dependent_id))

    def loaded_dependents(self) -> list[str]:
        return sorted(self._lanes)

    def reset(self) -> None:
        """Drop cached lanes so the next access reloads them."""
        self._lanes.clear()

    # ── CRUD ─────────────────────────────────────────────────────

    def add_lane(self, dependent_id: str, title: str, color: str = "#FFFFFF") -> SwimlaneConfig:
        lanes = self._for(dependent_id)
        now = self._clock()
        lane = SwimlaneConfig(
            id=self._id_factory(),
            dependent_id=dependent_id,
            title=title,
            order=len(lanes),
            color=color,
            created_at=now,
            updated_at=now,
        )
        lanes.append(lane)
        log.debug(f"Lane '{title}' added for {dependent_id} at order {lane.order}")
        return lane

    def update_lane(self, config: SwimlaneConfig) -> SwimlaneConfig:
        """Replace title and color; order is left to :meth:`reorder_lanes`."""
        lane = self._find(config.dependent_id, config.id)
        lane.title = config.title
        lane.color = config.color
        lane.updated_at = self._clock()
        return lane

    def delete_lane(self, dependent_id: str, lane_id: str) -> SwimlaneConfig:
        lanes = self._for(dependent_id)
        lane = self._find(dependent_id, lane_id)
        lanes.remove(lane)
        for other in lanes:
            if other.order > lane.order:
                other.order -= 1
        log.debug(f"Lane '{lane.title}' deleted for {dependent_id}")
        return lane

    def reorder_lanes(self, dependent_id: str, ordered: Iterable[SwimlaneConfig | str]) -> list[SwimlaneConfig]:
        """Give each lane the index of its position in *ordered*.

        Lanes missing from *ordered* keep their relative order after the
        listed ones; unknown ids are ignored.
        """
        lanes = self._for(dependent_id)
        by_id = {lane.id: lane for lane in lanes}
        result: list[SwimlaneConfig] = []
        for item in ordered:
            lane_id = item if isinstance(item, str) else item.id
            lane = by_id.pop(lane_id, None)
            if lane is None:
                log.warn(f"Ignoring unknown swimlane {lane_id} while reordering {dependent_id}")
                continue
            result.append(lane)
        result.extend(lane for lane in lanes if lane.id in by_id)
        self._renumber(result)
        lanes[:] = result
        return list(result)

    def setup_default_lanes(self, dependent_id: str) -> list[SwimlaneConfig]:
        """Create To Do / In Progress / Done when the dependent has no lanes."""
        if self._for(dependent_id):
            return []
        return [self.add_lane(dependent_id, title, color) for title, color in DEFAULT_LANES]
