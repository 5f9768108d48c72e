"""Board filters: tags and reward status."""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from choreboard.chores.model import Occurrence, Template


class RewardStatus(str, Enum):
    ANY = "any"
    REWARDED = "rewarded"
    NOT_REWARDED = "not_rewarded"


@dataclass
class BoardFilter:
    tags: Collection[str] = field(default_factory=tuple)
    reward_status: RewardStatus = RewardStatus.ANY

    def matches(self, occ: Occurrence, template: Template | None) -> bool:
        if self.tags:
            if template is None or not any(tag in self.tags for tag in template.tags):
                return False
        if self.reward_status != RewardStatus.ANY:
            rewarded = bool(template and (template.reward_amount or 0) > 0)
            if rewarded != (self.reward_status == RewardStatus.REWARDED):
                return False
        return True

    def apply(self, occurrences: Iterable[Occurrence], templates: Mapping[str, Template]) -> list[Occurrence]:
        return [o for o in occurrences if self.matches(o, templates.get(o.template_id))]


def all_tags(templates: Iterable[Template]) -> list[str]:
    """Sorted union of every template's tags."""
    tags: set[str] = set()
    for t in templates:
        tags.update(t.tags)
    return sorted(tags)
