"""Error taxonomy for the chore engine.

Lookup failures and illegal transitions are reported to the caller as an
:class:`Outcome` by the engine facade; the exceptions below are raised by
the lower-level components and folded into outcomes or batch results at
the facade boundary.
"""

from __future__ import annotations

from dataclasses import dataclass


class ChoreError(Exception):
    """Base class for recoverable engine errors."""


class NotFoundError(ChoreError):
    """A referenced template, occurrence, sub-task or lane does not exist."""

    def __init__(self, kind: str, item_id: str) -> None:
        super().__init__(f"{kind} not found: {item_id}")
        self.kind = kind
        self.item_id = item_id


class InvalidTemplateError(ChoreError):
    """A template violates one of its hard invariants."""


class ScopeRequiredError(ChoreError):
    """A recurring occurrence was edited without choosing instance or series."""


@dataclass(frozen=True)
class Outcome:
    """Result of a single non-batch operation.

    ``reason`` is a human-readable explanation when ``ok`` is false.
    """

    ok: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def accepted(cls) -> "Outcome":
        return cls(True)

    @classmethod
    def rejected(cls, reason: str) -> "Outcome":
        return cls(False, reason)


class InvalidValueError(ChoreError):
    """A field edit carries a value the field cannot hold."""
