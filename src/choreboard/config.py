"""Configuration defaults, env vars, and storage keys for CHOREBOARD."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


DEFAULT_DATA_DIR = Path.home() / ".local" / "share" / "choreboard"
DEFAULT_ACTOR = "System"


@dataclass
class Config:
    """Runtime configuration for the engine and the CLI."""

    # Storage
    data_dir: str = ""
    templates_key: str = "choreDefinitions"
    instances_key: str = "choreInstances"
    order_key: str = "kanbanChoreOrders"
    lanes_key_prefix: str = "kanbanColumnConfigs"

    # Behaviour
    actor: str = ""
    autosave: bool = True

    # Misc
    verbose: bool = False

    def __post_init__(self) -> None:
        if not self.data_dir:
            self.data_dir = os.environ.get("CHOREBOARD_DATA_DIR") or str(DEFAULT_DATA_DIR)
        if not self.actor:
            self.actor = os.environ.get("CHOREBOARD_ACTOR") or DEFAULT_ACTOR

    def lanes_key(self, dependent_id: str) -> str:
        """Storage key holding the swimlane list of one dependent."""
        return f"{self.lanes_key_prefix}.{dependent_id}"
