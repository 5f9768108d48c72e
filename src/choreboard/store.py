"""Key-value persistence collaborators and tolerant JSON loaders.

The engine persists nothing itself; it reads and writes serialized
collections under caller-chosen keys through any object with
``read(key) -> str | None`` and ``write(key, text)``.
"""

from __future__ import annotations

import hashlib
import json
import re
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol, TypeVar

from choreboard import log
from choreboard.io_utils import read_text, write_text_atomic

T = TypeVar("T")

_SAFE_KEY = re.compile(r"[^A-Za-z0-9._-]+")


class KeyValueStore(Protocol):
    def read(self, key: str) -> str | None: ...

    def write(self, key: str, text: str) -> None: ...


class MemoryStore:
    """In-process store, mainly for tests and embedding."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def read(self, key: str) -> str | None:
        return self.data.get(key)

    def write(self, key: str, text: str) -> None:
        self.data[key] = text


class FileStore:
    """One UTF-8 JSON file per key under *root*."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        """File for *key*; keys that need sanitizing get a digest suffix so they stay distinct."""
        name = _SAFE_KEY.sub("_", key).strip("._") or "_"
        if name != key:
            name = f"{name}-{hashlib.sha1(key.encode('utf-8')).hexdigest()[:8]}"
        return self.root / f"{name}.json"

    def read(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.is_file():
            return None
        return read_text(path)

    def write(self, key: str, text: str) -> None:
        write_text_atomic(self.path_for(key), text)


def _parse(store: KeyValueStore, key: str) -> Any:
    raw = store.read(key)
    if raw is None:
        log.debug(f"No stored data under '{key}'")
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        log.warn(f"Stored data under '{key}' is not valid JSON ({exc}); starting empty")
        return None


def load_list(store: KeyValueStore, key: str, decode: Callable[[dict[str, Any]], T]) -> list[T]:
    """Decode the JSON list under *key*.

    A missing or unparseable key yields an empty list with a warning; a
    single undecodable record is skipped with a warning.
    """
    data = _parse(store, key)
    if data is None:
        return []
    if not isinstance(data, list):
        log.warn(f"Stored data under '{key}' is not a list; starting empty")
        return []
    items: list[T] = []
    for index, record in enumerate(data):
        try:
            items.append(decode(record))
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            log.warn(f"Skipping unreadable record #{index} under '{key}': {exc!r}")
    return items


def load_mapping(store: KeyValueStore, key: str) -> dict[str, dict[str, list[str]]]:
    """Decode the nested ``{dependent: {lane: [ids]}}`` mapping under *key*."""
    data = _parse(store, key)
    if data is None:
        return {}
    if not isinstance(data, dict):
        log.warn(f"Stored data under '{key}' is not a mapping; starting empty")
        return {}
    out: dict[str, dict[str, list[str]]] = {}
    for dependent_id, lanes in data.items():
        if not isinstance(lanes, dict):
            log.warn(f"Skipping malformed order entry for '{dependent_id}' under '{key}'")
            continue
        out[str(dependent_id)] = {
            str(lane_id): [str(i) for i in ids]
            for lane_id, ids in lanes.items()
            if isinstance(ids, list)
        }
    return out


def dump(data: Any) -> str:
    return json.dumps(data, indent=2, sort_keys=False)
