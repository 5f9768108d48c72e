"""Text file I/O with consistent encoding (UTF-8) and atomic replace."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any

PathLike = Path | str


def read_text(path: PathLike, errors: str = "strict", **kwargs: Any) -> str:
    """Read path as text with UTF-8 encoding. Forwards extra kwargs to Path.read_text."""
    p = path if isinstance(path, Path) else Path(path)
    return p.read_text(encoding="utf-8", errors=errors, **kwargs)


def write_text_atomic(path: PathLike, text: str) -> None:
    """Write *text* next to *path* and rename over it.

    Readers see either the old file or the complete new one, never a
    truncated write.
    """
    p = path if isinstance(path, Path) else Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{p.name}.", suffix=".tmp", dir=p.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp, p)
    except OSError:
        Path(tmp).unlink(missing_ok=True)
        raise
