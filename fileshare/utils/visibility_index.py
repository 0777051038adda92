"""On-disk document holding the set of publicly downloadable files.

Format::

    {"publicFiles": ["docs/a.pdf", "b.txt"]}

The list is written sorted. Writes go to a temp file that is then moved over
the canonical path, so readers only ever see a complete document.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Iterable, List

logger = logging.getLogger(__name__)

PUBLIC_FILES_KEY = "publicFiles"


def load_public_entries(path: str) -> List[object]:
    """Load the raw ``publicFiles`` entries (best-effort).

    A missing, unreadable or malformed document yields an empty list. The
    entries themselves are not validated here; callers normalize each one.
    """
    if not os.path.exists(path):
        return []

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as exc:
        # ValueError covers JSONDecodeError and bad encodings.
        logger.warning("Ignoring unreadable visibility document %s: %s", path, exc)
        return []

    if not isinstance(data, dict):
        return []
    entries = data.get(PUBLIC_FILES_KEY)
    if not isinstance(entries, list):
        return []
    return entries


def save_public_entries(path: str, entries: Iterable[str]) -> None:
    """Atomically write the document to disk."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

    tmp_path = f"{path}.tmp"
    data = {PUBLIC_FILES_KEY: sorted(entries)}

    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
        f.flush()
        os.fsync(f.fileno())

    os.replace(tmp_path, path)
