from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import List, Optional

from ..adapters.io.path_sandbox import PathSandbox, SandboxedPath
from ..models.v1.files_models import FileEntry
from .visibility_service import VisibilityStore


def build_entry(target: SandboxedPath, store: VisibilityStore) -> Optional[FileEntry]:
    """FileEntry for a sandboxed file, or None if it vanished meanwhile."""
    try:
        st = os.stat(target.absolute)
    except OSError:
        return None

    return FileEntry(
        name=target.relative.rsplit("/", 1)[-1],
        size=st.st_size,
        last_modified_utc=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
        relative_path=target.relative,
        is_public=store.is_public(target.relative),
    )


def list_files(sandbox: PathSandbox, store: VisibilityStore) -> List[FileEntry]:
    """Catalog of every visible file, ordered case-insensitively by relative path."""
    if not os.path.isdir(sandbox.root):
        return []

    entries: List[FileEntry] = []
    for target in sandbox.iter_visible_files():
        entry = build_entry(target, store)
        if entry is not None:
            entries.append(entry)

    entries.sort(key=lambda e: (e.relative_path.lower(), e.relative_path))
    return entries


def resolve_download(sandbox: PathSandbox, path: str) -> SandboxedPath:
    """Existing, visible file for ``path`` (raises InvalidInputError / NotFoundError)."""
    return sandbox.resolve(path, must_exist=True)
