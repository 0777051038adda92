"""Path normalization and containment for user-provided relative paths.

Every path-bearing operation goes through ``PathSandbox.resolve``:
  - listing records are produced by ``PathSandbox.iter_visible_files``
  - downloads and visibility changes use ``must_exist=True``
  - upload destinations and staging directories use ``must_exist=False``

A path is never opened unless it has been proven to live under the root.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Iterator, List, Optional

from ...exceptions import InvalidInputError, NotFoundError
from .environment import is_case_insensitive_fs

logger = logging.getLogger(__name__)

# Windows FILE_ATTRIBUTE_HIDDEN; st_file_attributes only exists there.
FILE_ATTRIBUTE_HIDDEN = 0x2


@dataclass(frozen=True)
class SandboxedPath:
    """An absolute path proven to be inside the root, plus its public identity."""

    absolute: str
    relative: str  # forward slashes, as shown to clients and stored for visibility


def split_segments(raw: Optional[str]) -> List[str]:
    """Split a caller path into segments, rejecting degenerate/traversal input."""
    if raw is None or not raw.strip():
        raise InvalidInputError("Path is required.")
    if "\x00" in raw:
        raise InvalidInputError("Invalid path.")

    segments = [s for s in raw.replace("\\", "/").split("/") if s]
    if not segments or any(s in (".", "..") for s in segments):
        raise InvalidInputError("Invalid path.")
    return segments


def is_hidden_name(name: str) -> bool:
    return name.startswith(".")


def has_hidden_attribute(path: str) -> bool:
    try:
        st = os.stat(path)
    except OSError:
        return False
    return bool(getattr(st, "st_file_attributes", 0) & FILE_ATTRIBUTE_HIDDEN)


def is_hidden(path: str) -> bool:
    return is_hidden_name(os.path.basename(path)) or has_hidden_attribute(path)


class PathSandbox:
    def __init__(self, root: str, case_insensitive: Optional[bool] = None) -> None:
        self.root = os.path.realpath(os.path.abspath(root))
        if case_insensitive is None:
            case_insensitive = is_case_insensitive_fs()
        self._case_insensitive = case_insensitive

    def _key(self, path: str) -> str:
        path = path.rstrip(os.sep)
        return path.lower() if self._case_insensitive else path

    def is_root(self, path: str) -> bool:
        return self._key(path) == self._key(self.root)

    def contains(self, candidate: str) -> bool:
        """True if ``candidate`` (already canonical) is the root or nested under it."""
        root = self._key(self.root)
        cand = self._key(candidate)
        return cand == root or cand.startswith(root + os.sep)

    def normalize(self, raw: Optional[str]) -> str:
        """Canonical relative identity of ``raw`` without touching the filesystem."""
        segments = split_segments(raw)
        if any(is_hidden_name(s) for s in segments):
            raise InvalidInputError("Hidden paths are not allowed.")
        return "/".join(segments)

    def resolve(self, raw: Optional[str], *, must_exist: bool) -> SandboxedPath:
        """Map ``raw`` onto the root or raise.

        With ``must_exist`` the target must be an existing regular file that is
        neither hidden itself nor below a hidden directory; hidden or missing
        targets are reported as not found. Without it only the shape and the
        containment of the path are checked.
        """
        segments = split_segments(raw)
        if any(is_hidden_name(s) for s in segments):
            if must_exist:
                raise NotFoundError("File not found.")
            raise InvalidInputError("Hidden paths are not allowed.")

        candidate = os.path.realpath(os.path.join(self.root, *segments))
        if not self.contains(candidate):
            raise InvalidInputError("Invalid path.")

        if must_exist and not (os.path.isfile(candidate) and self.is_exposed(candidate)):
            raise NotFoundError("File not found.")

        return SandboxedPath(absolute=candidate, relative="/".join(segments))

    def is_exposed(self, path: str) -> bool:
        """True unless ``path`` or a directory between it and the root is hidden."""
        if not self.contains(path):
            return False
        current = path
        while not self.is_root(current):
            if is_hidden(current):
                return False
            parent = os.path.dirname(current)
            if parent == current:
                break
            current = parent
        return True

    def relative_path(self, absolute: str) -> str:
        return os.path.relpath(absolute, self.root).replace(os.sep, "/")

    def iter_visible_files(self, directory: Optional[str] = None) -> Iterator[SandboxedPath]:
        """Depth-first walk yielding every visible regular file under ``directory``.

        Hidden entries, hidden directories and everything beneath them are
        skipped. A directory that cannot be read is pruned with its subtree.
        Symlinked directories are not descended into; symlinked files are
        yielded under their own name only when their target is exposed.
        """
        if directory is None:
            directory = self.root

        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except OSError as exc:
            logger.debug("Skipping unreadable directory %s: %s", directory, exc)
            return

        subdirs: List[str] = []
        for entry in entries:
            if is_hidden_name(entry.name):
                continue
            try:
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append(entry.path)
                    continue
                if not entry.is_file():
                    continue
            except OSError:
                continue

            target = os.path.realpath(entry.path)
            if not self.is_exposed(target):
                continue
            yield SandboxedPath(absolute=target, relative=self.relative_path(entry.path))

        for sub in subdirs:
            if has_hidden_attribute(sub):
                continue
            yield from self.iter_visible_files(sub)
