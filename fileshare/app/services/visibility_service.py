from __future__ import annotations

import logging
from threading import Lock
from typing import Optional, Set

from ..adapters.io.path_sandbox import PathSandbox
from ..exceptions import FileshareError, StorageError
from fileshare.utils.visibility_index import load_public_entries, save_public_entries

logger = logging.getLogger(__name__)


class VisibilityStore:
    """Set of relative paths that may be downloaded without credentials.

    The in-memory set is authoritative; the JSON document at ``document_path``
    mirrors it after every successful change. All reads and writes take the
    same lock.
    """

    def __init__(self, sandbox: PathSandbox, document_path: str) -> None:
        self._sandbox = sandbox
        self._document_path = document_path
        self._lock = Lock()
        self._public: Set[str] = set()
        self.load()

    def _normalize(self, path: Optional[str]) -> Optional[str]:
        try:
            return self._sandbox.normalize(path)
        except FileshareError:
            return None

    def load(self) -> None:
        """(Re)load the persisted document. Malformed entries are skipped."""
        entries = load_public_entries(self._document_path)
        public: Set[str] = set()
        for raw in entries:
            if not isinstance(raw, str):
                logger.warning("Skipping non-string visibility entry: %r", raw)
                continue
            norm = self._normalize(raw)
            if norm is None:
                logger.warning("Skipping invalid visibility entry: %r", raw)
                continue
            public.add(norm)
        with self._lock:
            self._public = public

    def is_public(self, path: Optional[str]) -> bool:
        norm = self._normalize(path)
        if norm is None:
            return False
        with self._lock:
            return norm in self._public

    def set_visibility(self, path: Optional[str], is_public: bool) -> bool:
        """Apply a flag. Returns True if the set changed (and was persisted).

        Invalid paths are ignored; callers resolve the target before calling.
        If the document cannot be written the in-memory change is undone.
        """
        norm = self._normalize(path)
        if norm is None:
            return False

        with self._lock:
            if (norm in self._public) == is_public:
                return False

            if is_public:
                self._public.add(norm)
            else:
                self._public.discard(norm)

            try:
                save_public_entries(self._document_path, self._public)
            except OSError as exc:
                if is_public:
                    self._public.discard(norm)
                else:
                    self._public.add(norm)
                raise StorageError(f"Could not persist visibility: {exc}") from exc

        logger.info("Visibility of %s set to %s", norm, "public" if is_public else "private")
        return True
