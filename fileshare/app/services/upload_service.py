from __future__ import annotations

import logging
import os
import re
from contextlib import contextmanager
from typing import BinaryIO, Iterator, List, Optional

from fastapi import UploadFile

from ..adapters.io.path_sandbox import PathSandbox, SandboxedPath
from ..exceptions import ConflictError, InvalidInputError, NotFoundError, StorageError
from ..models.v1.files_models import FileEntry
from .listing_service import build_entry
from .visibility_service import VisibilityStore
from fileshare.utils.upload_streaming import (
    copy_into,
    safe_rmtree,
    safe_unlink,
    stream_to_temp,
    stream_upload,
)

logger = logging.getLogger(__name__)

UPLOAD_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def chunk_filename(chunk_index: int) -> str:
    """Staging file name for a 0-based chunk index (names are 1-based)."""
    return f"chunk-{chunk_index + 1:06d}.part"


class ChunkUploadEngine:
    """Receives uploads and commits them under the root.

    Chunked uploads live in ``<staging_root>/<uploadId>/`` until ``complete``
    concatenates them, in index order, into a destination opened with
    exclusive create. A destination is either fully written or absent: any
    failure while writing removes it before the error propagates.

    Staging directories of uploads that are never completed are left in place.
    """

    def __init__(self, sandbox: PathSandbox, store: VisibilityStore, staging_root: str) -> None:
        self._sandbox = sandbox
        self._store = store
        self._staging = PathSandbox(staging_root)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    @staticmethod
    def validate_upload_id(upload_id: Optional[str]) -> str:
        if not isinstance(upload_id, str) or not UPLOAD_ID_RE.match(upload_id):
            raise InvalidInputError("Invalid uploadId.")
        return upload_id

    @staticmethod
    def validate_total_chunks(total_chunks: int) -> None:
        if total_chunks < 1:
            raise InvalidInputError("totalChunks must be at least 1.")

    def destination(self, file_name: Optional[str], path: Optional[str] = None) -> SandboxedPath:
        """Where ``file_name`` lands, optionally inside the ``path`` subfolder."""
        if file_name is None or not file_name.strip():
            raise InvalidInputError("File name is required.")
        if "/" in file_name or "\\" in file_name:
            raise InvalidInputError("Invalid file name.")

        raw = f"{path}/{file_name}" if path and path.strip() else file_name
        target = self._sandbox.resolve(raw, must_exist=False)
        if self._sandbox.is_root(target.absolute):
            raise InvalidInputError("Invalid path.")
        return target

    def staging_dir(self, upload_id: str) -> str:
        return self._staging.resolve(self.validate_upload_id(upload_id), must_exist=False).absolute

    # ------------------------------------------------------------------
    # Chunked upload
    # ------------------------------------------------------------------
    async def put_chunk(
        self,
        upload_id: str,
        chunk_index: int,
        total_chunks: int,
        file_name: str,
        path: Optional[str],
        chunk: UploadFile,
    ) -> int:
        """Store one chunk. Re-sending an index replaces the earlier bytes."""
        staging = self.staging_dir(upload_id)
        self.destination(file_name, path)
        self.validate_total_chunks(total_chunks)
        if not 0 <= chunk_index < total_chunks:
            raise InvalidInputError(f"chunkIndex must be within [0, {total_chunks}).")

        try:
            tmp_path, size = await stream_to_temp(staging, chunk)
        except OSError as exc:
            raise StorageError(f"Could not store chunk {chunk_index}: {exc}") from exc

        try:
            os.replace(tmp_path, os.path.join(staging, chunk_filename(chunk_index)))
        except OSError as exc:
            safe_unlink(tmp_path)
            raise StorageError(f"Could not store chunk {chunk_index}: {exc}") from exc

        logger.debug("Upload %s: stored chunk %d/%d (%d bytes)", upload_id, chunk_index + 1, total_chunks, size)
        return chunk_index

    def complete(
        self,
        upload_id: str,
        file_name: str,
        path: Optional[str],
        total_chunks: int,
    ) -> FileEntry:
        """Assemble all chunks of ``upload_id`` into the destination file."""
        staging = self.staging_dir(upload_id)
        target = self.destination(file_name, path)
        self.validate_total_chunks(total_chunks)

        if not os.path.isdir(staging):
            raise NotFoundError("Upload not found.")

        chunk_paths: List[str] = []
        for index in range(total_chunks):
            chunk_path = os.path.join(staging, chunk_filename(index))
            if not os.path.isfile(chunk_path):
                raise InvalidInputError(f"Missing chunk {index}.")
            chunk_paths.append(chunk_path)

        out = self._open_destination(target)
        with self._rollback_on_failure(target):
            with out:
                self._store.set_visibility(target.relative, False)
                for chunk_path in chunk_paths:
                    copy_into(chunk_path, out)

        if not safe_rmtree(staging):
            logger.warning("Upload %s committed; staging directory left behind", upload_id)

        logger.info("Upload %s assembled into %s (%d chunks)", upload_id, target.relative, total_chunks)
        return self._entry(target)

    # ------------------------------------------------------------------
    # Single-shot upload
    # ------------------------------------------------------------------
    async def save_single(self, file: UploadFile, path: Optional[str] = None) -> FileEntry:
        """Stream one uploaded file straight to its destination."""
        file_name = (file.filename or "").replace("\\", "/").rsplit("/", 1)[-1]
        target = self.destination(file_name, path)

        out = self._open_destination(target)
        with self._rollback_on_failure(target):
            with out:
                self._store.set_visibility(target.relative, False)
                await stream_upload(file, out)

        logger.info("Uploaded %s", target.relative)
        return self._entry(target)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _open_destination(self, target: SandboxedPath) -> BinaryIO:
        if os.path.lexists(target.absolute):
            raise ConflictError(f"File already exists: {target.relative}")

        parent = os.path.dirname(target.absolute)
        try:
            os.makedirs(parent, exist_ok=True)
        except FileExistsError as exc:
            raise InvalidInputError("Destination folder is not a directory.") from exc
        except OSError as exc:
            raise StorageError(f"Could not create folder for {target.relative}: {exc}") from exc

        # The folder may have been swapped for a symlink since resolution.
        if not self._sandbox.contains(os.path.realpath(parent)):
            raise InvalidInputError("Invalid path.")

        try:
            return open(target.absolute, "xb")
        except FileExistsError as exc:
            raise ConflictError(f"File already exists: {target.relative}") from exc
        except OSError as exc:
            raise StorageError(f"Could not create {target.relative}: {exc}") from exc

    @contextmanager
    def _rollback_on_failure(self, target: SandboxedPath) -> Iterator[None]:
        try:
            yield
        except BaseException as exc:
            safe_unlink(target.absolute)
            logger.warning("Removed partial file %s after %s", target.relative, type(exc).__name__)
            if isinstance(exc, OSError):
                raise StorageError(f"Could not write {target.relative}: {exc}") from exc
            raise

    def _entry(self, target: SandboxedPath) -> FileEntry:
        entry = build_entry(target, self._store)
        if entry is None:
            raise StorageError(f"Uploaded file disappeared: {target.relative}")
        return entry
