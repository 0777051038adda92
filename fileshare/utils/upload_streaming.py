"""Helpers for streaming uploads to disk.

Uploaded bytes are streamed in fixed-size reads so a chunk or a single-shot
upload never has to fit in memory. Callers decide where the bytes land:
either a temp file that is later moved into place with ``os.replace``, or a
destination opened for exclusive creation.
"""

from __future__ import annotations

import logging
import os
import shutil
import uuid
from typing import BinaryIO, Tuple

from fastapi import UploadFile

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1_048_576  # 1 MiB


async def stream_upload(file: UploadFile, out: BinaryIO, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    """Copy an UploadFile into an open binary file. Returns the byte count."""
    size = 0
    while True:
        chunk = await file.read(chunk_size)
        if not chunk:
            break
        out.write(chunk)
        size += len(chunk)
    return size


async def stream_to_temp(
    target_dir: str,
    file: UploadFile,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    tmp_prefix: str = ".tmp-",
) -> Tuple[str, int]:
    """Stream an UploadFile to a temp file inside ``target_dir``.

    Returns:
        (temp_path, byte_count)

    Notes:
        - The temp file is created inside target_dir so that os.replace() is atomic.
        - On any failure (including cancellation) the temp file is removed.
        - This function does *not* close the UploadFile; callers should close it.
    """
    os.makedirs(target_dir, exist_ok=True)

    tmp_path = os.path.join(target_dir, f"{tmp_prefix}{uuid.uuid4().hex}")
    try:
        with open(tmp_path, "wb") as out:
            size = await stream_upload(file, out, chunk_size=chunk_size)
    except BaseException:
        safe_unlink(tmp_path)
        raise

    return tmp_path, size


def copy_into(src_path: str, out: BinaryIO, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
    with open(src_path, "rb") as src:
        shutil.copyfileobj(src, out, chunk_size)


def safe_unlink(path: str) -> None:
    """Best-effort file removal (no exception if it fails)."""
    try:
        os.remove(path)
    except OSError:
        pass


def safe_rmtree(path: str) -> bool:
    """Best-effort directory removal; failures are logged, never raised."""
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return True
    except OSError as exc:
        logger.warning("Could not remove %s: %s", path, exc)
        return False
    return True
