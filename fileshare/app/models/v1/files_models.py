"""API models for the file listing, upload and visibility endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Snake-case in Python, camelCase on the wire (both accepted on input)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileEntry(_CamelModel):
    """One visible file under the root. Recomputed on every listing."""

    name: str
    size: int
    last_modified_utc: datetime
    relative_path: str
    is_public: bool = False


class ChunkAck(_CamelModel):
    ok: bool = True
    chunk_index: int


class CompleteUploadRequest(_CamelModel):
    upload_id: str
    file_name: str
    path: Optional[str] = None
    total_chunks: int


class VisibilityRequest(_CamelModel):
    relative_path: str
    is_public: bool


class VisibilityResponse(_CamelModel):
    relative_path: str
    is_public: bool
