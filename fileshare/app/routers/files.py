from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import FileResponse
from fastapi.security import HTTPBasicCredentials

from ..adapters.io.path_sandbox import PathSandbox
from ..auth import basic_auth, credentials_valid, require_auth, unauthorized
from ..models.v1.files_models import (
    ChunkAck,
    CompleteUploadRequest,
    FileEntry,
    VisibilityRequest,
    VisibilityResponse,
)
from ..services.listing_service import list_files, resolve_download
from ..services.upload_service import ChunkUploadEngine
from ..services.visibility_service import VisibilityStore

router = APIRouter()


def get_sandbox(request: Request) -> PathSandbox:
    return request.app.state.sandbox


def get_store(request: Request) -> VisibilityStore:
    return request.app.state.visibility


def get_engine(request: Request) -> ChunkUploadEngine:
    return request.app.state.uploads


@router.get("/files", response_model=List[FileEntry], dependencies=[Depends(require_auth)])
def list_endpoint(
    sandbox: PathSandbox = Depends(get_sandbox),
    store: VisibilityStore = Depends(get_store),
):
    return list_files(sandbox, store)


@router.get("/files/download/{path:path}", response_class=FileResponse)
def download_endpoint(
    path: str,
    request: Request,
    credentials: Optional[HTTPBasicCredentials] = Depends(basic_auth),
    sandbox: PathSandbox = Depends(get_sandbox),
    store: VisibilityStore = Depends(get_store),
):
    """Range-capable download. Public files need no credentials.

    Anonymous callers get 401 for anything that is not public, whether or not
    it exists.
    """
    if not credentials_valid(request, credentials) and not store.is_public(path):
        raise unauthorized()

    target = resolve_download(sandbox, path)
    return FileResponse(
        target.absolute,
        media_type="application/octet-stream",
        filename=target.relative.rsplit("/", 1)[-1],
    )


@router.post("/files/upload", response_model=FileEntry, dependencies=[Depends(require_auth)])
async def upload_endpoint(
    file: UploadFile = File(...),
    path: Optional[str] = Form(None),
    engine: ChunkUploadEngine = Depends(get_engine),
):
    """Single-request upload; 409 if the destination already exists."""
    try:
        return await engine.save_single(file, path)
    finally:
        await file.close()


@router.post("/files/upload/chunk", response_model=ChunkAck, dependencies=[Depends(require_auth)])
async def upload_chunk_endpoint(
    chunk: UploadFile = File(...),
    upload_id: str = Form(..., alias="uploadId"),
    file_name: str = Form(..., alias="fileName"),
    chunk_index: int = Form(..., alias="chunkIndex"),
    total_chunks: int = Form(..., alias="totalChunks"),
    path: Optional[str] = Form(None),
    engine: ChunkUploadEngine = Depends(get_engine),
):
    try:
        received = await engine.put_chunk(upload_id, chunk_index, total_chunks, file_name, path, chunk)
    finally:
        await chunk.close()
    return ChunkAck(chunk_index=received)


@router.post("/files/upload/complete", response_model=FileEntry, dependencies=[Depends(require_auth)])
def upload_complete_endpoint(
    req: CompleteUploadRequest,
    engine: ChunkUploadEngine = Depends(get_engine),
):
    """Assemble a chunked upload; 400 on missing chunks, 409 if the destination exists."""
    return engine.complete(req.upload_id, req.file_name, req.path, req.total_chunks)


@router.post("/files/visibility", response_model=VisibilityResponse, dependencies=[Depends(require_auth)])
def visibility_endpoint(
    req: VisibilityRequest,
    sandbox: PathSandbox = Depends(get_sandbox),
    store: VisibilityStore = Depends(get_store),
):
    target = sandbox.resolve(req.relative_path, must_exist=True)
    store.set_visibility(target.relative, req.is_public)
    return VisibilityResponse(relative_path=target.relative, is_public=store.is_public(target.relative))
