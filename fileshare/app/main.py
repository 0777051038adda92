from fastapi import FastAPI, Request
import time, os
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from typing import Optional

import logging

from .adapters.io.environment import FileshareSettings, load_settings
from .adapters.io.path_sandbox import PathSandbox
from .exceptions import FileshareError
from .services.upload_service import ChunkUploadEngine
from .services.visibility_service import VisibilityStore
from .startup import register_startup

logger = logging.getLogger(__name__)


class _SkipHealthAccessLogs(logging.Filter):
    """Hide uvicorn access logs for /healthz to keep probe polls out of the console."""
    def filter(self, record: logging.LogRecord) -> bool:
        try:
            msg = record.getMessage()
        except Exception:
            return True
        return "/healthz" not in msg

# Attach the filter once
_access_logger = logging.getLogger("uvicorn.access")
# Avoid duplicate filters on reload
if not any(isinstance(f, _SkipHealthAccessLogs) for f in getattr(_access_logger, "filters", [])):
    _access_logger.addFilter(_SkipHealthAccessLogs())

# Routers
from .routers.files import router as files_router
from .routers.health import router as health_router


def create_app(settings: Optional[FileshareSettings] = None) -> FastAPI:
    """Build the API around one file root.

    The sandbox, visibility store and upload engine are created once here and
    shared by every request through ``app.state``.
    """
    if settings is None:
        settings = load_settings()

    app = FastAPI(
        title="Fileshare API",
        version="1.0.0",
        description="Authenticated browsing, download and chunked upload for one directory tree",
    )

    sandbox = PathSandbox(settings.file_root)
    visibility = VisibilityStore(sandbox, settings.visibility_path)
    app.state.settings = settings
    app.state.sandbox = sandbox
    app.state.visibility = visibility
    app.state.uploads = ChunkUploadEngine(sandbox, visibility, settings.staging_root)

    # CORS for dev (Vite @ 5173) + optional env override
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ] + settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Robust request logging (won't crash on exceptions)
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        t0 = time.time()
        try:
            return await call_next(request)
        except Exception as e:
            dt = (time.time() - t0) * 1000
            logger.error("%s %s -> ERR in %.1fms: %s: %s", request.method, request.url.path, dt, type(e).__name__, e)
            raise

    @app.exception_handler(FileshareError)
    async def _fileshare_error(request: Request, exc: FileshareError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    # Routers
    app.include_router(health_router, prefix="/api", tags=["health"])
    app.include_router(files_router,  prefix="/api", tags=["files"])

    register_startup(app)

    if os.path.isdir(settings.static_dir):
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")
    else:
        # Dev mode: no static mount; the frontend runs on Vite.
        pass

    return app


app = create_app()
