"""Environment detection and filesystem roots for the backend I/O boundary."""

from __future__ import annotations

import os
import sys
from typing import List

from pydantic import BaseModel


STAGING_DIRNAME = ".uploads"
VISIBILITY_FILENAME = ".fileshare-visibility.json"


def is_case_insensitive_fs() -> bool:
    """Best-effort detection for platforms whose default filesystem folds case."""
    return sys.platform.startswith("win") or sys.platform == "darwin"


def get_file_root() -> str:
    """Directory tree exposed by the service (Docker: /data/files)."""
    return os.getenv("FILESHARE_ROOT", "/data/files")


def get_username() -> str:
    return os.getenv("FILESHARE_USERNAME", "scoob")


def get_password() -> str:
    return os.getenv("FILESHARE_PASSWORD", "choom")


def get_static_dir() -> str:
    return os.getenv("FILESHARE_STATIC_DIR", "frontend_dist")


def get_cors_origins() -> List[str]:
    return [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]


class FileshareSettings(BaseModel):
    """Resolved runtime configuration for one application instance."""

    file_root: str
    username: str
    password: str
    static_dir: str = "frontend_dist"
    cors_origins: List[str] = []

    @property
    def staging_root(self) -> str:
        return os.path.join(self.file_root, STAGING_DIRNAME)

    @property
    def visibility_path(self) -> str:
        return os.path.join(self.file_root, VISIBILITY_FILENAME)


def load_settings(**overrides) -> FileshareSettings:
    """Build settings from the environment, with keyword overrides winning.

    The file root is made absolute and canonical (symlinks resolved) here, once,
    so every later containment check compares against the same string.
    """
    values = {
        "file_root": get_file_root(),
        "username": get_username(),
        "password": get_password(),
        "static_dir": get_static_dir(),
        "cors_origins": get_cors_origins(),
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    values["file_root"] = os.path.realpath(os.path.abspath(str(values["file_root"])))
    return FileshareSettings(**values)
