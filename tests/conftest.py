import io

import pytest
from fastapi import UploadFile
from fastapi.testclient import TestClient

from fileshare.app.adapters.io.environment import load_settings
from fileshare.app.adapters.io.path_sandbox import PathSandbox
from fileshare.app.main import create_app
from fileshare.app.services.upload_service import ChunkUploadEngine
from fileshare.app.services.visibility_service import VisibilityStore

USERNAME = "alice"
PASSWORD = "s3cret"


def make_upload(data: bytes, filename: str = "blob.part") -> UploadFile:
    return UploadFile(file=io.BytesIO(data), filename=filename)


@pytest.fixture
def root(tmp_path):
    r = tmp_path / "files"
    r.mkdir()
    return r


@pytest.fixture
def settings(root, tmp_path):
    return load_settings(
        file_root=str(root),
        username=USERNAME,
        password=PASSWORD,
        static_dir=str(tmp_path / "no-static"),
        cors_origins=[],
    )


@pytest.fixture
def sandbox(settings):
    return PathSandbox(settings.file_root)


@pytest.fixture
def store(sandbox, settings):
    return VisibilityStore(sandbox, settings.visibility_path)


@pytest.fixture
def engine(sandbox, store, settings):
    return ChunkUploadEngine(sandbox, store, settings.staging_root)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def anon_client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        c.auth = (USERNAME, PASSWORD)
        yield c
