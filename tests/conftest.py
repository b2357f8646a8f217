import pytest
from fastapi.testclient import TestClient

from gallery.main import app
from gallery.settings import settings
from gallery.storage.blob_store import BlobStore
from gallery.storage.metadata_store import MetadataStore


@pytest.fixture(scope="function")
def storage_paths(tmp_path, monkeypatch):
    """Points the app's blob directory and metadata file into a temp dir."""
    monkeypatch.setattr(settings, "storage_dir", str(tmp_path / "downloads"))
    monkeypatch.setattr(settings, "metadata_file", str(tmp_path / "metadata.json"))
    return tmp_path


@pytest.fixture(scope="function")
def blob_store(tmp_path):
    return BlobStore(tmp_path / "downloads")


@pytest.fixture(scope="function")
def metadata_store(tmp_path):
    return MetadataStore(tmp_path / "metadata.json")


@pytest.fixture(scope="function")
def test_client(storage_paths):
    # lifespan opens the stores from the patched settings
    with TestClient(app) as client:
        yield client
