from fastapi import Request
from gallery.storage.blob_store import BlobStore
from gallery.storage.metadata_store import MetadataStore

def get_blob_store(request: Request) -> BlobStore:
    """Dependency provider for BlobStore"""
    return request.app.state.blobs

def get_metadata_store(request: Request) -> MetadataStore:
    """Dependency provider for MetadataStore"""
    return request.app.state.db
