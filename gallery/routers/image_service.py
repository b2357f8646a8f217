from fastapi import APIRouter, Depends, UploadFile, File, Form, Query, Response
from typing import Optional
import logging

from gallery.storage.blob_store import BlobStore
from gallery.storage.metadata_store import MetadataStore
from gallery.dependencies.dependencies import get_blob_store, get_metadata_store
from gallery.image_service.service import (
    save_image_and_meta,
    fetch_images,
    get_image_meta,
    update_image_meta,
    remove_image,
    read_image_file,
)
from gallery.image_service.models import (
    ImageRecord,
    ListImagesResponse,
    UpdateImageRequest,
    DeleteImageResponse,
    SortKey,
    SortOrder,
)

log = logging.getLogger(__name__)

router = APIRouter(
    prefix="/images",
    tags=["image-gallery"]
)

# Blobs never change once written, so clients may cache them indefinitely
FILE_CACHE_CONTROL = "public, max-age=31536000, immutable"

@router.post("", response_model=ImageRecord, status_code=201)
async def upload_image(
    file: Optional[UploadFile] = File(None),
    name: Optional[str] = Form(None),
    width: Optional[int] = Form(None, gt=0),
    height: Optional[int] = Form(None, gt=0),
    blobs: BlobStore = Depends(get_blob_store),
    db: MetadataStore = Depends(get_metadata_store)
):
    """Uploads an image; width and height are hints measured by the client."""
    contents = filename = content_type = None
    if file is not None:
        contents = await file.read()
        filename, content_type = file.filename, file.content_type
        # An empty file input is submitted as a nameless, empty part
        if not filename and not contents:
            contents = None

    return save_image_and_meta(
        blobs=blobs,
        db=db,
        contents=contents,
        filename=filename,
        content_type=content_type,
        name=name,
        width=width,
        height=height,
    )

@router.get("", response_model=ListImagesResponse)
def list_images_handler(
    search: Optional[str] = Query(None),
    sort: SortKey = Query("uploadedAt"),
    order: SortOrder = Query("desc"),
    limit: int = Query(50, ge=1, le=100),
    db: MetadataStore = Depends(get_metadata_store)
):
    """Lists images, optionally filtered by a name substring."""
    return fetch_images(db=db, search=search, sort=sort, order=order, limit=limit)

@router.get("/{image_id}", response_model=ImageRecord)
def get_image(
    image_id: str,
    db: MetadataStore = Depends(get_metadata_store)
):
    """Gets image metadata."""
    return get_image_meta(db, image_id)

@router.put("/{image_id}", response_model=ImageRecord)
def update_image(
    image_id: str,
    body: UpdateImageRequest,
    db: MetadataStore = Depends(get_metadata_store)
):
    """Renames an image. Fields other than `name` are ignored."""
    return update_image_meta(db, image_id, name=body.name)

@router.delete("/{image_id}", response_model=DeleteImageResponse)
def delete_image(
    image_id: str,
    db: MetadataStore = Depends(get_metadata_store),
    blobs: BlobStore = Depends(get_blob_store)
):
    """Deletes an image and its metadata."""
    remove_image(db, blobs, image_id)
    return DeleteImageResponse(message="Image deleted successfully", id=image_id)

@router.get("/{image_id}/file")
def get_image_file(
    image_id: str,
    db: MetadataStore = Depends(get_metadata_store),
    blobs: BlobStore = Depends(get_blob_store)
):
    """Serves the raw image bytes."""
    data, content_type = read_image_file(db, blobs, image_id)
    return Response(
        content=data,
        media_type=content_type,
        headers={
            "Cache-Control": FILE_CACHE_CONTROL,
            "X-Content-Type-Options": "nosniff",
        },
    )
