from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional, Tuple
import locale
import logging

from gallery.storage.blob_store import BlobStore, content_type_for
from gallery.storage.metadata_store import MetadataStore
from gallery.image_service.models import ImageRecord, ListImagesResponse, SortKey, SortOrder
from gallery.settings import settings
from gallery.exceptions import APIException, image_not_found

log = logging.getLogger(__name__)

MB = 1024 * 1024
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

@contextmanager
def storage_errors(action: str):
    """Turns disk and metadata failures into a generic internal error; the cause is only logged."""
    try:
        yield
    except (OSError, ValueError) as e:
        log.error("%s failed: %s", action, e, exc_info=True)
        raise APIException.internal() from e

# ------------------------------
# Upload pipeline
# ------------------------------

def validate_upload(contents: Optional[bytes], content_type: Optional[str]) -> None:
    """
        Checks an upload before anything touches the disk. The first failing
        check wins: missing file, non-image MIME type, size ceiling, then the
        allowed format set.
    """
    if contents is None:
        raise APIException.validation("No file provided", code="MissingFile", fields=["file"])

    content_type = content_type or ""
    if not content_type.startswith("image/"):
        raise APIException.validation("File must be an image", code="NotAnImage", fields=["file"])

    size = len(contents)
    max_bytes = settings.max_upload_bytes
    if size > max_bytes:
        raise APIException.validation(
            f"File too large: {size / MB:.2f}MB. Maximum size is {max_bytes / MB:g}MB",
            code="TooLarge",
            fields=["file"],
        )

    allowed = settings.allowed_mime_types
    if content_type not in allowed:
        raise APIException.validation(
            f"Unsupported image format: {content_type}. Allowed formats: {', '.join(allowed)}",
            code="UnsupportedFormat",
            fields=["file"],
        )

def save_image_and_meta(
    blobs: BlobStore,
    db: MetadataStore,
    contents: Optional[bytes],
    filename: Optional[str],
    content_type: Optional[str],
    name: Optional[str] = None,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> ImageRecord:
    """Validates the upload, writes the blob, then appends its metadata record."""
    validate_upload(contents, content_type)

    # A failure after the blob write leaves an orphan blob; no record points to it.
    with storage_errors("Blob write"):
        image_id, stored_name = blobs.save(contents, filename or "")

    image = ImageRecord(
        id=image_id,
        filename=stored_name,
        name=name or filename or stored_name,
        original_name=filename,
        uploaded_at=datetime.now(timezone.utc),
        width=width,
        height=height,
        size=len(contents),
        mime_type=content_type,
    )
    with storage_errors("Metadata append"):
        db.append(image)

    log.info("Saved image %s as %s", image.id, image.filename)
    return image

# ------------------------------
# Queries
# ------------------------------

def _uploaded_at_key(record: ImageRecord) -> datetime:
    uploaded_at = record.uploaded_at or EPOCH
    if uploaded_at.tzinfo is None:
        uploaded_at = uploaded_at.replace(tzinfo=timezone.utc)
    return uploaded_at

def _name_key(record: ImageRecord) -> str:
    return locale.strxfrm(record.name.casefold())

SORT_KEYS = {
    "uploadedAt": _uploaded_at_key,
    "name": _name_key,
}

def fetch_images(
    db: MetadataStore,
    search: Optional[str] = None,
    sort: SortKey = "uploadedAt",
    order: SortOrder = "desc",
    limit: int = 50,
) -> ListImagesResponse:
    """Filters by name substring (case-insensitive), sorts, then truncates to `limit`."""
    with storage_errors("Metadata read"):
        images = db.all()

    if search:
        term = search.lower()
        images = [image for image in images if term in image.name.lower()]

    images = sorted(images, key=SORT_KEYS[sort], reverse=(order == "desc"))[:limit]

    # total counts what is returned, after the limit
    return ListImagesResponse(images=images, total=len(images), search=search or None)

def get_image_meta(db: MetadataStore, image_id: str) -> ImageRecord:
    """Gets one image record."""
    with storage_errors("Metadata read"):
        image = db.find_by_id(image_id)
    if image is None:
        raise image_not_found(image_id)
    return image

def update_image_meta(db: MetadataStore, image_id: str, name: Optional[str] = None) -> ImageRecord:
    """Renames an image. The name is the only mutable field."""
    if not name:
        return get_image_meta(db, image_id)
    with storage_errors("Metadata update"):
        image = db.update(image_id, {"name": name})
    if image is None:
        raise image_not_found(image_id)
    log.info("Renamed image %s", image_id)
    return image

def remove_image(db: MetadataStore, blobs: BlobStore, image_id: str) -> ImageRecord:
    """
        Deletes the blob, then the metadata record. A failed blob delete is
        logged and does not block the metadata cleanup.
    """
    image = get_image_meta(db, image_id)

    try:
        blobs.delete(image.filename)
    except OSError as e:
        log.warning("Blob delete failed for %s: %s", image.filename, e)

    with storage_errors("Metadata remove"):
        removed = db.remove(image_id)
    if removed is None:
        raise image_not_found(image_id)

    log.info("Deleted image %s", image_id)
    return removed

def read_image_file(db: MetadataStore, blobs: BlobStore, image_id: str) -> Tuple[bytes, str]:
    """Returns the blob bytes and the response content type for an image."""
    image = get_image_meta(db, image_id)
    try:
        data = blobs.read(image.filename)
    except FileNotFoundError:
        log.warning("Blob %s missing for image %s", image.filename, image_id)
        raise APIException.not_found("File not found on disk")
    except OSError as e:
        log.error("Blob read failed: %s", e, exc_info=True)
        raise APIException.internal() from e
    return data, content_type_for(image.filename)
