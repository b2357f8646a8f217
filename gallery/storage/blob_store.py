import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Tuple, Union
import logging

from gallery.image_service.models import new_image_id

log = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "image/jpeg"

# Response content type by extension; not sniffed from the bytes.
CONTENT_TYPES = {
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}

def content_type_for(filename: str) -> str:
    return CONTENT_TYPES.get(Path(filename).suffix.lower(), DEFAULT_CONTENT_TYPE)

# -------------------------
# Blob Store
# -------------------------
class BlobStore:
    """Raw image bytes in one flat directory, one file per image named `<id><ext>`."""

    def __init__(self, storage_dir: Union[str, Path]):
        self.storage_dir = Path(storage_dir)
        log.info("Initialized blob store at %s", self.storage_dir)

    def ensure_dir(self):
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, filename: str) -> Path:
        # Only bare names inside the storage directory are addressable
        if not filename or filename in (".", "..") or Path(filename).name != filename:
            raise FileNotFoundError(f"Invalid blob name: {filename!r}")
        return self.storage_dir / filename

    def save(self, data: bytes, original_name: str) -> Tuple[str, str]:
        """Writes the bytes under a fresh id and returns (id, filename)."""
        self.ensure_dir()
        image_id = new_image_id()
        filename = f"{image_id}{os.path.splitext(original_name or '')[1]}"
        self._path(filename).write_bytes(data)
        log.debug("Wrote %d bytes to %s", len(data), filename)
        return image_id, filename

    def read(self, filename: str) -> bytes:
        return self._path(filename).read_bytes()

    def delete(self, filename: str):
        """Removes the blob; a blob that is already gone counts as deleted."""
        try:
            self._path(filename).unlink()
            log.debug("Deleted blob %s", filename)
        except FileNotFoundError:
            log.debug("Blob %s already absent", filename)

    def exists(self, filename: str) -> bool:
        try:
            return self._path(filename).is_file()
        except FileNotFoundError:
            return False

    def stat(self, filename: str) -> Tuple[int, datetime]:
        """Returns (size in bytes, last modification time in UTC)."""
        st = self._path(filename).stat()
        return st.st_size, datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)

    def close(self):
        log.info("Closed blob store")
