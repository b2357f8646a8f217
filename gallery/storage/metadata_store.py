import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging

from gallery.image_service.models import ImageRecord, MetadataDocument

log = logging.getLogger(__name__)

# -------------------------
# Metadata Store
# -------------------------
class MetadataStore:
    """
        Ordered list of image records backed by a single JSON document
        (`{"images": [...]}`).

        Every operation reads its own copy of the list from the file and
        works only on that copy. Mutations then rewrite the whole document.
        Nothing guards the span between read and write, so two concurrent
        mutations can lose one of the updates (last writer wins).
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        log.info("Initialized metadata store at %s", self.path)

    def read(self) -> List[ImageRecord]:
        """Loads a fresh list from disk, creating the file on first use."""
        if not self.path.exists():
            return self._reset()
        data = json.loads(self.path.read_text(encoding="utf-8") or "null")
        if not isinstance(data, dict) or not isinstance(data.get("images"), list):
            log.warning("Metadata file %s has no image list, resetting it", self.path)
            return self._reset()
        return MetadataDocument.model_validate(data).images

    def write(self, images: List[ImageRecord]):
        document = MetadataDocument(images=images)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(document.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        log.debug("Wrote %d records to %s", len(images), self.path)

    def _reset(self) -> List[ImageRecord]:
        self.write([])
        return []

    @staticmethod
    def _index_of(images: List[ImageRecord], image_id: str) -> int:
        for index, record in enumerate(images):
            if record.id == image_id:
                return index
        return -1

    # Query primitives

    def all(self) -> List[ImageRecord]:
        return self.read()

    def find_index_by_id(self, image_id: str) -> int:
        return self._index_of(self.read(), image_id)

    def find_by_id(self, image_id: str) -> Optional[ImageRecord]:
        images = self.read()
        index = self._index_of(images, image_id)
        return images[index] if index != -1 else None

    # Mutations: read, modify, rewrite the whole file

    def append(self, record: ImageRecord) -> ImageRecord:
        images = self.read()
        images.append(record)
        self.write(images)
        log.debug("Appended metadata %s", record.id)
        return record

    def update(self, image_id: str, patch: Dict[str, Any]) -> Optional[ImageRecord]:
        images = self.read()
        index = self._index_of(images, image_id)
        if index == -1:
            return None
        changes = {k: v for k, v in patch.items() if k != "id"}
        updated = images[index].model_copy(update=changes)
        images[index] = updated
        self.write(images)
        log.debug("Updated metadata %s (%s)", image_id, ", ".join(changes))
        return updated

    def remove(self, image_id: str) -> Optional[ImageRecord]:
        images = self.read()
        index = self._index_of(images, image_id)
        if index == -1:
            return None
        removed = images.pop(index)
        self.write(images)
        log.debug("Removed metadata %s", image_id)
        return removed

    def close(self):
        log.info("Closed metadata store")
