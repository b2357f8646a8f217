"""HTTP client for the gallery API with a client-side query cache.

Reads go through the cache; successful mutations update it optimistically.
Works with any `httpx.Client`, including FastAPI's `TestClient`.
"""

import io
import logging
import mimetypes
from typing import Optional, Tuple

import httpx
from PIL import Image, UnidentifiedImageError

from gallery.client.cache import LATEST_KEY, PAGE_LIMIT, ListKey, QueryCache
from gallery.image_service.models import ImageRecord, ListImagesResponse

log = logging.getLogger(__name__)

API_BASE = "/images"


class GalleryAPIError(Exception):
    """Raised when the gallery API answers with an error status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


def measure_image(data: bytes) -> Optional[Tuple[int, int]]:
    """Return (width, height) for raster image data, None if Pillow cannot read it."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, OSError):
        return None


class GalleryClient:
    """Client for the image gallery API.

    Args:
        http: An `httpx.Client` whose base URL points at the API root
            (e.g. 'http://localhost:8000/api/v1')
        cache: Query cache to use; a fresh one is created if omitted
        api_base: Path of the images collection relative to the base URL
    """

    def __init__(
        self,
        http: httpx.Client,
        cache: Optional[QueryCache] = None,
        api_base: str = API_BASE,
    ):
        self.http = http
        self.cache = cache if cache is not None else QueryCache()
        self.api_base = api_base.rstrip("/")

    def _url(self, image_id: Optional[str] = None, suffix: str = "") -> str:
        if image_id is None:
            return self.api_base
        return f"{self.api_base}/{image_id}{suffix}"

    @staticmethod
    def _check(response: httpx.Response, action: str) -> httpx.Response:
        if response.is_success:
            return response
        message = f"Failed to {action}: {response.reason_phrase}"
        try:
            message = response.json().get("error") or message
        except (ValueError, AttributeError):
            pass
        raise GalleryAPIError(response.status_code, message)

    # Reads

    def _get_images(self, search: Optional[str], sort: str, order: str, limit: int) -> ListImagesResponse:
        params = {"sort": sort, "order": order, "limit": limit}
        if search:
            params["search"] = search
        response = self._check(self.http.get(self._url(), params=params), "fetch images")
        return ListImagesResponse.model_validate(response.json())

    def fetch_images(
        self,
        search: Optional[str] = None,
        sort: str = "uploadedAt",
        order: str = "desc",
        limit: int = PAGE_LIMIT,
    ) -> ListImagesResponse:
        key = ListKey.for_query(search, sort, order, limit)
        return self.cache.fetch_list(key, lambda: self._get_images(search, sort, order, limit))

    def fetch_latest(self) -> ListImagesResponse:
        return self.fetch_images()

    def cached_latest(self) -> Optional[ListImagesResponse]:
        """Latest page as currently cached, without touching the network."""
        return self.cache.peek_list(LATEST_KEY)

    def fetch_image(self, image_id: str) -> ImageRecord:
        def get() -> ImageRecord:
            response = self._check(self.http.get(self._url(image_id)), "fetch image")
            return ImageRecord.model_validate(response.json())

        return self.cache.fetch_record(image_id, get)

    def fetch_image_file(self, image_id: str) -> bytes:
        response = self._check(self.http.get(self._url(image_id, "/file")), "fetch image file")
        return response.content

    # Mutations

    def upload_image(
        self,
        data: bytes,
        filename: str,
        content_type: Optional[str] = None,
        name: Optional[str] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ) -> ImageRecord:
        """Upload an image.

        Dimensions are measured locally when not given; SVG and other data
        Pillow cannot read is sent without them.
        """
        if content_type is None:
            content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        if width is None or height is None:
            size = measure_image(data)
            if size is not None:
                width, height = size

        form = {}
        if name:
            form["name"] = name
        if width:
            form["width"] = str(width)
        if height:
            form["height"] = str(height)

        response = self._check(
            self.http.post(self._url(), data=form, files={"file": (filename, data, content_type)}),
            "upload image",
        )
        record = ImageRecord.model_validate(response.json())
        self.cache.apply_upload(record)
        log.debug("Uploaded %s as %s", filename, record.id)
        return record

    def update_image(self, image_id: str, name: Optional[str] = None) -> ImageRecord:
        body = {"name": name} if name is not None else {}
        response = self._check(self.http.put(self._url(image_id), json=body), "update image")
        record = ImageRecord.model_validate(response.json())
        self.cache.apply_update(record)
        return record

    def delete_image(self, image_id: str) -> None:
        self._check(self.http.delete(self._url(image_id)), "delete image")
        self.cache.apply_delete(image_id)
