"""Client-side query cache with optimistic updates.

List responses are keyed by their query signature, single records by id.
Mutations never wait for a refetch: the cache is patched with the server's
answer right away and the affected entries are marked for revalidation, so
the next read goes back to the server.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, NamedTuple, Optional, TypeVar

from cachetools import LRUCache

from gallery.image_service.models import ImageRecord, ListImagesResponse

LATEST = "latest"
PAGE_LIMIT = 50
DEFAULT_STALE_SECONDS = 60.0
DEFAULT_MAX_ENTRIES = 100

T = TypeVar("T")


class ListKey(NamedTuple):
    search: str = LATEST
    sort: str = "uploadedAt"
    order: str = "desc"
    limit: int = PAGE_LIMIT

    @classmethod
    def for_query(
        cls,
        search: Optional[str] = None,
        sort: str = "uploadedAt",
        order: str = "desc",
        limit: int = PAGE_LIMIT,
    ) -> "ListKey":
        return cls(search or LATEST, sort, order, limit)


LATEST_KEY = ListKey()


@dataclass
class CacheEntry(Generic[T]):
    data: T
    updated_at: float
    invalidated: bool = False


class QueryCache:
    """Keyed cache of list pages and single image records.

    An entry is stale once it is older than `stale_seconds` or has been
    invalidated. Stale entries keep their data (it is still useful as a
    placeholder) but `fetch_*` refetches them.
    """

    def __init__(
        self,
        stale_seconds: float = DEFAULT_STALE_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.stale_seconds = stale_seconds
        self._clock = clock
        self._lists: LRUCache = LRUCache(maxsize=max_entries)
        self._records: LRUCache = LRUCache(maxsize=max_entries)
        # the debounced search writes from a timer thread
        self._lock = threading.RLock()

    def is_stale(self, entry: CacheEntry) -> bool:
        return entry.invalidated or self._clock() - entry.updated_at >= self.stale_seconds

    # Lists

    def peek_list(self, key: ListKey) -> Optional[ListImagesResponse]:
        """Cached page for `key`, stale or not."""
        with self._lock:
            entry = self._lists.get(key)
            return entry.data if entry else None

    def set_list(self, key: ListKey, page: ListImagesResponse) -> None:
        with self._lock:
            self._lists[key] = CacheEntry(page, self._clock())

    def fetch_list(self, key: ListKey, fetcher: Callable[[], ListImagesResponse]) -> ListImagesResponse:
        with self._lock:
            entry = self._lists.get(key)
            if entry is not None and not self.is_stale(entry):
                return entry.data
        page = fetcher()
        self.set_list(key, page)
        return page

    # Single records

    def peek_record(self, image_id: str) -> Optional[ImageRecord]:
        with self._lock:
            entry = self._records.get(image_id)
            return entry.data if entry else None

    def set_record(self, record: ImageRecord) -> None:
        with self._lock:
            self._records[record.id] = CacheEntry(record, self._clock())

    def fetch_record(self, image_id: str, fetcher: Callable[[], ImageRecord]) -> ImageRecord:
        with self._lock:
            entry = self._records.get(image_id)
            if entry is not None and not self.is_stale(entry):
                return entry.data
        record = fetcher()
        self.set_record(record)
        return record

    # Invalidation

    def invalidate_lists(self) -> None:
        with self._lock:
            for entry in self._lists.values():
                entry.invalidated = True

    def invalidate_all(self) -> None:
        with self._lock:
            self.invalidate_lists()
            for entry in self._records.values():
                entry.invalidated = True

    # Mutation results

    def apply_upload(self, record: ImageRecord, limit: int = PAGE_LIMIT) -> ListImagesResponse:
        """Puts a new image at the top of the latest page, then invalidates everything."""
        with self._lock:
            latest = self.peek_list(LATEST_KEY)
            if latest is None:
                page = ListImagesResponse(images=[record], total=1, search=None)
            else:
                page = latest.model_copy(update={
                    "images": [record, *latest.images][:limit],
                    "total": latest.total + 1,
                })
            self.set_list(LATEST_KEY, page)
            self.invalidate_all()
            return page

    def apply_delete(self, image_id: str) -> None:
        with self._lock:
            self._records.pop(image_id, None)
            self.invalidate_lists()

    def apply_update(self, record: ImageRecord) -> None:
        with self._lock:
            self.set_record(record)
            self.invalidate_lists()
