"""Debounced search over the gallery client.

Typing filters the cached latest page immediately. Once input has been
quiet for the debounce delay, a server search runs (for terms of at least
two characters) and its result replaces the client-filtered view.
"""

import logging
import threading
from typing import Callable, Optional

from gallery.client.api import GalleryAPIError, GalleryClient
from gallery.image_service.models import ListImagesResponse

log = logging.getLogger(__name__)

SEARCH_DEBOUNCE_SECONDS = 0.3
MIN_SERVER_SEARCH_LENGTH = 2


def filter_page(page: ListImagesResponse, term: str) -> ListImagesResponse:
    """Case-insensitive name filter over an already fetched page."""
    term_lower = term.lower()
    images = [image for image in page.images if term_lower in image.name.lower()]
    return page.model_copy(update={"images": images, "total": len(images)})


class OptimizedSearch:
    """Search box state: the current term and the results to display."""

    def __init__(
        self,
        client: GalleryClient,
        delay: float = SEARCH_DEBOUNCE_SECONDS,
        min_length: int = MIN_SERVER_SEARCH_LENGTH,
        on_results: Optional[Callable[[Optional[ListImagesResponse]], None]] = None,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self.client = client
        self.delay = delay
        self.min_length = min_length
        self.on_results = on_results
        self._timer_factory = timer_factory
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self.term = ""
        self.results: Optional[ListImagesResponse] = None
        self.is_searching = False
        self.error: Optional[GalleryAPIError] = None

    def _show(self, results: Optional[ListImagesResponse]) -> None:
        # called without holding the lock; the callback may call type() or close()
        if self.on_results is not None:
            self.on_results(results)

    def type(self, term: str) -> Optional[ListImagesResponse]:
        """Handle a keystroke; returns the instant, client-filtered view."""
        with self._lock:
            self.term = term
            self.error = None
            self.is_searching = False
            if self._timer is not None:
                self._timer.cancel()

            latest = self.client.cached_latest()
            view = filter_page(latest, term) if latest is not None and term else latest
            self.results = view

            self._timer = self._timer_factory(self.delay, self._settle, args=(term,))
            self._timer.daemon = True
            self._timer.start()
        self._show(view)
        return view

    def _settle(self, term: str) -> None:
        with self._lock:
            if term != self.term:
                return
            self._timer = None
            if term and len(term) < self.min_length:
                return
            self.is_searching = bool(term)

        try:
            results = self.client.fetch_images(search=term or None)
        except GalleryAPIError as e:
            log.warning("Search for %r failed: %s", term, e)
            with self._lock:
                if term == self.term:
                    self.error = e
                    self.is_searching = False
            return

        with self._lock:
            # a newer keystroke wins over a late response
            if term != self.term:
                return
            self.is_searching = False
            self.results = results
        self._show(results)

    def close(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
