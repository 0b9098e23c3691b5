import heapq
import logging
import threading
from typing import Optional

from orderedindex.config import DEFAULT_PAGE_SIZE, MIN_PAGE_SIZE
from orderedindex.primitives import PageId
from orderedindex.storage.exceptions import (
    InvalidPageError, PageSizeError, StoreFullError,
)
from orderedindex.storage.interfaces import PageStore

logger = logging.getLogger(__name__)


class InMemoryPageStore(PageStore):
    """
    Page store that keeps every page in a dictionary.

    Freed page numbers are recycled lowest first, so a sequence of
    allocations after frees is deterministic.
    """

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE, max_pages: Optional[int] = None):
        if page_size < MIN_PAGE_SIZE:
            raise ValueError(
                f"Page size must be at least {MIN_PAGE_SIZE}, got {page_size}")
        if max_pages is not None and max_pages <= 0:
            raise ValueError(f"max_pages must be positive, got {max_pages}")

        self._page_size = page_size
        self._max_pages = max_pages
        self._pages: dict[int, bytes] = {}
        self._free_numbers: list[int] = []
        self._next_number = 0
        self._lock = threading.Lock()

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def page_count(self) -> int:
        return len(self._pages)

    def allocate(self) -> PageId:
        with self._lock:
            if self._max_pages is not None and len(self._pages) >= self._max_pages:
                raise StoreFullError(
                    f"Store is full ({self._max_pages} pages)")

            if self._free_numbers:
                number = heapq.heappop(self._free_numbers)
            else:
                number = self._next_number
                self._next_number += 1

            self._pages[number] = bytes(self._page_size)
            logger.debug("Allocated in-memory page %d", number)
            return PageId(number)

    def read(self, page_id: PageId) -> bytes:
        try:
            return self._pages[page_id.page_number]
        except KeyError:
            raise InvalidPageError(f"{page_id} is not allocated") from None

    def write(self, page_id: PageId, data: bytes) -> None:
        if len(data) != self._page_size:
            raise PageSizeError(
                f"Page data must be exactly {self._page_size} bytes, got {len(data)}")
        with self._lock:
            if page_id.page_number not in self._pages:
                raise InvalidPageError(f"{page_id} is not allocated")
            self._pages[page_id.page_number] = bytes(data)

    def free(self, page_id: PageId) -> None:
        with self._lock:
            if self._pages.pop(page_id.page_number, None) is None:
                return
            heapq.heappush(self._free_numbers, page_id.page_number)
            logger.debug("Freed in-memory page %d", page_id.page_number)

    def is_allocated(self, page_id: PageId) -> bool:
        return page_id.page_number in self._pages
