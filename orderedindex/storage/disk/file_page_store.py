import logging
import struct
import threading
from pathlib import Path
from typing import Optional

from orderedindex.config import DEFAULT_PAGE_SIZE, MIN_PAGE_SIZE, NO_PAGE
from orderedindex.primitives import PageId
from orderedindex.storage.exceptions import (
    CorruptionError, InvalidPageError, PageSizeError, StoreFullError,
)
from orderedindex.storage.interfaces import PageStore
from .disk_manager import DiskManager, DiskManagerStats

logger = logging.getLogger(__name__)


class FilePageStore(PageStore):
    """
    Page store backed by a single file.

    File layout:
    ------------------------------------------------------------
    page 0      store header
                [magic "BPPS"][page_size][page_count][free_head]
    page 1..n   data pages, or free pages
                [marker "FREE"][next_free]
    ------------------------------------------------------------

    The header's page count covers every page in the file, header and free
    pages included; the ``page_count`` property reports only live pages.
    Freed pages are chained through their first bytes, so the free list
    survives a reopen without any extra bookkeeping page.
    """

    MAGIC = b"BPPS"
    FREE_MARKER = b"FREE"
    HEADER_PAGE = 0

    _HEADER = struct.Struct('!4sIII')
    _FREE_PAGE = struct.Struct('!4sI')

    def __init__(self, file_path: str, page_size: int = DEFAULT_PAGE_SIZE,
                 max_pages: Optional[int] = None):
        if page_size < MIN_PAGE_SIZE:
            raise ValueError(
                f"Page size must be at least {MIN_PAGE_SIZE}, got {page_size}")

        self.file_path = Path(file_path)
        self._max_pages = max_pages
        self._lock = threading.RLock()
        self._disk = DiskManager(str(self.file_path), page_size)

        if self._disk.exists():
            self._load_header(page_size)
            self._free_pages = self._walk_free_list()
            logger.info("Opened page store %s (%d pages, %d free)",
                        self.file_path, self._file_pages, len(self._free_pages))
        else:
            self._file_pages = 1
            self._free_head = NO_PAGE
            self._free_pages: set[int] = set()
            self._write_header()
            logger.info("Created page store %s", self.file_path)

    @property
    def page_size(self) -> int:
        return self._disk.page_size

    @property
    def page_count(self) -> int:
        return self._file_pages - 1 - len(self._free_pages)

    @property
    def stats(self) -> DiskManagerStats:
        return self._disk.stats

    def allocate(self) -> PageId:
        with self._lock:
            if self._max_pages is not None and self.page_count >= self._max_pages:
                raise StoreFullError(f"Store is full ({self._max_pages} pages)")

            if self._free_head != NO_PAGE:
                number = self._free_head
                marker, next_free = self._FREE_PAGE.unpack_from(
                    self._disk.read_page(number))
                if marker != self.FREE_MARKER:
                    raise CorruptionError(
                        f"Free list entry {number} is not a free page")
                self._free_head = next_free
                self._free_pages.discard(number)
            else:
                if self._file_pages >= NO_PAGE:
                    raise StoreFullError("Page numbers exhausted")
                number = self._file_pages
                self._file_pages += 1

            self._disk.write_page(number, bytes(self.page_size))
            self._write_header()
            logger.debug("Allocated page %d in %s", number, self.file_path)
            return PageId(number)

    def read(self, page_id: PageId) -> bytes:
        with self._lock:
            self._check_allocated(page_id)
            return self._disk.read_page(page_id.page_number)

    def write(self, page_id: PageId, data: bytes) -> None:
        if len(data) != self.page_size:
            raise PageSizeError(
                f"Page data must be exactly {self.page_size} bytes, got {len(data)}")
        with self._lock:
            self._check_allocated(page_id)
            self._disk.write_page(page_id.page_number, data)

    def free(self, page_id: PageId) -> None:
        with self._lock:
            number = page_id.page_number
            if number == self.HEADER_PAGE or number >= self._file_pages or number in self._free_pages:
                return

            body = self._FREE_PAGE.pack(self.FREE_MARKER, self._free_head)
            self._disk.write_page(number, body + bytes(self.page_size - len(body)))
            self._free_head = number
            self._free_pages.add(number)
            self._write_header()
            logger.debug("Freed page %d in %s", number, self.file_path)

    def _check_allocated(self, page_id: PageId) -> None:
        number = page_id.page_number
        if number == self.HEADER_PAGE or number >= self._file_pages or number in self._free_pages:
            raise InvalidPageError(f"{page_id} is not allocated in {self.file_path}")

    def _write_header(self) -> None:
        header = self._HEADER.pack(self.MAGIC, self.page_size, self._file_pages, self._free_head)
        self._disk.write_page(self.HEADER_PAGE, header + bytes(self.page_size - len(header)))

    def _load_header(self, page_size: int) -> None:
        # The header is always read with the requested page size; a mismatch
        # shows up in the stored page_size field.
        magic, stored_size, file_pages, free_head = self._HEADER.unpack_from(
            self._disk.read_page(self.HEADER_PAGE))

        if magic != self.MAGIC:
            raise CorruptionError(f"{self.file_path} is not a page store file")
        if stored_size != page_size:
            raise CorruptionError(
                f"{self.file_path} uses {stored_size} byte pages, not {page_size}")
        if file_pages < 1:
            raise CorruptionError(f"{self.file_path} has an invalid page count")

        self._file_pages = file_pages
        self._free_head = free_head

    def _walk_free_list(self) -> set[int]:
        free_pages: set[int] = set()
        number = self._free_head
        while number != NO_PAGE:
            if number in free_pages or number >= self._file_pages or number == self.HEADER_PAGE:
                raise CorruptionError(
                    f"Free list of {self.file_path} is broken at page {number}")
            marker, next_free = self._FREE_PAGE.unpack_from(self._disk.read_page(number))
            if marker != self.FREE_MARKER:
                raise CorruptionError(
                    f"Free list entry {number} is not a free page")
            free_pages.add(number)
            number = next_free
        return free_pages
