import os
import threading
from pathlib import Path
from dataclasses import dataclass

from orderedindex.config import DEFAULT_PAGE_SIZE
from orderedindex.storage.exceptions import StorageError, PageSizeError


@dataclass
class DiskManagerStats:
    pages_read: int = 0
    pages_written: int = 0
    bytes_read: int = 0
    bytes_written: int = 0


class DiskManager:
    """
    Low-level disk I/O for fixed-size pages.

    This class handles the actual reading/writing of bytes to disk
    with proper error handling. It knows nothing about what a page holds.
    """

    def __init__(self, file_path: str, page_size: int = DEFAULT_PAGE_SIZE):
        self.file_path = Path(file_path)
        self.page_size = page_size
        self.file_path.parent.mkdir(parents=True, exist_ok=True)

        self._file_lock = threading.RLock()
        self.stats = DiskManagerStats()

    def read_page(self, page_number: int) -> bytes:
        """
        Read a single page from disk.

        Args:
            page_number: Which page to read (0-based)

        Returns:
            Raw page data as bytes, zero padded if the file is shorter

        Raises:
            StorageError: If I/O fails
        """
        file_offset = page_number * self.page_size

        with self._file_lock:
            try:
                with self._open('rb') as f:
                    f.seek(file_offset)
                    raw_data = f.read(self.page_size)
            except (IOError, OSError) as e:
                raise StorageError(
                    f"Failed to read page {page_number} from {self.file_path}: {e}")

            # Handle partial reads (file shorter than expected)
            if len(raw_data) < self.page_size:
                raw_data += b'\x00' * (self.page_size - len(raw_data))

            self.stats.pages_read += 1
            self.stats.bytes_read += len(raw_data)
            return raw_data

    def write_page(self, page_number: int, data: bytes) -> None:
        """
        Write a single page to disk with durability guarantees.

        This method ensures that data is actually written to persistent storage,
        not just the OS buffer cache.
        """
        if len(data) != self.page_size:
            raise PageSizeError(
                f"Page data must be exactly {self.page_size} bytes, got {len(data)}")

        file_offset = page_number * self.page_size

        with self._file_lock:
            try:
                with self._open('r+b', create_if_missing=True) as f:
                    f.seek(file_offset)
                    f.write(data)

                    # Force data to disk
                    f.flush()
                    os.fsync(f.fileno())
            except (IOError, OSError) as e:
                raise StorageError(
                    f"Failed to write page {page_number} to {self.file_path}: {e}")

            self.stats.pages_written += 1
            self.stats.bytes_written += len(data)

    def exists(self) -> bool:
        return self.file_path.exists() and self.get_file_size() > 0

    def get_file_size(self) -> int:
        """Get the size of the page file in bytes"""
        try:
            return self.file_path.stat().st_size
        except FileNotFoundError:
            return 0

    def get_num_pages(self) -> int:
        return (self.get_file_size() + self.page_size - 1) // self.page_size

    def _open(self, mode: str, create_if_missing: bool = False):
        """Get a file handle with proper error handling"""
        if create_if_missing and not self.file_path.exists():
            self.file_path.touch()

        try:
            return open(self.file_path, mode)
        except FileNotFoundError:
            raise StorageError(f"Page file not found: {self.file_path}")
