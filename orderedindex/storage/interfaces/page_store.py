from abc import ABC, abstractmethod

from orderedindex.primitives import PageId


class PageStore(ABC):
    """
    Abstract interface for fixed-size page storage. 💾

    The index consumes pages only through this interface. A page store
    owns page lifetime: it hands out page ids, returns raw bytes for them,
    accepts new bytes, and takes pages back when they are freed.

    Key Concepts:
    - Every page has the same size (``page_size`` bytes) 📄
    - Page ids are opaque; only the store interprets them 🔑
    - Durability (fsync, write-ahead logging) is the store's business 🔒
    """

    @property
    @abstractmethod
    def page_size(self) -> int:
        """Size in bytes of every page in this store."""
        pass

    @property
    @abstractmethod
    def page_count(self) -> int:
        """Number of pages currently allocated (not freed)."""
        pass

    @abstractmethod
    def allocate(self) -> PageId:
        """
        Allocate a new zero-filled page. ➕

        Returns:
            The id of the new page

        Raises:
            StoreFullError: If the store has no room for another page
        """
        pass

    @abstractmethod
    def read(self, page_id: PageId) -> bytes:
        """
        Read the raw contents of a page. 📖

        Args:
            page_id: The page to read

        Returns:
            Exactly ``page_size`` bytes

        Raises:
            InvalidPageError: If the page is not allocated
            CorruptionError: If the stored data is damaged
        """
        pass

    @abstractmethod
    def write(self, page_id: PageId, data: bytes) -> None:
        """
        Replace the contents of a page. ✍️

        Args:
            page_id: The page to write
            data: Exactly ``page_size`` bytes

        Raises:
            InvalidPageError: If the page is not allocated
            PageSizeError: If data has the wrong length
        """
        pass

    @abstractmethod
    def free(self, page_id: PageId) -> None:
        """
        Return a page to the store. ➖

        Freeing a page that is already free is a no-op.
        """
        pass

    def close(self) -> None:
        """Release any resources held by the store."""
        pass

    def __enter__(self) -> 'PageStore':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
