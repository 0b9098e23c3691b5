class PageStoreError(Exception):
    """Base class for failures reported by a page store."""
    pass


class StoreFullError(PageStoreError):
    """Raised when a page store cannot allocate another page."""
    pass


class InvalidPageError(PageStoreError):
    """Raised when a page id was never allocated or has been freed."""
    pass


class PageSizeError(PageStoreError):
    """Raised when page data does not match the store's page size."""
    pass


class StorageError(PageStoreError):
    """Raised when the underlying file I/O fails."""
    pass


class CorruptionError(PageStoreError):
    """Raised when data corruption is detected"""
    pass
