from .exceptions import (
    PageStoreError,
    StoreFullError,
    InvalidPageError,
    PageSizeError,
    StorageError,
    CorruptionError,
)
from .interfaces import PageStore
from .memory import InMemoryPageStore
from .disk import FilePageStore

__all__ = [
    "PageStore",
    "InMemoryPageStore",
    "FilePageStore",
    "PageStoreError",
    "StoreFullError",
    "InvalidPageError",
    "PageSizeError",
    "StorageError",
    "CorruptionError",
]
