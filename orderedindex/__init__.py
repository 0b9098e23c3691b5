"""
Page-backed B+ tree ordered index.

Typical use::

    from orderedindex import BPlusTree, InMemoryPageStore

    tree = BPlusTree(InMemoryPageStore(), order=4)
    tree.insert(10, "ten")
    list(tree.range_scan(5, 20))
"""

from .config import IndexConfig
from .core.exceptions import (
    OrderedIndexError,
    DuplicateKeyError,
    NotFoundError,
    NodeOverflowError,
    InvariantViolationError,
)
from .primitives import PageId
from .storage import (
    PageStore,
    InMemoryPageStore,
    FilePageStore,
    PageStoreError,
    StoreFullError,
    InvalidPageError,
    PageSizeError,
    StorageError,
    CorruptionError,
)
from .storage.index.btree import (
    BPlusTree,
    IndexStats,
    Codec,
    IntCodec,
    StringCodec,
    BytesCodec,
    JsonCodec,
)
from .concurrency.latches import LatchManager, LatchMode, LatchTimeoutError

__version__ = "0.1.0"

__all__ = [
    "IndexConfig",
    "OrderedIndexError",
    "DuplicateKeyError",
    "NotFoundError",
    "NodeOverflowError",
    "InvariantViolationError",
    "PageId",
    "PageStore",
    "InMemoryPageStore",
    "FilePageStore",
    "PageStoreError",
    "StoreFullError",
    "InvalidPageError",
    "PageSizeError",
    "StorageError",
    "CorruptionError",
    "BPlusTree",
    "IndexStats",
    "Codec",
    "IntCodec",
    "StringCodec",
    "BytesCodec",
    "JsonCodec",
    "LatchManager",
    "LatchMode",
    "LatchTimeoutError",
]
