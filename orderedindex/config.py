from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

# Size of a page in bytes
DEFAULT_PAGE_SIZE = 4096

# Smallest page a store will accept
MIN_PAGE_SIZE = 64

# Largest encoded key plus encoded value a default-order index must hold.
# The default order is the largest one whose full leaf of such entries
# still fits in a page.
DEFAULT_MAX_ENTRY_SIZE = 128

# Below this a node split cannot leave both halves at minimum occupancy
MIN_ORDER = 3

# The order is stored as an unsigned 16-bit field in the index meta page
MAX_ORDER = 0xFFFF

# On-disk encoding of "no page" (rightmost leaf, empty free list)
NO_PAGE = 0xFFFFFFFF

# Default directory for file backed page stores
DEFAULT_DATA_DIRECTORY = "index_data"


def check_order(order: Any) -> None:
    """Raise ValueError unless ``order`` is a valid B+ tree order."""
    if isinstance(order, bool) or not isinstance(order, int) \
            or not MIN_ORDER <= order <= MAX_ORDER:
        raise ValueError(
            f"Order must be an integer between {MIN_ORDER} and {MAX_ORDER}, got {order!r}")


@dataclass
class IndexConfig:
    """Settings shared by a page store and the index built on it."""
    # None derives the order from page_size and max_entry_size
    order: Optional[int] = None
    page_size: int = DEFAULT_PAGE_SIZE
    max_entry_size: int = DEFAULT_MAX_ENTRY_SIZE
    data_directory: str = DEFAULT_DATA_DIRECTORY
    # Seconds to wait for a page latch, None waits forever
    latch_timeout: Optional[float] = None

    def __post_init__(self):
        if self.order is not None:
            check_order(self.order)
        if not isinstance(self.page_size, int) or self.page_size < MIN_PAGE_SIZE:
            raise ValueError(
                f"Page size must be an integer >= {MIN_PAGE_SIZE}, got {self.page_size!r}")
        if not isinstance(self.max_entry_size, int) or self.max_entry_size < 1:
            raise ValueError(
                f"Max entry size must be a positive integer, got {self.max_entry_size!r}")
        if self.latch_timeout is not None and self.latch_timeout <= 0:
            raise ValueError(
                f"Latch timeout must be positive, got {self.latch_timeout!r}")

    def store_path(self, file_name: str) -> Path:
        """Where a page store file lives; relative names go under data_directory."""
        return Path(self.data_directory) / file_name

    @classmethod
    def from_dict(cls, values: dict[str, Any]) -> 'IndexConfig':
        """Build a config from a mapping, rejecting unknown settings."""
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")
        return cls(**values)
