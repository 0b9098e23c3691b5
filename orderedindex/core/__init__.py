from .exceptions import (
    OrderedIndexError,
    DuplicateKeyError,
    NotFoundError,
    NodeOverflowError,
    InvariantViolationError,
)

__all__ = [
    "OrderedIndexError",
    "DuplicateKeyError",
    "NotFoundError",
    "NodeOverflowError",
    "InvariantViolationError",
]
