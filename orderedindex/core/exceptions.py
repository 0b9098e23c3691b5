class OrderedIndexError(Exception):
    """Base class for errors raised by the index engine."""
    pass


class DuplicateKeyError(OrderedIndexError, KeyError):
    """Raised when inserting a key that is already present."""

    def __init__(self, key):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"Duplicate key: {self.key!r}"


class NotFoundError(OrderedIndexError, KeyError):
    """Raised when looking up, updating or deleting an absent key."""

    def __init__(self, key):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"Key not found: {self.key!r}"


class NodeOverflowError(OrderedIndexError):
    """Raised when an encoded node does not fit into a single page."""
    pass


class InvariantViolationError(OrderedIndexError, AssertionError):
    """
    Raised when the tree structure is found to be inconsistent.

    This is a defect, not a recoverable condition: the index never tries
    to repair itself.
    """
    pass
