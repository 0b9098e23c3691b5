from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from orderedindex.core.exceptions import InvariantViolationError
from orderedindex.primitives import PageId

Comparator = Callable[[Any, Any], int]


def natural_compare(a: Any, b: Any) -> int:
    """Three-way comparison using the keys' own ordering."""
    if a < b:
        return -1
    if b < a:
        return 1
    return 0


def min_keys(order: int) -> int:
    """Fewest keys a non-root node may hold: ceil(m/2) - 1."""
    return (order + 1) // 2 - 1


def max_keys(order: int) -> int:
    """Most keys any node may hold once an operation completes."""
    return order - 1


def upper_bound(keys: list, key: Any, compare: Comparator) -> int:
    """Return the smallest index i such that key < keys[i], or len(keys)."""
    lo, hi = 0, len(keys)
    while lo < hi:
        mid = (lo + hi) // 2
        if compare(key, keys[mid]) < 0:
            hi = mid
        else:
            lo = mid + 1
    return lo


def lower_bound(keys: list, key: Any, compare: Comparator) -> int:
    """Return the smallest index i such that keys[i] >= key, or len(keys)."""
    lo, hi = 0, len(keys)
    while lo < hi:
        mid = (lo + hi) // 2
        if compare(keys[mid], key) < 0:
            lo = mid + 1
        else:
            hi = mid
    return lo


class NodeType(Enum):
    LEAF = 1
    INTERNAL = 2


@dataclass
class Node:
    """
    A B+ tree node as it lives in one page.

    Both node kinds share this one class and are told apart by ``node_type``:
    leaves use ``keys``, ``values`` and ``next_leaf``; internal nodes use
    ``keys`` and ``children``. The unused fields stay empty.
    """
    page_id: PageId
    node_type: NodeType
    keys: list = field(default_factory=list)
    values: list = field(default_factory=list)
    children: list[PageId] = field(default_factory=list)
    next_leaf: Optional[PageId] = None

    @classmethod
    def new_leaf(cls, page_id: PageId) -> 'Node':
        return cls(page_id, NodeType.LEAF)

    @classmethod
    def new_internal(cls, page_id: PageId, keys: list, children: list[PageId]) -> 'Node':
        return cls(page_id, NodeType.INTERNAL, keys=keys, children=children)

    @property
    def is_leaf(self) -> bool:
        return self.node_type is NodeType.LEAF

    @property
    def num_keys(self) -> int:
        return len(self.keys)

    def child_index_for(self, key: Any, compare: Comparator) -> int:
        """Index of the child whose subtree would hold ``key``."""
        return upper_bound(self.keys, key, compare)

    def find(self, key: Any, compare: Comparator) -> int:
        """Position of ``key`` in a leaf, or -1 if absent."""
        index = lower_bound(self.keys, key, compare)
        if index < len(self.keys) and compare(self.keys[index], key) == 0:
            return index
        return -1

    def check_shape(self) -> None:
        """Fail fast when the payload does not match the node kind."""
        if self.is_leaf:
            if self.children:
                raise InvariantViolationError(
                    f"Leaf {self.page_id} has child references")
            if len(self.values) != len(self.keys):
                raise InvariantViolationError(
                    f"Leaf {self.page_id} has {len(self.keys)} keys "
                    f"but {len(self.values)} values")
        else:
            if self.values or self.next_leaf is not None:
                raise InvariantViolationError(
                    f"Internal node {self.page_id} carries leaf data")
            if len(self.children) != len(self.keys) + 1:
                raise InvariantViolationError(
                    f"Internal node {self.page_id} has {len(self.keys)} keys "
                    f"but {len(self.children)} children")

    def __str__(self) -> str:
        kind = "leaf" if self.is_leaf else "internal"
        return f"Node({self.page_id}, {kind}, keys={self.keys})"
