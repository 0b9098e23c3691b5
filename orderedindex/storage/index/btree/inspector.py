from typing import Any, Optional

from orderedindex.core.exceptions import InvariantViolationError
from orderedindex.primitives import PageId
from .node import Node, max_keys, min_keys


class TreeInspector:
    """
    Read-only walker that validates or describes a whole tree.

    Checked invariants:
    ------------------------------------------------------------
    - keys strictly ascending inside every node
    - every key inside the range its ancestors' separators allow
    - non-root nodes hold between ceil(m/2)-1 and m-1 keys
    - internal nodes have exactly one more child than keys
    - all leaves at the recorded height
    - leaf sibling links visit the leaves left to right
    - the entry count matches the recorded size
    ------------------------------------------------------------

    Not latched; run it only while no other thread mutates the tree.
    """

    def __init__(self, tree):
        self._tree = tree
        self._compare = tree.compare

    def check(self) -> None:
        """Raise InvariantViolationError at the first broken invariant."""
        tree = self._tree
        order = tree.order
        leaves: list[Node] = []
        seen: set[PageId] = set()
        entries = 0

        # (page, depth, inclusive lower bound, exclusive upper bound)
        stack: list[tuple[PageId, int, Optional[Any], Optional[Any]]] = [
            (tree.root_page_id, 1, None, None)]

        while stack:
            page_id, depth, low, high = stack.pop()
            if page_id in seen:
                raise InvariantViolationError(f"{page_id} is reachable twice")
            seen.add(page_id)

            node = tree.load_node(page_id)
            node.check_shape()
            is_root = page_id == tree.root_page_id

            if node.num_keys > max_keys(order):
                raise InvariantViolationError(
                    f"{page_id} holds {node.num_keys} keys, maximum is {max_keys(order)}")
            if not is_root and node.num_keys < min_keys(order):
                raise InvariantViolationError(
                    f"{page_id} holds {node.num_keys} keys, minimum is {min_keys(order)}")
            if is_root and not node.is_leaf and node.num_keys == 0:
                raise InvariantViolationError(f"Internal root {page_id} has no keys")

            self._check_keys(node, low, high)

            if node.is_leaf:
                if depth != tree.height:
                    raise InvariantViolationError(
                        f"Leaf {page_id} at depth {depth}, tree height is {tree.height}")
                leaves.append(node)
                entries += node.num_keys
                continue

            bounds = [low] + node.keys + [high]
            # Pushed right to left so leaves are popped in key order
            for index in range(len(node.children) - 1, -1, -1):
                stack.append((node.children[index], depth + 1, bounds[index], bounds[index + 1]))

        for current, following in zip(leaves, leaves[1:]):
            if current.next_leaf != following.page_id:
                raise InvariantViolationError(
                    f"Leaf {current.page_id} links to {current.next_leaf}, "
                    f"expected {following.page_id}")
        if leaves[-1].next_leaf is not None:
            raise InvariantViolationError(
                f"Rightmost leaf {leaves[-1].page_id} links to {leaves[-1].next_leaf}")

        if entries != len(tree):
            raise InvariantViolationError(
                f"Tree holds {entries} entries but records {len(tree)}")

    def _check_keys(self, node: Node, low: Optional[Any], high: Optional[Any]) -> None:
        for previous, current in zip(node.keys, node.keys[1:]):
            if self._compare(previous, current) >= 0:
                raise InvariantViolationError(
                    f"{node.page_id} keys out of order: {previous!r} before {current!r}")
        for key in node.keys:
            if low is not None and self._compare(key, low) < 0:
                raise InvariantViolationError(
                    f"{node.page_id} key {key!r} below separator {low!r}")
            if high is not None and self._compare(key, high) >= 0:
                raise InvariantViolationError(
                    f"{node.page_id} key {key!r} not below separator {high!r}")

    def dump(self, page_id: Optional[PageId] = None) -> dict[str, Any]:
        """Describe the subtree under ``page_id`` (default: root) as nested dicts."""
        node = self._tree.load_node(page_id or self._tree.root_page_id)
        if node.is_leaf:
            return {
                "page": node.page_id.page_number,
                "type": "leaf",
                "keys": list(node.keys),
                "next": None if node.next_leaf is None else node.next_leaf.page_number,
            }
        return {
            "page": node.page_id.page_number,
            "type": "internal",
            "keys": list(node.keys),
            "children": [self.dump(child) for child in node.children],
        }
