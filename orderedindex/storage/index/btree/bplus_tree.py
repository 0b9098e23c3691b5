import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional

from orderedindex.config import DEFAULT_MAX_ENTRY_SIZE, IndexConfig, check_order
from orderedindex.concurrency.latches import LatchCoupler, LatchManager, LatchMode
from orderedindex.core.exceptions import (
    DuplicateKeyError, NodeOverflowError, NotFoundError,
)
from orderedindex.primitives import PageId
from orderedindex.storage.exceptions import PageStoreError
from orderedindex.storage.interfaces import PageStore

from .codecs import Codec, IntCodec, JsonCodec
from .inspector import TreeInspector
from .meta import IndexMeta
from .node import Comparator, Node, lower_bound, max_keys, min_keys, natural_compare
from .node_codec import NodeCodec

logger = logging.getLogger(__name__)

# (ancestor node, index of the child that was followed)
PathEntry = tuple[Node, int]


@dataclass
class IndexStats:
    page_reads: int = 0
    page_writes: int = 0
    pages_allocated: int = 0
    pages_freed: int = 0
    splits: int = 0
    merges: int = 0
    borrows: int = 0
    root_splits: int = 0
    root_collapses: int = 0


class BPlusTree:
    """
    B+ tree ordered index stored in pages.

    This class manages a B+ tree on top of a PageStore, providing:
    - Point lookup, update, insert and delete of unique keys
    - Lazy range scans that follow leaf sibling links
    - Node splits and merges that keep the tree height balanced
    - Optional page latching for use from several threads

    Every value lives in a leaf. Internal nodes hold separator keys: keys in
    child i are smaller than keys[i], keys in child i + 1 are >= keys[i].

    The index metadata (root page, height, entry count) lives in its own
    page, so an index can be reopened from a persistent store through
    ``meta_page_id``. One BPlusTree object should own an index at a time.

    Without an explicit order, a new index takes the largest order whose
    full nodes fit in a page when each encoded key plus encoded value is at
    most DEFAULT_MAX_ENTRY_SIZE (128) bytes; 31 for 4096 byte pages. Larger
    entries still work while the node holding them fits, otherwise the
    operation raises NodeOverflowError and changes nothing.
    """

    def __init__(self, store: PageStore, order: Optional[int] = None,
                 key_codec: Optional[Codec] = None, value_codec: Optional[Codec] = None,
                 compare: Optional[Comparator] = None,
                 meta_page_id: Optional[PageId] = None,
                 latches: Optional[LatchManager] = None):
        if order is not None:
            check_order(order)

        self._store = store
        self._compare = compare or natural_compare
        self._codec = NodeCodec(store.page_size,
                                key_codec or IntCodec(),
                                value_codec or JsonCodec())
        self._latches = latches
        self.stats = IndexStats()

        if meta_page_id is None:
            self._create(order or NodeCodec.order_for(store.page_size, DEFAULT_MAX_ENTRY_SIZE))
        else:
            self._open(meta_page_id, order)

    @classmethod
    def from_config(cls, store: PageStore, config: IndexConfig, **kwargs) -> 'BPlusTree':
        """Create or reopen an index using the order and latch settings of a config."""
        if config.page_size != store.page_size:
            raise ValueError(
                f"Config page size {config.page_size} does not match "
                f"store page size {store.page_size}")
        if config.latch_timeout is not None and kwargs.get("latches") is None:
            kwargs["latches"] = LatchManager(timeout=config.latch_timeout)
        order = config.order
        if order is None and kwargs.get("meta_page_id") is None:
            order = NodeCodec.order_for(store.page_size, config.max_entry_size)
        return cls(store, order=order, **kwargs)

    def _create(self, order: int) -> None:
        self._meta_page_id = self._allocate()
        root = Node.new_leaf(self._allocate())
        self._meta = IndexMeta(order=order, root_page_id=root.page_id, height=1, size=0)
        self._write_node(root)
        self._write_meta()
        logger.info("Created index (order %d) with meta %s", order, self._meta_page_id)

    def _open(self, meta_page_id: PageId, order: Optional[int]) -> None:
        self._meta_page_id = meta_page_id
        self._meta = IndexMeta.deserialize(meta_page_id, self._store.read(meta_page_id))
        self.stats.page_reads += 1
        if order is not None and order != self._meta.order:
            raise ValueError(
                f"Index was created with order {self._meta.order}, not {order}")
        logger.info("Opened index (order %d, %d entries) from %s",
                    self._meta.order, self._meta.size, meta_page_id)

    @property
    def order(self) -> int:
        return self._meta.order

    @property
    def height(self) -> int:
        return self._meta.height

    @property
    def root_page_id(self) -> PageId:
        return self._meta.root_page_id

    @property
    def meta_page_id(self) -> PageId:
        return self._meta_page_id

    @property
    def compare(self) -> Comparator:
        return self._compare

    def __len__(self) -> int:
        return self._meta.size

    def __contains__(self, key: Any) -> bool:
        try:
            self.search(key)
        except NotFoundError:
            return False
        return True

    def __iter__(self) -> Iterator[Any]:
        return self.keys()

    # Lookups

    def search(self, key: Any) -> Any:
        """
        Return the value stored under ``key``.

        Raises:
            NotFoundError: If the key is not in the index
        """
        with self._operation(LatchMode.SHARED) as latched:
            leaf, _ = self._descend(latched, self._towards(key), release_meta=True)
            index = leaf.find(key, self._compare)
            if index < 0:
                raise NotFoundError(key)
            return leaf.values[index]

    def get(self, key: Any, default: Any = None) -> Any:
        try:
            return self.search(key)
        except NotFoundError:
            return default

    def range_scan(self, low: Any = None, high: Any = None) -> Iterator[tuple[Any, Any]]:
        """
        Lazily yield (key, value) pairs with low <= key <= high in key order.

        Either bound may be None to leave that end open. The scan descends
        the tree once and then follows the leaf sibling links. Abandoning the
        iterator is safe; a scan is not resumable across a mutation.
        """
        if low is not None and high is not None and self._compare(low, high) > 0:
            return

        # The meta latch stays held so no writer can restructure the leaf
        # chain under the scan.
        with self._operation(LatchMode.SHARED) as latched:
            if low is None:
                leaf, _ = self._descend(latched, lambda node: 0, release_meta=False)
                index = 0
            else:
                leaf, _ = self._descend(latched, self._towards(low), release_meta=False)
                index = lower_bound(leaf.keys, low, self._compare)

            while True:
                while index < leaf.num_keys:
                    key = leaf.keys[index]
                    if high is not None and self._compare(key, high) > 0:
                        return
                    yield key, leaf.values[index]
                    index += 1

                if leaf.next_leaf is None:
                    return
                latched.step(leaf.next_leaf, leaf.page_id)
                leaf = self.load_node(leaf.next_leaf)
                index = 0

    def items(self) -> Iterator[tuple[Any, Any]]:
        return self.range_scan()

    def keys(self) -> Iterator[Any]:
        return (key for key, _ in self.range_scan())

    def values(self) -> Iterator[Any]:
        return (value for _, value in self.range_scan())

    def min_key(self) -> Any:
        """Smallest key, or None for an empty index."""
        with self._operation(LatchMode.SHARED) as latched:
            leaf, _ = self._descend(latched, lambda node: 0, release_meta=True)
            return leaf.keys[0] if leaf.keys else None

    def max_key(self) -> Any:
        """Largest key, or None for an empty index."""
        with self._operation(LatchMode.SHARED) as latched:
            leaf, _ = self._descend(latched, lambda node: node.num_keys, release_meta=True)
            return leaf.keys[-1] if leaf.keys else None

    # Mutations

    def insert(self, key: Any, value: Any) -> None:
        """
        Add a new key.

        Raises:
            DuplicateKeyError: If the key is already present; nothing changes
        """
        self._check_encodable(key, value)

        with self._operation(LatchMode.EXCLUSIVE) as latched:
            leaf, path = self._descend(latched, self._towards(key), release_meta=False)

            index = lower_bound(leaf.keys, key, self._compare)
            if index < leaf.num_keys and self._compare(leaf.keys[index], key) == 0:
                raise DuplicateKeyError(key)

            leaf.keys.insert(index, key)
            leaf.values.insert(index, value)

            dirty = [leaf]
            allocated: list[PageId] = []
            try:
                new_root = self._split_upwards(leaf, path, dirty, allocated)
            except PageStoreError:
                self._release(allocated)
                raise

            self._commit(dirty, allocated=allocated, size_delta=1,
                         new_root=new_root, height_delta=1 if new_root is not None else 0)

    def update(self, key: Any, value: Any) -> None:
        """
        Replace the value of an existing key.

        Raises:
            NotFoundError: If the key is not in the index
        """
        self._check_encodable(key, value)

        with self._operation(LatchMode.EXCLUSIVE) as latched:
            leaf, _ = self._descend(latched, self._towards(key), release_meta=False)
            index = leaf.find(key, self._compare)
            if index < 0:
                raise NotFoundError(key)
            leaf.values[index] = value
            self._commit([leaf])

    def delete(self, key: Any) -> None:
        """
        Remove a key and its value.

        Raises:
            NotFoundError: If the key is not in the index
        """
        with self._operation(LatchMode.EXCLUSIVE) as latched:
            leaf, path = self._descend(latched, self._towards(key), release_meta=False)

            index = leaf.find(key, self._compare)
            if index < 0:
                raise NotFoundError(key)

            del leaf.keys[index]
            del leaf.values[index]

            dirty = [leaf]
            freed: list[PageId] = []
            new_root = self._rebalance_upwards(leaf, path, latched, dirty, freed)

            self._commit(dirty, freed=freed, size_delta=-1,
                         new_root=new_root, height_delta=-1 if new_root is not None else 0)

    # Diagnostics

    def check_invariants(self) -> None:
        """Walk the whole tree; raise InvariantViolationError on any inconsistency."""
        TreeInspector(self).check()

    def dump(self) -> dict[str, Any]:
        return TreeInspector(self).dump()

    # Structure maintenance

    def _split_upwards(self, node: Node, path: list[PathEntry],
                       dirty: list[Node], allocated: list[PageId]) -> Optional[PageId]:
        """
        Split over-full nodes from ``node`` up towards the root.

        Returns the page of a new root if the root itself split.
        """
        while node.num_keys > max_keys(self.order):
            sibling_id = self._allocate()
            allocated.append(sibling_id)

            if node.is_leaf:
                sibling, separator = self._split_leaf(node, sibling_id)
            else:
                sibling, separator = self._split_internal(node, sibling_id)
            dirty.append(sibling)
            self.stats.splits += 1
            logger.debug("Split %s, moved %d keys to %s (separator %r)",
                         node.page_id, sibling.num_keys, sibling_id, separator)

            if not path:
                root_id = self._allocate()
                allocated.append(root_id)
                dirty.append(Node.new_internal(root_id, [separator], [node.page_id, sibling_id]))
                self.stats.root_splits += 1
                logger.debug("Root split, new root %s", root_id)
                return root_id

            parent, index = path.pop()
            parent.keys.insert(index, separator)
            parent.children.insert(index + 1, sibling_id)
            dirty.append(parent)
            node = parent

        return None

    def _split_leaf(self, leaf: Node, sibling_id: PageId) -> tuple[Node, Any]:
        middle = leaf.num_keys // 2
        sibling = Node.new_leaf(sibling_id)
        sibling.keys = leaf.keys[middle:]
        sibling.values = leaf.values[middle:]
        del leaf.keys[middle:]
        del leaf.values[middle:]

        sibling.next_leaf = leaf.next_leaf
        leaf.next_leaf = sibling_id
        return sibling, sibling.keys[0]

    def _split_internal(self, node: Node, sibling_id: PageId) -> tuple[Node, Any]:
        middle = node.num_keys // 2
        separator = node.keys[middle]
        sibling = Node.new_internal(sibling_id, node.keys[middle + 1:], node.children[middle + 1:])
        del node.keys[middle:]
        del node.children[middle + 1:]
        return sibling, separator

    def _rebalance_upwards(self, node: Node, path: list[PathEntry], latched: LatchCoupler,
                           dirty: list[Node], freed: list[PageId]) -> Optional[PageId]:
        """
        Fix underflow from ``node`` up towards the root.

        Borrows from the left sibling first, then the right one, and merges
        only when neither has a key to spare. Returns the page of the new
        root if the old root lost its last separator.
        """
        minimum = min_keys(self.order)

        while path and node.num_keys < minimum:
            parent, index = path.pop()
            dirty.append(parent)

            left = None
            if index > 0:
                left = self._load_sibling(parent.children[index - 1], latched)
                if left.num_keys > minimum:
                    self._borrow_from_left(node, left, parent, index)
                    dirty.append(left)
                    return None

            right = None
            if index < parent.num_keys:
                right = self._load_sibling(parent.children[index + 1], latched)
                if right.num_keys > minimum:
                    self._borrow_from_right(node, right, parent, index)
                    dirty.append(right)
                    return None

            if left is not None:
                self._merge(left, node, parent, index - 1)
                dirty.append(left)
                freed.append(node.page_id)
            else:
                self._merge(node, right, parent, index)
                freed.append(right.page_id)
            node = parent

        if node.page_id == self._meta.root_page_id and not node.is_leaf and node.num_keys == 0:
            freed.append(node.page_id)
            self.stats.root_collapses += 1
            logger.debug("Root %s collapsed into %s", node.page_id, node.children[0])
            return node.children[0]

        return None

    def _load_sibling(self, page_id: PageId, latched: LatchCoupler) -> Node:
        latched.acquire(page_id)
        return self.load_node(page_id)

    def _borrow_from_left(self, node: Node, left: Node, parent: Node, index: int) -> None:
        separator = index - 1
        if node.is_leaf:
            node.keys.insert(0, left.keys.pop())
            node.values.insert(0, left.values.pop())
            parent.keys[separator] = node.keys[0]
        else:
            node.keys.insert(0, parent.keys[separator])
            node.children.insert(0, left.children.pop())
            parent.keys[separator] = left.keys.pop()
        self.stats.borrows += 1
        logger.debug("%s borrowed from left sibling %s", node.page_id, left.page_id)

    def _borrow_from_right(self, node: Node, right: Node, parent: Node, index: int) -> None:
        separator = index
        if node.is_leaf:
            node.keys.append(right.keys.pop(0))
            node.values.append(right.values.pop(0))
            parent.keys[separator] = right.keys[0]
        else:
            node.keys.append(parent.keys[separator])
            node.children.append(right.children.pop(0))
            parent.keys[separator] = right.keys.pop(0)
        self.stats.borrows += 1
        logger.debug("%s borrowed from right sibling %s", node.page_id, right.page_id)

    def _merge(self, left: Node, right: Node, parent: Node, separator: int) -> None:
        """Fold ``right`` into ``left`` and drop their separator from ``parent``."""
        if left.is_leaf:
            left.keys.extend(right.keys)
            left.values.extend(right.values)
            left.next_leaf = right.next_leaf
        else:
            left.keys.append(parent.keys[separator])
            left.keys.extend(right.keys)
            left.children.extend(right.children)

        del parent.keys[separator]
        del parent.children[separator + 1]
        self.stats.merges += 1
        logger.debug("Merged %s into %s", right.page_id, left.page_id)

    # Page access

    @contextmanager
    def _operation(self, mode: LatchMode):
        latched = LatchCoupler(self._latches, mode, hold_all=mode is LatchMode.EXCLUSIVE)
        try:
            latched.acquire(self._meta_page_id)
            yield latched
        finally:
            latched.release_all()

    def _towards(self, key: Any) -> Callable[[Node], int]:
        return lambda node: node.child_index_for(key, self._compare)

    def _descend(self, latched: LatchCoupler, pick_child: Callable[[Node], int],
                 release_meta: bool) -> tuple[Node, list[PathEntry]]:
        """
        Walk from the root to a leaf, latching each page on the way.

        Returns the leaf and the ancestors visited, root first, each paired
        with the index of the child that was followed.
        """
        root_id = self._meta.root_page_id
        if release_meta:
            latched.step(root_id, self._meta_page_id)
        else:
            latched.acquire(root_id)

        node = self.load_node(root_id)
        path: list[PathEntry] = []
        while not node.is_leaf:
            index = pick_child(node)
            child_id = node.children[index]
            latched.step(child_id, node.page_id)
            path.append((node, index))
            node = self.load_node(child_id)

        return node, path

    def load_node(self, page_id: PageId) -> Node:
        """Read and decode one node from the store."""
        node = self._codec.decode(page_id, self._store.read(page_id))
        self.stats.page_reads += 1
        return node

    def _write_node(self, node: Node) -> None:
        self._store.write(node.page_id, self._codec.encode(node))
        self.stats.page_writes += 1

    def _write_meta(self) -> None:
        self._store.write(self._meta_page_id, self._meta.serialize(self._store.page_size))
        self.stats.page_writes += 1

    def _allocate(self) -> PageId:
        page_id = self._store.allocate()
        self.stats.pages_allocated += 1
        return page_id

    def _free(self, page_id: PageId) -> None:
        self._store.free(page_id)
        self.stats.pages_freed += 1

    def _release(self, allocated: list[PageId]) -> None:
        for page_id in allocated:
            self._free(page_id)

    def _check_encodable(self, key: Any, value: Any) -> None:
        self._codec.key_codec.encode(key)
        self._codec.value_codec.encode(value)

    def _commit(self, dirty: list[Node], allocated: list[PageId] = (), freed: list[PageId] = (),
                size_delta: int = 0, new_root: Optional[PageId] = None,
                height_delta: int = 0) -> None:
        """
        Write the nodes an operation changed, then free pages and update the meta page.

        All nodes are encoded before the first write so a node that no
        longer fits in a page aborts the operation with the tree untouched.
        """
        gone = set(freed)
        pending: dict[PageId, Node] = {}
        for node in dirty:
            if node.page_id not in gone:
                pending[node.page_id] = node

        try:
            images = [(page_id, self._codec.encode(node)) for page_id, node in pending.items()]
        except NodeOverflowError:
            self._release(allocated)
            raise

        for page_id, image in images:
            self._store.write(page_id, image)
            self.stats.page_writes += 1

        for page_id in freed:
            self._free(page_id)

        if size_delta or new_root is not None:
            if new_root is not None:
                self._meta.root_page_id = new_root
                self._meta.height += height_delta
            self._meta.size += size_delta
            self._write_meta()
