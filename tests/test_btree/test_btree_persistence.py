from unittest.mock import patch

import pytest

from orderedindex.config import IndexConfig
from orderedindex.core.exceptions import NodeOverflowError
from orderedindex.concurrency.latches import LatchManager
from orderedindex.storage.disk import FilePageStore
from orderedindex.storage.exceptions import CorruptionError, StorageError, StoreFullError
from orderedindex.storage.memory import InMemoryPageStore
from orderedindex.storage.index.btree import BPlusTree, BytesCodec, StringCodec


class TestReopenFromFile:
    """An index in a file page store survives closing and reopening."""

    def setup_method(self):
        self.keys = [(i * 37) % 500 for i in range(500)]

    def test_reopen_keeps_contents(self, tmp_path):
        path = tmp_path / "index.db"
        with FilePageStore(str(path), page_size=512) as store:
            tree = BPlusTree(store, order=8, key_codec=StringCodec())
            for key in self.keys:
                tree.insert(f"k{key:04d}", key)
            for key in range(0, 500, 3):
                tree.delete(f"k{key:04d}")
            meta_page_id = tree.meta_page_id
            expected = list(tree.items())
            height = tree.height

        with FilePageStore(str(path), page_size=512) as store:
            reopened = BPlusTree(store, key_codec=StringCodec(), meta_page_id=meta_page_id)

            assert reopened.order == 8
            assert reopened.height == height
            assert len(reopened) == len(expected)
            assert list(reopened.items()) == expected
            assert reopened.search("k0001") == 1
            reopened.check_invariants()

    def test_reopen_with_other_order_fails(self, tmp_path):
        path = tmp_path / "index.db"
        with FilePageStore(str(path)) as store:
            tree = BPlusTree(store, order=8)
            meta_page_id = tree.meta_page_id

        with FilePageStore(str(path)) as store:
            with pytest.raises(ValueError, match="created with order 8"):
                BPlusTree(store, order=16, meta_page_id=meta_page_id)

    def test_meta_page_must_hold_index_metadata(self):
        store = InMemoryPageStore()
        tree = BPlusTree(store, order=4)

        with pytest.raises(CorruptionError):
            BPlusTree(store, meta_page_id=tree.root_page_id)

    def test_freed_pages_are_reused(self, tmp_path):
        with FilePageStore(str(tmp_path / "index.db"), page_size=256) as store:
            tree = BPlusTree(store, order=4)
            for key in range(50):
                tree.insert(key, key)
            peak = store.page_count
            for key in range(50):
                tree.delete(key)
            assert store.page_count == 2
            for key in range(50):
                tree.insert(key, key)
            assert store.page_count == peak


class TestPageStoreFailures:
    """Errors from the page store abort the operation and propagate."""

    def test_store_full_during_split(self):
        """Allocation fails before anything is written, so the tree is intact."""
        store = InMemoryPageStore(max_pages=2)
        tree = BPlusTree(store, order=4)
        for key in (1, 2, 3):
            tree.insert(key, key)

        with pytest.raises(StoreFullError):
            tree.insert(4, 4)

        assert len(tree) == 3
        assert list(tree.keys()) == [1, 2, 3]
        tree.check_invariants()

    def test_store_full_during_root_split_releases_sibling(self):
        """The new leaf is allocated but the new root is not; the leaf page goes back."""
        store = InMemoryPageStore(max_pages=3)
        tree = BPlusTree(store, order=4)
        for key in (1, 2, 3):
            tree.insert(key, key)

        with pytest.raises(StoreFullError):
            tree.insert(4, 4)

        assert store.page_count == 2
        assert tree.height == 1
        assert list(tree.keys()) == [1, 2, 3]
        tree.check_invariants()

    def test_write_failure_propagates(self):
        store = InMemoryPageStore()
        tree = BPlusTree(store, order=4)

        with patch.object(store, "write", side_effect=StorageError("disk gone")):
            with pytest.raises(StorageError, match="disk gone"):
                tree.insert(1, "one")

    def test_corrupt_node_is_reported(self):
        store = InMemoryPageStore(page_size=128)
        tree = BPlusTree(store, order=4)
        tree.insert(1, "one")

        store.write(tree.root_page_id, b"\xff" * 128)

        with pytest.raises(CorruptionError):
            tree.search(1)

    def test_oversized_split_rolls_back(self):
        """A split whose new leaf cannot fit a page frees what it allocated."""
        store = InMemoryPageStore(page_size=64)
        tree = BPlusTree(store, order=4, key_codec=BytesCodec(), value_codec=BytesCodec())
        for key in (b"a", b"b", b"c"):
            tree.insert(key, b"")
        root = tree.root_page_id

        with pytest.raises(NodeOverflowError):
            tree.insert(b"d" * 40, b"")

        assert store.page_count == 2
        assert tree.root_page_id == root
        assert list(tree.keys()) == [b"a", b"b", b"c"]
        tree.check_invariants()

    def test_oversized_single_entry(self):
        store = InMemoryPageStore(page_size=64)
        tree = BPlusTree(store, order=4, key_codec=StringCodec())

        with pytest.raises(NodeOverflowError):
            tree.insert("k" * 80, "v")
        assert len(tree) == 0


class TestFromConfig:
    def test_uses_config_order(self):
        tree = BPlusTree.from_config(InMemoryPageStore(), IndexConfig(order=5))
        assert tree.order == 5

    def test_page_size_must_match(self):
        with pytest.raises(ValueError, match="does not match"):
            BPlusTree.from_config(InMemoryPageStore(page_size=512), IndexConfig())

    def test_latch_timeout_creates_latch_manager(self):
        tree = BPlusTree.from_config(InMemoryPageStore(), IndexConfig(latch_timeout=1.5))
        assert isinstance(tree._latches, LatchManager)

    def test_order_derived_from_entry_size(self):
        config = IndexConfig(page_size=1024, max_entry_size=56)
        tree = BPlusTree.from_config(InMemoryPageStore(page_size=1024), config)
        assert tree.order == 16

    def test_reopen_without_order_keeps_stored_order(self, tmp_path):
        path = str(tmp_path / "index.db")
        config = IndexConfig(page_size=512, max_entry_size=16)
        with FilePageStore(path, page_size=512) as store:
            tree = BPlusTree.from_config(store, IndexConfig(order=5, page_size=512))
            tree.insert(1, "one")
            meta_page_id = tree.meta_page_id

        with FilePageStore(path, page_size=512) as store:
            reopened = BPlusTree.from_config(store, config, meta_page_id=meta_page_id)
            assert reopened.order == 5
            assert reopened.search(1) == "one"
