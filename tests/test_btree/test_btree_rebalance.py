import random

import pytest

from orderedindex.core.exceptions import NotFoundError
from orderedindex.primitives import PageId
from orderedindex.storage.memory import InMemoryPageStore
from orderedindex.storage.index.btree import BPlusTree


def build_tree(keys, order=4):
    store = InMemoryPageStore()
    tree = BPlusTree(store, order=order)
    for key in keys:
        tree.insert(key, f"v{key}")
    return store, tree


def leaf_keys(tree):
    return [child["keys"] for child in tree.dump()["children"]]


class TestLeafBorrowing:
    """Underflowing leaves take an entry from a sibling with surplus."""

    def setup_method(self):
        # root [10, 20] over leaves [5, 6, 7] [10, 12, 17] [20, 30]
        self.store, self.tree = build_tree([10, 20, 5, 6, 12, 30, 7, 17])

    def test_borrow_from_left(self):
        """The rightmost leaf empties and takes 17 from its left sibling."""
        self.tree.delete(20)
        self.tree.delete(30)

        assert self.tree.stats.borrows == 1
        assert self.tree.dump()["keys"] == [10, 17]
        assert leaf_keys(self.tree) == [[5, 6, 7], [10, 12], [17]]
        self.tree.check_invariants()

    def test_borrow_from_right(self):
        """The leftmost leaf has no left sibling, so it borrows from the right."""
        for key in (5, 6, 7):
            self.tree.delete(key)

        assert self.tree.stats.borrows == 1
        assert self.tree.dump()["keys"] == [12, 20]
        assert leaf_keys(self.tree) == [[10], [12, 17], [20, 30]]
        self.tree.check_invariants()

    def test_left_sibling_preferred_when_both_have_surplus(self):
        """A middle leaf borrows from the left even though the right could lend."""
        for key in (10, 12, 17):
            self.tree.delete(key)

        assert self.tree.stats.borrows == 1
        assert self.tree.dump()["keys"] == [7, 20]
        assert leaf_keys(self.tree) == [[5, 6], [7], [20, 30]]
        self.tree.check_invariants()


class TestLeafMerging:
    """Leaves without a lending sibling merge and can collapse the root."""

    def setup_method(self):
        # root [3] over leaves [1, 2] [3, 4]
        self.store, self.tree = build_tree([1, 2, 3, 4])
        self.left_leaf, self.right_leaf = [
            child["page"] for child in self.tree.dump()["children"]]

    def test_merge_into_left_sibling_collapses_root(self):
        self.tree.delete(1)
        self.tree.delete(4)
        self.tree.delete(3)

        assert self.tree.stats.merges == 1
        assert self.tree.stats.root_collapses == 1
        assert self.tree.height == 1
        assert self.tree.dump() == {"page": self.left_leaf, "type": "leaf", "keys": [2], "next": None}
        assert self.store.page_count == 2

    def test_merge_with_right_sibling_when_no_left(self):
        self.tree.delete(4)
        self.tree.delete(1)
        self.tree.delete(2)

        assert self.tree.stats.merges == 1
        assert self.tree.height == 1
        assert self.tree.dump() == {"page": self.left_leaf, "type": "leaf", "keys": [3], "next": None}
        assert not self.store.is_allocated(PageId(self.right_leaf))

    def test_deleted_keys_are_gone(self):
        for key in (1, 2, 3):
            self.tree.delete(key)

        assert list(self.tree.items()) == [(4, "v4")]
        for key in (1, 2, 3):
            with pytest.raises(NotFoundError):
                self.tree.search(key)


class TestInternalRebalancing:
    """Merges that propagate through internal nodes."""

    def test_shrinks_from_height_four_to_one(self):
        """Deleting everything frees every page except the meta page and root."""
        store, tree = build_tree(range(60), order=4)
        assert tree.height >= 4

        for key in range(60):
            tree.delete(key)
            tree.check_invariants()

        assert len(tree) == 0
        assert tree.height == 1
        assert store.page_count == 2
        assert tree.stats.root_collapses >= 3

    def test_delete_from_the_right(self):
        store, tree = build_tree(range(60), order=3)

        for key in reversed(range(60)):
            tree.delete(key)
            tree.check_invariants()

        assert tree.dump()["keys"] == []
        assert store.page_count == 2

    def test_thinning_left_region_keeps_separators_consistent(self):
        _, tree = build_tree(range(40), order=4)

        # Emptying the leftmost leaves forces merges up through internal nodes
        for key in range(15):
            tree.delete(key)
            tree.check_invariants()

        assert tree.stats.merges > 0
        assert list(tree.keys()) == list(range(15, 40))


class TestRandomizedOperations:
    """Random interleavings of inserts and deletes checked against a dict."""

    @pytest.mark.parametrize("order,seed", [(3, 1), (4, 2), (5, 3), (6, 4), (9, 5)])
    def test_matches_dict_model(self, order, seed):
        rng = random.Random(seed)
        _, tree = build_tree([], order=order)
        model = {}

        for step in range(600):
            key = rng.randrange(150)
            if key in model and rng.random() < 0.6:
                tree.delete(key)
                del model[key]
            elif key not in model:
                tree.insert(key, step)
                model[key] = step

            if step % 25 == 0:
                tree.check_invariants()

        tree.check_invariants()
        assert len(tree) == len(model)
        assert list(tree.items()) == sorted(model.items())
        for key, value in model.items():
            assert tree.search(key) == value

        low, high = 40, 90
        expected = [(k, v) for k, v in sorted(model.items()) if low <= k <= high]
        assert list(tree.range_scan(low, high)) == expected

    def test_delete_everything_in_random_order(self):
        rng = random.Random(99)
        keys = list(range(300))
        rng.shuffle(keys)
        store, tree = build_tree(keys, order=5)

        rng.shuffle(keys)
        for index, key in enumerate(keys):
            tree.delete(key)
            if index % 20 == 0:
                tree.check_invariants()
            assert key not in tree

        assert len(tree) == 0
        assert store.page_count == 2
