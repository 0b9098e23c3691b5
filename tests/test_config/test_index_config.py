from pathlib import Path

import pytest

from orderedindex.config import (
    DEFAULT_DATA_DIRECTORY, DEFAULT_MAX_ENTRY_SIZE, DEFAULT_PAGE_SIZE, IndexConfig,
    MAX_ORDER, MIN_ORDER,
)


class TestIndexConfig:
    """Tests for IndexConfig validation."""

    def test_defaults(self):
        config = IndexConfig()
        assert config.order is None
        assert config.page_size == DEFAULT_PAGE_SIZE
        assert config.max_entry_size == DEFAULT_MAX_ENTRY_SIZE
        assert config.data_directory == DEFAULT_DATA_DIRECTORY
        assert config.latch_timeout is None

    def test_order_bounds(self):
        assert IndexConfig(order=MIN_ORDER).order == 3
        assert IndexConfig(order=MAX_ORDER).order == 65535

    @pytest.mark.parametrize("order", [2, 0, -4, 3.5, "4", True, 65536, 70000])
    def test_invalid_order(self, order):
        with pytest.raises(ValueError, match="Order must be an integer between 3 and 65535"):
            IndexConfig(order=order)

    def test_invalid_page_size(self):
        with pytest.raises(ValueError, match="Page size"):
            IndexConfig(page_size=32)

    def test_invalid_max_entry_size(self):
        with pytest.raises(ValueError, match="Max entry size"):
            IndexConfig(max_entry_size=0)

    def test_invalid_latch_timeout(self):
        with pytest.raises(ValueError, match="Latch timeout"):
            IndexConfig(latch_timeout=0)

    def test_store_path_is_under_data_directory(self, tmp_path):
        config = IndexConfig(data_directory=str(tmp_path))
        assert config.store_path("orders.db") == tmp_path / "orders.db"

    def test_store_path_keeps_absolute_names(self, tmp_path):
        absolute = tmp_path / "elsewhere" / "orders.db"
        assert IndexConfig().store_path(str(absolute)) == absolute

    def test_default_store_path(self):
        assert IndexConfig().store_path("a.db") == Path("index_data") / "a.db"

    def test_from_dict(self):
        config = IndexConfig.from_dict({"order": 16, "page_size": 1024})
        assert config.order == 16
        assert config.page_size == 1024

    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(ValueError, match="Unknown config keys: \\['fanout'\\]"):
            IndexConfig.from_dict({"order": 16, "fanout": 4})
