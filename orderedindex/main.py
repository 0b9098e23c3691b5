"""
Command line demo for the ordered index.

Builds an index, applies inserts and deletes, then renders the tree and an
optional range scan.

Run with: python -m orderedindex.main --order 4 --insert 10 20 5 6 --range 5 10
"""

import argparse
import logging
import sys
from typing import Any, Optional

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from orderedindex.config import DEFAULT_DATA_DIRECTORY, DEFAULT_PAGE_SIZE, IndexConfig
from orderedindex.core.exceptions import OrderedIndexError
from orderedindex.primitives import PageId
from orderedindex.storage import FilePageStore, InMemoryPageStore, PageStoreError
from orderedindex.storage.index.btree import BPlusTree

console = Console()

# The index's meta page is the first page it allocates in a fresh file store
FILE_META_PAGE = PageId(1)


def render_tree(tree: BPlusTree) -> Tree:
    """Build a rich Tree showing every node of the index."""

    def label(description: dict[str, Any]) -> str:
        keys = escape("[" + ", ".join(str(key) for key in description["keys"]) + "]")
        if description["type"] == "leaf":
            link = "∅" if description["next"] is None else description["next"]
            return f"[green]leaf[/green] page {description['page']} {keys} → {link}"
        return f"[bold blue]internal[/bold blue] page {description['page']} {keys}"

    def add(branch: Tree, description: dict[str, Any]) -> None:
        for child in description.get("children", []):
            add(branch.add(label(child)), child)

    description = tree.dump()
    root = Tree(
        f"{label(description)}  [dim](order {tree.order}, height {tree.height}, "
        f"{len(tree)} entries)[/dim]")
    add(root, description)
    return root


def render_range(rows: list[tuple[Any, Any]], low: Any, high: Any) -> Table:
    table = Table(title=f"range_scan({low}, {high})", box=box.SIMPLE)
    table.add_column("key", justify="right", style="cyan")
    table.add_column("value")
    for key, value in rows:
        table.add_row(str(key), str(value))
    return table


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="orderedindex",
        description="Build a B+ tree index and show its structure.")
    parser.add_argument("--order", type=int, default=4,
                        help="maximum children per internal node (default: 4)")
    parser.add_argument("--page-size", type=int, default=DEFAULT_PAGE_SIZE,
                        help="page size in bytes")
    parser.add_argument("--data", metavar="FILE",
                        help="use (or reopen) a file page store instead of memory")
    parser.add_argument("--data-dir", default=DEFAULT_DATA_DIRECTORY, metavar="DIR",
                        help=f"directory for relative --data files (default: {DEFAULT_DATA_DIRECTORY})")
    parser.add_argument("--insert", type=int, nargs="*", default=[], metavar="KEY",
                        help="keys to insert, each stored with the value 'v<key>'")
    parser.add_argument("--delete", type=int, nargs="*", default=[], metavar="KEY",
                        help="keys to delete after the inserts")
    parser.add_argument("--range", type=int, nargs=2, metavar=("LOW", "HIGH"),
                        help="run a range scan and print the result")
    parser.add_argument("--verbose", action="store_true",
                        help="log splits, merges and page allocation")
    return parser


def open_index(args: argparse.Namespace):
    config = IndexConfig(order=args.order, page_size=args.page_size,
                         data_directory=args.data_dir)
    if args.data is None:
        store = InMemoryPageStore(page_size=config.page_size)
        return store, BPlusTree.from_config(store, config)

    store = FilePageStore(str(config.store_path(args.data)), page_size=config.page_size)
    meta_page_id: Optional[PageId] = FILE_META_PAGE if store.page_count > 0 else None
    return store, BPlusTree.from_config(store, config, meta_page_id=meta_page_id)


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point of the application."""
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(message)s",
                            handlers=[RichHandler(console=console, show_path=False)])

    try:
        store, tree = open_index(args)
        with store:
            for key in args.insert:
                tree.insert(key, f"v{key}")
            for key in args.delete:
                tree.delete(key)

            console.print(render_tree(tree))
            if args.range is not None:
                low, high = args.range
                console.print(render_range(list(tree.range_scan(low, high)), low, high))
    except (OrderedIndexError, PageStoreError, ValueError) as e:
        console.print(f"[bold red]✗[/bold red] {escape(str(e))}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
