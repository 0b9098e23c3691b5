from .btree import BPlusTree

__all__ = ["BPlusTree"]
