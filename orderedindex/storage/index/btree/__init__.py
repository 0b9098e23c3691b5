from .bplus_tree import BPlusTree, IndexStats
from .codecs import Codec, IntCodec, StringCodec, BytesCodec, JsonCodec
from .node import Node, NodeType, natural_compare
from .node_codec import NodeCodec
from .meta import IndexMeta
from .inspector import TreeInspector

__all__ = [
    "BPlusTree",
    "IndexStats",
    "Codec",
    "IntCodec",
    "StringCodec",
    "BytesCodec",
    "JsonCodec",
    "Node",
    "NodeType",
    "natural_compare",
    "NodeCodec",
    "IndexMeta",
    "TreeInspector",
]
