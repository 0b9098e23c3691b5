import struct
import zlib

from orderedindex.config import MAX_ORDER, MIN_ORDER
from orderedindex.core.exceptions import NodeOverflowError
from orderedindex.primitives import PageId
from orderedindex.storage.exceptions import CorruptionError
from .codecs import Codec
from .node import Node, NodeType


class NodeCodec:
    """
    Serializes nodes to page images and back.

    Page layout (big-endian):
    ------------------------------------------------------------
    [tag:u8][count:u16][next_leaf:u32][crc32:u32]   header
    count x ([length:u32][key bytes])               keys
    leaf:     count x ([length:u32][value bytes])   values
    internal: (count + 1) x [child page:u32]        children
    zero padding up to the page size
    ------------------------------------------------------------

    The checksum covers everything between the header and the padding.
    """

    _HEADER = struct.Struct('!BHII')
    _LENGTH = struct.Struct('!I')
    _CHILD = struct.Struct('!I')

    HEADER_SIZE = _HEADER.size
    MAX_ENTRIES = 0xFFFF

    def __init__(self, page_size: int, key_codec: Codec, value_codec: Codec):
        self.page_size = page_size
        self.key_codec = key_codec
        self.value_codec = value_codec

    @classmethod
    def order_for(cls, page_size: int, max_entry_size: int) -> int:
        """
        Largest order whose full nodes fit in a page when every encoded key
        plus encoded value takes at most ``max_entry_size`` bytes.

        A full node holds order - 1 entries. An internal entry (key and child)
        is never larger than a leaf entry, but internal nodes carry one extra
        child pointer.
        """
        per_entry = 2 * cls._LENGTH.size + max_entry_size
        usable = page_size - cls.HEADER_SIZE - cls._CHILD.size
        order = usable // per_entry + 1
        if order < MIN_ORDER:
            raise ValueError(
                f"Pages of {page_size} bytes cannot hold {MIN_ORDER - 1} entries "
                f"of {max_entry_size} bytes")
        return min(order, MAX_ORDER)

    def encode(self, node: Node) -> bytes:
        node.check_shape()
        if node.num_keys > self.MAX_ENTRIES:
            raise NodeOverflowError(
                f"{node.page_id} holds {node.num_keys} entries, limit is {self.MAX_ENTRIES}")

        body = bytearray()
        for key in node.keys:
            self._append_blob(body, self.key_codec.encode(key))

        if node.is_leaf:
            for value in node.values:
                self._append_blob(body, self.value_codec.encode(value))
        else:
            for child in node.children:
                body.extend(self._CHILD.pack(child.page_number))

        header = self._HEADER.pack(
            node.node_type.value,
            node.num_keys,
            PageId.to_raw(node.next_leaf),
            zlib.crc32(body),
        )

        used = len(header) + len(body)
        if used > self.page_size:
            raise NodeOverflowError(
                f"{node.page_id} needs {used} bytes, page size is {self.page_size}")

        return header + bytes(body) + bytes(self.page_size - used)

    def decode(self, page_id: PageId, data: bytes) -> Node:
        if len(data) < self.HEADER_SIZE:
            raise CorruptionError(f"{page_id} is too short to hold a node")

        tag, count, next_raw, checksum = self._HEADER.unpack_from(data)
        try:
            node_type = NodeType(tag)
        except ValueError:
            raise CorruptionError(f"{page_id} has unknown node tag {tag}") from None

        try:
            offset = self.HEADER_SIZE
            keys = []
            for _ in range(count):
                blob, offset = self._read_blob(data, offset)
                keys.append(self.key_codec.decode(blob))

            node = Node(page_id, node_type, keys=keys)
            if node_type is NodeType.LEAF:
                for _ in range(count):
                    blob, offset = self._read_blob(data, offset)
                    node.values.append(self.value_codec.decode(blob))
                node.next_leaf = PageId.from_raw(next_raw)
            else:
                for _ in range(count + 1):
                    raw, = self._CHILD.unpack_from(data, offset)
                    offset += self._CHILD.size
                    node.children.append(PageId(raw))
        except (struct.error, ValueError, UnicodeDecodeError) as e:
            raise CorruptionError(f"{page_id} holds a damaged node: {e}") from e

        if zlib.crc32(data[self.HEADER_SIZE:offset]) != checksum:
            raise CorruptionError(f"{page_id} failed its checksum")

        return node

    def _append_blob(self, body: bytearray, blob: bytes) -> None:
        body.extend(self._LENGTH.pack(len(blob)))
        body.extend(blob)

    def _read_blob(self, data: bytes, offset: int) -> tuple[bytes, int]:
        length, = self._LENGTH.unpack_from(data, offset)
        offset += self._LENGTH.size
        end = offset + length
        if end > len(data):
            raise ValueError(f"entry of {length} bytes runs past the page end")
        return data[offset:end], end
