import struct
from dataclasses import dataclass

from orderedindex.primitives import PageId
from orderedindex.storage.exceptions import CorruptionError


@dataclass
class IndexMeta:
    """Contents of an index's metadata page."""
    order: int
    root_page_id: PageId
    height: int
    size: int

    MAGIC = b"BPTI"
    VERSION = 1

    _FORMAT = struct.Struct('!4sHHIIQ')

    def serialize(self, page_size: int) -> bytes:
        data = self._FORMAT.pack(
            self.MAGIC,
            self.VERSION,
            self.order,
            self.root_page_id.page_number,
            self.height,
            self.size,
        )
        return data + bytes(page_size - len(data))

    @classmethod
    def deserialize(cls, page_id: PageId, data: bytes) -> 'IndexMeta':
        magic, version, order, root, height, size = cls._FORMAT.unpack_from(data)
        if magic != cls.MAGIC:
            raise CorruptionError(f"{page_id} is not an index metadata page")
        if version != cls.VERSION:
            raise CorruptionError(
                f"{page_id} has unsupported index format version {version}")
        if height < 1:
            raise CorruptionError(f"{page_id} records an invalid height {height}")
        return cls(order, PageId(root), height, size)
