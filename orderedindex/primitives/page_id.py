import struct
from typing import Optional

from orderedindex.config import NO_PAGE


class PageId:
    """
    Identifies a page inside a page store.

    A PageId is an opaque, immutable handle. The index never does
    arithmetic on it; it only hands it back to the store that allocated it.
    """

    __slots__ = ("_page_number",)

    _FORMAT = struct.Struct('!I')
    SERIALIZED_SIZE = _FORMAT.size

    def __init__(self, page_number: int):
        if not isinstance(page_number, int) or page_number < 0 or page_number >= NO_PAGE:
            raise ValueError(f"Invalid page number: {page_number!r}")
        self._page_number = page_number

    @property
    def page_number(self) -> int:
        return self._page_number

    def serialize(self) -> bytes:
        return self._FORMAT.pack(self._page_number)

    @classmethod
    def deserialize(cls, data: bytes) -> 'PageId':
        page_number, = cls._FORMAT.unpack_from(data)
        return cls(page_number)

    @staticmethod
    def to_raw(page_id: Optional['PageId']) -> int:
        """Encode an optional page id as a raw number, None becomes NO_PAGE."""
        return NO_PAGE if page_id is None else page_id.page_number

    @classmethod
    def from_raw(cls, raw: int) -> Optional['PageId']:
        return None if raw == NO_PAGE else cls(raw)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PageId):
            return False
        return self._page_number == other._page_number

    def __hash__(self) -> int:
        return hash(("PageId", self._page_number))

    def __lt__(self, other: 'PageId') -> bool:
        if not isinstance(other, PageId):
            return NotImplemented
        return self._page_number < other._page_number

    def __str__(self) -> str:
        return f"PageId({self._page_number})"

    __repr__ = __str__
