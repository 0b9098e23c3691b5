import json
import struct
from abc import ABC, abstractmethod
from typing import Any


class Codec(ABC):
    """Turns keys or values into bytes and back."""

    @abstractmethod
    def encode(self, obj: Any) -> bytes:
        pass

    @abstractmethod
    def decode(self, data: bytes) -> Any:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class IntCodec(Codec):
    """Signed 64-bit integers."""

    _FORMAT = struct.Struct('!q')

    def encode(self, obj: Any) -> bytes:
        if isinstance(obj, bool) or not isinstance(obj, int):
            raise TypeError(f"IntCodec expects an int, got {type(obj).__name__}")
        try:
            return self._FORMAT.pack(obj)
        except struct.error:
            raise ValueError(f"Integer out of 64-bit range: {obj}") from None

    def decode(self, data: bytes) -> int:
        return self._FORMAT.unpack(data)[0]


class StringCodec(Codec):
    def encode(self, obj: Any) -> bytes:
        if not isinstance(obj, str):
            raise TypeError(f"StringCodec expects a str, got {type(obj).__name__}")
        return obj.encode('utf-8')

    def decode(self, data: bytes) -> str:
        return data.decode('utf-8')


class BytesCodec(Codec):
    def encode(self, obj: Any) -> bytes:
        if not isinstance(obj, (bytes, bytearray)):
            raise TypeError(f"BytesCodec expects bytes, got {type(obj).__name__}")
        return bytes(obj)

    def decode(self, data: bytes) -> bytes:
        return bytes(data)


class JsonCodec(Codec):
    """Any JSON-serializable value. Tuples come back as lists."""

    def encode(self, obj: Any) -> bytes:
        return json.dumps(obj, separators=(',', ':'), sort_keys=True).encode('utf-8')

    def decode(self, data: bytes) -> Any:
        return json.loads(data.decode('utf-8'))
