"""
Sequential big-endian reader over a byte source.
"""

import io
import struct
from typing import BinaryIO, Union

from .errors import TruncatedInputError


ByteSource = Union[bytes, bytearray, memoryview, BinaryIO]


class ByteCursor:
    """Forward-only reader that tracks how many bytes it has consumed.

    The source is either a bytes-like object or a binary stream. Every read
    either returns the full field and advances ``position`` by its width, or
    raises TruncatedInputError.
    """

    def __init__(self, source: ByteSource):
        if isinstance(source, (bytes, bytearray, memoryview)):
            source = io.BytesIO(bytes(source))
        self._stream = source
        self.position = 0

    def read_bytes(self, length: int) -> bytes:
        chunks = []
        remaining = length
        while remaining > 0:
            chunk = self._stream.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        data = b"".join(chunks)
        if len(data) != length:
            raise TruncatedInputError(self.position, length, len(data))
        self.position += length
        return data

    def _unpack(self, fmt: str, size: int):
        return struct.unpack(fmt, self.read_bytes(size))[0]

    def read_u1(self) -> int:
        return self._unpack(">B", 1)

    def read_u2(self) -> int:
        return self._unpack(">H", 2)

    def read_u4(self) -> int:
        return self._unpack(">I", 4)

    def read_u8(self) -> int:
        return self._unpack(">Q", 8)

    def read_i1(self) -> int:
        return self._unpack(">b", 1)

    def read_i2(self) -> int:
        return self._unpack(">h", 2)

    def read_i4(self) -> int:
        return self._unpack(">i", 4)

    def read_i8(self) -> int:
        return self._unpack(">q", 8)
