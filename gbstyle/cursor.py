"""
Bounds-checked little-endian reads over a style buffer.

``ByteCursor`` reads ``data[start:end]``. ``offset`` is always absolute within
``data`` so failures can point at the byte in the file. ``read_array`` copies
its elements out; ``peek`` borrows a read-only view without advancing; ``sub``
splits off a cursor bounded to the next ``n`` bytes and advances past them.
"""

from __future__ import annotations

import struct
from typing import Optional, Tuple, Union

import numpy as np

from .errors import TruncatedReadError

Buffer = Union[bytes, bytearray, memoryview]


class ByteCursor:
    def __init__(self, data: Buffer, start: int = 0, end: Optional[int] = None):
        self._data = data if isinstance(data, memoryview) else memoryview(data)
        self._end = len(self._data) if end is None else end
        if start < 0 or self._end > len(self._data) or start > self._end:
            raise TruncatedReadError(f"cursor window {start}..{self._end} outside buffer of {len(self._data)} bytes", offset=start)
        self._pos = start

    @property
    def offset(self) -> int:
        return self._pos

    @property
    def end(self) -> int:
        return self._end

    @property
    def remaining(self) -> int:
        return self._end - self._pos

    def exhausted(self) -> bool:
        return self._pos >= self._end

    def _claim(self, n: int) -> int:
        if n < 0:
            raise TruncatedReadError(f"negative read of {n} bytes", offset=self._pos)
        if self._pos + n > self._end:
            raise TruncatedReadError(
                f"read of {n} bytes with only {self.remaining} remaining",
                offset=self._pos,
            )
        at = self._pos
        self._pos += n
        return at

    def read_struct(self, fmt: str) -> Tuple:
        size = struct.calcsize(fmt)
        at = self._claim(size)
        return struct.unpack_from(fmt, self._data, at)

    def read_u8(self) -> int:
        return self.read_struct("<B")[0]

    def read_i8(self) -> int:
        return self.read_struct("<b")[0]

    def read_u16(self) -> int:
        return self.read_struct("<H")[0]

    def read_u32(self) -> int:
        return self.read_struct("<I")[0]

    def read_bytes(self, n: int) -> bytes:
        at = self._claim(n)
        return bytes(self._data[at : at + n])

    def read_array(self, dtype: str, count: int) -> np.ndarray:
        dt = np.dtype(dtype)
        at = self._claim(dt.itemsize * count)
        return np.frombuffer(self._data, dtype=dt, count=count, offset=at).copy()

    def peek(self, n: int) -> memoryview:
        if n < 0 or self._pos + n > self._end:
            raise TruncatedReadError(
                f"peek of {n} bytes with only {self.remaining} remaining",
                offset=self._pos,
            )
        return self._data[self._pos : self._pos + n].toreadonly()

    def skip(self, n: int) -> None:
        self._claim(n)

    def sub(self, n: int) -> "ByteCursor":
        at = self._claim(n)
        return ByteCursor(self._data, at, at + n)
