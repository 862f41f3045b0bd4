"""Decode failures for GBST style files.

Every failure is a ``StyleError`` carrying a ``kind`` string plus the chunk tag
and absolute byte offset where it was detected. The decode either completes or
raises exactly one of these.
"""

from __future__ import annotations

from typing import Optional


class StyleError(ValueError):
    kind = "StyleError"

    def __init__(self, message: str, chunk: Optional[str] = None, offset: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.chunk = chunk
        self.offset = offset

    def attach(self, chunk: str, offset: int) -> "StyleError":
        # Innermost context wins: a read offset is more precise than a chunk header offset.
        if self.chunk is None:
            self.chunk = chunk
        if self.offset is None:
            self.offset = offset
        return self

    def to_dict(self) -> dict:
        return {
            "error": self.kind,
            "chunk": self.chunk,
            "offset": self.offset,
            "message": self.message,
        }

    def __str__(self) -> str:
        where = []
        if self.chunk is not None:
            where.append(f"chunk={self.chunk}")
        if self.offset is not None:
            where.append(f"offset=0x{self.offset:X}")
        if not where:
            return self.message
        return f"{self.message} ({', '.join(where)})"


class MalformedHeaderError(StyleError):
    kind = "MalformedHeader"


class TruncatedChunkError(StyleError):
    kind = "TruncatedChunk"


class TruncatedReadError(TruncatedChunkError):
    kind = "TruncatedRead"


class SizeMismatchError(StyleError):
    kind = "SizeMismatch"


class UnsupportedChunkError(StyleError):
    kind = "UnsupportedChunk"


class InvalidIndexError(StyleError):
    kind = "InvalidIndex"
