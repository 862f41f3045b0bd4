"""Decoder for GBST style files: palettes, tiles, sprites and sprite deltas."""

from .cursor import ByteCursor
from .deltas import DeltaCursor, DeltaFrame, DeltaReconstructor
from .errors import (
    InvalidIndexError,
    MalformedHeaderError,
    SizeMismatchError,
    StyleError,
    TruncatedChunkError,
    TruncatedReadError,
    UnsupportedChunkError,
)
from .palette import PaletteResolver
from .records import CategoryBaseTable
from .sprites import RgbaImage, SpriteAssembler
from .style import Style, decode_style, load_style

__all__ = [
    "ByteCursor",
    "CategoryBaseTable",
    "DeltaCursor",
    "DeltaFrame",
    "DeltaReconstructor",
    "InvalidIndexError",
    "MalformedHeaderError",
    "PaletteResolver",
    "RgbaImage",
    "SizeMismatchError",
    "SpriteAssembler",
    "Style",
    "StyleError",
    "TruncatedChunkError",
    "TruncatedReadError",
    "UnsupportedChunkError",
    "decode_style",
    "load_style",
]
