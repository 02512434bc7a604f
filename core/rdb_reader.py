"""Tag-level reader for libretro RDB (RetroDatabase) payloads.

RDB files are a flat MessagePack-like stream. Only the tag subset written by
libretro-db is understood here; anything else is reported as unsupported so
the caller can stop instead of guessing at a payload size.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

# MessagePack tags used by RDB files
MPF_FIXMAP = 0x80
MPF_FIXARRAY = 0x90
MPF_FIXSTR = 0xA0
MPF_NIL = 0xC0
MPF_BIN8 = 0xC4
MPF_BIN16 = 0xC5
MPF_BIN32 = 0xC6
MPF_UINT8 = 0xCC
MPF_UINT16 = 0xCD
MPF_UINT32 = 0xCE
MPF_UINT64 = 0xCF
MPF_STR8 = 0xD9
MPF_STR16 = 0xDA
MPF_STR32 = 0xDB
MPF_MAP16 = 0xDE
MPF_MAP32 = 0xDF

# width of the length (or count) prefix that follows each tag
_LENGTH_WIDTHS = {
    MPF_BIN8: 1,
    MPF_BIN16: 2,
    MPF_BIN32: 4,
    MPF_STR8: 1,
    MPF_STR16: 2,
    MPF_STR32: 4,
    MPF_MAP16: 2,
    MPF_MAP32: 4,
}


class FieldKind(str, Enum):
    MAP = "map"
    TEXT = "text"
    BYTES = "bytes"
    UINT = "uint"
    NIL = "nil"
    SKIP = "skip"
    TRUNCATED = "truncated"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class RawField:
    """One decoded token.

    ``payload`` holds the raw byte span for text, blob and integer fields;
    ``count`` holds the declared entry count for map boundaries.
    """

    kind: FieldKind
    payload: bytes = b""
    count: int = 0
    tag: int = 0

    @property
    def is_value(self) -> bool:
        return self.kind in (FieldKind.TEXT, FieldKind.BYTES, FieldKind.UINT)


def read_uint_be(data: bytes) -> int:
    """Big-endian unsigned integer over exactly ``data``."""
    result = 0
    for byte in data:
        result = (result << 8) | byte
    return result


def _take(buf: bytes, pos: int, length: int) -> Optional[bytes]:
    if length < 0 or pos + length > len(buf):
        return None
    return bytes(buf[pos:pos + length])


def read_field(buf: bytes, pos: int) -> tuple[RawField, int]:
    """Decode the field starting at ``pos``.

    Returns the field and the offset just past it. For truncated or
    unsupported fields the returned offset is ``pos`` unchanged.
    """
    if pos >= len(buf):
        return RawField(FieldKind.TRUNCATED), pos

    tag = buf[pos]
    cursor = pos + 1

    if tag < MPF_FIXMAP:
        return RawField(FieldKind.SKIP, tag=tag), cursor

    if tag < MPF_FIXARRAY:
        return RawField(FieldKind.MAP, count=tag & 0x0F, tag=tag), cursor

    if MPF_FIXSTR <= tag < MPF_NIL:
        payload = _take(buf, cursor, tag - MPF_FIXSTR)
        if payload is None:
            return RawField(FieldKind.TRUNCATED, tag=tag), pos
        return RawField(FieldKind.TEXT, payload, tag=tag), cursor + len(payload)

    if tag == MPF_NIL:
        return RawField(FieldKind.NIL, tag=tag), cursor

    if MPF_UINT8 <= tag <= MPF_UINT64:
        width = 1 << (tag - MPF_UINT8)
        payload = _take(buf, cursor, width)
        if payload is None:
            return RawField(FieldKind.TRUNCATED, tag=tag), pos
        return RawField(FieldKind.UINT, payload, tag=tag), cursor + width

    width = _LENGTH_WIDTHS.get(tag)
    if width is None:
        return RawField(FieldKind.UNSUPPORTED, tag=tag), pos

    prefix = _take(buf, cursor, width)
    if prefix is None:
        return RawField(FieldKind.TRUNCATED, tag=tag), pos
    length = read_uint_be(prefix)
    cursor += width

    if tag in (MPF_MAP16, MPF_MAP32):
        return RawField(FieldKind.MAP, count=length, tag=tag), cursor

    payload = _take(buf, cursor, length)
    if payload is None:
        return RawField(FieldKind.TRUNCATED, tag=tag), pos
    kind = FieldKind.BYTES if tag in (MPF_BIN8, MPF_BIN16, MPF_BIN32) else FieldKind.TEXT
    return RawField(kind, payload, tag=tag), cursor + length
