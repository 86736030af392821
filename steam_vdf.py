#!/usr/bin/env python3
# MIT License
#
# Copyright (c) 2026 sookyboo
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
"""
Binary VDF codec used by Steam's shortcuts.vdf.

The format has no length prefixes: every item is a type byte, a NUL terminated
key and a value, and maps run until an explicit end byte.
"""
import logging
import struct
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


# ----------------------------
# Errors
# ----------------------------
class VdfError(Exception):
    """Base class for every shortcuts.vdf codec/model error."""


class MalformedInputError(VdfError, ValueError):
    def __init__(self, message: str, offset: Optional[int] = None) -> None:
        if offset is not None:
            message = f"[0x{offset:x}] {message}"
        super().__init__(message)
        self.offset = offset


class TypeMismatchError(VdfError, TypeError):
    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(message)
        self.key = key


class UnknownPropertyError(VdfError, LookupError):
    pass


class OutputCollisionError(VdfError, FileExistsError):
    pass


# ----------------------------
# Wire constants
# ----------------------------
KV_OBJECT = 0x00
KV_STRING = 0x01
KV_INT = 0x02
KV_END = 0x08
KV_NUL = 0x00

UINT32_MAX = 0xFFFFFFFF

# Real files nest root -> shortcuts -> entry -> tags.
MAX_DEPTH = 8


# ----------------------------
# Byte cursor
# ----------------------------
class ByteCursor:
    """Forward-only reader. Reads past the end return None instead of raising."""

    __slots__ = ("buf", "pos")

    def __init__(self, data: bytes) -> None:
        self.buf = bytes(data)
        self.pos = 0

    def peek(self, pos: Optional[int] = None) -> Optional[int]:
        i = self.pos if pos is None else pos
        if i < 0 or i >= len(self.buf):
            return None
        return self.buf[i]

    def consume(self) -> Optional[int]:
        c = self.peek()
        if c is not None:
            self.pos += 1
        return c

    def remaining(self) -> int:
        return len(self.buf) - self.pos


# ----------------------------
# Primitive decoders
# ----------------------------
def decode_uint32(cur: ByteCursor) -> int:
    start = cur.pos
    val = 0
    for shift in (0, 8, 16, 24):
        b = cur.consume()
        if b is None:
            raise MalformedInputError("Unexpected EOF reading uint32", start)
        val |= b << shift
    return val


def decode_string(cur: ByteCursor) -> str:
    """
    Read a NUL terminated string.

    Bytes below 0x80 are taken one character each. A byte with the high bit set
    starts a UTF-8 run that swallows every following high byte; the first low
    byte ends the run and is read again as a character of its own. A run of a
    single byte, or one that is not valid UTF-8, fails the decode.

    End of input ends a non-empty word. End of input before the first byte is
    an error, unlike an immediate NUL which is the empty string.
    """
    start = cur.pos
    chars = []
    while True:
        c = cur.consume()
        if c is None:
            if chars:
                break
            raise MalformedInputError("Unexpected EOF reading string", start)
        if c == KV_NUL:
            break
        if c < 0x80:
            chars.append(chr(c))
            continue

        run = bytearray([c])
        while True:
            b = cur.peek()
            if b is None:
                raise MalformedInputError(
                    f"Invalid UTF-8 chars at end of input. Word was: {''.join(chars)!r}", cur.pos - 1
                )
            if b < 0x80:
                break
            run.append(b)
            cur.consume()

        if len(run) <= 1:
            raise MalformedInputError(f"Invalid UTF-8 chars. Word was: {''.join(chars)!r}", cur.pos - 1)
        try:
            chars.append(run.decode("utf-8"))
        except UnicodeDecodeError:
            raise MalformedInputError(
                f"Invalid UTF-8 chars. Word was: {''.join(chars)!r}", cur.pos - len(run)
            ) from None
    return "".join(chars)


# ----------------------------
# Tree parser
# ----------------------------
def decode_map_item(cur: ByteCursor, depth: int = 0) -> Optional[Tuple[str, Any]]:
    """Read one (type, key, value) item. Returns None on the map end byte."""
    offset = cur.pos
    t = cur.consume()
    if t is None:
        raise MalformedInputError("Unexpected EOF, missing map end", offset)
    if t == KV_END:
        return None
    if t not in (KV_OBJECT, KV_STRING, KV_INT):
        raise MalformedInputError(f"Unknown KV type byte: 0x{t:02x}", offset)

    key = decode_string(cur)
    if t == KV_OBJECT:
        val: Any = decode_map(cur, depth + 1)
    elif t == KV_STRING:
        val = decode_string(cur)
    else:
        val = decode_uint32(cur)
    return key, val


def decode_map(cur: ByteCursor, depth: int = 0) -> Dict[str, Any]:
    if depth > MAX_DEPTH:
        raise MalformedInputError(f"Maps nested deeper than {MAX_DEPTH} levels", cur.pos)
    obj: Dict[str, Any] = {}
    while True:
        item = decode_map_item(cur, depth)
        if item is None:
            return obj
        key, val = item
        obj[key.lower()] = val


def kv_parse(buf: bytes) -> Dict[str, Any]:
    """
    Decode a whole buffer into nested dicts (maps), str and int values.
    Keys are lowercased.
    """
    cur = ByteCursor(buf)
    root = decode_map(cur)
    if cur.remaining():
        logger.debug("Ignoring %d trailing bytes after root map", cur.remaining())
    return root


# ----------------------------
# Encoders
# ----------------------------
def write_type(out: bytearray, t: int) -> None:
    out.append(t)


def write_string(out: bytearray, s: str) -> None:
    if "\x00" in s:
        raise ValueError(f"NUL inside string: {s!r}")
    out += s.encode("utf-8")
    out.append(KV_NUL)


def write_uint32(out: bytearray, n: int) -> None:
    if not 0 <= n <= UINT32_MAX:
        raise ValueError(f"uint32 out of range: {n}")
    out += struct.pack("<I", n)


def _kv_append_map(obj: Dict[str, Any], out: bytearray) -> None:
    for k, v in obj.items():
        if isinstance(v, str):
            write_type(out, KV_STRING)
            write_string(out, str(k))
            write_string(out, v)
        elif isinstance(v, int) and not isinstance(v, bool):
            write_type(out, KV_INT)
            write_string(out, str(k))
            write_uint32(out, v)
        elif isinstance(v, dict):
            write_type(out, KV_OBJECT)
            write_string(out, str(k))
            _kv_append_map(v, out)
        else:
            raise TypeError(f"Cannot encode {type(v).__name__} value for key {k!r}")
    write_type(out, KV_END)


def kv_write(obj: Dict[str, Any]) -> bytes:
    """Encode a map tree. Items are written in dict order, the map is closed with an end byte."""
    out = bytearray()
    _kv_append_map(obj, out)
    return bytes(out)
