import logging
import struct

import numpy as np

from gxt_entries import KEY_SIZE, GXTEntry
from gxt_errors import (
    DuplicateKey, InvalidKeyEncoding, InvalidKeyFieldSize, MagicMismatch,
    UnexpectedEndOfData,
)
from gxt_escape import ValueSection

log = logging.getLogger(__name__)

# =======================
# GXT 解析：TKEY（偏移 + 8 字节 KEY）+ TDAT（UTF-16Z 值）
# =======================

MAGIC_TKEY = b'TKEY'
MAGIC_TDAT = b'TDAT'
KEY_RECORD_SIZE = 4 + KEY_SIZE

TKEY_DTYPE = np.dtype([('offset', '<u4'), ('key', f'V{KEY_SIZE}')])


class ByteCursor:
    """Sequential, bounds-checked reads over an immutable buffer.

    Slices are memoryviews into the source, nothing is copied.
    """

    def __init__(self, data):
        self._view = memoryview(data).cast('B')
        self._pos = 0

    def tell(self):
        return self._pos

    def remaining(self):
        return len(self._view) - self._pos

    def read_fixed(self, size):
        if size > self.remaining():
            raise UnexpectedEndOfData(self._pos, size, self.remaining())
        data = self._view[self._pos:self._pos + size]
        self._pos += size
        return data

    def read_u32_le(self):
        return struct.unpack('<I', self.read_fixed(4))[0]

    def expect_tag(self, tag):
        start = self._pos
        got = self.read_fixed(4)
        if got != tag:
            raise MagicMismatch(start, tag, got)


def decode_key(raw):
    """8 字节 KEY 槽 -> 字符串（截到第一个 0 字节）。"""
    raw = bytes(raw)
    if len(raw) != KEY_SIZE:
        raise InvalidKeyEncoding(raw, f"key slot must be {KEY_SIZE} bytes")
    try:
        return raw.split(b'\x00', 1)[0].decode('utf-8')
    except UnicodeDecodeError as e:
        raise InvalidKeyEncoding(raw, str(e)) from e


def parse_tkey(cursor):
    """Read the TKEY block; returns [(key, offset), ...] in file order."""
    cursor.expect_tag(MAGIC_TKEY)
    size = cursor.read_u32_le()
    if size % KEY_RECORD_SIZE:
        raise InvalidKeyFieldSize(size)

    tkey_data = cursor.read_fixed(size)
    records = []
    if not size:
        return records

    tkey_np = np.frombuffer(tkey_data, dtype=TKEY_DTYPE)
    offsets = tkey_np['offset'].tolist()

    seen = set()
    for raw_key, offset in zip(tkey_np['key'], offsets):
        key = decode_key(raw_key.tobytes())
        if key in seen:
            raise DuplicateKey(key)
        seen.add(key)
        records.append((key, offset))
    return records


def parse_tdat(cursor):
    cursor.expect_tag(MAGIC_TDAT)
    size = cursor.read_u32_le()
    return ValueSection(cursor.read_fixed(size))


def load(data):
    """Decode a whole GXT buffer into an ordered list of GXTEntry."""
    cursor = ByteCursor(data)
    records = parse_tkey(cursor)
    section = parse_tdat(cursor)
    log.debug("TKEY: %d keys, TDAT: %d bytes", len(records), section.size)

    return [GXTEntry(key, section.read(offset, key)) for key, offset in records]
