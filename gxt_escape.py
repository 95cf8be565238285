"""UTF-16Z 值编解码（带可逆转义）。

TDAT 中的每个值是一串以 0 结尾的 UTF-16LE 码元。显示字符串里，引擎保留的
0x0080-0x009F 区间以及不成对的代理码元都写成 ``\\u{XXXX}``，其余字符原样显示。

Escape grammar accepted when encoding::

    \\\\           one backslash
    \\xHHHH        one raw code unit
    \\uHHHH        one raw code unit (not followed by '{')
    \\u{H...}      a code point, split into a surrogate pair above 0xFFFF

Any other backslash is kept as a literal backslash.
"""

import logging
import re
import struct

import numpy as np

from gxt_errors import (
    InvalidEscapeCodepoint, TruncatedValue, UnalignedValueOffset,
    ValueOffsetOutOfRange, ValueSectionTooLarge,
)

log = logging.getLogger(__name__)

# ---------- 常量 ----------
SPECIAL_MIN = 0x0080
SPECIAL_MAX = 0x009F
MAX_CODEPOINT = 0x10FFFF
MAX_SECTION_SIZE = 0xFFFFFFFF

BACKSLASH = 0x5C
TERMINATOR = b'\x00\x00'

ESCAPE_RE = re.compile(
    r'\\(?:'
    r'(?P<backslash>\\)'
    r'|x(?P<x>[0-9A-Fa-f]{4})'
    r'|u(?P<u>[0-9A-Fa-f]{4})'
    r'|u\{(?P<cp>[0-9A-Fa-f]+)\}'
    r')'
)

# 字面反斜杠后面若紧跟这些字符，编码时会被当成转义的开头
_ESCAPE_LEADS = ('\\', 'x', 'u')


def is_high_surrogate(u):
    return 0xD800 <= u <= 0xDBFF


def is_low_surrogate(u):
    return 0xDC00 <= u <= 0xDFFF


def is_surrogate(u):
    return 0xD800 <= u <= 0xDFFF


def is_special(u):
    return SPECIAL_MIN <= u <= SPECIAL_MAX


def escape_unit(u):
    return '\\u{%04X}' % u


def surrogate_pair(cp):
    cp -= 0x10000
    return 0xD800 | (cp >> 10), 0xDC00 | (cp & 0x3FF)


# ---------- 解码 ----------

def units_to_display(units):
    """Render a run of code units (terminator excluded) as a display string."""
    pieces = []
    i = 0
    n = len(units)
    while i < n:
        u = units[i]

        # surrogate pair -> 一个字符
        if is_high_surrogate(u) and i + 1 < n and is_low_surrogate(units[i + 1]):
            lo = units[i + 1]
            pieces.append(chr(0x10000 + (((u - 0xD800) << 10) | (lo - 0xDC00))))
            i += 2
            continue

        # 特殊区间和不成对的 surrogate 都不是可单独显示的标量值
        if is_special(u) or is_surrogate(u):
            pieces.append(escape_unit(u))
        else:
            pieces.append(chr(u))
        i += 1

    for j in range(len(pieces) - 1):
        if pieces[j] == '\\' and pieces[j + 1][0] in _ESCAPE_LEADS:
            pieces[j] = '\\\\'
    return ''.join(pieces)


class ValueSection:
    """Read-only view over a TDAT payload.

    The payload is viewed once as little-endian 16-bit units and every zero
    terminator is located up front, so each value lookup is a binary search.
    """

    def __init__(self, data):
        self.size = len(data)
        if self.size >= 2:
            self.units = np.frombuffer(data, dtype='<u2', count=self.size // 2)
        else:
            self.units = np.zeros(0, dtype='<u2')
        self.terminators = np.flatnonzero(self.units == 0)

    def read(self, offset, key=None):
        if offset >= self.size:
            raise ValueOffsetOutOfRange(key, offset, self.size)
        if offset % 2:
            raise UnalignedValueOffset(key, offset)

        start = offset // 2
        pos = int(np.searchsorted(self.terminators, start, side='left'))
        if pos >= len(self.terminators):
            raise TruncatedValue(offset, key)
        end = int(self.terminators[pos])
        return units_to_display(self.units[start:end].tolist())


def decode_utf16z(data, offset=0):
    return ValueSection(data).read(offset)


# ---------- 编码 ----------

def _escape_bytes(m):
    if m.group('backslash') is not None:
        return struct.pack('<H', BACKSLASH)
    if m.group('x') is not None:
        return struct.pack('<H', int(m.group('x'), 16))
    if m.group('u') is not None:
        return struct.pack('<H', int(m.group('u'), 16))

    cp = int(m.group('cp'), 16)
    if cp > MAX_CODEPOINT:
        raise InvalidEscapeCodepoint(cp, m.group(0))
    if cp <= 0xFFFF:
        return struct.pack('<H', cp)
    return struct.pack('<2H', *surrogate_pair(cp))


def encode_utf16z(text, out):
    """Append ``text`` plus a zero terminator to ``out`` (a bytearray).

    Returns the number of bytes written.
    """
    start_len = len(out)
    pos = 0
    n = len(text)
    while pos < n:
        slash = text.find('\\', pos)
        if slash == -1:
            slash = n
        if slash > pos:
            # 普通文本：astral 字符自然变成 surrogate pair
            out += text[pos:slash].encode('utf-16-le', 'surrogatepass')
            pos = slash
            continue

        m = ESCAPE_RE.match(text, pos)
        if m:
            out += _escape_bytes(m)
            pos = m.end()
        else:
            out += struct.pack('<H', BACKSLASH)
            pos += 1

    out += TERMINATOR

    written = len(out) - start_len
    if written > MAX_SECTION_SIZE:
        del out[start_len:]
        raise ValueSectionTooLarge(written)
    return written


def encode_value(text):
    out = bytearray()
    encode_utf16z(text, out)
    return bytes(out)


def display_to_units(text):
    """Code units ``text`` encodes to, terminator excluded."""
    raw = encode_value(text)[:-2]
    return list(struct.unpack('<%dH' % (len(raw) // 2), raw))
