import struct

import pytest


def units_bytes(*units):
    return struct.pack('<%dH' % len(units), *units)


def key_slot(key):
    raw = key.encode('ascii') if isinstance(key, str) else key
    return raw + b'\x00' * (8 - len(raw))


def make_gxt(records, tdat):
    """Raw GXT buffer from [(offset, key), ...] and a TDAT payload."""
    tkey = b''.join(struct.pack('<I', off) + key_slot(key) for off, key in records)
    return (b'TKEY' + struct.pack('<I', len(tkey)) + tkey
            + b'TDAT' + struct.pack('<I', len(tdat)) + tdat)


@pytest.fixture
def empty_gxt():
    return b'TKEY' + struct.pack('<I', 0) + b'TDAT' + struct.pack('<I', 0)


@pytest.fixture
def sample_gxt():
    # "Hi" at 0, "" at 6, "€" at 8
    tdat = units_bytes(ord('H'), ord('i'), 0, 0, 0x20AC, 0)
    return make_gxt([(0, 'HELLO'), (6, 'EMPTY'), (8, 'EURO_1')], tdat)
