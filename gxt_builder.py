import logging
import struct

from gxt_entries import KEY_SIZE, validate_entries, validate_key
from gxt_errors import ValueSectionTooLarge
from gxt_escape import encode_utf16z
from gxt_parser import KEY_RECORD_SIZE, MAGIC_TDAT, MAGIC_TKEY

log = logging.getLogger(__name__)

MAX_SECTION_SIZE = 0xFFFFFFFF

# ---------- 帮助函数 ----------

def encode_key(key: str) -> bytes:
    """KEY -> 8 字节槽，左对齐，不足补 0。"""
    validate_key(key)
    b = key.encode('ascii')
    return b + b'\x00' * (KEY_SIZE - len(b))


# ---------- 写 GXT ----------

def build_gxt(entries) -> bytes:
    """Encode entries into a complete GXT buffer.

    Entries are validated first; keys are written in the given order and
    each key's offset points at its value inside TDAT.
    """
    entries = list(entries)
    validate_entries(entries)

    out = bytearray(MAGIC_TKEY)
    out += struct.pack('<I', len(entries) * KEY_RECORD_SIZE)

    datas = bytearray()
    offset = 0
    for key, value in entries:
        out += struct.pack('<I', offset)
        out += encode_key(key)

        written = encode_utf16z(value, datas)
        offset += written
        if offset > MAX_SECTION_SIZE:
            raise ValueSectionTooLarge(offset)

    out += MAGIC_TDAT
    out += struct.pack('<I', len(datas))
    out += datas

    log.debug("built GXT: %d keys, TDAT %d bytes", len(entries), len(datas))
    return bytes(out)


save = build_gxt
