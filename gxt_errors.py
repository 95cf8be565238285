"""GXT 编解码错误。

Every failure of the codec raises one of these; nothing is silently fixed
and no partial table or partial buffer is ever returned.
"""


class GXTError(ValueError):
    """Base class for all GXT codec errors"""
    pass


# ---------- 分类 ----------

class StructuralError(GXTError):
    """The buffer does not follow the TKEY/TDAT layout"""
    pass


class ReferentialError(GXTError):
    """A key points outside the value section or at an odd offset"""
    pass


class SemanticError(GXTError):
    """Table content breaks a key rule"""
    pass


class CapacityError(GXTError):
    """Data does not fit the 32-bit size fields"""
    pass


class EscapeError(GXTError):
    """A display string holds an escape that cannot be encoded"""
    pass


# ---------- 结构 ----------

class MagicMismatch(StructuralError):
    def __init__(self, offset, expected, actual):
        self.offset = offset
        self.expected = bytes(expected)
        self.actual = bytes(actual)
        super().__init__(
            f"Magic mismatch at {offset:#X}: expected {self.expected!r}, got {self.actual!r}"
        )


class UnexpectedEndOfData(StructuralError):
    def __init__(self, offset, wanted, available):
        self.offset = offset
        self.wanted = wanted
        self.available = available
        super().__init__(
            f"Unexpected end of data at {offset:#X}: need {wanted} bytes, {available} left"
        )


class InvalidKeyFieldSize(StructuralError):
    def __init__(self, size):
        self.size = size
        super().__init__(f"Invalid key_field_size: {size} (not divisible by 12)")


class TruncatedValue(StructuralError):
    def __init__(self, offset, key=None):
        self.offset = offset
        self.key = key
        where = f" for key {key!r}" if key is not None else ""
        super().__init__(f"Value at {offset:#X}{where} has no terminator before end of TDAT")


# ---------- 偏移 ----------

class ValueOffsetOutOfRange(ReferentialError):
    def __init__(self, key, offset, section_size):
        self.key = key
        self.offset = offset
        self.section_size = section_size
        super().__init__(
            f"Value offset out of range for key {key!r}: idx={offset}, TDAT size={section_size}"
        )


class UnalignedValueOffset(ReferentialError):
    def __init__(self, key, offset):
        self.key = key
        self.offset = offset
        super().__init__(f"Value offset is not aligned (must be even) for key {key!r}: idx={offset}")


# ---------- 键 ----------

class DuplicateKey(SemanticError):
    def __init__(self, key):
        self.key = key
        super().__init__(f"Duplicate key: {key!r}")


class InvalidKey(SemanticError):
    def __init__(self, key, reason):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid KEY {key!r}: {reason}")


class InvalidKeyEncoding(SemanticError):
    def __init__(self, raw, reason=""):
        self.raw = bytes(raw)
        self.reason = reason
        detail = f" ({reason})" if reason else ""
        super().__init__(f"Key slot {self.raw!r} is not valid UTF-8{detail}")


# ---------- 容量 / 转义 ----------

class ValueSectionTooLarge(CapacityError):
    def __init__(self, size):
        self.size = size
        super().__init__(f"TDAT size overflow: {size} bytes does not fit in 32 bits")


class InvalidEscapeCodepoint(EscapeError):
    def __init__(self, codepoint, escape):
        self.codepoint = codepoint
        self.escape = escape
        super().__init__(f"Invalid codepoint in {escape}: {codepoint:X}")
