"""条目与 KEY 校验。

KEY 为 1..8 字节的可见 ASCII（0x20 ' ' .. 0x7E '~'），同一张表内不可重复。
"""

import re
from typing import Iterable, NamedTuple

from gxt_errors import DuplicateKey, InvalidKey

KEY_SIZE = 8
KEY_MIN_BYTE = 0x20
KEY_MAX_BYTE = 0x7E

_NON_PRINTABLE_RE = re.compile(r'[^\x20-\x7E]')

# find_problems 返回的原因
PROBLEM_EMPTY = 'empty'
PROBLEM_INVALID = 'invalid'
PROBLEM_DUPLICATE = 'duplicate'


class GXTEntry(NamedTuple):
    key: str
    value: str


def validate_key(key: str) -> None:
    """Raise InvalidKey unless ``key`` is 1..8 printable ASCII bytes."""
    raw = key.encode('utf-8', 'surrogatepass')
    if not 0 < len(raw) <= KEY_SIZE:
        raise InvalidKey(key, f"length must be 1..={KEY_SIZE} bytes, got {len(raw)}")
    if not all(KEY_MIN_BYTE <= b <= KEY_MAX_BYTE for b in raw):
        raise InvalidKey(key, "printable ASCII 0x20..0x7E only")


def validate_entries(entries: Iterable) -> None:
    """Check every entry in table order and raise on the first offender."""
    seen = set()
    for key, _value in entries:
        validate_key(key)
        if key in seen:
            raise DuplicateKey(key)
        seen.add(key)


def find_problems(entries) -> dict:
    """Map row index -> problem for every row that would block saving.

    Unlike validate_entries this reports every row, and both rows of a
    duplicated key.
    """
    counts = {}
    for key, _value in entries:
        counts[key] = counts.get(key, 0) + 1

    problems = {}
    for row, (key, _value) in enumerate(entries):
        if not key:
            problems[row] = PROBLEM_EMPTY
            continue
        try:
            validate_key(key)
        except InvalidKey:
            problems[row] = PROBLEM_INVALID
            continue
        if counts[key] > 1:
            problems[row] = PROBLEM_DUPLICATE
    return problems


def normalize_key(text: str) -> str:
    """Drop non-printable / non-ASCII characters and cut to the slot width."""
    return _NON_PRINTABLE_RE.sub('', text)[:KEY_SIZE]


def sort_entries(entries) -> list:
    return sorted((GXTEntry(k, v) for k, v in entries), key=lambda e: e.key)
