"""Tests for the escape-aware UTF-16Z value codec."""

import pytest

import gxt_escape
from conftest import units_bytes
from gxt_errors import EscapeError, InvalidEscapeCodepoint, ValueSectionTooLarge
from gxt_escape import (
    ValueSection, decode_utf16z, display_to_units, encode_utf16z, encode_value,
    units_to_display,
)


def decode_units(*units):
    return decode_utf16z(units_bytes(*units, 0))


# =============================================================================
# Decoding
# =============================================================================

class TestDecode:
    def test_plain_text(self):
        assert decode_units(*map(ord, 'Hello ~w~')) == 'Hello ~w~'

    def test_cjk(self):
        assert decode_units(0x4F60, 0x597D) == '你好'

    def test_surrogate_pair(self):
        assert decode_units(0xD83D, 0xDE00) == '\U0001F600'

    def test_special_range_escaped(self):
        assert decode_units(0x0085) == '\\u{0085}'
        assert decode_units(0x0080, 0x009F) == '\\u{0080}\\u{009F}'

    def test_just_outside_special_range(self):
        assert decode_units(0x007F, 0x00A0) == '\x7f\xa0'

    def test_lone_high_surrogate(self):
        assert decode_units(0xD800, ord('a')) == '\\u{D800}a'

    def test_lone_low_surrogate(self):
        assert decode_units(0xDC00) == '\\u{DC00}'

    def test_high_surrogate_at_end(self):
        assert decode_units(ord('a'), 0xDBFF) == 'a\\u{DBFF}'

    def test_reversed_pair_escaped(self):
        assert decode_units(0xDE00, 0xD83D) == '\\u{DE00}\\u{D83D}'

    def test_stops_at_first_terminator(self):
        data = units_bytes(ord('a'), 0, ord('b'), 0)
        assert decode_utf16z(data) == 'a'
        assert decode_utf16z(data, 4) == 'b'

    def test_plain_backslash_kept(self):
        assert decode_units(*map(ord, 'C:\\path')) == 'C:\\path'

    def test_backslash_before_escape_lead_doubled(self):
        # 字面 "\u{41}" 若原样显示，编码时会变成 'A'
        assert decode_units(*map(ord, '\\u{41}')) == '\\\\u{41}'
        assert decode_units(*map(ord, '\\x')) == '\\\\x'
        assert decode_units(ord('\\'), ord('\\')) == '\\\\\\'
        assert decode_units(ord('\\'), 0x0085) == '\\\\\\u{0085}'

    def test_units_to_display_empty(self):
        assert units_to_display([]) == ''


class TestValueSection:
    def test_many_lookups(self):
        section = ValueSection(units_bytes(ord('a'), 0, ord('b'), ord('c'), 0, 0))
        assert section.read(0) == 'a'
        assert section.read(4) == 'bc'
        assert section.read(6) == 'c'
        assert section.read(8) == ''

    def test_missing_terminator(self):
        with pytest.raises(gxt_escape.TruncatedValue):
            ValueSection(units_bytes(ord('a'))).read(0)

    def test_tiny_section(self):
        section = ValueSection(b'\x00')
        assert section.size == 1
        with pytest.raises(gxt_escape.TruncatedValue):
            section.read(0)


# =============================================================================
# Encoding
# =============================================================================

class TestEncode:
    def test_plain_text_with_terminator(self):
        assert encode_value('Hi') == units_bytes(ord('H'), ord('i'), 0)

    def test_empty_string(self):
        assert encode_value('') == b'\x00\x00'

    def test_astral_character(self):
        assert display_to_units('\U0001F600') == [0xD83D, 0xDE00]

    def test_double_backslash(self):
        assert display_to_units('a\\\\b') == [ord('a'), 0x5C, ord('b')]

    def test_x_escape(self):
        assert display_to_units('\\x0085') == [0x0085]
        assert display_to_units('\\xd800') == [0xD800]

    def test_u4_escape(self):
        assert display_to_units('\\u00410') == [0x41, ord('0')]
        assert display_to_units('\\uDE00') == [0xDE00]

    def test_braced_escape(self):
        assert display_to_units('\\u{85}') == [0x85]
        assert display_to_units('\\u{0085}') == [0x85]
        assert display_to_units('\\u{1F600}') == [0xD83D, 0xDE00]
        assert display_to_units('\\u{10FFFF}') == [0xDBFF, 0xDFFF]

    def test_braced_escape_too_large(self):
        with pytest.raises(InvalidEscapeCodepoint) as exc:
            encode_value('\\u{110000}')
        assert exc.value.codepoint == 0x110000
        assert isinstance(exc.value, EscapeError)

    def test_lenient_fallbacks(self):
        assert display_to_units('\\') == [0x5C]
        assert display_to_units('\\n') == [0x5C, ord('n')]
        assert display_to_units('\\x12') == [0x5C, ord('x'), ord('1'), ord('2')]
        assert display_to_units('\\x12G4') == list(map(ord, '\\x12G4'))
        assert display_to_units('\\u{}') == list(map(ord, '\\u{}'))
        assert display_to_units('\\u{41') == list(map(ord, '\\u{41'))
        assert display_to_units('\\u{4G}') == list(map(ord, '\\u{4G}'))

    def test_python_lone_surrogate_char(self):
        assert display_to_units('\ud800') == [0xD800]

    def test_appends_and_reports_bytes(self):
        out = bytearray(b'\xAA\xBB')
        written = encode_utf16z('ab', out)
        assert written == 6
        assert bytes(out) == b'\xAA\xBB' + units_bytes(ord('a'), ord('b'), 0)

    def test_chunk_too_large(self, monkeypatch):
        monkeypatch.setattr(gxt_escape, 'MAX_SECTION_SIZE', 5)
        out = bytearray(b'xy')
        with pytest.raises(ValueSectionTooLarge):
            encode_utf16z('abc', out)
        assert out == bytearray(b'xy')


# =============================================================================
# Round trips
# =============================================================================

class TestEscapeRoundTrip:
    @pytest.mark.parametrize('units', [
        [0xD83D, 0xDE00],
        [0x0085],
        [0xD800, 0xDC00, 0xDC00, 0xD800],
        list(map(ord, 'C:\\u{41}\\x0041\\\\end\\')),
        [0x5C, 0x0099, 0x5C, 0xDFFF, 0x5C],
        [0x4E2D, 0x6587, 0x007E, 0x0072, 0x007E],
    ])
    def test_stored_units_survive(self, units):
        display = decode_units(*units)
        assert display_to_units(display) == units
        assert decode_utf16z(encode_value(display)) == display

    def test_hand_typed_escape_is_interpreted(self):
        # 手写的 \u{...} 会被当作转义；要保留字面文本需写成 \\u{...}
        assert display_to_units('\\u{41}') == [0x41]
        assert display_to_units('\\\\u{41}') == list(map(ord, '\\u{41}'))
