"""
Code point classification and single code point UTF-8 encoding/decoding.

Surrogate code points are allowed to travel through the generalized
3-byte UTF-8 form (ED A0 80 for U+D800) so that lenient parses can keep
them; every other ill-formed sequence is rejected by the decoder.
"""

from typing import Final

REPLACEMENT_CHARACTER: Final = 0xFFFD
MAX_CODE_POINT: Final = 0x10FFFF

# Lead byte -> number of bytes in the sequence, 0 for bytes that cannot
# start one (continuation bytes, C0/C1, F5..FF).
_SEQUENCE_LENGTHS: Final = bytes(
    1 if b < 0x80 else
    0 if b < 0xC2 else
    2 if b < 0xE0 else
    3 if b < 0xF0 else
    4 if b < 0xF5 else
    0
    for b in range(256)
)

# Smallest code point each sequence length may encode.
_MIN_CODE_POINTS: Final = (0, 0, 0x80, 0x800, 0x10000)
_LEAD_MASKS: Final = (0, 0x7F, 0x1F, 0x0F, 0x07)


def is_surrogate(code_point: int) -> bool:
    return 0xD800 <= code_point <= 0xDFFF


def is_high_surrogate(code_point: int) -> bool:
    return 0xD800 <= code_point <= 0xDBFF


def is_low_surrogate(code_point: int) -> bool:
    return 0xDC00 <= code_point <= 0xDFFF


def is_noncharacter(code_point: int) -> bool:
    """U+FDD0..U+FDEF and the last two code points of every plane."""
    return (0xFDD0 <= code_point <= 0xFDEF) or (
        code_point <= MAX_CODE_POINT and (code_point & 0xFFFE) == 0xFFFE
    )


def is_invalid_code_point(code_point: int) -> bool:
    return is_surrogate(code_point) or is_noncharacter(code_point)


def combine_surrogates(high: int, low: int) -> int:
    """Combines a high/low surrogate pair without validating it."""
    return ((high - 0xD800) << 10) + (low - 0xDC00) + 0x10000


def sequence_length(lead: int) -> int:
    """Returns the UTF-8 sequence length announced by a lead byte, or 0."""
    return _SEQUENCE_LENGTHS[lead]


def is_continuation(byte: int) -> bool:
    return 0x80 <= byte <= 0xBF


def decode_sequence(sequence: bytes | bytearray) -> int:
    """
    Decodes one complete UTF-8 sequence.

    The sequence length must match its lead byte and every trailing byte
    must be a continuation byte. Returns -1 for overlong encodings and
    values above U+10FFFF.
    """
    length = len(sequence)
    code_point = sequence[0] & _LEAD_MASKS[length]
    for byte in sequence[1:]:
        code_point = (code_point << 6) | (byte & 0x3F)

    if code_point < _MIN_CODE_POINTS[length] or code_point > MAX_CODE_POINT:
        return -1
    return code_point


def decode_at(data: bytes | bytearray, pos: int) -> tuple[int, int]:
    """
    Decodes the code point starting at ``data[pos]``.

    Returns ``(code_point, next_pos)``; the code point is -1 for a
    malformed sequence, in which case exactly one byte is skipped.
    """
    length = _SEQUENCE_LENGTHS[data[pos]]
    end = pos + length
    if length == 0 or end > len(data):
        return -1, pos + 1
    for i in range(pos + 1, end):
        if not is_continuation(data[i]):
            return -1, pos + 1

    code_point = decode_sequence(data[pos:end])
    if code_point < 0:
        return -1, pos + 1
    return code_point, end


def encode(code_point: int) -> bytes:
    """Encodes one code point, surrogates included, as UTF-8."""
    return chr(code_point).encode("utf-8", "surrogatepass")
