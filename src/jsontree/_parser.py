"""
Non-recursive JSON parser.

The parser keeps an explicit stack of the container Documents currently
open, so nesting depth costs heap memory, never native stack. Errors never
escape the parse loop as exceptions: the first one halts the machine and
is returned as a ParseError next to the partially built Document.
"""

from __future__ import annotations

import itertools
import logging
import math
import re
from collections.abc import Iterable
from collections.abc import Iterator
from dataclasses import dataclass
from enum import IntEnum
from typing import Any
from typing import Final

from ._arena import Arena
from ._arena import resolve_arena
from ._profile import ProfileContext
from ._unicode import REPLACEMENT_CHARACTER
from ._unicode import combine_surrogates
from ._unicode import decode_sequence
from ._unicode import encode
from ._unicode import is_continuation
from ._unicode import is_high_surrogate
from ._unicode import is_invalid_code_point
from ._unicode import is_low_surrogate
from ._unicode import sequence_length
from ._utf8_mapper import UTF8PositionMapper
from ._value import INT_MAX
from ._value import INT_MIN
from ._value import Document
from ._value import Type

logger = logging.getLogger(__name__)

type ParseInput = str | bytes | bytearray | memoryview | Iterable[int]
type Rest = str | bytes | Iterator[int]

_TAB: Final = 0x09
_LF: Final = 0x0A
_CR: Final = 0x0D
_SPACE: Final = 0x20
_QUOTE: Final = 0x22
_STAR: Final = 0x2A
_COMMA: Final = 0x2C
_MINUS: Final = 0x2D
_DOT: Final = 0x2E
_SLASH: Final = 0x2F
_ZERO: Final = 0x30
_NINE: Final = 0x39
_COLON: Final = 0x3A
_LBRACKET: Final = 0x5B
_BACKSLASH: Final = 0x5C
_RBRACKET: Final = 0x5D
_LBRACE: Final = 0x7B
_RBRACE: Final = 0x7D
_LOWER_E: Final = 0x65
_UPPER_E: Final = 0x45
_PLUS: Final = 0x2B
_LOWER_U: Final = 0x75

_SIMPLE_ESCAPES: Final = {
    _QUOTE: _QUOTE,
    _BACKSLASH: _BACKSLASH,
    _SLASH: _SLASH,
    ord("b"): 0x08,
    ord("f"): 0x0C,
    ord("n"): _LF,
    ord("r"): _CR,
    ord("t"): _TAB,
}

_HEX_VALUES: Final = tuple(
    int(chr(b), 16) if chr(b) in "0123456789abcdefABCDEF" else -1
    for b in range(256)
)

# Bytes copied verbatim into a string: printable ASCII except '"' and '\'.
_PLAIN_RUN: Final = re.compile(rb'[^"\\\x00-\x1f\x80-\xff]*')
_PLAIN_BYTES: Final = frozenset(
    b for b in range(0x20, 0x80) if b not in (_QUOTE, _BACKSLASH)
)
_DIGIT_RUN: Final = re.compile(rb"[0-9]*")

# Longest decimal literal that may still fit in 64 signed bits.
_MAX_INT_DIGITS: Final = 19


class ParseErrorCode(IntEnum):
    """Reason a parse stopped; ``NONE`` (zero) means success."""

    NONE = 0
    UNEXPECTED_TOKEN = 1
    INVALID_ESCAPE = 2
    INVALID_ENCODING = 3
    MAX_DEPTH = 4
    NUMBER_OUT_OF_RANGE = 5
    DUPLICATE_KEY = 6

    @property
    def message(self) -> str:
        return _ERROR_MESSAGES[self]


_ERROR_MESSAGES: Final = {
    ParseErrorCode.NONE: "none",
    ParseErrorCode.UNEXPECTED_TOKEN: "unexpected token",
    ParseErrorCode.INVALID_ESCAPE: "invalid escape",
    ParseErrorCode.INVALID_ENCODING: "invalid encoding",
    ParseErrorCode.MAX_DEPTH: "max depth reached",
    ParseErrorCode.NUMBER_OUT_OF_RANGE: "number out of range",
    ParseErrorCode.DUPLICATE_KEY: "duplicate key",
}


@dataclass(frozen=True)
class ParseError:
    """
    Outcome of a parse: one error code plus where it happened.

    ``line`` and ``column`` are 0-based, the column counts bytes since the
    last line break and ``offset`` is the absolute byte offset of the
    offending byte. All three are -1 on success, and the error is falsy.
    """

    code: ParseErrorCode = ParseErrorCode.NONE
    line: int = -1
    column: int = -1
    offset: int = -1

    def __bool__(self) -> bool:
        return self.code is not ParseErrorCode.NONE

    @property
    def message(self) -> str:
        return self.code.message

    def __str__(self) -> str:
        if not self:
            return "none"
        return f"{self.message} at line {self.line}, column {self.column}"


@dataclass(frozen=True)
class ParseOptions:
    """
    Configures parser leniency with immutable settings.

    Every extension is off by default, which parses strict RFC 8259 JSON.
    ``replace_invalid_code_points`` implies accepting them.
    """

    max_depth: int | None = None
    accept_comments: bool = False
    accept_trailing_commas: bool = False
    accept_duplicate_keys: bool = False
    accept_invalid_code_points: bool = False
    replace_invalid_code_points: bool = False

    def __post_init__(self) -> None:
        if self.max_depth is not None and (
            isinstance(self.max_depth, bool)
            or not isinstance(self.max_depth, int)
            or self.max_depth < 0
        ):
            raise ValueError("max_depth must be a non-negative integer or None")
        for name in (
            "accept_comments",
            "accept_trailing_commas",
            "accept_duplicate_keys",
            "accept_invalid_code_points",
            "replace_invalid_code_points",
        ):
            if not isinstance(getattr(self, name), bool):
                raise TypeError(f"{name} must be a boolean")


@dataclass(frozen=True)
class ParseResult:
    """Unconsumed input, the parsed (or partial) Document and the error."""

    rest: Rest
    document: Document
    error: ParseError


class _BufferCursor:
    """Reads from an in-memory byte string."""

    __slots__ = ("_data", "_end", "pos")

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._end = len(data)
        self.pos = 0

    def peek(self) -> int:
        if self.pos < self._end:
            return self._data[self.pos]
        return -1

    def advance(self) -> None:
        self.pos += 1

    def take_plain(self) -> bytes:
        end = _PLAIN_RUN.match(self._data, self.pos).end()  # type: ignore[union-attr]
        run = self._data[self.pos : end]
        self.pos = end
        return run

    def skip_digits(self) -> None:
        self.pos = _DIGIT_RUN.match(self._data, self.pos).end()  # type: ignore[union-attr]

    def consumed_since(self, start: int) -> bytes:
        return self._data[start : self.pos]

    def rest(self) -> bytes:
        return self._data[self.pos :]


_END: Final = object()


class _IteratorCursor:
    """Pulls bytes lazily from an iterator, one byte of lookahead."""

    __slots__ = ("_head", "_iterator", "_record", "pos")

    def __init__(self, iterable: Iterable[int]) -> None:
        self._iterator = iter(iterable)
        self._record: bytearray | None = None
        self.pos = 0
        self._head = self._pull()

    def _pull(self) -> int:
        value = next(self._iterator, _END)
        if value is _END:
            return -1
        if not isinstance(value, int) or not 0 <= value <= 0xFF:
            raise ValueError(
                f"input iterator must yield byte values, got {value!r}"
            )
        return value

    def peek(self) -> int:
        return self._head

    def advance(self) -> None:
        if self._record is not None:
            self._record.append(self._head)
        self._head = self._pull()
        self.pos += 1

    def take_plain(self) -> bytes:
        run = bytearray()
        while self._head in _PLAIN_BYTES:
            run.append(self._head)
            self.advance()
        return bytes(run)

    def skip_digits(self) -> None:
        while _ZERO <= self._head <= _NINE:
            self.advance()

    def start_recording(self) -> None:
        self._record = bytearray()

    def stop_recording(self) -> bytes:
        recorded = bytes(self._record or b"")
        self._record = None
        return recorded

    def rest(self) -> Iterator[int]:
        if self._head < 0:
            return self._iterator
        return itertools.chain((self._head,), self._iterator)


type _Cursor = _BufferCursor | _IteratorCursor
type _Mark = tuple[int, int, int]


class _ParseHandler:
    """
    State machine driving one parse call.

    ``_start_document`` resolves a scalar in one step or opens a container
    and pushes it; ``_continue_array`` / ``_continue_object`` consume the
    next structural token of the top frame. The driving loop in ``run``
    repeats until the stack is empty or an error is set.
    """

    def __init__(
        self, cursor: _Cursor, options: ParseOptions, arena: Arena
    ) -> None:
        self.src = cursor
        self.options = options
        self.arena = arena
        self.stack: list[Document] = []
        self.line = 0
        self.line_start = 0
        self.code = ParseErrorCode.NONE
        self.error = ParseError()

    def run(self) -> Document:
        document = Document(arena=self.arena)
        self._start_document(document)

        stack = self.stack
        while stack and self.code is ParseErrorCode.NONE:
            top = stack[-1]
            if top.type() is Type.ARRAY:
                self._continue_array(top)
            else:
                self._continue_object(top)

        return document

    # -- positions and errors ------------------------------------------

    def _mark(self) -> _Mark:
        return self.src.pos, self.line, self.line_start

    def _newline(self) -> None:
        self.line += 1
        self.line_start = self.src.pos

    def _fail(self, code: ParseErrorCode, mark: _Mark | None = None) -> None:
        if self.code is not ParseErrorCode.NONE:
            return
        offset, line, line_start = mark or self._mark()
        self.code = code
        self.error = ParseError(code, line, offset - line_start, offset)

    # -- whitespace and comments ---------------------------------------

    def _skip_whitespace(self) -> bool:
        """Skips whitespace and comments; True when the document cannot go on."""
        src = self.src
        while True:
            c = src.peek()
            if c == _SPACE or c == _TAB:
                src.advance()
            elif c == _LF:
                src.advance()
                self._newline()
            elif c == _CR:
                src.advance()
                if src.peek() == _LF:
                    src.advance()
                self._newline()
            elif c == _SLASH:
                if not self._skip_comment():
                    return True
            elif c < 0:
                self._fail(ParseErrorCode.UNEXPECTED_TOKEN)
                return True
            else:
                return False

    def _skip_comment(self) -> bool:
        src = self.src
        start = self._mark()
        if not self.options.accept_comments:
            self._fail(ParseErrorCode.UNEXPECTED_TOKEN, start)
            return False

        src.advance()
        kind = src.peek()
        if kind == _SLASH:
            src.advance()
            # Line breaks are left for the whitespace loop to count.
            while (c := src.peek()) >= 0 and c != _LF and c != _CR:
                src.advance()
            return True

        if kind != _STAR:
            self._fail(ParseErrorCode.UNEXPECTED_TOKEN, start)
            return False

        src.advance()
        while (c := src.peek()) >= 0:
            src.advance()
            if c == _STAR:
                if src.peek() == _SLASH:
                    src.advance()
                    return True
            elif c == _LF:
                self._newline()
            elif c == _CR:
                if src.peek() == _LF:
                    src.advance()
                self._newline()
        # Unterminated: the caller hits end of input next.
        return True

    # -- values ----------------------------------------------------------

    def _start_document(self, dest: Document) -> None:
        if self._skip_whitespace():
            return

        src = self.src
        c = src.peek()
        if c == _LBRACE or c == _LBRACKET:
            max_depth = self.options.max_depth
            if max_depth is not None and len(self.stack) >= max_depth:
                logger.debug("max depth %d exceeded", max_depth)
                self._fail(ParseErrorCode.MAX_DEPTH)
                return
            src.advance()
            if c == _LBRACE:
                dest.emplace_object()
            else:
                dest.emplace_array()
            self.stack.append(dest)
        elif c == _QUOTE:
            text = self._read_string()
            if text is not None:
                dest.emplace_string().extend(text)
        elif c == _MINUS or _ZERO <= c <= _NINE:
            self._read_number(dest)
        elif c == 0x74:
            if self._expect_literal(b"true"):
                dest.assign(True)
        elif c == 0x66:
            if self._expect_literal(b"false"):
                dest.assign(False)
        elif c == 0x6E:
            if self._expect_literal(b"null"):
                dest.assign(None)
        else:
            self._fail(ParseErrorCode.UNEXPECTED_TOKEN)

    def _continue_array(self, frame: Document) -> None:
        if self._skip_whitespace():
            return

        src = self.src
        array = frame.get_array()
        c = src.peek()
        if c == _RBRACKET:
            src.advance()
            self.stack.pop()
        elif c == _COMMA:
            if not len(array):
                self._fail(ParseErrorCode.UNEXPECTED_TOKEN)
                return
            src.advance()
            if self._skip_whitespace():
                return
            if src.peek() == _RBRACKET:
                if not self.options.accept_trailing_commas:
                    self._fail(ParseErrorCode.UNEXPECTED_TOKEN)
                    return
                src.advance()
                self.stack.pop()
            else:
                self._start_document(array.emplace_back())
        elif len(array):
            self._fail(ParseErrorCode.UNEXPECTED_TOKEN)
        else:
            self._start_document(array.emplace_back())

    def _continue_object(self, frame: Document) -> None:
        if self._skip_whitespace():
            return

        src = self.src
        obj = frame.get_object()
        c = src.peek()
        if c == _RBRACE:
            src.advance()
            self.stack.pop()
        elif c == _COMMA:
            if not len(obj):
                self._fail(ParseErrorCode.UNEXPECTED_TOKEN)
                return
            src.advance()
            if self._skip_whitespace():
                return
            if src.peek() == _RBRACE:
                if not self.options.accept_trailing_commas:
                    self._fail(ParseErrorCode.UNEXPECTED_TOKEN)
                    return
                src.advance()
                self.stack.pop()
            else:
                self._start_entry(frame)
        elif c == _QUOTE and not len(obj):
            self._start_entry(frame)
        else:
            self._fail(ParseErrorCode.UNEXPECTED_TOKEN)

    def _start_entry(self, frame: Document) -> None:
        src = self.src
        key_mark = self._mark()
        if src.peek() != _QUOTE:
            self._fail(ParseErrorCode.UNEXPECTED_TOKEN)
            return

        key = self._read_string()
        if key is None or self._skip_whitespace():
            return
        if src.peek() != _COLON:
            self._fail(ParseErrorCode.UNEXPECTED_TOKEN)
            return
        src.advance()

        value, inserted = frame.get_object().insert(key)
        if not inserted and not self.options.accept_duplicate_keys:
            self._fail(ParseErrorCode.DUPLICATE_KEY, key_mark)
            return
        self._start_document(value)

    def _expect_literal(self, word: bytes) -> bool:
        src = self.src
        for expected in word:
            if src.peek() != expected:
                self._fail(ParseErrorCode.UNEXPECTED_TOKEN)
                return False
            src.advance()
        return True

    # -- numbers ---------------------------------------------------------

    def _read_number(self, dest: Document) -> None:
        src = self.src
        start = self._mark()
        if isinstance(src, _IteratorCursor):
            src.start_recording()
        is_int = self._scan_number()
        if isinstance(src, _IteratorCursor):
            literal = src.stop_recording()
        else:
            literal = src.consumed_since(start[0])
        if is_int is None:
            return

        if is_int:
            digits = len(literal) - (literal[0] == _MINUS)
            value: Any = int(literal) if digits <= _MAX_INT_DIGITS else None
            if value is None or not INT_MIN <= value <= INT_MAX:
                self._fail(ParseErrorCode.NUMBER_OUT_OF_RANGE, start)
                return
        else:
            value = float(literal)
            if math.isinf(value):
                self._fail(ParseErrorCode.NUMBER_OUT_OF_RANGE, start)
                return
        dest.assign(value)

    def _scan_number(self) -> bool | None:
        """Consumes a number literal; returns whether it is an integer."""
        src = self.src
        is_int = True

        if src.peek() == _MINUS:
            src.advance()

        c = src.peek()
        if not _ZERO <= c <= _NINE:
            self._fail(ParseErrorCode.UNEXPECTED_TOKEN)
            return None
        src.advance()
        if c == _ZERO:
            if _ZERO <= src.peek() <= _NINE:
                self._fail(ParseErrorCode.UNEXPECTED_TOKEN)
                return None
        else:
            src.skip_digits()

        if src.peek() == _DOT:
            is_int = False
            src.advance()
            if not _ZERO <= src.peek() <= _NINE:
                self._fail(ParseErrorCode.UNEXPECTED_TOKEN)
                return None
            src.skip_digits()

        if src.peek() in (_LOWER_E, _UPPER_E):
            is_int = False
            src.advance()
            if src.peek() in (_PLUS, _MINUS):
                src.advance()
            if not _ZERO <= src.peek() <= _NINE:
                self._fail(ParseErrorCode.UNEXPECTED_TOKEN)
                return None
            src.skip_digits()

        return is_int

    # -- strings ---------------------------------------------------------

    def _read_string(self) -> bytearray | None:
        """Reads a quoted string at the cursor; None once an error is set."""
        src = self.src
        src.advance()
        out = bytearray()
        while True:
            out += src.take_plain()
            c = src.peek()
            if c == _QUOTE:
                src.advance()
                return out
            if c == _BACKSLASH:
                if not self._read_escape(out):
                    return None
            elif c < 0x20:
                # Raw control character or end of input.
                self._fail(ParseErrorCode.UNEXPECTED_TOKEN)
                return None
            elif not self._read_utf8(out):
                return None

    def _read_utf8(self, out: bytearray) -> bool:
        src = self.src
        start = self._mark()
        length = sequence_length(src.peek())
        if length == 0:
            self._fail(ParseErrorCode.INVALID_ENCODING, start)
            return False

        sequence = bytearray((src.peek(),))
        src.advance()
        for _ in range(length - 1):
            c = src.peek()
            if c < 0 or not is_continuation(c):
                self._fail(ParseErrorCode.INVALID_ENCODING, start)
                return False
            sequence.append(c)
            src.advance()

        code_point = decode_sequence(sequence)
        if code_point < 0:
            self._fail(ParseErrorCode.INVALID_ENCODING, start)
            return False
        return self._append_code_point(out, code_point, start, sequence)

    def _read_escape(self, out: bytearray) -> bool:
        start = self._mark()
        self.src.advance()
        return self._read_escape_body(out, start)

    def _read_escape_body(self, out: bytearray, start: _Mark) -> bool:
        """Handles the escape whose backslash was consumed at ``start``."""
        src = self.src
        c = src.peek()
        if c < 0:
            self._fail(ParseErrorCode.UNEXPECTED_TOKEN)
            return False

        simple = _SIMPLE_ESCAPES.get(c)
        if simple is not None:
            src.advance()
            out.append(simple)
            return True
        if c != _LOWER_U:
            self._fail(ParseErrorCode.INVALID_ESCAPE, start)
            return False

        src.advance()
        code_point = self._read_hex4(start)
        while code_point >= 0 and is_high_surrogate(code_point):
            if src.peek() != _BACKSLASH:
                break
            second = self._mark()
            src.advance()
            if src.peek() != _LOWER_U:
                return self._append_code_point(
                    out, code_point, start
                ) and self._read_escape_body(out, second)

            src.advance()
            low = self._read_hex4(second)
            if low < 0:
                return False
            if is_low_surrogate(low):
                return self._append_code_point(
                    out, combine_surrogates(code_point, low), start
                )
            if not self._append_code_point(out, code_point, start):
                return False
            code_point, start = low, second

        if code_point < 0:
            return False
        return self._append_code_point(out, code_point, start)

    def _read_hex4(self, start: _Mark) -> int:
        src = self.src
        value = 0
        for _ in range(4):
            c = src.peek()
            if c < 0:
                self._fail(ParseErrorCode.UNEXPECTED_TOKEN)
                return -1
            digit = _HEX_VALUES[c]
            if digit < 0:
                self._fail(ParseErrorCode.INVALID_ESCAPE, start)
                return -1
            value = (value << 4) | digit
            src.advance()
        return value

    def _append_code_point(
        self,
        out: bytearray,
        code_point: int,
        start: _Mark,
        raw: bytes | bytearray | None = None,
    ) -> bool:
        """Applies the invalid code point policy and appends UTF-8."""
        if is_invalid_code_point(code_point):
            if self.options.replace_invalid_code_points:
                code_point, raw = REPLACEMENT_CHARACTER, None
            elif not self.options.accept_invalid_code_points:
                self._fail(ParseErrorCode.INVALID_ESCAPE, start)
                return False

        if raw is not None:
            out += raw
        elif code_point < 0x80:
            out.append(code_point)
        else:
            out += encode(code_point)
        return True


class Parser:
    """
    Parses JSON text into Documents with fixed options.

    A Parser holds only immutable settings, so one instance may serve any
    number of sequential parses; every call builds its own stack.
    """

    def __init__(
        self, options: ParseOptions | None = None, arena: Arena | None = None
    ) -> None:
        if options is None:
            options = ParseOptions()
        elif not isinstance(options, ParseOptions):
            raise TypeError("options must be a ParseOptions instance")
        self.options = options
        self.arena = resolve_arena(arena)

    def parse(self, data: ParseInput, arena: Arena | None = None) -> ParseResult:
        """
        Parses one JSON value from the start of ``data``.

        ``data`` is ``str`` (encoded as UTF-8), bytes-like, or any iterable
        of byte values consumed lazily. Input after the value is not
        consumed and comes back as ``rest``: a ``str`` or ``bytes`` suffix
        matching the input type, or an iterator over the remaining bytes.
        """
        target = self.arena if arena is None else resolve_arena(arena)

        if isinstance(data, str):
            encoded = data.encode("utf-8", "surrogatepass")
            buffer = _BufferCursor(encoded)
            document, error = self._run(buffer, target)
            consumed = UTF8PositionMapper(data).byte_to_char(buffer.pos)
            return ParseResult(data[consumed:], document, error)

        if isinstance(data, bytes | bytearray | memoryview):
            raw = bytes(data)
            buffer = _BufferCursor(raw)
            document, error = self._run(buffer, target)
            return ParseResult(buffer.rest(), document, error)

        stream = _IteratorCursor(data)
        document, error = self._run(stream, target)
        return ParseResult(stream.rest(), document, error)

    def _run(self, cursor: _Cursor, arena: Arena) -> tuple[Document, ParseError]:
        handler = _ParseHandler(cursor, self.options, arena)
        with ProfileContext("parse") as profile:
            document = handler.run()
            profile.nbytes = cursor.pos
        if handler.error:
            logger.debug("parse failed: %s", handler.error)
        return document, handler.error


def parse(
    data: ParseInput,
    options: ParseOptions | None = None,
    arena: Arena | None = None,
) -> ParseResult:
    """Parses one JSON value from ``data``; see ``Parser.parse``."""
    return Parser(options, arena).parse(data)
