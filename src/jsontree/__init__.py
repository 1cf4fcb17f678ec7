"""
JSON document model with a non-recursive parser and serializer.

Documents are owned trees of null, bool, int, float, String, Array and
Object values. The parser and serializer keep explicit stacks, report exact
error positions and accept optional extensions (comments, trailing commas,
duplicate keys, invalid code points). ``loads``/``dumps`` offer the shape of
the standard library json module on top of them.
"""

import re
from typing import IO
from typing import Any
from typing import Final

from ._arena import Arena
from ._arena import default_arena
from ._parser import ParseError
from ._parser import ParseErrorCode
from ._parser import ParseOptions
from ._parser import ParseResult
from ._parser import Parser
from ._parser import parse
from ._profile import HotPathStats
from ._profile import clear_hot_path_stats
from ._profile import get_hot_path_stats
from ._serializer import SerializeOptions
from ._serializer import Serializer
from ._serializer import serialize
from ._serializer import to_bytes
from ._serializer import to_string
from ._utf8_mapper import UTF8PositionMapper
from ._value import INT_MAX
from ._value import INT_MIN
from ._value import Array
from ._value import Document
from ._value import Object
from ._value import String
from ._value import Type

__version__ = "0.1.0"

type Position = int

_TRAILING_TEXT: Final = re.compile(r"[ \t\n\r]*")
_TRAILING_BYTES: Final = re.compile(rb"[ \t\n\r]*")
_TRAILING_TEXT_WITH_COMMENTS: Final = re.compile(
    r"(?:[ \t\n\r]|//[^\n\r]*|/\*.*?\*/)*", re.DOTALL
)
_TRAILING_BYTES_WITH_COMMENTS: Final = re.compile(
    rb"(?:[ \t\n\r]|//[^\n\r]*|/\*.*?\*/)*", re.DOTALL
)


class JSONDecodeError(ValueError):
    """
    Handles JSON parsing failures with precise position information.

    ``pos`` is a character offset into ``doc`` for text documents and a
    byte offset for binary ones. ``lineno`` and ``colno`` are 1-based; when
    not given they are computed from ``doc`` and ``pos``.
    """

    def __init__(
        self,
        msg: str,
        doc: str | bytes = "",
        pos: Position = 0,
        lineno: int | None = None,
        colno: int | None = None,
        code: ParseErrorCode = ParseErrorCode.UNEXPECTED_TOKEN,
    ) -> None:
        if not isinstance(msg, str):
            raise TypeError("msg must be a string")
        if not isinstance(pos, int) or pos < 0:
            raise ValueError("pos must be a non-negative integer")

        self.msg = msg
        self.doc = doc
        self.pos = pos
        self.code = code

        if lineno is None or colno is None:
            newline: Any = "\n" if isinstance(doc, str) else b"\n"
            lineno = doc.count(newline, 0, pos) + 1 if doc else 1
            colno = pos - doc.rfind(newline, 0, pos) if doc else pos + 1
        self.lineno = lineno
        self.colno = colno

        super().__init__(f"{msg} at line {self.lineno}, column {self.colno}")

    def __reduce__(self) -> tuple[Any, ...]:
        return (
            self.__class__,
            (self.msg, self.doc, self.pos, self.lineno, self.colno, self.code),
        )


def _error_from_result(
    s: str | bytes, result: ParseResult
) -> JSONDecodeError:
    error = result.error
    pos = error.offset
    if isinstance(s, str):
        pos = UTF8PositionMapper(s).byte_to_char(pos)
    return JSONDecodeError(
        error.message.capitalize(),
        s,
        pos,
        error.line + 1,
        error.column + 1,
        error.code,
    )


def loads(s: str | bytes | bytearray | memoryview, **kwargs: Any) -> Document:
    """
    Parses a complete JSON document from text or bytes.

    Keyword arguments are ``ParseOptions`` fields plus ``arena``. Anything
    but whitespace (and comments, when accepted) after the value is an
    error.
    """
    if isinstance(s, bytearray | memoryview):
        s = bytes(s)
    elif not isinstance(s, str | bytes):
        raise TypeError(
            "the JSON object must be str, bytes or bytearray, "
            f"not {type(s).__name__}"
        )

    arena = kwargs.pop("arena", None)
    options = ParseOptions(**kwargs)
    result = Parser(options, arena).parse(s)
    if result.error:
        raise _error_from_result(s, result)

    rest = result.rest
    if isinstance(rest, str):
        pattern = (
            _TRAILING_TEXT_WITH_COMMENTS
            if options.accept_comments
            else _TRAILING_TEXT
        )
    else:
        pattern = (
            _TRAILING_BYTES_WITH_COMMENTS
            if options.accept_comments
            else _TRAILING_BYTES
        )
    skipped = pattern.match(rest).end()  # type: ignore[arg-type,union-attr]
    if skipped != len(rest):  # type: ignore[arg-type]
        pos = len(s) - len(rest) + skipped  # type: ignore[arg-type]
        raise JSONDecodeError("Extra data", s, pos)

    return result.document


def load(fp: IO[str] | IO[bytes], **kwargs: Any) -> Document:
    """
    Parses JSON from a file-like object opened in text or binary mode.
    """
    if not hasattr(fp, "read"):
        raise TypeError("fp must have a read() method")

    return loads(fp.read(), **kwargs)


def dumps(value: Any, indent: int = 0) -> str:
    """
    Serializes a Document, model value or native value to JSON text.
    """
    return to_string(value, indent)


def dump(value: Any, fp: IO[str], indent: int = 0) -> None:
    """
    Serializes a value as JSON text into a file-like object.
    """
    if not hasattr(fp, "write"):
        raise TypeError("fp must have a write() method")

    fp.write(dumps(value, indent))


__all__ = [
    "INT_MAX",
    "INT_MIN",
    "Arena",
    "Array",
    "Document",
    "HotPathStats",
    "JSONDecodeError",
    "Object",
    "ParseError",
    "ParseErrorCode",
    "ParseOptions",
    "ParseResult",
    "Parser",
    "SerializeOptions",
    "Serializer",
    "String",
    "Type",
    "clear_hot_path_stats",
    "default_arena",
    "dump",
    "dumps",
    "get_hot_path_stats",
    "load",
    "loads",
    "parse",
    "serialize",
    "to_bytes",
    "to_string",
]
