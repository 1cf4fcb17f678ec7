"""
Non-recursive JSON serializer.

The serializer mirrors the parser: scalars are written directly, and each
non-empty container pushes a cursor that the driving loop advances one
element at a time. Output is UTF-8 bytes, buffered and flushed in runs.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any
from typing import Final
from typing import Protocol

from ._profile import ProfileContext
from ._unicode import REPLACEMENT_CHARACTER
from ._unicode import decode_at
from ._unicode import encode
from ._unicode import is_surrogate
from ._value import Array
from ._value import Document
from ._value import Object
from ._value import Slot
from ._value import String
from ._value import Type

logger = logging.getLogger(__name__)

_FLUSH_THRESHOLD: Final = 64 * 1024

_NEEDS_ESCAPE: Final = re.compile(rb'["\\\x00-\x1f]')

_ESCAPES: Final = {
    bytes((b,)): b"\\u%04x" % b for b in range(0x20)
} | {
    b'"': b'\\"',
    b"\\": b"\\\\",
    b"\b": b"\\b",
    b"\f": b"\\f",
    b"\n": b"\\n",
    b"\r": b"\\r",
    b"\t": b"\\t",
}

_REPLACEMENT: Final = encode(REPLACEMENT_CHARACTER)


class Sink(Protocol):
    def write(self, data: bytes, /) -> Any: ...


@dataclass(frozen=True)
class SerializeOptions:
    """Output formatting: ``indent`` spaces per level, 0 for compact."""

    indent: int = 0

    def __post_init__(self) -> None:
        if (
            isinstance(self.indent, bool)
            or not isinstance(self.indent, int)
            or self.indent < 0
        ):
            raise ValueError("indent must be a non-negative integer")


class _Output:
    """Buffers bytes for a sink; a bytearray sink is extended in place."""

    __slots__ = ("_flushed", "_start", "_write", "buffer")

    def __init__(self, sink: Sink | bytearray) -> None:
        self._flushed = 0
        self._start = 0
        if isinstance(sink, bytearray):
            self.buffer = sink
            self._start = len(sink)
            self._write = None
        elif callable(getattr(sink, "write", None)):
            self.buffer = bytearray()
            self._write = sink.write
        else:
            raise TypeError(
                "sink must be a bytearray or have a write() method, "
                f"not {type(sink).__name__}"
            )

    @property
    def written(self) -> int:
        """Bytes produced so far, flushed or still buffered."""
        return self._flushed + len(self.buffer) - self._start

    def maybe_flush(self) -> None:
        if self._write is not None and len(self.buffer) >= _FLUSH_THRESHOLD:
            self.flush()

    def flush(self) -> None:
        if self._write is not None and self.buffer:
            self._write(bytes(self.buffer))
            self._flushed += len(self.buffer)
            self.buffer.clear()


class _Cursor:
    """Iteration position within one open container."""

    __slots__ = ("entries", "is_object", "started")

    def __init__(self, entries: Iterator[Any], is_object: bool) -> None:
        self.entries = entries
        self.is_object = is_object
        self.started = False


_DONE: Final = object()


def _escape(match: re.Match[bytes]) -> bytes:
    return _ESCAPES[match.group()]


def _write_string(buffer: bytearray, data: bytes | bytearray) -> None:
    buffer += b'"'
    try:
        data.decode("utf-8")
    except UnicodeDecodeError:
        _write_irregular_string(buffer, data)
    else:
        buffer += _NEEDS_ESCAPE.sub(_escape, data)
    buffer += b'"'


def _write_irregular_string(buffer: bytearray, data: bytes | bytearray) -> None:
    """Writes a payload holding surrogates or malformed UTF-8."""
    replaced = False
    pos = 0
    end = len(data)
    while pos < end:
        byte = data[pos]
        if byte < 0x80:
            buffer += _ESCAPES.get(bytes((byte,)), bytes((byte,)))
            pos += 1
            continue

        code_point, next_pos = decode_at(data, pos)
        if code_point < 0:
            buffer += _REPLACEMENT
            replaced = True
        elif is_surrogate(code_point):
            buffer += b"\\u%04x" % code_point
        else:
            buffer += data[pos:next_pos]
        pos = next_pos

    if replaced:
        logger.debug("replaced malformed UTF-8 in a %d byte string", end)


def _root_slot(value: Any) -> Slot:
    if isinstance(value, Document):
        return value._slot
    if isinstance(value, String):
        return Type.STRING, value
    if isinstance(value, Array):
        return Type.ARRAY, value
    if isinstance(value, Object):
        return Type.OBJECT, value
    return Document(value)._slot


class Serializer:
    """Writes Documents as JSON text with fixed options."""

    def __init__(self, options: SerializeOptions | None = None) -> None:
        if options is None:
            options = SerializeOptions()
        elif not isinstance(options, SerializeOptions):
            raise TypeError("options must be a SerializeOptions instance")
        self.options = options

    def serialize[S: (Sink, bytearray)](self, value: Any, sink: S) -> S:
        """
        Writes ``value`` to ``sink`` and returns the sink.

        ``value`` is a Document, a String, Array or Object, or a native
        Python value convertible to a Document.
        """
        slot = _root_slot(value)
        output = _Output(sink)
        with ProfileContext("serialize") as profile:
            self._write(output, slot)
            profile.nbytes = output.written
        output.flush()
        return sink

    def _write(self, output: _Output, root: Slot) -> None:
        indent = self.options.indent
        separator = b": " if indent else b":"
        buffer = output.buffer
        stack: list[_Cursor] = []

        self._write_value(buffer, root, stack)
        while stack:
            cursor = stack[-1]
            entry = next(cursor.entries, _DONE)
            if entry is _DONE:
                stack.pop()
                if indent:
                    buffer += b"\n" + b" " * (indent * len(stack))
                buffer += b"}" if cursor.is_object else b"]"
                continue

            if cursor.started:
                buffer += b","
            cursor.started = True
            if indent:
                buffer += b"\n" + b" " * (indent * len(stack))

            if cursor.is_object:
                key, document = entry
                _write_string(buffer, key)
                buffer += separator
            else:
                document = entry
            self._write_value(buffer, document._slot, stack)
            output.maybe_flush()

    def _write_value(
        self, buffer: bytearray, slot: Slot, stack: list[_Cursor]
    ) -> None:
        kind, payload = slot
        if kind is Type.NULL:
            buffer += b"null"
        elif kind is Type.BOOL:
            buffer += b"true" if payload else b"false"
        elif kind is Type.INT:
            buffer += b"%d" % payload
        elif kind is Type.FLOAT:
            if math.isfinite(payload):
                buffer += repr(payload).encode("ascii")
            else:
                buffer += b"null"
        elif kind is Type.STRING:
            _write_string(buffer, payload._data)
        elif kind is Type.ARRAY:
            if payload._items:
                buffer += b"["
                stack.append(_Cursor(iter(payload._items), False))
            else:
                buffer += b"[]"
        elif payload._entries:
            buffer += b"{"
            stack.append(_Cursor(iter(payload._entries.items()), True))
        else:
            buffer += b"{}"


def serialize[S: (Sink, bytearray)](
    value: Any, sink: S, options: SerializeOptions | None = None
) -> S:
    """Writes ``value`` to ``sink``; see ``Serializer.serialize``."""
    return Serializer(options).serialize(value, sink)


def to_bytes(value: Any, indent: int = 0) -> bytes:
    """Returns ``value`` serialized as UTF-8 encoded JSON."""
    return bytes(serialize(value, bytearray(), SerializeOptions(indent)))


def to_string(value: Any, indent: int = 0) -> str:
    """Returns ``value`` serialized as JSON text."""
    return to_bytes(value, indent).decode("utf-8")
