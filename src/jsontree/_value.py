"""
JSON value model: the Document variant and its String, Array and Object members.

Every Document exclusively owns its payload, so a tree never shares nodes.
Values handed to a document or container are deep-copied unless they are
moved in with ``move=True``; moving within one arena hands the payload over
without copying, and moving a value into a container inside it raises
ValueError. Conversion, comparison and copying walk the tree with an
explicit stack, so they work for any nesting depth the parser accepts.
"""

from __future__ import annotations

import reprlib
from collections.abc import Iterable
from collections.abc import Iterator
from collections.abc import Mapping
from enum import Enum
from functools import total_ordering
from typing import Any
from typing import Final

from ._arena import Arena
from ._arena import resolve_arena
from ._unicode import encode

INT_MIN: Final = -(2**63)
INT_MAX: Final = 2**63 - 1

type KeyLike = str | bytes | bytearray | memoryview | String


class Type(Enum):
    """Discriminant of a Document."""

    NULL = "null"
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


type Slot = tuple[Type, Any]

_NULL_SLOT: Final[Slot] = (Type.NULL, None)


def _check_int(value: int) -> int:
    if not INT_MIN <= value <= INT_MAX:
        raise OverflowError(f"int {value} does not fit in 64 signed bits")
    return int(value)


def _key_bytes(key: Any) -> bytes:
    if isinstance(key, String):
        return bytes(key._data)
    if isinstance(key, str):
        return key.encode("utf-8", "surrogatepass")
    if isinstance(key, bytes | bytearray | memoryview):
        return bytes(key)
    raise TypeError(f"keys must be strings, not {type(key).__name__}")


@total_ordering
class String:
    """
    Owned, growable sequence of bytes interpreted as UTF-8 text.

    Equality and ordering are byte-wise. A String also compares equal to
    ``bytes`` with the same content and to a ``str`` whose UTF-8 encoding
    (surrogates passed through) matches.
    """

    __slots__ = ("_arena", "_data")
    __hash__ = None  # type: ignore[assignment]

    def __init__(
        self,
        value: str | bytes | bytearray | memoryview | String = b"",
        arena: Arena | None = None,
        *,
        move: bool = False,
    ) -> None:
        if arena is None and isinstance(value, String):
            arena = value._arena
        self._arena: Arena = resolve_arena(arena)

        if isinstance(value, String):
            if move and value._arena is self._arena:
                self._data = value._data
                value._data = bytearray()
            else:
                self._data = bytearray(value._data)
                if move:
                    value._data.clear()
        elif isinstance(value, str):
            self._data = bytearray(value.encode("utf-8", "surrogatepass"))
        elif isinstance(value, bytes | bytearray | memoryview):
            self._data = bytearray(value)
        else:
            raise TypeError(
                f"cannot build a String from {type(value).__name__}"
            )

    @classmethod
    def _adopt(cls, data: bytearray, arena: Arena) -> String:
        """Wraps ``data`` without copying it."""
        string = cls.__new__(cls)
        string._arena = arena
        string._data = data
        return string

    @property
    def arena(self) -> Arena:
        return self._arena

    def __len__(self) -> int:
        return len(self._data)

    def __bytes__(self) -> bytes:
        return bytes(self._data)

    def __str__(self) -> str:
        return self._data.decode("utf-8", "replace")

    def __repr__(self) -> str:
        return f"String({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, String):
            return self._data == other._data
        if isinstance(other, bytes | bytearray | memoryview):
            return self._data == other
        if isinstance(other, str):
            return self._data == other.encode("utf-8", "surrogatepass")
        return NotImplemented

    def __lt__(self, other: object) -> bool:
        if isinstance(other, String):
            return self._data < other._data
        if isinstance(other, bytes | bytearray):
            return self._data < other
        return NotImplemented

    def decode(self, errors: str = "surrogatepass") -> str:
        """Decodes the payload as UTF-8 text."""
        return self._data.decode("utf-8", errors)

    def extend(self, value: str | bytes | bytearray | String) -> None:
        """Appends text (encoded as UTF-8) or raw bytes."""
        if isinstance(value, String):
            self._data += value._data
        elif isinstance(value, str):
            self._data += value.encode("utf-8", "surrogatepass")
        else:
            self._data += value

    def append_code_point(self, code_point: int) -> None:
        self._data += encode(code_point)

    def clear(self) -> None:
        self._data.clear()

    def copy(self, arena: Arena | None = None) -> String:
        return String(self, arena)

    def take(self, arena: Arena | None = None) -> String:
        """Moves the payload out, leaving this String empty."""
        return String(self, arena, move=True)


class Array:
    """
    Owned, ordered sequence of Documents.

    Elements may be given as Documents, model values or native Python
    values; they are copied into this array's arena.
    """

    __slots__ = ("_arena", "_items")
    __hash__ = None  # type: ignore[assignment]

    def __init__(
        self,
        values: Iterable[Any] = (),
        arena: Arena | None = None,
        *,
        move: bool = False,
    ) -> None:
        if arena is None and isinstance(values, Array):
            arena = values._arena
        self._arena: Arena = resolve_arena(arena)
        self._items: list[Document] = []

        if isinstance(values, Array):
            if move and values._arena is self._arena:
                self._items = values._items
                values._items = []
                return
            for item in values._items:
                _copy_into(self.emplace_back(), item)
            if move:
                values._items = []
        elif isinstance(values, str | bytes | bytearray | Mapping):
            raise TypeError(
                f"cannot build an Array from {type(values).__name__}"
            )
        else:
            for value in values:
                _convert_into(self.emplace_back(), value, False)

    @property
    def arena(self) -> Arena:
        return self._arena

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Document]:
        return iter(self._items)

    def __getitem__(self, index: int) -> Document:
        if not isinstance(index, int):
            raise TypeError(
                f"Array indices must be integers, not {type(index).__name__}"
            )
        return self._items[index]

    def __setitem__(self, index: int, value: Any) -> None:
        self[index].assign(value)

    def __delitem__(self, index: int) -> None:
        del self._items[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Array):
            return NotImplemented
        if len(self._items) != len(other._items):
            return False
        return _all_equal(list(zip(self._items, other._items, strict=True)))

    def __repr__(self) -> str:
        return f"Array({reprlib.repr(self.to_python())})"

    def emplace_back(self) -> Document:
        """Appends a null Document and returns it."""
        document = Document(arena=self._arena)
        self._items.append(document)
        return document

    def append(self, value: Any, *, move: bool = False) -> Document:
        """Appends a value and returns the Document now holding it."""
        if move:
            _check_move(value, self)
        document = Document(arena=self._arena)
        _convert_into(document, value, move)
        self._items.append(document)
        return document

    def extend(self, values: Iterable[Any]) -> None:
        for value in values:
            self.append(value)

    def insert(self, index: int, value: Any, *, move: bool = False) -> Document:
        if move:
            _check_move(value, self)
        document = Document(arena=self._arena)
        _convert_into(document, value, move)
        self._items.insert(index, document)
        return document

    def pop(self, index: int = -1) -> Document:
        """Removes an element and hands its ownership to the caller."""
        return self._items.pop(index)

    def clear(self) -> None:
        self._items.clear()

    def copy(self, arena: Arena | None = None) -> Array:
        return Array(self, arena)

    def take(self, arena: Arena | None = None) -> Array:
        """Moves all elements out, leaving this Array empty."""
        return Array(self, arena, move=True)

    def to_python(self) -> list[Any]:
        return [item.to_python() for item in self._items]


class Object:
    """
    Owned mapping from unique String keys to Documents.

    Keys may be given as ``str``, bytes-like or String. Iteration follows
    insertion order; a key assigned again keeps its original position.
    Equality does not depend on order.
    """

    __slots__ = ("_arena", "_entries")
    __hash__ = None  # type: ignore[assignment]

    def __init__(
        self,
        entries: Mapping[Any, Any] | Iterable[tuple[Any, Any]] = (),
        arena: Arena | None = None,
        *,
        move: bool = False,
    ) -> None:
        if arena is None and isinstance(entries, Object):
            arena = entries._arena
        self._arena: Arena = resolve_arena(arena)
        self._entries: dict[bytes, Document] = {}

        if isinstance(entries, Object):
            if move and entries._arena is self._arena:
                self._entries = entries._entries
                entries._entries = {}
                return
            for key, item in entries._entries.items():
                child = Document(arena=self._arena)
                self._entries[key] = child
                _copy_into(child, item)
            if move:
                entries._entries = {}
            return

        pairs = entries.items() if isinstance(entries, Mapping) else entries
        for key, value in pairs:
            self.set(key, value)

    @property
    def arena(self) -> Arena:
        return self._arena

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        try:
            return _key_bytes(key) in self._entries
        except TypeError:
            return False

    def __iter__(self) -> Iterator[String]:
        return self.keys()

    def __getitem__(self, key: KeyLike) -> Document:
        return self._entries[_key_bytes(key)]

    def __setitem__(self, key: KeyLike, value: Any) -> None:
        self.set(key, value)

    def __delitem__(self, key: KeyLike) -> None:
        del self._entries[_key_bytes(key)]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Object):
            return NotImplemented
        if self._entries.keys() != other._entries.keys():
            return False
        return _all_equal(
            [(doc, other._entries[key]) for key, doc in self._entries.items()]
        )

    def __repr__(self) -> str:
        return f"Object({reprlib.repr(self.to_python())})"

    def get(self, key: KeyLike, default: Document | None = None) -> Document | None:
        return self._entries.get(_key_bytes(key), default)

    def insert(
        self, key: KeyLike, value: Any = None, *, move: bool = False
    ) -> tuple[Document, bool]:
        """
        Inserts ``key`` unless it is already present.

        Returns the Document stored under the key and whether it was
        inserted; an existing entry is left untouched.
        """
        raw = _key_bytes(key)
        existing = self._entries.get(raw)
        if existing is not None:
            return existing, False
        if move:
            _check_move(value, self)

        document = Document(arena=self._arena)
        _convert_into(document, value, move)
        self._entries[raw] = document
        return document, True

    def set(self, key: KeyLike, value: Any, *, move: bool = False) -> Document:
        """Inserts or overwrites ``key`` and returns its Document."""
        document, inserted = self.insert(key, value, move=move)
        if not inserted:
            document.assign(value, move=move)
        return document

    def pop(self, key: KeyLike) -> Document:
        """Removes an entry and hands its value's ownership to the caller."""
        return self._entries.pop(_key_bytes(key))

    def keys(self) -> Iterator[String]:
        for raw in self._entries:
            yield String._adopt(bytearray(raw), self._arena)

    def values(self) -> Iterator[Document]:
        return iter(self._entries.values())

    def items(self) -> Iterator[tuple[String, Document]]:
        for raw, document in self._entries.items():
            yield String._adopt(bytearray(raw), self._arena), document

    def clear(self) -> None:
        self._entries.clear()

    def copy(self, arena: Arena | None = None) -> Object:
        return Object(self, arena)

    def take(self, arena: Arena | None = None) -> Object:
        """Moves all entries out, leaving this Object empty."""
        return Object(self, arena, move=True)

    def to_python(self) -> dict[str, Any]:
        return {
            raw.decode("utf-8", "surrogatepass"): document.to_python()
            for raw, document in self._entries.items()
        }


class Document:
    """
    Closed variant over null, bool, int, float, String, Array and Object.

    The discriminant and payload live in a single ``(Type, payload)`` slot
    that is replaced in one assignment, so they never disagree. Typed
    accessors are only valid for the matching discriminant; anything else
    is a programming error and raises TypeError.
    """

    __slots__ = ("_arena", "_slot")

    def __init__(
        self, value: Any = None, arena: Arena | None = None, *, move: bool = False
    ) -> None:
        if arena is None and isinstance(value, Document | String | Array | Object):
            arena = value._arena
        self._arena: Arena = resolve_arena(arena)
        self._slot: Slot = _NULL_SLOT
        if value is not None:
            _convert_into(self, value, move)

    @classmethod
    def from_python(cls, value: Any, arena: Arena | None = None) -> Document:
        """Builds a Document from native values (dict, list, str, ...)."""
        return cls(value, arena)

    @property
    def arena(self) -> Arena:
        return self._arena

    def type(self) -> Type:
        return self._slot[0]

    def is_null(self) -> bool:
        return self._slot[0] is Type.NULL

    def is_bool(self) -> bool:
        return self._slot[0] is Type.BOOL

    def is_int(self) -> bool:
        return self._slot[0] is Type.INT

    def is_float(self) -> bool:
        return self._slot[0] is Type.FLOAT

    def is_string(self) -> bool:
        return self._slot[0] is Type.STRING

    def is_array(self) -> bool:
        return self._slot[0] is Type.ARRAY

    def is_object(self) -> bool:
        return self._slot[0] is Type.OBJECT

    def _get(self, expected: Type) -> Any:
        kind, payload = self._slot
        if kind is not expected:
            raise TypeError(
                f"document holds {kind.value}, not {expected.value}"
            )
        return payload

    def get_bool(self) -> bool:
        return self._get(Type.BOOL)  # type: ignore[no-any-return]

    def get_int(self) -> int:
        return self._get(Type.INT)  # type: ignore[no-any-return]

    def get_float(self) -> float:
        return self._get(Type.FLOAT)  # type: ignore[no-any-return]

    def get_string(self) -> String:
        return self._get(Type.STRING)  # type: ignore[no-any-return]

    def get_array(self) -> Array:
        return self._get(Type.ARRAY)  # type: ignore[no-any-return]

    def get_object(self) -> Object:
        return self._get(Type.OBJECT)  # type: ignore[no-any-return]

    def assign(self, value: Any, *, move: bool = False) -> None:
        """
        Replaces the current value.

        The new payload is built completely before the slot is swapped, so
        a failed conversion leaves the previous value in place.
        """
        if move:
            _check_move(value, self)
        staged = Document(arena=self._arena)
        _convert_into(staged, value, move)
        self._slot = staged._slot

    def emplace_string(self) -> String:
        string = String(arena=self._arena)
        self._slot = (Type.STRING, string)
        return string

    def emplace_array(self) -> Array:
        array = Array(arena=self._arena)
        self._slot = (Type.ARRAY, array)
        return array

    def emplace_object(self) -> Object:
        obj = Object(arena=self._arena)
        self._slot = (Type.OBJECT, obj)
        return obj

    def copy(self, arena: Arena | None = None) -> Document:
        """Deep-copies the whole tree, into ``arena`` when given."""
        duplicate = Document(arena=arena or self._arena)
        _copy_into(duplicate, self)
        return duplicate

    def take(self, arena: Arena | None = None) -> Document:
        """
        Moves the value out, leaving this Document null in its own arena.

        Within one arena the payload is handed over as is; into another
        arena it is deep-copied first.
        """
        target = arena or self._arena
        moved = Document(arena=target)
        if target is self._arena:
            moved._slot = self._slot
        else:
            _copy_into(moved, self)
        self._slot = _NULL_SLOT
        return moved

    def to_python(self) -> Any:
        """
        Converts the tree to native Python values.

        Strings decode with surrogates passed through, so a String holding
        bytes that are not UTF-8 raises UnicodeDecodeError.
        """
        result: list[Any] = [None]
        pending: list[tuple[Any, Any, Document]] = [(result, 0, self)]
        while pending:
            parent, key, document = pending.pop()
            kind, payload = document._slot
            if kind is Type.ARRAY:
                value: Any = [None] * len(payload._items)
                pending.extend(
                    (value, index, item)
                    for index, item in enumerate(payload._items)
                )
            elif kind is Type.OBJECT:
                value = {}
                for raw, item in payload._entries.items():
                    name = raw.decode("utf-8", "surrogatepass")
                    value[name] = None
                    pending.append((value, name, item))
            elif kind is Type.STRING:
                value = payload.decode()
            else:
                value = payload
            parent[key] = value
        return result[0]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Document):
            return NotImplemented
        return _all_equal([(self, other)])

    def __repr__(self) -> str:
        kind, payload = self._slot
        if kind is Type.NULL:
            return "Document(None)"
        return f"Document({payload!r})"


def _scalar_slot(value: Any) -> Slot | None:
    if value is None:
        return _NULL_SLOT
    if isinstance(value, bool):
        return Type.BOOL, value
    if isinstance(value, int):
        return Type.INT, _check_int(value)
    if isinstance(value, float):
        return Type.FLOAT, float(value)
    return None


def _check_move(source: Any, container: object) -> None:
    """Rejects moving ``source`` into a container that lives inside it."""
    if isinstance(source, Document):
        pending: list[Any] = [source._slot[1]]
    elif isinstance(source, Array | Object):
        pending = [source]
    else:
        return
    while pending:
        payload = pending.pop()
        if isinstance(payload, Array):
            children: Iterable[Document] = payload._items
        elif isinstance(payload, Object):
            children = payload._entries.values()
        else:
            continue
        if payload is container:
            raise ValueError("cannot move a value into its own subtree")
        for child in children:
            if child is container:
                raise ValueError("cannot move a value into its own subtree")
            pending.append(child._slot[1])


def _enter_container(active: set[int], value: Any) -> int:
    marker = id(value)
    if marker in active:
        raise ValueError("Circular reference detected")
    active.add(marker)
    return marker


def _convert_into(dest: Document, value: Any, move: bool) -> None:
    """
    Stores ``value`` in ``dest``.

    Model values are copied (or moved when ``move`` is set); native lists,
    tuples and mappings are converted with an explicit stack. A native
    container that holds itself raises ValueError.
    """
    arena = dest._arena
    # Ids of the native containers being converted; a None target marks
    # the end of one container's children.
    active: set[int] = set()
    pending: list[tuple[Document | None, Any, bool]] = [(dest, value, move)]
    while pending:
        target, current, moving = pending.pop()
        if target is None:
            active.discard(current)
            continue
        slot = _scalar_slot(current)
        if slot is not None:
            target._slot = slot
        elif isinstance(current, Document):
            if moving:
                target._slot = current.take(arena)._slot
            else:
                _copy_into(target, current)
        elif isinstance(current, String | str | bytes | bytearray | memoryview):
            target._slot = (Type.STRING, String(current, arena, move=moving))
        elif isinstance(current, Array):
            target._slot = (Type.ARRAY, Array(current, arena, move=moving))
        elif isinstance(current, Object):
            target._slot = (Type.OBJECT, Object(current, arena, move=moving))
        elif isinstance(current, list | tuple):
            marker = _enter_container(active, current)
            array = Array(arena=arena)
            target._slot = (Type.ARRAY, array)
            pending.append((None, marker, False))
            pending.extend(
                (array.emplace_back(), item, False) for item in current
            )
        elif isinstance(current, Mapping):
            marker = _enter_container(active, current)
            obj = Object(arena=arena)
            target._slot = (Type.OBJECT, obj)
            # Keys that collide after encoding ("a" and b"a"): last one wins.
            latest: dict[int, tuple[Document | None, Any, bool]] = {}
            for key, item in current.items():
                child, _ = obj.insert(key)
                latest[id(child)] = (child, item, False)
            pending.append((None, marker, False))
            pending.extend(latest.values())
        else:
            raise TypeError(
                f"Object of type {type(current).__name__} "
                "is not JSON serializable"
            )


def _copy_into(dest: Document, source: Document) -> None:
    """Deep-copies ``source`` into ``dest``'s arena."""
    arena = dest._arena
    pending: list[tuple[Document, Document]] = [(dest, source)]
    while pending:
        target, current = pending.pop()
        kind, payload = current._slot
        if kind is Type.STRING:
            target._slot = (kind, String(payload, arena))
        elif kind is Type.ARRAY:
            array = Array(arena=arena)
            target._slot = (kind, array)
            pending.extend(
                (array.emplace_back(), item) for item in payload._items
            )
        elif kind is Type.OBJECT:
            obj = Object(arena=arena)
            target._slot = (kind, obj)
            for raw, item in payload._entries.items():
                child = Document(arena=arena)
                obj._entries[raw] = child
                pending.append((child, item))
        else:
            target._slot = current._slot


def _all_equal(pending: list[tuple[Document, Document]]) -> bool:
    while pending:
        left, right = pending.pop()
        left_kind, left_payload = left._slot
        right_kind, right_payload = right._slot
        if left_kind is not right_kind:
            return False
        if left_kind is Type.ARRAY:
            if len(left_payload._items) != len(right_payload._items):
                return False
            pending.extend(
                zip(left_payload._items, right_payload._items, strict=True)
            )
        elif left_kind is Type.OBJECT:
            left_entries = left_payload._entries
            right_entries = right_payload._entries
            if left_entries.keys() != right_entries.keys():
                return False
            pending.extend(
                (item, right_entries[raw]) for raw, item in left_entries.items()
            )
        elif left_kind is Type.STRING:
            if left_payload._data != right_payload._data:
                return False
        elif left_payload != right_payload:
            return False
    return True
