"""
Test data generators for JSON benchmarks.

Every generator draws from a seeded ``random.Random`` so repeated runs
benchmark identical documents. Generated text is plain RFC 8259 JSON that
every compared library accepts.
"""

import json
import random
import string
from collections.abc import Callable
from typing import Any

_SEED = 20240115
_ESCAPE_PROBABILITY = 0.3
_ESCAPED_CHARS = "\"\\/\b\f\n\r\t"
_NON_ASCII = "\xe9\xdf\u03bb\u0416\u4e2d\u6587\u20ac\U0001f600\U0001f680"

DATA_TYPES = (
    "small_object",
    "large_object",
    "mixed_array",
    "nested_structure",
    "string_heavy",
    "unicode_heavy",
)


def generate_test_data(data_type: str) -> str:
    """
    Generates JSON test data based on specified type.

    ``deep_array`` nests 5000 arrays, past the depth limits of the other
    libraries, so only jsontree is run on it.
    """
    generators: dict[str, Callable[[random.Random], Any]] = {
        "small_object": _small_object,
        "large_object": _large_object,
        "mixed_array": _mixed_array,
        "nested_structure": _nested_structure,
        "string_heavy": _string_heavy,
        "unicode_heavy": _unicode_heavy,
    }

    if data_type == "deep_array":
        return "[" * 5000 + "]" * 5000
    if data_type not in generators:
        raise ValueError(f"Unknown data type: {data_type}")

    value = generators[data_type](random.Random(_SEED))
    return json.dumps(value, ensure_ascii=False)


def generate_test_value(data_type: str) -> Any:
    """Returns the native value of a generated document."""
    return json.loads(generate_test_data(data_type))


def _small_object(rng: random.Random) -> dict[str, Any]:
    return {
        "id": 12345,
        "name": "Alice Johnson",
        "email": "alice@example.com",
        "active": True,
        "balance": 1234.56,
        "metadata": {"created": "2024-01-15T10:30:00Z", "source": "api"},
    }


def _timestamp(rng: random.Random) -> str:
    return (
        f"2024-{rng.randint(1, 12):02d}-{rng.randint(1, 28):02d}"
        f"T{rng.randint(0, 23):02d}:{rng.randint(0, 59):02d}:00Z"
    )


def _large_object(rng: random.Random) -> dict[str, Any]:
    """A user record with a transaction history, well over 10KB."""
    return {
        "user_id": rng.randint(1000000, 9999999),
        "profile": {
            "first_name": _word(rng, 10),
            "last_name": _word(rng, 12),
            "email": f"{_word(rng, 8)}@{_word(rng, 6)}.com",
            "address": {
                "street": f"{rng.randint(1, 9999)} {_word(rng, 8)} St",
                "city": _word(rng, 12),
                "zip": f"{rng.randint(10000, 99999)}",
                "country": "US",
            },
            "notifications": {
                "email": rng.choice([True, False]),
                "push": rng.choice([True, False]),
            },
        },
        "transactions": [
            {
                "id": f"txn_{i:06d}",
                "amount": round(rng.uniform(1.0, 1000.0), 2),
                "currency": rng.choice(["USD", "EUR", "GBP", "JPY"]),
                "timestamp": _timestamp(rng),
                "description": f"Payment for {_word(rng, 20)}",
                "status": rng.choice(["completed", "pending", "failed"]),
            }
            for i in range(50)
        ],
        "activity_log": [
            {
                "timestamp": _timestamp(rng),
                "action": rng.choice(["login", "logout", "purchase", "view"]),
                "ip_address": ".".join(
                    str(rng.randint(1, 255)) for _ in range(4)
                ),
            }
            for _ in range(30)
        ],
    }


def _mixed_array(rng: random.Random) -> list[Any]:
    makers: list[Callable[[int], Any]] = [
        lambda i: rng.randint(-(2**40), 2**40),
        lambda i: round(rng.uniform(-100.0, 100.0), 3),
        lambda i: _word(rng, rng.randint(5, 30)),
        lambda i: rng.choice([True, False]),
        lambda i: None,
        lambda i: {"index": i, "value": _word(rng, 10), "score": rng.random()},
    ]
    return [rng.choice(makers)(i) for i in range(200)]


def _nested_structure(rng: random.Random) -> dict[str, Any]:
    def level(depth: int) -> dict[str, Any]:
        if depth <= 0:
            return {"value": _word(rng, 10)}
        return {
            "level": depth,
            "data": _word(rng, 15),
            "items": [level(depth - 1) for _ in range(3)],
            "nested": level(depth - 1),
        }

    return level(7)


def _escaped_string(rng: random.Random) -> str:
    pieces = []
    for _ in range(50):
        if rng.random() < _ESCAPE_PROBABILITY:
            pieces.append(rng.choice(_ESCAPED_CHARS))
        else:
            pieces.append(rng.choice(string.ascii_letters + " "))
    return "".join(pieces)


def _string_heavy(rng: random.Random) -> dict[str, Any]:
    return {
        "strings": [_escaped_string(rng) for _ in range(100)],
        "controls": ["".join(chr(rng.randint(0, 31)) for _ in range(20))] * 10,
        "paths": {
            f"key_{i}": f"C:\\Users\\{_word(rng, 8)}\\file_{i}.txt"
            for i in range(20)
        },
    }


def _unicode_heavy(rng: random.Random) -> dict[str, Any]:
    return {
        "text": [
            "".join(rng.choice(_NON_ASCII) for _ in range(40))
            for _ in range(100)
        ],
        "keys": {
            "".join(rng.choice(_NON_ASCII) for _ in range(6)): i
            for i in range(50)
        },
    }


def _word(rng: random.Random, length: int) -> str:
    return "".join(rng.choices(string.ascii_letters, k=length))
