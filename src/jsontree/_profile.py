"""
Opt-in timing for whole parse and serialize runs.

Set ``JSONTREE_PROFILE`` in the environment before import to collect
per-operation call counts, time and bytes handled. Disabled contexts skip
the clock entirely.
"""

import os
import time
from dataclasses import dataclass
from typing import Any

PROFILE_HOT_PATHS = __debug__ and "JSONTREE_PROFILE" in os.environ

_hot_path_stats: dict[str, "HotPathStats"] = {}


@dataclass
class HotPathStats:
    """Totals for one profiled operation, keyed by its name."""

    function_name: str
    call_count: int = 0
    total_time_ns: int = 0
    bytes_processed: int = 0

    def record_call(self, duration_ns: int, nbytes: int = 0) -> None:
        self.call_count += 1
        self.total_time_ns += duration_ns
        self.bytes_processed += nbytes

    @property
    def mean_time_ns(self) -> float:
        return self.total_time_ns / self.call_count if self.call_count else 0.0

    @property
    def bytes_per_second(self) -> float:
        if not self.total_time_ns:
            return 0.0
        return self.bytes_processed * 1e9 / self.total_time_ns


class ProfileContext:
    """
    Times the enclosed block under ``func_name``.

    The block sets ``nbytes`` once it knows how much input it consumed or
    output it produced; the count is recorded on exit.
    """

    __slots__ = ("_start", "func_name", "nbytes")

    def __init__(self, func_name: str) -> None:
        self.func_name = func_name
        self.nbytes = 0
        self._start = 0

    def __enter__(self) -> "ProfileContext":
        if PROFILE_HOT_PATHS:
            self._start = time.perf_counter_ns()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if not PROFILE_HOT_PATHS or not self._start:
            return
        duration = time.perf_counter_ns() - self._start
        stats = _hot_path_stats.setdefault(
            self.func_name, HotPathStats(self.func_name)
        )
        stats.record_call(duration, self.nbytes)


def get_hot_path_stats() -> dict[str, HotPathStats]:
    """Returns a snapshot of the collected statistics."""
    return _hot_path_stats.copy()


def clear_hot_path_stats() -> None:
    _hot_path_stats.clear()
