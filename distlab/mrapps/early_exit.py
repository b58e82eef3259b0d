"""A counting application whose reduce tasks for some keys take a long time.

Used to check that workers do not exit before the whole job is done.
"""

from __future__ import annotations

import time

from distlab.mr import KeyValue

__all__ = ["map_func", "reduce_func"]

_SLOW_MARKERS = ("sherlock", "tom")
_SLOW_SECONDS = 3


def map_func(filename: str, contents: str) -> list[KeyValue]:
    """Emit ``(filename, "1")`` once per input file."""
    return [KeyValue(filename, "1")]


def reduce_func(key: str, values: list[str]) -> str:
    """Return the number of values, after a pause for some keys."""
    if any(marker in key for marker in _SLOW_MARKERS):
        time.sleep(_SLOW_SECONDS)
    return str(len(values))