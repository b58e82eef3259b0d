"""A MapReduce application that sometimes crashes and sometimes stalls.

Used to check that MapReduce recovers from failed and slow workers.
"""

from __future__ import annotations

import os
import secrets
import time

from distlab.mr import KeyValue

__all__ = ["maybe_crash", "map_func", "reduce_func"]

_ROLL_RANGE = 1000
_CRASH_BELOW = 330
_DELAY_BELOW = 660
_MAX_DELAY_MS = 10 * 1000


def maybe_crash() -> None:
    """Exit the process a third of the time; stall up to ten seconds another third."""
    roll = secrets.randbelow(_ROLL_RANGE)
    if roll < _CRASH_BELOW:
        os._exit(1)
    elif roll < _DELAY_BELOW:
        time.sleep(secrets.randbelow(_MAX_DELAY_MS) / 1000.0)


def map_func(filename: str, contents: str) -> list[KeyValue]:
    """Emit four fixed keys describing the input file."""
    maybe_crash()
    return [
        KeyValue("a", filename),
        KeyValue("b", str(len(filename.encode("utf-8")))),
        KeyValue("c", str(len(contents.encode("utf-8")))),
        KeyValue("d", "xyzzy"),
    ]


def reduce_func(key: str, values: list[str]) -> str:
    """Join the sorted values with spaces, for deterministic output."""
    maybe_crash()
    return " ".join(sorted(values))