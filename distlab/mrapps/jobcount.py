"""Counts how many times map tasks run, to detect tasks assigned more than once."""

from __future__ import annotations

import itertools
import os
import random
import time

from distlab.mr import KeyValue

__all__ = ["map_func", "reduce_func"]

_MARKER_PREFIX = "mr-worker-jobcount"
_invocations = itertools.count()


def map_func(filename: str, contents: str) -> list[KeyValue]:
    """Leave a marker file in the current directory, pause 2-5 seconds, emit one pair."""
    path = f"{_MARKER_PREFIX}-{os.getpid()}-{next(_invocations)}"
    with open(path, "w") as marker:
        marker.write("x")
    time.sleep((2000 + random.randrange(3000)) / 1000.0)
    return [KeyValue("a", "x")]


def reduce_func(key: str, values: list[str]) -> str:
    """Return the number of marker files, i.e. of map invocations."""
    return str(sum(1 for name in os.listdir(".") if name.startswith(_MARKER_PREFIX)))