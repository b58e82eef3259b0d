"""Records how many reduce tasks run at the same time, to check reduce parallelism."""

from __future__ import annotations

import os
import re
import time
from pathlib import Path

from distlab.mr import KeyValue

__all__ = ["nparallel", "map_func", "reduce_func"]

_KEYS = "abcdefghij"


def _is_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except (OSError, OverflowError):
        return False
    return True


def nparallel(phase: str) -> int:
    """Count the workers, this one included, that are in ``phase`` right now.

    Each worker leaves a marker file named after its process id in the
    current directory for about a second; markers of live processes count.
    """
    marker = Path(f"mr-worker-{phase}-{os.getpid()}")
    marker.write_bytes(b"x")

    pattern = re.compile(rf"mr-worker-{re.escape(phase)}-([+-]?\d+)")
    running = 0
    for name in os.listdir("."):
        match = pattern.match(name)
        if match and _is_alive(int(match.group(1))):
            running += 1

    time.sleep(1)
    marker.unlink()
    return running


def map_func(filename: str, contents: str) -> list[KeyValue]:
    """Emit ten fixed keys, so that there are many reduce tasks."""
    return [KeyValue(key, "1") for key in _KEYS]


def reduce_func(key: str, values: list[str]) -> str:
    """Return how many reduce tasks are running alongside this one."""
    return str(nparallel("reduce"))