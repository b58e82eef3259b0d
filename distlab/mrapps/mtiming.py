"""Records how many map tasks run at the same time, to check map parallelism."""

from __future__ import annotations

import os
import re
import time
from pathlib import Path

from distlab.mr import KeyValue

__all__ = ["nparallel", "map_func", "reduce_func"]

_OVERLAP_SECONDS = 1


def _is_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except (OSError, OverflowError):
        return False
    return True


def nparallel(phase: str) -> int:
    """Return how many live workers are in ``phase`` right now, this one included.

    Each worker announces itself with a file ``mr-worker-<phase>-<pid>`` in
    the current directory and keeps it there for one second.
    """
    marker = Path(f"mr-worker-{phase}-{os.getpid()}")
    marker.write_text("x")

    pattern = re.compile(rf"mr-worker-{re.escape(phase)}-([+-]?\d+)")
    running = 0
    for name in os.listdir("."):
        match = pattern.match(name)
        if match and _is_alive(int(match.group(1))):
            running += 1

    time.sleep(_OVERLAP_SECONDS)
    marker.unlink()
    return running


def map_func(filename: str, contents: str) -> list[KeyValue]:
    """Emit this worker's start time and the number of maps running alongside it."""
    started = time.time()
    pid = os.getpid()
    running = nparallel("map")
    return [
        KeyValue(f"times-{pid}", f"{started:.1f}"),
        KeyValue(f"parallel-{pid}", str(running)),
    ]


def reduce_func(key: str, values: list[str]) -> str:
    """Join the sorted values with spaces, for deterministic output."""
    return " ".join(sorted(values))