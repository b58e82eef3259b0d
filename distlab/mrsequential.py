"""Sequential MapReduce: runs one application's map and reduce in-process.

Usage::

    python -m distlab.mrsequential wc pg-*.txt

Every input file is passed to the application's map function. All the
intermediate pairs are sorted by key, and reduce is called once per distinct
key. One ``"<key> <output>"`` line per key is written to ``mr-out-0``.
"""

from __future__ import annotations

import os
import sys
from itertools import groupby
from operator import attrgetter
from pathlib import Path
from typing import Callable, Iterable, Sequence

from distlab.mr import KeyValue
from distlab.mrapps import crash, early_exit, indexer, jobcount, mtiming, nocrash, rtiming, wc

__all__ = ["MapFunc", "ReduceFunc", "load_app", "run_sequential", "main"]

MapFunc = Callable[[str, str], list[KeyValue]]
ReduceFunc = Callable[[str, list[str]], str]

OUTPUT_NAME = "mr-out-0"
USAGE = "Usage: mrsequential app inputfiles..."

_APPS = {
    "wc": (wc.map_func, wc.reduce_func),
    "indexer": (indexer.map_func, indexer.reduce_func),
    "crash": (crash.map_func, crash.reduce_func),
    "nocrash": (nocrash.map_func, nocrash.reduce_func),
    "early_exit": (early_exit.map_func, early_exit.reduce_func),
    "jobcount": (jobcount.map_func, jobcount.reduce_func),
    "mtiming": (mtiming.map_func, mtiming.reduce_func),
    "rtiming": (rtiming.map_func, rtiming.reduce_func),
}


def load_app(name: str) -> tuple[MapFunc, ReduceFunc]:
    """Return the map and reduce functions of the application called ``name``.

    ``name`` may be given as a path such as ``../mrapps/wc.so``; only the
    file's stem is used. Raises ``ValueError`` for an unknown application.
    """
    stem = Path(name).stem
    try:
        return _APPS[stem]
    except KeyError:
        raise ValueError(f"cannot load application {name!r}; expecting one of {sorted(_APPS)}") from None


def _read(filename: str | os.PathLike) -> str:
    return Path(filename).read_text(encoding="utf-8", errors="surrogateescape")


def run_sequential(
    mapf: MapFunc,
    reducef: ReduceFunc,
    filenames: Iterable[str | os.PathLike],
    output_path: str | os.PathLike,
) -> list[tuple[str, str]]:
    """Run map over every file, reduce over every key, and write the output.

    Returns the ``(key, output)`` pairs in the order they were written.
    Raises ``OSError`` if an input file cannot be read.
    """
    intermediate: list[KeyValue] = []
    for filename in filenames:
        intermediate.extend(mapf(str(filename), _read(filename)))

    intermediate.sort(key=attrgetter("key"))

    results = [
        (key, reducef(key, [kv.value for kv in group]))
        for key, group in groupby(intermediate, key=attrgetter("key"))
    ]

    with open(output_path, "w", encoding="utf-8", errors="surrogateescape") as out:
        for key, output in results:
            out.write(f"{key} {output}\n")
    return results


def main(argv: Sequence[str] | None = None) -> int:
    """Command-line entry point; returns the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) < 2:
        print(USAGE, file=sys.stderr)
        return 1

    app, *filenames = args
    try:
        mapf, reducef = load_app(app)
    except ValueError:
        print(f"cannot load plugin {app}", file=sys.stderr)
        return 1

    for filename in filenames:
        if not os.path.isfile(filename):
            print(f"cannot open {filename}", file=sys.stderr)
            return 1

    try:
        run_sequential(mapf, reducef, filenames, OUTPUT_NAME)
    except OSError as exc:
        print(f"cannot read {exc.filename}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())