"""The same application as ``crash``, without the crashes and stalls."""

from __future__ import annotations

from distlab.mr import KeyValue

__all__ = ["map_func", "reduce_func"]


def map_func(filename: str, contents: str) -> list[KeyValue]:
    """Emit four fixed keys describing the input file."""
    return [
        KeyValue("a", filename),
        KeyValue("b", str(len(filename.encode("utf-8")))),
        KeyValue("c", str(len(contents.encode("utf-8")))),
        KeyValue("d", "xyzzy"),
    ]


def reduce_func(key: str, values: list[str]) -> str:
    """Join the sorted values with spaces, for deterministic output."""
    return " ".join(sorted(values))