"""Word count: counts how often each word appears in the input."""

from __future__ import annotations

from itertools import groupby

from distlab.mr import KeyValue

__all__ = ["map_func", "reduce_func"]


def _words(text: str) -> list[str]:
    return ["".join(chars) for is_letter, chars in groupby(text, str.isalpha) if is_letter]


def map_func(filename: str, contents: str) -> list[KeyValue]:
    """Emit ``(word, "1")`` for every word in ``contents``; the file name is ignored."""
    return [KeyValue(word, "1") for word in _words(contents)]


def reduce_func(key: str, values: list[str]) -> str:
    """Return the number of occurrences of ``key``."""
    return str(len(values))