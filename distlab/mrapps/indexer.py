"""Inverted index: for each word, the documents that contain it."""

from __future__ import annotations

from itertools import groupby

from distlab.mr import KeyValue

__all__ = ["map_func", "reduce_func"]


def _words(text: str) -> list[str]:
    return ["".join(chars) for is_letter, chars in groupby(text, str.isalpha) if is_letter]


def map_func(document: str, value: str) -> list[KeyValue]:
    """Emit ``(word, document)`` once for each distinct word in ``value``."""
    return [KeyValue(word, document) for word in dict.fromkeys(_words(value))]


def reduce_func(key: str, values: list[str]) -> str:
    """Return the number of documents and their sorted, comma-separated names."""
    documents = sorted(values)
    return f"{len(documents)} {','.join(documents)}"