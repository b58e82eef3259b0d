"""Shared definitions for MapReduce applications, workers and the coordinator."""

from __future__ import annotations

import dataclasses
import os

__all__ = ["KeyValue", "ExampleArgs", "ExampleReply", "ihash", "coordinator_sock"]

_FNV32_OFFSET_BASIS = 0x811C9DC5
_FNV32_PRIME = 0x01000193
_SOCKET_PREFIX = "/var/tmp/5840-mr-"


@dataclasses.dataclass(frozen=True)
class KeyValue:
    """One intermediate or output pair emitted by a map function."""

    key: str
    value: str


@dataclasses.dataclass
class ExampleArgs:
    """Arguments of the example RPC."""

    x: int = 0


@dataclasses.dataclass
class ExampleReply:
    """Reply of the example RPC."""

    y: int = 0


def ihash(key: str) -> int:
    """Non-negative 31-bit FNV-1a hash of ``key``.

    Use ``ihash(key) % n_reduce`` to choose the reduce task for a key.
    """
    h = _FNV32_OFFSET_BASIS
    for byte in key.encode("utf-8"):
        h ^= byte
        h = (h * _FNV32_PRIME) & 0xFFFFFFFF
    return h & 0x7FFFFFFF


def coordinator_sock() -> str:
    """Path of the coordinator's UNIX-domain socket, unique per user."""
    return f"{_SOCKET_PREFIX}{os.getuid()}"