"""Sequential model of a versioned key/value store for linearizability checking."""

from __future__ import annotations

import dataclasses
import enum
from collections import defaultdict
from typing import Any

__all__ = [
    "KvOp",
    "KvInput",
    "KvOutput",
    "KvState",
    "Operation",
    "partition",
    "init_state",
    "step",
    "describe_operation",
]

INVALID = "<invalid>"


class KvOp(enum.IntEnum):
    GET = 0
    PUT = 1


@dataclasses.dataclass(frozen=True)
class KvInput:
    op: int
    key: str
    value: str = ""
    version: int = 0


@dataclasses.dataclass(frozen=True)
class KvOutput:
    value: str = ""
    version: int = 0
    err: str = ""


@dataclasses.dataclass(frozen=True)
class KvState:
    value: str = ""
    version: int = 0


@dataclasses.dataclass(frozen=True)
class Operation:
    """One client call with its input, output and call/return timestamps."""

    client_id: int
    input: KvInput
    output: KvOutput
    call: int
    return_: int


def partition(history: list[Operation]) -> list[list[Operation]]:
    """Split a history into per-key histories, ordered by key."""
    by_key: dict[str, list[Operation]] = defaultdict(list)
    for op in history:
        by_key[op.input.key].append(op)
    return [by_key[key] for key in sorted(by_key)]


def init_state() -> KvState:
    """State of a single key that has never been written."""
    return KvState("", 0)


def step(state: KvState, input: KvInput, output: KvOutput) -> tuple[bool, Any]:
    """Return whether ``output`` is legal for ``input`` in ``state``, and the next state."""
    if input.op == KvOp.GET:
        return output.value == state.value, state
    if input.op == KvOp.PUT:
        err = str(output.err)
        if state.version == input.version:
            return err in ("OK", "ErrMaybe"), KvState(input.value, state.version + 1)
        return err in ("ErrVersion", "ErrMaybe"), state
    return False, INVALID


def describe_operation(input: KvInput, output: KvOutput) -> str:
    """Human-readable description of one operation."""
    if input.op == KvOp.GET:
        return f"get('{input.key}') -> ('{output.value}', '{output.version}', '{output.err}')"
    if input.op == KvOp.PUT:
        return f"put('{input.key}', '{input.value}', '{input.version}') -> ('{output.err}')"
    return INVALID