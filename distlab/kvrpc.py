"""Request, reply and error types of the versioned key/value service."""

from __future__ import annotations

import dataclasses
import enum

__all__ = ["Err", "Tversion", "PutArgs", "PutReply", "GetArgs", "GetReply"]

Tversion = int


class Err(str, enum.Enum):
    """Outcome of a key/value operation."""

    # returned by server and clerk
    OK = "OK"
    NO_KEY = "ErrNoKey"
    VERSION = "ErrVersion"
    # returned by the clerk only
    MAYBE = "ErrMaybe"
    # replicated and sharded services
    WRONG_LEADER = "ErrWrongLeader"
    WRONG_GROUP = "ErrWrongGroup"

    def __str__(self) -> str:
        return self.value


@dataclasses.dataclass(frozen=True)
class PutArgs:
    key: str
    value: str
    version: Tversion = 0


@dataclasses.dataclass(frozen=True)
class PutReply:
    err: Err


@dataclasses.dataclass(frozen=True)
class GetArgs:
    key: str


@dataclasses.dataclass(frozen=True)
class GetReply:
    err: Err
    value: str = ""
    version: Tversion = 0