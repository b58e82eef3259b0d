"""A distributed lock built on the versioned key/value clerk."""

from __future__ import annotations

import time
import uuid
from typing import Any, Protocol

from distlab.kvrpc import Err, Tversion

__all__ = ["Lock"]

_FREE = ""


class _KVClerk(Protocol):
    def get(self, key: str) -> tuple[str, Tversion, Err]: ...

    def put(self, key: str, value: str, version: Tversion) -> Err: ...


class Lock:
    """A lock whose state is the value of one key: empty when free,
    otherwise the identifier of the holder."""

    def __init__(self, ck: _KVClerk, name: str, retry_interval: float = 0.01) -> None:
        self._ck = ck
        self._key = name
        self._id = uuid.uuid4().hex
        self._retry_interval = retry_interval

    def __enter__(self) -> Lock:
        self.acquire()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.release()

    def acquire(self) -> None:
        """Block until this lock instance holds the lock."""
        while True:
            value, version, err = self._ck.get(self._key)
            if err == Err.OK and value == self._id:
                # an earlier put whose outcome was uncertain did take effect
                return
            if err == Err.NO_KEY or (err == Err.OK and value == _FREE):
                expected = 0 if err == Err.NO_KEY else version
                if self._ck.put(self._key, self._id, expected) == Err.OK:
                    return
                # on ErrMaybe or ErrVersion, the next read tells who won
                continue
            time.sleep(self._retry_interval)

    def release(self) -> None:
        """Release the lock; raises ``RuntimeError`` if it is not held."""
        first_check = True
        while True:
            value, version, err = self._ck.get(self._key)
            if err != Err.OK or value != self._id:
                if first_check:
                    raise RuntimeError(f"lock {self._key!r} is not held")
                return
            first_check = False
            if self._ck.put(self._key, _FREE, version) == Err.OK:
                return