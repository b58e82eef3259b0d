"""A single-server, versioned key/value service and its client clerk.

Every key carries a version number. A put succeeds only if the version in
the request matches the version on the server, and each successful put
increments the version. A key that does not exist yet is installed by a put
with version 0.
"""

from __future__ import annotations

import threading
import time
from typing import Hashable

from distlab.kvrpc import Err, GetArgs, GetReply, PutArgs, PutReply, Tversion
from distlab.labrpc import ClientEnd, Network, RPCFailure, Server, Service

__all__ = ["KVServer", "Clerk", "start_kv_server"]

SERVICE_NAME = "KVServer"
_RETRY_INTERVAL = 0.05  # seconds between resends of a lost RPC


class KVServer:
    """In-memory store of ``key -> (value, version)``."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: dict[str, tuple[str, Tversion]] = {}

    def get(self, args: GetArgs) -> GetReply:
        """Return the value and version of ``args.key``, or ``Err.NO_KEY``."""
        with self._lock:
            entry = self._data.get(args.key)
        if entry is None:
            return GetReply(Err.NO_KEY)
        value, version = entry
        return GetReply(Err.OK, value, version)

    def put(self, args: PutArgs) -> PutReply:
        """Install ``args.value`` if ``args.version`` matches the key's version.

        A missing key is installed only when ``args.version`` is 0; otherwise
        the reply is ``Err.NO_KEY``. A version mismatch gives ``Err.VERSION``.
        """
        with self._lock:
            entry = self._data.get(args.key)
            if entry is None:
                if args.version != 0:
                    return PutReply(Err.NO_KEY)
                self._data[args.key] = (args.value, 1)
                return PutReply(Err.OK)
            _, version = entry
            if version != args.version:
                return PutReply(Err.VERSION)
            self._data[args.key] = (args.value, version + 1)
            return PutReply(Err.OK)

    def kill(self) -> None:
        """Called when the server is no longer needed; nothing to release."""


def start_kv_server(network: Network, servername: Hashable) -> KVServer:
    """Create a key/value server and add it to ``network`` as ``servername``."""
    kv = KVServer()
    server = Server()
    server.add_service(Service(kv, SERVICE_NAME))
    network.add_server(servername, server)
    return kv


class Clerk:
    """Client of a ``KVServer`` reached through a client end-point."""

    def __init__(self, end: ClientEnd, retry_interval: float = _RETRY_INTERVAL) -> None:
        self._end = end
        self._retry_interval = retry_interval

    def get(self, key: str) -> tuple[str, Tversion, Err]:
        """Fetch ``(value, version, err)`` for ``key``; retries lost RPCs forever.

        ``err`` is ``Err.NO_KEY`` if the key does not exist.
        """
        args = GetArgs(key)
        while True:
            try:
                reply = self._end.call(f"{SERVICE_NAME}.get", args)
            except RPCFailure:
                time.sleep(self._retry_interval)
                continue
            return reply.value, reply.version, reply.err

    def put(self, key: str, value: str, version: Tversion) -> Err:
        """Put ``value`` under ``key`` if ``version`` matches the server's.

        ``Err.VERSION`` on the first attempt means the put was not performed.
        ``Err.VERSION`` on a resend becomes ``Err.MAYBE``: an earlier attempt
        may have been performed with its reply lost.
        """
        args = PutArgs(key, value, version)
        first_attempt = True
        while True:
            try:
                reply = self._end.call(f"{SERVICE_NAME}.put", args)
            except RPCFailure:
                first_attempt = False
                time.sleep(self._retry_interval)
                continue
            if reply.err == Err.VERSION and not first_attempt:
                return Err.MAYBE
            return reply.err