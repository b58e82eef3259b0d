"""A simulated in-process RPC network.

The network can lose requests, lose replies, delay messages and disconnect
individual client end-points entirely. Arguments and replies are encoded with
``labgob`` on the way through, so that an RPC never shares objects between the
caller and the handler.

Typical use::

    net = Network()
    end = net.make_end("client-1")
    server = Server()
    server.add_service(Service(receiver))
    net.add_server("server-1", server)
    net.connect("client-1", "server-1")
    net.enable("client-1", True)
    reply = end.call("Receiver.method", args)

A handler is a public method of the receiver that takes exactly one argument
and returns the reply. ``ClientEnd.call`` returns that reply, or raises
``RPCFailure`` when no reply came back: the request or the reply was lost,
the end-point is disabled or unconnected, or the server was deleted while
the handler ran.
"""

from __future__ import annotations

import dataclasses
import io
import queue
import random
import threading
import time
import types
from typing import Any, Callable, Hashable

from distlab.labgob import LabDecoder, LabEncoder

__all__ = [
    "SHORT_DELAY",
    "LONG_DELAY",
    "MAX_DELAY",
    "RPCFailure",
    "ClientEnd",
    "Network",
    "Server",
    "Service",
]

SHORT_DELAY = 27  # ms
LONG_DELAY = 7000  # ms
MAX_DELAY = LONG_DELAY + 100

_POLL_INTERVAL = 0.1  # seconds between checks for a deleted server
_DROP_PER_MILLE = 100

_CO_VARARGS = 0x04
_CO_VARKEYWORDS = 0x08


class RPCFailure(ConnectionError):
    """No reply was received for an RPC."""


@dataclasses.dataclass(frozen=True)
class _Request:
    endname: Hashable
    svc_meth: str
    args_type: Any
    args: bytes


@dataclasses.dataclass(frozen=True)
class _Reply:
    ok: bool
    data: bytes = b""
    reply_type: Any = Any


_FAILED = _Reply(False)


def _encode(value: Any) -> bytes:
    buffer = io.BytesIO()
    LabEncoder(buffer).encode(value)
    return buffer.getvalue()


def _decode(data: bytes, hint: Any) -> Any:
    return LabDecoder(io.BytesIO(data)).decode(hint)


def _sleep_ms(ms: int) -> None:
    if ms > 0:
        time.sleep(ms / 1000.0)


class ClientEnd:
    """A client end-point that sends RPCs to whatever server it is connected to."""

    def __init__(self, endname: Hashable, network: Network) -> None:
        self._endname = endname
        self._network = network

    @property
    def endname(self) -> Hashable:
        return self._endname

    def call(self, svc_meth: str, args: Any) -> Any:
        """Send an RPC such as ``"Raft.append_entries"`` and wait for the reply.

        Raises ``RPCFailure`` if no reply was received.
        """
        request = _Request(self._endname, svc_meth, type(args), _encode(args))
        reply = self._network._send(request)
        if not reply.ok:
            raise RPCFailure(f"no reply to {svc_meth} from end {self._endname!r}")
        return _decode(reply.data, reply.reply_type)


class Network:
    """Holds client end-points, servers and the connections between them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._reliable = True
        self._long_delays = False
        self._long_reordering = False
        self._ends: dict[Hashable, ClientEnd] = {}
        self._enabled: dict[Hashable, bool] = {}
        self._servers: dict[Hashable, Server | None] = {}
        self._connections: dict[Hashable, Hashable] = {}
        self._done = threading.Event()
        self._stats_lock = threading.Lock()
        self._count = 0
        self._bytes = 0

    def __enter__(self) -> Network:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        """Shut the network down; later calls fail at once."""
        self._done.set()

    def reliable(self, yes: bool) -> None:
        with self._lock:
            self._reliable = yes

    def is_reliable(self) -> bool:
        with self._lock:
            return self._reliable

    def long_reordering(self, yes: bool) -> None:
        with self._lock:
            self._long_reordering = yes

    def long_delays(self, yes: bool) -> None:
        with self._lock:
            self._long_delays = yes

    def is_long_delays(self) -> bool:
        with self._lock:
            return self._long_delays

    def make_end(self, endname: Hashable) -> ClientEnd:
        """Create a client end-point, initially disabled and unconnected."""
        with self._lock:
            if endname in self._ends:
                raise ValueError(f"end {endname!r} already exists")
            end = ClientEnd(endname, self)
            self._ends[endname] = end
            self._enabled[endname] = False
            self._connections[endname] = None
            return end

    def delete_end(self, endname: Hashable) -> None:
        with self._lock:
            if endname not in self._ends:
                raise KeyError(f"end {endname!r} does not exist")
            del self._ends[endname]
            self._enabled.pop(endname, None)
            self._connections.pop(endname, None)

    def add_server(self, servername: Hashable, server: Server) -> None:
        with self._lock:
            self._servers[servername] = server

    def delete_server(self, servername: Hashable) -> None:
        with self._lock:
            self._servers[servername] = None

    def connect(self, endname: Hashable, servername: Hashable) -> None:
        """Connect a client end-point to a server."""
        with self._lock:
            self._connections[endname] = servername

    def enable(self, endname: Hashable, enabled: bool) -> None:
        with self._lock:
            self._enabled[endname] = enabled

    def get_count(self, servername: Hashable) -> int:
        """Number of RPCs the named server has received."""
        with self._lock:
            server = self._servers.get(servername)
        if server is None:
            raise KeyError(f"no server {servername!r}")
        return server.get_count()

    def get_total_count(self) -> int:
        with self._stats_lock:
            return self._count

    def get_total_bytes(self) -> int:
        with self._stats_lock:
            return self._bytes

    def _add_bytes(self, n: int) -> None:
        with self._stats_lock:
            self._bytes += n

    def _send(self, request: _Request) -> _Reply:
        if self._done.is_set():
            return _FAILED
        with self._stats_lock:
            self._count += 1
            self._bytes += len(request.args)
        return self._process(request)

    def _endname_info(self, endname: Hashable) -> tuple[bool, Hashable, Server | None, bool, bool]:
        with self._lock:
            enabled = self._enabled.get(endname, False)
            servername = self._connections.get(endname)
            server = self._servers.get(servername) if servername is not None else None
            return enabled, servername, server, self._reliable, self._long_reordering

    def _is_server_dead(self, endname: Hashable, servername: Hashable, server: Server) -> bool:
        with self._lock:
            return not self._enabled.get(endname, False) or self._servers.get(servername) is not server

    def _process(self, request: _Request) -> _Reply:
        enabled, servername, server, reliable, long_reordering = self._endname_info(request.endname)

        if not (enabled and servername is not None and server is not None):
            # no reply, and an eventual timeout
            if self.is_long_delays():
                _sleep_ms(random.randrange(LONG_DELAY))
            else:
                _sleep_ms(random.randrange(100))
            return _FAILED

        if not reliable:
            _sleep_ms(random.randrange(SHORT_DELAY))
            if random.randrange(1000) < _DROP_PER_MILLE:
                return _FAILED

        results: queue.Queue = queue.Queue(maxsize=1)

        def run_handler() -> None:
            try:
                results.put((server._dispatch(request), None))
            except Exception as exc:  # handed back to the caller
                results.put((None, exc))

        threading.Thread(target=run_handler, daemon=True).start()

        outcome = None
        while outcome is None:
            try:
                outcome = results.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                if self._is_server_dead(request.endname, servername, server):
                    break

        # never answer for a server that was deleted while the handler ran
        if outcome is None or self._is_server_dead(request.endname, servername, server):
            return _FAILED
        reply, error = outcome
        if error is not None:
            raise error
        if not reliable and random.randrange(1000) < _DROP_PER_MILLE:
            return _FAILED
        if long_reordering and random.randrange(900) < 600:
            _sleep_ms(200 + random.randrange(1 + random.randrange(2000)))
        self._add_bytes(len(reply.data))
        return reply


class Server:
    """A collection of services that share one RPC dispatcher."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._services: dict[str, Service] = {}
        self._count = 0

    def add_service(self, service: Service) -> None:
        with self._lock:
            self._services[service.name] = service

    def get_count(self) -> int:
        """Number of incoming RPCs."""
        with self._lock:
            return self._count

    def _dispatch(self, request: _Request) -> _Reply:
        service_name, _, method_name = request.svc_meth.rpartition(".")
        with self._lock:
            self._count += 1
            service = self._services.get(service_name)
            choices = sorted(self._services)
        if service is None:
            raise LookupError(
                f"unknown service {service_name!r} in {request.svc_meth!r}; expecting one of {choices}"
            )
        return service._dispatch(method_name, request)


def _static_attribute(cls: type, attr: str) -> Any:
    """Find ``attr`` in the class dictionaries, without running descriptors."""
    for klass in cls.__mro__:
        namespace = vars(klass)
        if attr in namespace:
            return namespace[attr]
    return None


def _is_handler(function: types.FunctionType) -> bool:
    """True for a plain method taking exactly one positional argument after self."""
    code = function.__code__
    return (
        code.co_argcount == 2
        and code.co_kwonlyargcount == 0
        and not code.co_flags & (_CO_VARARGS | _CO_VARKEYWORDS)
    )


class Service:
    """An object whose public one-argument methods can be called via RPC."""

    def __init__(self, receiver: Any, name: str | None = None) -> None:
        cls = type(receiver)
        self.name = name or cls.__name__
        self._methods: dict[str, Callable[[Any], Any]] = {}
        for attr in dir(cls):
            if attr.startswith("_"):
                continue
            function = _static_attribute(cls, attr)
            if isinstance(function, types.FunctionType) and _is_handler(function):
                self._methods[attr] = getattr(receiver, attr)

    @property
    def method_names(self) -> frozenset[str]:
        return frozenset(self._methods)

    def _dispatch(self, method_name: str, request: _Request) -> _Reply:
        method = self._methods.get(method_name)
        if method is None:
            raise LookupError(
                f"unknown method {method_name!r} in {request.svc_meth!r}; "
                f"expecting one of {sorted(self._methods)}"
            )
        args = _decode(request.args, request.args_type)
        result = method(args)
        return _Reply(True, _encode(result), type(result))