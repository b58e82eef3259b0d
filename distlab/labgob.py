"""Self-describing value encoding for RPC messages and persisted state.

Values are written as one JSON document per line. Dataclasses travel with a
type name so that they can be rebuilt on the other side, either from the type
the caller asks for, from the registry filled by ``register``, or from the
types this process has already encoded.

Two classes of mistakes are reported as they are met, and counted:

* dataclass fields whose names start with an underscore are private and are
  never transmitted, which silently loses state;
* decoding while handing in an object that already holds non-default values
  usually means a reply object is being reused.
"""

from __future__ import annotations

import base64
import dataclasses
import enum
import json
import threading
import types
import typing
from typing import Any, BinaryIO

__all__ = [
    "LabGobError",
    "LabEncoder",
    "LabDecoder",
    "register",
    "register_name",
    "error_count",
]


class LabGobError(ValueError):
    """Raised when a value cannot be encoded or decoded."""


_lock = threading.Lock()
_error_count = 0
_checked: set = set()
_names: dict[str, type] = {}
_types: dict[type, str] = {}
# Classes met so far, by short name and by default full name.
_known: dict[str, type] = {}
_seen: dict[str, type] = {}
_generation = 0
_hint_cache: dict[type, tuple[int, dict[str, Any]]] = {}

_NO_DEFAULT = object()
_MAX_DEFAULT_DEPTH = 2

_SIMPLE_HINTS: dict[str, Any] = {
    "int": int,
    "float": float,
    "bool": bool,
    "str": str,
    "bytes": bytes,
    "bytearray": bytes,
    "None": type(None),
    "NoneType": type(None),
    "Any": Any,
    "object": Any,
    "list": list,
    "List": list,
    "dict": dict,
    "Dict": dict,
    "set": set,
    "Set": set,
    "frozenset": frozenset,
    "FrozenSet": frozenset,
    "tuple": tuple,
    "Tuple": tuple,
}

_GENERICS: dict[str, type] = {
    "list": list,
    "List": list,
    "Sequence": list,
    "dict": dict,
    "Dict": dict,
    "Mapping": dict,
    "set": set,
    "Set": set,
    "frozenset": frozenset,
    "FrozenSet": frozenset,
    "tuple": tuple,
    "Tuple": tuple,
}


def error_count() -> int:
    """Return how many problems have been reported so far."""
    with _lock:
        return _error_count


def _bump() -> int:
    """Count one problem and return the count as it was before."""
    global _error_count
    with _lock:
        before = _error_count
        _error_count += 1
        return before


def _default_name(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


def _as_type(value_type: Any) -> type:
    return value_type if isinstance(value_type, type) else type(value_type)


def _learn(cls: type) -> None:
    """Remember a dataclass or enum class so that hints and names can find it."""
    global _generation
    full = _default_name(cls)
    with _lock:
        if _known.get(cls.__name__) is cls and _seen.get(full) is cls:
            return
        _known[cls.__name__] = cls
        _seen[full] = cls
        _generation += 1


def register(value_type: Any) -> None:
    """Register a type (or the type of an instance) under its default name."""
    cls = _as_type(value_type)
    register_name(_default_name(cls), cls)


def register_name(name: str, value_type: Any) -> None:
    """Register a type (or the type of an instance) under ``name``."""
    cls = _as_type(value_type)
    _learn(cls)
    _check_type(cls)
    with _lock:
        existing = _names.get(name)
        if existing is not None and existing is not cls:
            raise LabGobError(f"name {name!r} is already registered for {existing.__qualname__}")
        previous = _types.get(cls)
        if previous is not None and previous != name:
            raise LabGobError(f"type {cls.__qualname__} is already registered as {previous!r}")
        _names[name] = cls
        _types[cls] = name


def _split_top(text: str, sep: str) -> list[str]:
    parts = []
    depth = 0
    start = 0
    for pos, ch in enumerate(text):
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
        elif ch == sep and depth == 0:
            parts.append(text[start:pos])
            start = pos + 1
    parts.append(text[start:])
    return [part.strip() for part in parts]


def _union(args: list[Any]) -> Any:
    unique: list[Any] = []
    for arg in args:
        if arg not in unique:
            unique.append(arg)
    if len(unique) == 1:
        return unique[0]
    return typing.Union[tuple(unique)]


def _lookup_name(name: str) -> Any:
    simple = _SIMPLE_HINTS.get(name)
    if simple is not None:
        return simple
    with _lock:
        return _known.get(name, Any)


def _parse_hint(text: str) -> Any:
    """Turn an annotation written as text into a hint, as far as it is known."""
    text = text.strip().strip("'\"")
    if not text:
        return Any
    alternatives = _split_top(text, "|")
    if len(alternatives) > 1:
        return _union([_parse_hint(alt) for alt in alternatives])
    if text == "...":
        return Ellipsis
    if text.endswith("]") and "[" in text:
        base, _, inner = text[:-1].partition("[")
        base = base.strip().rpartition(".")[2]
        args = [_parse_hint(arg) for arg in _split_top(inner, ",") if arg]
        if base == "Optional":
            return _union(args + [type(None)])
        if base == "Union":
            return _union(args)
        generic = _GENERICS.get(base)
        if generic is None:
            return _lookup_name(base)
        if not args:
            return generic
        if generic is tuple:
            return tuple[tuple(args)]
        if generic is dict:
            return dict[args[0], args[1]] if len(args) == 2 else dict
        return generic[args[0]]
    return _lookup_name(text.rpartition(".")[2])


def _resolve_hint(annotation: Any) -> Any:
    if isinstance(annotation, str):
        return _parse_hint(annotation)
    return annotation


def _field_hints(cls: type) -> dict[str, Any]:
    with _lock:
        cached = _hint_cache.get(cls)
        generation = _generation
    if cached is not None and cached[0] == generation:
        return cached[1]
    hints = {f.name: _resolve_hint(f.type) for f in dataclasses.fields(cls)}
    with _lock:
        _hint_cache[cls] = (generation, hints)
    return hints


def _is_dataclass_type(obj: Any) -> bool:
    return isinstance(obj, type) and dataclasses.is_dataclass(obj)


def _is_dataclass_instance(obj: Any) -> bool:
    return dataclasses.is_dataclass(obj) and not isinstance(obj, type)


def _check_type(tp: Any) -> None:
    try:
        hash(tp)
    except TypeError:
        return
    with _lock:
        if tp in _checked:
            return
        _checked.add(tp)

    if _is_dataclass_type(tp):
        for name, hint in _field_hints(tp).items():
            if name.startswith("_"):
                print(
                    f"labgob error: private field {name} of {tp.__name__} "
                    "is not transmitted in RPC or persist/snapshot"
                )
                _bump()
            _check_type(hint)
        return
    for arg in typing.get_args(tp):
        if arg is not Ellipsis:
            _check_type(arg)


def _check_value(value: Any) -> None:
    if _is_dataclass_instance(value):
        _check_type(type(value))
        for f in dataclasses.fields(value):
            if not f.name.startswith("_"):
                _check_value(getattr(value, f.name))
    elif isinstance(value, (list, tuple, set, frozenset)):
        for item in value:
            _check_value(item)
    elif isinstance(value, dict):
        for key, item in value.items():
            _check_value(key)
            _check_value(item)


def _primitive_zero(value: Any) -> Any:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return 0
    if isinstance(value, float):
        return 0.0
    return ""


def _check_default(value: Any, depth: int, name: str, default: Any = _NO_DEFAULT) -> None:
    if value is None or depth > _MAX_DEFAULT_DEPTH:
        return
    if _is_dataclass_instance(value):
        for f in dataclasses.fields(value):
            field_default = f.default if f.default is not dataclasses.MISSING else _NO_DEFAULT
            qualified = f"{name}.{f.name}" if name else f.name
            _check_default(getattr(value, f.name), depth + 1, qualified, field_default)
        return
    if isinstance(value, (bool, int, float, str)):
        baseline = _primitive_zero(value) if default is _NO_DEFAULT else default
        if value != baseline:
            if _bump() < 1:
                what = name or type(value).__name__
                print(f"labgob warning: Decoding into a non-default variable/field {what} may not work")


def _zero(hint: Any) -> Any:
    base = typing.get_origin(hint) or hint
    factories = {
        bool: lambda: False,
        int: lambda: 0,
        float: lambda: 0.0,
        str: lambda: "",
        bytes: lambda: b"",
        list: list,
        dict: dict,
        set: set,
        tuple: tuple,
    }
    factory = factories.get(base)
    return factory() if factory is not None else None


def _to_wire(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        _learn(type(value))
        return _to_wire(value.value)
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return {"__bytes__": base64.b64encode(bytes(value)).decode("ascii")}
    if _is_dataclass_instance(value):
        cls = type(value)
        _learn(cls)
        with _lock:
            name = _types.get(cls) or _default_name(cls)
        fields = {
            f.name: _to_wire(getattr(value, f.name))
            for f in dataclasses.fields(value)
            if not f.name.startswith("_")
        }
        return {"__type__": name, "__fields__": fields}
    if isinstance(value, dict):
        return {"__map__": [[_to_wire(k), _to_wire(v)] for k, v in value.items()]}
    if isinstance(value, (list, tuple)):
        return [_to_wire(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return {"__set__": [_to_wire(item) for item in value]}
    raise LabGobError(f"cannot encode value of type {type(value).__name__}")


def _decode_struct(data: dict, hint: Any) -> Any:
    name = data["__type__"]
    with _lock:
        cls = _names.get(name) or _seen.get(name)
    if cls is None:
        if _is_dataclass_type(hint) and _default_name(hint) == name:
            cls = hint
            _learn(cls)
        else:
            raise LabGobError(f"type {name!r} is not registered")
    hints = _field_hints(cls)
    raw = data.get("__fields__", {})
    kwargs = {}
    for f in dataclasses.fields(cls):
        if not f.init:
            continue
        if f.name in raw:
            kwargs[f.name] = _from_wire(raw[f.name], hints[f.name])
        elif f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
            kwargs[f.name] = _zero(hints[f.name])
    return cls(**kwargs)


def _from_wire(data: Any, hint: Any = Any) -> Any:
    origin = typing.get_origin(hint)
    args = typing.get_args(hint)

    if origin is typing.Union or origin is types.UnionType:
        if data is None:
            return None
        candidates = [a for a in args if a is not type(None)]
        return _from_wire(data, candidates[0] if len(candidates) == 1 else Any)

    if isinstance(data, dict):
        if "__type__" in data:
            return _decode_struct(data, hint)
        if "__bytes__" in data:
            return base64.b64decode(data["__bytes__"])
        if "__map__" in data:
            key_hint, value_hint = args if origin is dict and len(args) == 2 else (Any, Any)
            return {_from_wire(k, key_hint): _from_wire(v, value_hint) for k, v in data["__map__"]}
        if "__set__" in data:
            elem = args[0] if args else Any
            items = (_from_wire(item, elem) for item in data["__set__"])
            return frozenset(items) if origin is frozenset else set(items)
        raise LabGobError("malformed encoded value")

    if isinstance(data, list):
        if origin is tuple:
            if len(args) == 2 and args[1] is Ellipsis:
                return tuple(_from_wire(item, args[0]) for item in data)
            if args and len(args) == len(data):
                return tuple(_from_wire(item, h) for item, h in zip(data, args))
            return tuple(_from_wire(item) for item in data)
        elem = args[0] if origin is list and args else Any
        return [_from_wire(item, elem) for item in data]

    if isinstance(hint, type) and data is not None:
        if issubclass(hint, enum.Enum):
            return hint(data)
        if hint is float and isinstance(data, int) and not isinstance(data, bool):
            return float(data)
    return data


def _is_hint(obj: Any) -> bool:
    return obj is Any or isinstance(obj, type) or typing.get_origin(obj) is not None


class LabEncoder:
    """Writes values, one per line, to a binary stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def encode(self, value: Any) -> None:
        """Encode ``value`` and append it to the stream."""
        _check_value(value)
        line = json.dumps(_to_wire(value), separators=(",", ":"), ensure_ascii=False)
        self._stream.write(line.encode("utf-8") + b"\n")


class LabDecoder:
    """Reads values written by ``LabEncoder`` from a binary stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def decode(self, into: Any = Any) -> Any:
        """Decode the next value and return it.

        ``into`` is the expected type, or an existing object whose type is
        expected; such an object should hold only default values.
        """
        if _is_hint(into):
            hint = into
        else:
            hint = type(into)
            _check_default(into, 1, "")
        if _is_dataclass_type(hint) or (isinstance(hint, type) and issubclass(hint, enum.Enum)):
            _learn(hint)
        _check_type(hint)
        line = self._stream.readline()
        if not line:
            raise EOFError("no more encoded values")
        try:
            data = json.loads(line)
        except (ValueError, UnicodeDecodeError) as exc:
            raise LabGobError(f"malformed encoded value: {exc}") from exc
        return _from_wire(data, hint)