"""Small helpers not specific to any field type."""

from collections.abc import Hashable, Iterator
from typing import Any
from dataclasses import dataclass, field
import pprint

def short_hex(raw: bytes, limit: int|None = None) -> str:
    """Hex of raw, with the middle elided when it is longer than limit bytes."""
    if limit is not None and len(raw) > limit:
        return f"{raw[:limit//2].hex()}...{raw[-limit//2:].hex()}"
    return raw.hex()

type _Pretty = str | list[_Pretty] | dict[str, _Pretty]

def _hexify(obj: Any, byteslen: int|None) -> _Pretty:
    match obj:
        case bytes() | bytearray() | memoryview():
            return short_hex(bytes(obj), byteslen)
        case dict():
            return {str(key): _hexify(value, byteslen) for key, value in obj.items()}
        case list() | tuple():
            return [_hexify(value, byteslen) for value in obj]
        case _:
            return str(obj)

def pformat(obj: Any, byteslen: int|None = 32, **kwargs: Any) -> str:
    """pprint.pformat with byte strings shown as (shortened) hex."""
    return pprint.pformat(_hexify(obj, byteslen), sort_dicts=False, **kwargs)

@dataclass
class OneToOne[K1: Hashable, K2: Hashable]:
    """Two-way dictionary; neither side may repeat a key."""
    _forward: dict[K1,K2] = field(default_factory=dict)
    _reverse: dict[K2,K1] = field(default_factory=dict)

    def add(self, key1: K1, key2: K2) -> None:
        if self._forward.get(key1, key2) != key2:
            raise ValueError(f"{key1!r} is already paired with {self._forward[key1]!r}")
        if self._reverse.get(key2, key1) != key1:
            raise ValueError(f"{key2!r} is already paired with {self._reverse[key2]!r}")
        self._forward[key1] = key2
        self._reverse[key2] = key1

    def get1(self, key: K1) -> K2:
        return self._forward[key]

    def get2(self, key: K2) -> K1:
        return self._reverse[key]

    def __contains__(self, key: object) -> bool:
        return key in self._forward

    def __iter__(self) -> Iterator[tuple[K1,K2]]:
        return iter(self._forward.items())

    def __len__(self) -> int:
        return len(self._forward)
