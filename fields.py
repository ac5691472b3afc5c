"""Binary field primitives and the ordered field container.

A layout is a subclass of Fields whose members are declared once, at type
level, with define_field(). Every instance gets its own field objects built
from that schema, encodes them in declared order and decodes them by consuming
bytes off the front of a buffer.

    class Header(Fields):
        pass

    Header.define_field('kind', Int8)
    Header.define_field('size', Int16)
    Header.define_field('data', Raw, length_from='size')
"""

from typing import BinaryIO
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum, IntEnum
from fields_common import *
from util import OneToOne, short_hex

type Json = int | float | str | bool | None | list[Json] | dict[str, Json]

def force_write(dest: BinaryIO, data: bytes) -> None:
    written = dest.write(data)
    if written != len(data):
        raise ValueError(f"Error trying to write {len(data)} bytes; only wrote {written}")
    dest.flush()


class Capability(Enum):
    """How the value of a field is presented to and accepted from callers."""
    HUMAN = 'human'
    INTEGER = 'integer'
    RAW = 'raw'


class SymbolTable:
    """Immutable two-way mapping between integer codes and symbolic names."""

    def __init__(self, codes: Mapping[int,str], label: str = 'symbol') -> None:
        self._table: OneToOne[int,str] = OneToOne()
        for code, name in codes.items():
            self._table.add(code, name)
        self.label = label

    @classmethod
    def from_enum(cls, enum_type: type[IntEnum], label: str|None = None) -> Self:
        return cls({member.value: member.name for member in enum_type},
                   enum_type.__name__ if label is None else label)

    def code(self, name: str) -> int:
        try:
            return self._table.get2(name)
        except KeyError:
            raise UnknownSymbolError(name, self.label) from None

    def name(self, code: int) -> str:
        try:
            return self._table.get1(code)
        except KeyError:
            return str(code)

    def names(self) -> list[str]:
        return [name for _, name in self._table]

    def longest_name(self) -> int:
        return max((len(name) for name in self.names()), default=0)

    def __contains__(self, code: int) -> bool:
        return code in self._table

    def __iter__(self) -> Iterator[tuple[int,str]]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def __repr__(self) -> str:
        return f'{type(self).__name__}({dict(self._table)!r}, {self.label!r})'


class Field:
    """One named member of a binary layout."""
    CAPABILITY: ClassVar[Capability|None] = None

    def __init__(self, *, name: str|None = None) -> None:
        self.name = name

    def byte_size(self) -> int:
        raise NotImplementedError

    def encode(self) -> bytes:
        raise NotImplementedError

    def encode_to(self, dest: BinaryIO) -> int:
        raw = self.encode()
        force_write(dest, raw)
        return len(raw)

    def decode(self, buf: bytes) -> bytes:
        """Consume this field's bytes off the front of buf and return the rest."""
        raise NotImplementedError

    def jsonify(self) -> Json:
        raise NotImplementedError

    def load_json(self, obj: Json) -> None:
        raise NotImplementedError

    def to_human(self) -> Any:
        raise UnsupportedConversionError(f"{self._label()} has no human-readable form")

    def from_human(self, value: Any) -> None:
        raise UnsupportedConversionError(f"{self._label()} has no human-readable form")

    def snapshot(self) -> Any:
        raise NotImplementedError

    def restore(self, state: Any) -> None:
        raise NotImplementedError

    def _label(self) -> str:
        return type(self).__name__ if self.name is None else f'{type(self).__name__} {self.name!r}'

    def _need(self, buf: bytes, size: int) -> None:
        if len(buf) < size:
            raise DecodeError(bytes(buf), f"need {size} bytes, got {len(buf)}", self.name)

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        assert isinstance(other, Field)
        return self.jsonify() == other.jsonify()

    __hash__ = None # type: ignore[assignment]

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.jsonify()!r})'


class Int(Field):
    """Unsigned big-endian integer of a fixed byte width."""
    CAPABILITY = Capability.INTEGER
    _BYTE_LENGTH: ClassVar[int]

    def __init__(self, value: int|None = None, *, name: str|None = None) -> None:
        super().__init__(name=name)
        self._value = 0
        self.value = 0 if value is None else value

    @classmethod
    def max_value(cls) -> int:
        return 2**(cls._BYTE_LENGTH * 8) - 1

    @property
    def value(self) -> int:
        return self._value

    @value.setter
    def value(self, value: int) -> None:
        if not isinstance(value, int):
            raise TypeError(f"{self._label()} needs an int, got {value!r}")
        if not (0 <= value <= self.max_value()):
            raise ValueError(f"{self._label()}: {value} is not between 0 and {self.max_value()}")
        self._value = int(value)

    @override
    def byte_size(self) -> int:
        return self._BYTE_LENGTH

    @override
    def encode(self) -> bytes:
        return self._value.to_bytes(self._BYTE_LENGTH)

    @override
    def decode(self, buf: bytes) -> bytes:
        size = self._BYTE_LENGTH
        self._need(buf, size)
        self._value = int.from_bytes(buf[:size])
        return buf[size:]

    @override
    def jsonify(self) -> Json:
        return self._value

    @override
    def load_json(self, obj: Json) -> None:
        if isinstance(obj, bool) or not isinstance(obj, int):
            raise CodecError(f"{self._label()}: expected int, got {obj!r}")
        self.value = obj

    @override
    def snapshot(self) -> int:
        return self._value

    @override
    def restore(self, state: int) -> None:
        self._value = state

    def __str__(self) -> str:
        return str(self._value)

class Int8(Int):
    _BYTE_LENGTH = 1

class Int16(Int):
    _BYTE_LENGTH = 2

class Int24(Int):
    _BYTE_LENGTH = 3

class Int32(Int):
    _BYTE_LENGTH = 4

class Int64(Int):
    _BYTE_LENGTH = 8


class NamedInt(Int):
    """Integer whose human form is a name from the class SYMBOLS table.

    Subclasses set _BYTE_LENGTH and SYMBOLS. Codes missing from the table are
    still valid on the wire and display as their number.
    """
    CAPABILITY = Capability.HUMAN
    SYMBOLS: ClassVar[SymbolTable]

    def __init__(self, value: int|str|None = None, *, name: str|None = None) -> None:
        super().__init__(name=name)
        if value is not None:
            self.from_human(value)

    @override
    def to_human(self) -> str:
        return self.SYMBOLS.name(self._value)

    @override
    def from_human(self, value: int|str) -> None:
        if isinstance(value, int):
            self.value = value
        else:
            self.value = self.SYMBOLS.code(value)

    @override
    def jsonify(self) -> Json:
        return {'name': self.to_human(), 'value': self._value}

    @override
    def load_json(self, obj: Json) -> None:
        match obj:
            case {'value': int() as value} if not isinstance(value, bool):
                super().load_json(value)
            case _:
                super().load_json(obj)

    def __str__(self) -> str:
        return f'{self.to_human()} ({self._value})'


class Raw(Field):
    """Byte string without padding.

    With no length_from, decoding consumes the whole buffer. Otherwise
    length_from is an Int field (or, inside a container schema, the name of
    a sibling Int field) whose current value is the number of bytes to read.
    """
    CAPABILITY = Capability.RAW

    def __init__(self,
                 value: bytes|None = None,
                 *,
                 name: str|None = None,
                 length_from: 'Int|str|None' = None,
                 ) -> None:
        super().__init__(name=name)
        self.length_from = length_from
        self._value = b''
        self.value = b'' if value is None else value

    @property
    def value(self) -> bytes:
        return self._value

    @value.setter
    def value(self, value: bytes) -> None:
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise TypeError(f"{self._label()} needs bytes, got {value!r}")
        self._value = bytes(value)

    def _bound_size(self) -> int|None:
        match self.length_from:
            case None:
                return None
            case Int() as bound:
                return bound.value
            case other:
                raise ValueError(f"{self._label()} is bound to {other!r} outside of a container")

    @override
    def byte_size(self) -> int:
        return len(self._value)

    @override
    def encode(self) -> bytes:
        return self._value

    @override
    def decode(self, buf: bytes) -> bytes:
        size = self._bound_size()
        if size is None:
            size = len(buf)
        self._need(buf, size)
        self._value = bytes(buf[:size])
        return buf[size:]

    @override
    def jsonify(self) -> Json:
        return self._value.hex()

    @override
    def load_json(self, obj: Json) -> None:
        if not isinstance(obj, str):
            raise CodecError(f"{self._label()}: expected hex string, got {obj!r}")
        self.value = bytes.fromhex(obj)

    @override
    def snapshot(self) -> bytes:
        return self._value

    @override
    def restore(self, state: bytes) -> None:
        self._value = state

    def __str__(self) -> str:
        return short_hex(self._value, PFORMAT_BYTESLEN)


class String(Raw):
    """UTF-8 text carried as a byte string."""
    CAPABILITY = Capability.HUMAN
    ENCODING: ClassVar[str] = 'utf8'

    def __init__(self,
                 value: str|bytes|None = None,
                 *,
                 name: str|None = None,
                 length_from: 'Int|str|None' = None,
                 ) -> None:
        super().__init__(name=name, length_from=length_from)
        if value is not None:
            self.from_human(value)

    @override
    def decode(self, buf: bytes) -> bytes:
        before = self._value
        rest = super().decode(buf)
        try:
            self._value.decode(self.ENCODING)
        except UnicodeDecodeError as e:
            self._value = before
            raise DecodeError(bytes(buf), f"invalid {self.ENCODING} text: {e.reason}", self.name) from e
        return rest

    @override
    def to_human(self) -> str:
        return self._value.decode(self.ENCODING)

    @override
    def from_human(self, value: str|bytes) -> None:
        if isinstance(value, str):
            value = value.encode(self.ENCODING)
        self.value = value

    @override
    def jsonify(self) -> Json:
        return self.to_human()

    @override
    def load_json(self, obj: Json) -> None:
        if not isinstance(obj, str):
            raise CodecError(f"{self._label()}: expected string, got {obj!r}")
        self.from_human(obj)

    def __str__(self) -> str:
        return repr(self.to_human())


@dataclass(frozen=True)
class FieldDef:
    """Schema entry: how to build one member of a container."""
    name: str
    field_type: type[Field]
    default: Any = None
    builder: 'Callable[[Fields], Field]|None' = None
    options: Mapping[str, Any] = field(default_factory=dict)

    def build(self, owner: 'Fields') -> Field:
        if self.builder is not None:
            obj = self.builder(owner)
        elif issubclass(self.field_type, Fields):
            obj = self.field_type(**self.options)
        else:
            obj = self.field_type(self.default, **self.options) # type: ignore[call-arg]
        obj.name = self.name
        return obj


class _FieldAccessor(property):
    pass

def _accessor(name: str) -> _FieldAccessor:
    def fget(self: 'Fields') -> Any:
        try:
            fld = self._fields[name]
        except KeyError:
            raise AttributeError(name) from None
        return fld if isinstance(fld, Fields) else getattr(fld, 'value')

    def fset(self: 'Fields', value: Any) -> None:
        if isinstance(value, Field):
            self[name] = value
            return
        fld = self[name]
        if fld.CAPABILITY is None:
            raise UnsupportedConversionError(
                f"can't set {type(self).__name__}.{name} from {value!r}; assign a {type(fld).__name__}")
        elif fld.CAPABILITY is Capability.HUMAN:
            fld.from_human(value)
        else:
            setattr(fld, 'value', value)

    return _FieldAccessor(fget, fset, doc=f"value of the {name!r} field")


class Fields(Field):
    """Ordered, named collection of fields with a type-level schema.

    container[name] is the live field object; container.name reads or writes
    its value. Decoding is all or nothing: if it raises DecodeError, every
    field is restored to the value it had before.
    """
    _field_defs: ClassVar[tuple[FieldDef, ...]] = ()

    def __init__(self, *, name: str|None = None, **options: Any) -> None:
        super().__init__(name=name)
        self._fields: dict[str, Field] = {}
        for fdef in self._field_defs:
            self._fields[fdef.name] = fdef.build(self)
        for fld in self._fields.values():
            self._bind(fld)
        for key, value in options.items():
            if key not in self._fields:
                raise TypeError(f"{type(self).__name__} has no field {key!r}")
            setattr(self, key, value)

    # schema

    @classmethod
    def define_field(cls,
                     name: str,
                     field_type: type[Field],
                     *,
                     default: Any = None,
                     before: str|None = None,
                     after: str|None = None,
                     builder: 'Callable[[Fields], Field]|None' = None,
                     **options: Any,
                     ) -> None:
        """Add a field to this class's layout.

        The field is appended unless before or after names an existing field,
        in which case it is inserted right next to it. Parent classes keep
        their own layout.
        """
        if name == 'name' or name.startswith('_') or hasattr(Fields, name):
            raise ValueError(f"{name!r} is reserved and can't be a field name")
        if cls.has_field(name):
            raise ValueError(f"{cls.__name__} already has a field {name!r}")
        if before is not None and after is not None:
            raise ValueError("give at most one of before and after")
        if default is not None and (builder is not None or issubclass(field_type, Fields)):
            raise ValueError(f"{name!r}: default only applies to fields built from a value")
        defs = list(cls._field_defs)
        fdef = FieldDef(name, field_type, default, builder, dict(options))
        if before is not None:
            defs.insert(cls._field_index(before), fdef)
        elif after is not None:
            defs.insert(cls._field_index(after) + 1, fdef)
        else:
            defs.append(fdef)
        cls._field_defs = tuple(defs)
        current = getattr(cls, name, None)
        if current is None or isinstance(current, _FieldAccessor):
            setattr(cls, name, _accessor(name))

    @classmethod
    def delete_field(cls, name: str) -> None:
        index = cls._field_index(name)
        cls._field_defs = cls._field_defs[:index] + cls._field_defs[index+1:]
        if isinstance(cls.__dict__.get(name), _FieldAccessor):
            delattr(cls, name)

    @classmethod
    def field_names(cls) -> list[str]:
        return [fdef.name for fdef in cls._field_defs]

    @classmethod
    def has_field(cls, name: str) -> bool:
        return any(fdef.name == name for fdef in cls._field_defs)

    @classmethod
    def _field_index(cls, name: str) -> int:
        for index, fdef in enumerate(cls._field_defs):
            if fdef.name == name:
                return index
        raise KeyError(f"{cls.__name__} has no field {name!r}")

    # members

    def _bind(self, fld: Field) -> None:
        if isinstance(fld, Raw) and isinstance(fld.length_from, str):
            bound = self._fields.get(fld.length_from)
            if not isinstance(bound, Int):
                raise ValueError(f"{type(self).__name__}.{fld.name} has length_from "
                                 f"{fld.length_from!r}, which is not an Int field")
            fld.length_from = bound

    def __getitem__(self, name: str) -> Field:
        try:
            return self._fields[name]
        except KeyError:
            raise KeyError(f"{type(self).__name__} has no field {name!r}") from None

    def __setitem__(self, name: str, new: Field) -> None:
        """Replace a member field object, keeping length bindings to it."""
        old = self[name]
        new.name = name
        self._fields[name] = new
        for fld in self._fields.values():
            if isinstance(fld, Raw) and fld.length_from is old:
                fld.length_from = new
        self._bind(new)

    def _path(self, name: str) -> str:
        return name if self.name is None else f'{self.name}.{name}'

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def items(self) -> Iterator[tuple[str, Field]]:
        return iter(self._fields.items())

    # codec

    def total_size(self) -> int:
        return sum(fld.byte_size() for fld in self._fields.values())

    @override
    def byte_size(self) -> int:
        return self.total_size()

    @override
    def encode(self) -> bytes:
        return b''.join(fld.encode() for fld in self._fields.values())

    @override
    def decode(self, buf: bytes) -> bytes:
        with self.rollback():
            return self.decode_fields(buf, self._fields)

    def decode_fields(self, buf: bytes, names: Iterable[str]) -> bytes:
        """Decode the named members in the given order, without rollback."""
        rest = buf
        for name in names:
            fld = self[name]
            try:
                rest = fld.decode(rest)
            except DecodeError as e:
                raise e.above(bytes(buf), self.name) from e
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(f'{type(self).__name__}.{name} <- {fld}')
        return rest

    @classmethod
    def unpack(cls, raw: bytes, **options: Any) -> tuple[Self, bytes]:
        obj = cls(**options)
        rest = obj.decode(raw)
        return obj, rest

    @contextmanager
    def rollback(self) -> Iterator[None]:
        state = self.snapshot()
        try:
            yield
        except DecodeError:
            self.restore(state)
            raise

    @override
    def snapshot(self) -> tuple[tuple[str, Field, Any], ...]:
        return tuple((name, fld, fld.snapshot()) for name, fld in self._fields.items())

    @override
    def restore(self, state: tuple[tuple[str, Field, Any], ...]) -> None:
        self._fields = {name: fld for name, fld, _ in state}
        for _, fld, fstate in state:
            fld.restore(fstate)

    # other representations

    @override
    def jsonify(self) -> Json:
        return {name: fld.jsonify() for name, fld in self._fields.items()}

    @override
    def load_json(self, obj: Json) -> None:
        if not isinstance(obj, dict):
            raise CodecError(f"{self._label()}: expected dict, got {obj!r}")
        extra = set(obj) - set(self._fields)
        if extra:
            raise CodecError(f"{self._label()}: unknown fields {sorted(extra)}")
        for name, fld in self._fields.items():
            try:
                fld.load_json(obj[name])
            except KeyError:
                raise CodecError(f"{self._label()}: missing field {name!r} in json") from None

    @classmethod
    def from_json(cls, obj: Json, **options: Any) -> Self:
        instance = cls(**options)
        instance.load_json(obj)
        return instance

    def to_human(self) -> str:
        return ' '.join([type(self).__name__] + [f'{name}:{fld}' for name, fld in self._fields.items()])

    def inspect(self) -> str:
        width = max((len(name) for name in self._fields), default=0)
        lines = [f'--- {type(self).__name__}']
        for name, fld in self._fields.items():
            lines.append(f'  {name:>{width}} {type(fld).__name__:>8}: {fld}')
        return '\n'.join(lines)

    def __str__(self) -> str:
        return self.to_human()

    def __repr__(self) -> str:
        return f'{type(self).__name__}({", ".join(f"{n}={f.jsonify()!r}" for n, f in self._fields.items())})'
