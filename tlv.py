"""Type-Length-Value composite built on the field container."""

from fields_common import *
from fields import Capability, Field, Fields, Int, Int8, Raw, SymbolTable

class TLV(Fields):
    """Type-Length-Value field.

    The three members are a type (Int8 by default), a length (Int8 by default)
    and a value (Raw by default, bound to the length on decode). The member
    classes can be changed per instance:

        TLV(t=Int16, l=Int16, v=String)

    A subclass may set TYPES to a SymbolTable of type codes. The type can then
    be set by name and is shown by name in human_type.

    Setting value through the TLV recomputes length from the value's encoded
    size. Setting length directly is allowed, to build malformed TLVs on
    purpose; so is setting the value field object's own value, which leaves
    length alone.
    """
    TYPES: ClassVar[SymbolTable|None] = None

    def __init__(self,
                 *,
                 t: type[Int]|None = None,
                 l: type[Int]|None = None,
                 v: type[Field]|None = None,
                 name: str|None = None,
                 **options: Any,
                 ) -> None:
        typ = options.pop('type', None)
        value = options.pop('value', None)
        length = options.pop('length', None)
        super().__init__(name=name, **options)
        if t is not None:
            self['type'] = t(self['type'].value) # type: ignore[attr-defined]
        if l is not None:
            self['length'] = l(self['length'].value) # type: ignore[attr-defined]
        if v is not None:
            self['value'] = v(length_from=self['length']) if issubclass(v, Raw) else v()
        if typ is not None:
            self.type = typ
        if value is not None:
            self.value = value
        else:
            self._sync_length()
        if length is not None:
            self.length = length

    @property
    def type(self) -> int:
        return self['type'].value # type: ignore[attr-defined,no-any-return]

    @type.setter
    def type(self, value: int|str) -> None:
        if isinstance(value, int):
            self['type'].value = value # type: ignore[attr-defined]
        elif self.TYPES is None:
            raise UnknownSymbolError(value, f'{type(self).__name__} type (no TYPES defined)')
        else:
            self['type'].value = self.TYPES.code(str(value)) # type: ignore[attr-defined]

    @property
    def human_type(self) -> str:
        if self.TYPES is None:
            return str(self.type)
        return self.TYPES.name(self.type)

    @property
    def value(self) -> Any:
        fld = self['value']
        match fld.CAPABILITY:
            case Capability.HUMAN:
                return fld.to_human()
            case Capability.INTEGER | Capability.RAW:
                return fld.value # type: ignore[attr-defined]
        raise UnsupportedConversionError(
            f"can't get value of {type(self).__name__}: {type(fld).__name__} supports no conversion")

    @value.setter
    def value(self, val: Any) -> None:
        fld = self['value']
        state = fld.snapshot() if fld.CAPABILITY is not None else None
        match fld.CAPABILITY:
            case Capability.HUMAN:
                fld.from_human(val)
            case Capability.INTEGER | Capability.RAW:
                fld.value = val # type: ignore[attr-defined]
            case _:
                raise UnsupportedConversionError(
                    f"can't set value of {type(self).__name__}: {type(fld).__name__} supports no conversion")
        try:
            self._sync_length()
        except ValueError:
            fld.restore(state)
            raise

    def _sync_length(self) -> None:
        self['length'].value = self['value'].byte_size() # type: ignore[attr-defined]

    @override
    def decode(self, buf: bytes) -> bytes:
        with self.rollback():
            rest = super().decode(buf)
            size = self['value'].byte_size()
            if self.length != size:
                raise DecodeError(bytes(buf[:len(buf)-len(rest)]),
                                  f"length is {self.length} but value takes {size} bytes",
                                  self._path('length'))
        return rest

    @override
    def to_human(self) -> str:
        type_width = 0 if self.TYPES is None else self.TYPES.longest_name()
        length_width = len(str(self['length'].max_value())) # type: ignore[attr-defined]
        fld = self['value']
        shown = repr(self.value) if fld.CAPABILITY is not None else str(fld)
        return (f'{type(self).__name__} type:{self.human_type.ljust(type_width)} '
                f'length:{str(self.length).ljust(length_width)} value:{shown}')

TLV.define_field('type', Int8)
TLV.define_field('length', Int8)
TLV.define_field('value', Raw, length_from='length')
