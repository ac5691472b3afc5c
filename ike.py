"""IKEv2 generic payload and Key Exchange payload (RFC 7296 §3.2 and §3.4).

Only what the field layer needs from IKE lives here: the generic payload
header with its trailing body, a registry of payload classes keyed by payload
type, the Diffie-Hellman group numbers, and the KE payload.
"""

import enum
from fields_common import *
from fields import Fields, Int8, Int16, Raw, SymbolTable

# https://www.iana.org/assignments/ikev2-parameters (Transform Type 4)
class DhGroup(enum.IntEnum):
    MODP768         = 1
    MODP1024        = 2
    MODP1536        = 5
    MODP2048        = 14
    MODP3072        = 15
    MODP4096        = 16
    MODP6144        = 17
    MODP8192        = 18
    ECP256          = 19
    ECP384          = 20
    ECP521          = 21
    MODP1024_S160   = 22
    MODP2048_S224   = 23
    MODP2048_S256   = 24
    ECP192          = 25
    ECP224          = 26
    BRAINPOOLP224R1 = 27
    BRAINPOOLP256R1 = 28
    BRAINPOOLP384R1 = 29
    BRAINPOOLP512R1 = 30
    CURVE25519      = 31
    CURVE448        = 32


class Payload(Fields):
    """Generic IKE payload.

                            1                   2                   3
        0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1
       +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
       | Next Payload  |C|  RESERVED   |         Payload Length        |
       +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
       ~                            content                            ~
       +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+

    length counts the whole payload, header included. body holds whatever
    follows the payload in the buffer, i.e. the next payloads of the chain.
    Unless length is given, it is computed at construction.
    """
    PAYLOAD_TYPE: ClassVar[int|None] = None
    CRITICAL = 0x80

    def __init__(self, *, name: str|None = None, **options: Any) -> None:
        explicit_length = 'length' in options
        super().__init__(name=name, **options)
        if not explicit_length:
            self.calc_length()

    def calc_length(self) -> int:
        """Set length to the size of this payload, body excluded."""
        self.length = self.total_size() - self['body'].byte_size()
        return self.length # type: ignore[no-any-return]

    @property
    def critical(self) -> bool:
        return bool(self.flags & self.CRITICAL)

    @critical.setter
    def critical(self, value: bool) -> None:
        if value:
            self.flags |= self.CRITICAL
        else:
            self.flags &= ~self.CRITICAL & 0xff

    def _decode_bounded(self, buf: bytes, fixed: Iterable[str], bounded: str) -> bytes:
        """Decode the fixed header fields, then give the bounded field exactly
        length minus the header size, and everything after it to body.
        """
        with self.rollback():
            rest = self.decode_fields(buf, fixed)
            hlen = len(buf) - len(rest)
            plen = self.length - hlen
            if plen < 0:
                raise DecodeError(bytes(buf[:hlen]),
                                  f"payload length {self.length} is shorter than the {hlen}-byte header",
                                  self._path('length'))
            if len(rest) < plen:
                raise DecodeError(bytes(buf),
                                  f"payload length {self.length} needs {plen} more bytes, got {len(rest)}",
                                  self._path(bounded))
            logger.debug(f'{type(self).__name__}: {hlen}-byte header, {plen} bytes of {bounded}')
            self.decode_fields(rest[:plen], (bounded,))
            return self.decode_fields(rest[plen:], ('body',))

    @override
    def decode(self, buf: bytes) -> bytes:
        return self._decode_bounded(buf, ('next', 'flags', 'length'), 'content')

Payload.define_field('next', Int8)
Payload.define_field('flags', Int8)
Payload.define_field('length', Int16)
Payload.define_field('content', Raw)
Payload.define_field('body', Raw)


PAYLOAD_TYPES: dict[int, type[Payload]] = {}

def register_payload(code: int) -> Callable[[type[Payload]], type[Payload]]:
    """Class decorator recording a payload class under its IKE payload type."""
    def decorate(cls: type[Payload]) -> type[Payload]:
        if code in PAYLOAD_TYPES:
            raise ValueError(f"payload type {code} is already registered to {PAYLOAD_TYPES[code].__name__}")
        cls.PAYLOAD_TYPE = code
        PAYLOAD_TYPES[code] = cls
        return cls
    return decorate


@register_payload(34)
class KE(Payload):
    """Key Exchange payload.

                            1                   2                   3
        0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1
       +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
       | Next Payload  |C|  RESERVED   |         Payload Length        |
       +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
       |   Diffie-Hellman Group Num    |           RESERVED            |
       +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
       ~                       Key Exchange Data                       ~
       +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+

    The group can be given as a number or as a name from GROUPS:

        KE(group='MODP4096', data=pubkey)

    GROUPS defaults to the IANA numbering, where MODP4096 is 16. A subclass
    that needs another numbering (some deployments use 1 for MODP4096)
    replaces the table:

        class LabKE(KE):
            GROUPS = SymbolTable({1: 'MODP4096'}, 'lab group')
    """
    GROUPS: ClassVar[SymbolTable] = SymbolTable.from_enum(DhGroup, 'DH group')

    def __init__(self, *, group: int|str|None = None, name: str|None = None, **options: Any) -> None:
        if group is not None:
            options['group_num'] = self.group_code(group)
        super().__init__(name=name, **options)

    @classmethod
    def group_code(cls, value: int|str) -> int:
        if isinstance(value, int):
            return value
        return cls.GROUPS.code(str(value))

    @property
    def group(self) -> str:
        return self.GROUPS.name(self.group_num)

    @group.setter
    def group(self, value: int|str) -> None:
        self.group_num = self.group_code(value)

    @override
    def decode(self, buf: bytes) -> bytes:
        return self._decode_bounded(buf, ('next', 'flags', 'length', 'group_num', 'reserved'), 'data')

KE.delete_field('content')
KE.define_field('group_num', Int16, before='body')
KE.define_field('reserved', Int16, before='body', default=0)
KE.define_field('data', Raw, before='body')
