#!/usr/bin/env python3

import pytest

from fields_common import DecodeError, UnknownSymbolError
from fields import SymbolTable
from ike import KE, Payload, DhGroup, PAYLOAD_TYPES, register_payload
from test_fields import check

KE_HEX = '2200000c' '0010' '0000' '01020304'


def test_ke_by_group_name() -> None:
    ke = KE(group='MODP4096', data=b'\x01\x02\x03\x04', next=0x22)
    check(ke.group_num, DhGroup.MODP4096)
    check(ke.length, 12)
    check(ke.encode(), bytes.fromhex(KE_HEX))

def test_ke_decode() -> None:
    ke, rest = KE.unpack(bytes.fromhex(KE_HEX))
    check(rest, b'')
    check(ke.next, 0x22)
    check(ke.length, 12)
    check(ke.group_num, 16)
    check(ke.group, 'MODP4096')
    check(ke.reserved, 0)
    check(ke.data, b'\x01\x02\x03\x04')
    check(ke.body, b'')
    assert ke == KE(group='MODP4096', data=b'\x01\x02\x03\x04', next=0x22)

def test_ke_unknown_group() -> None:
    with pytest.raises(UnknownSymbolError) as info:
        KE(group='NOSUCHGROUP')
    check(info.value.symbol, 'NOSUCHGROUP')
    ke = KE(group=14)
    with pytest.raises(UnknownSymbolError):
        ke.group = 'NOSUCHGROUP'
    check(ke.group_num, 14)

def test_ke_group_by_number() -> None:
    ke = KE()
    ke.group = 31
    check(ke.group, 'CURVE25519')
    ke.group = 999
    check(ke.group, '999')
    ke.group = 'ECP256'
    check(ke.group_num, 19)

def test_ke_injected_group_table() -> None:
    class LabKE(KE):
        GROUPS = SymbolTable({1: 'MODP4096'}, 'lab group')
    ke = LabKE(group='MODP4096', data=b'abcd')
    check(ke.group_num, 1)
    check(ke.length, 12)
    copy, rest = LabKE.unpack(ke.encode())
    check(rest, b'')
    check(copy.group_num, 1)
    check(copy.data, b'abcd')

def test_ke_layout() -> None:
    check(KE.field_names(), ['next', 'flags', 'length', 'group_num', 'reserved', 'data', 'body'])
    check(Payload.field_names(), ['next', 'flags', 'length', 'content', 'body'])
    with pytest.raises(AttributeError):
        KE().content

def test_ke_data_before_body() -> None:
    ke = KE(group=2, data=b'DATA', body=b'BODY')
    check(ke.length, 12)
    raw = ke.encode()
    assert raw.index(b'DATA') < raw.index(b'BODY')
    check(ke.total_size(), sum(fld.byte_size() for _, fld in ke.items()))
    check(ke.total_size(), 16)

def test_ke_hands_rest_to_body() -> None:
    ke, rest = KE.unpack(bytes.fromhex(KE_HEX) + b'next payload')
    check(ke.data, b'\x01\x02\x03\x04')
    check(ke.body, b'next payload')
    check(rest, b'')

def test_ke_short_data_rolls_back() -> None:
    ke = KE(group=2, data=b'abc')
    before = ke.encode()
    with pytest.raises(DecodeError) as info:
        ke.decode(bytes.fromhex('2200000c' '0010' '0000' '0102'))
    check(info.value.field, 'data')
    check(ke.encode(), before)
    check(ke.group_num, 2)

def test_ke_length_shorter_than_header() -> None:
    with pytest.raises(DecodeError) as info:
        KE.unpack(bytes.fromhex('00000006' '0010' '0000'))
    check(info.value.field, 'length')

def test_ke_short_header() -> None:
    with pytest.raises(DecodeError) as info:
        KE.unpack(bytes.fromhex('00000008' '00'))
    check(info.value.field, 'group_num')

def test_calc_length() -> None:
    ke = KE(data=b'ab')
    check(ke.length, 10)
    ke.data = b'abcdef'
    check(ke.length, 10)
    check(ke.calc_length(), 14)
    check(KE(data=b'ab', length=99).length, 99)

def test_payload_content() -> None:
    pl = Payload(content=b'xyz', body=b'rest')
    check(pl.length, 7)
    check(pl.encode(), bytes.fromhex('00000007') + b'xyzrest')
    copy, rest = Payload.unpack(pl.encode())
    check(rest, b'')
    check(copy.content, b'xyz')
    check(copy.body, b'rest')

def test_critical_flag() -> None:
    ke = KE()
    assert not ke.critical
    ke.critical = True
    check(ke.flags, 0x80)
    check(ke.encode()[1], 0x80)
    ke.critical = False
    check(ke.flags, 0)

def test_registry() -> None:
    assert PAYLOAD_TYPES[34] is KE
    check(KE.PAYLOAD_TYPE, 34)
    with pytest.raises(ValueError):
        @register_payload(34)
        class Other(Payload):
            pass

def test_chain() -> None:
    first = KE(group='MODP2048', data=b'first', next=KE.PAYLOAD_TYPE)
    second = KE(group='CURVE448', data=b'second')
    ke, rest = KE.unpack(first.encode() + second.encode())
    check(rest, b'')
    nxt, rest = PAYLOAD_TYPES[ke.next].unpack(ke.body)
    check(rest, b'')
    assert isinstance(nxt, KE)
    check(nxt.group, 'CURVE448')
    check(nxt.data, b'second')

def test_json() -> None:
    ke = KE(group='MODP1024', data=b'\xaa')
    js = ke.jsonify()
    check(js, {'next': 0, 'flags': 0, 'length': 9, 'group_num': 2,
               'reserved': 0, 'data': 'aa', 'body': ''})
    check(KE.from_json(js).encode(), ke.encode())

def test_inspect() -> None:
    lines = KE(group='MODP1024', data=b'\xaa').inspect().splitlines()
    check(lines[0], '--- KE')
    check(len(lines), 8)
    check(lines[4].split(), ['group_num', 'Int16:', '2'])
