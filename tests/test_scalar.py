import uuid

import pytest

from pgwirekit.core import ProtocolError
from pgwirekit.scalar import (
    Varbit,
    bool_from_sql,
    bool_to_sql,
    bytea_from_sql,
    bytea_to_sql,
    char_from_sql,
    char_to_sql,
    date_from_sql,
    date_to_sql,
    float4_from_sql,
    float4_to_sql,
    float8_from_sql,
    float8_to_sql,
    hstore_from_sql,
    hstore_to_sql,
    int2_from_sql,
    int2_to_sql,
    int4_from_sql,
    int4_to_sql,
    int8_from_sql,
    int8_to_sql,
    lsn_from_sql,
    lsn_to_sql,
    macaddr_from_sql,
    macaddr_to_sql,
    oid_from_sql,
    oid_to_sql,
    text_from_sql,
    text_to_sql,
    time_from_sql,
    time_to_sql,
    timestamp_from_sql,
    timestamp_to_sql,
    uuid_from_sql,
    uuid_to_sql,
    varbit_from_sql,
    varbit_to_sql,
)


def test_bool():
    assert bool_from_sql(bool_to_sql(True)) is True
    assert bool_from_sql(bool_to_sql(False)) is False
    assert bool_to_sql(True) == b"\x01"


def test_bool_wrong_size():
    with pytest.raises(ProtocolError, match="invalid buffer size"):
        bool_from_sql(b"\x01\x00")


def test_int2():
    buf = int2_to_sql(0x0102)
    assert buf == b"\x01\x02"
    assert int2_from_sql(buf) == 0x0102


def test_int4():
    buf = int4_to_sql(0x0102_0304)
    assert buf == b"\x01\x02\x03\x04"
    assert int4_from_sql(buf) == 0x0102_0304


def test_int8():
    buf = int8_to_sql(0x0102_0304_0506_0708)
    assert buf == bytes(range(1, 9))
    assert int8_from_sql(buf) == 0x0102_0304_0506_0708


def test_float4():
    assert float4_from_sql(float4_to_sql(10343.95)) == pytest.approx(10343.95, rel=1e-6)
    assert len(float4_to_sql(10343.95)) == 4


def test_float8():
    assert float8_from_sql(float8_to_sql(10343.95)) == 10343.95


def test_hstore():
    entries = {"hello": "world", "hola": None}
    decoded = hstore_from_sql(hstore_to_sql(entries))
    assert dict(decoded) == entries


def test_hstore_preserves_order():
    pairs = [("b", "1"), ("a", None)]
    assert hstore_from_sql(hstore_to_sql(pairs)) == pairs


def test_hstore_negative_count():
    with pytest.raises(ProtocolError, match="invalid entry count"):
        hstore_from_sql(b"\xff\xff\xff\xff")


def test_hstore_trailing_data():
    with pytest.raises(ProtocolError, match="invalid buffer size"):
        hstore_from_sql(hstore_to_sql({}) + b"\x00")


def test_varbit():
    bits = bytes([0b0010_1011, 0b0000_1111])
    out = varbit_from_sql(varbit_to_sql(12, bits))
    assert len(out) == 12
    assert out.data == bits
    assert not out.is_empty()
    assert out == Varbit(12, bits)


def test_varbit_mismatch():
    with pytest.raises(ProtocolError, match="varbit mismatch"):
        varbit_from_sql(varbit_to_sql(12, b"\x01"))


def test_varbit_negative_length():
    with pytest.raises(ProtocolError, match="varbit < 0"):
        varbit_from_sql(b"\xff\xff\xff\xff")


def test_text_and_bytea():
    assert text_from_sql(text_to_sql("héllo")) == "héllo"
    assert bytea_from_sql(bytea_to_sql(b"\x00\x01")) == b"\x00\x01"


def test_text_invalid_utf8():
    with pytest.raises(ProtocolError):
        text_from_sql(b"\xff")


def test_char():
    assert char_to_sql(-1) == b"\xff"
    assert char_from_sql(b"\xff") == -1


def test_oid_and_lsn():
    assert oid_from_sql(oid_to_sql(4_000_000_000)) == 4_000_000_000
    assert lsn_from_sql(lsn_to_sql(2**63 + 5)) == 2**63 + 5


def test_int_out_of_range():
    with pytest.raises(ProtocolError):
        int2_to_sql(2**15)


def test_short_buffer():
    with pytest.raises(ProtocolError, match="failed to fill whole buffer"):
        int4_from_sql(b"\x00\x01")


def test_trailing_bytes():
    with pytest.raises(ProtocolError, match="invalid buffer size"):
        int4_from_sql(b"\x00\x00\x00\x01\x00")


def test_time_values():
    assert timestamp_from_sql(timestamp_to_sql(-123_456)) == -123_456
    assert date_from_sql(date_to_sql(-10)) == -10
    assert time_from_sql(time_to_sql(86_399_999_999)) == 86_399_999_999


def test_timestamp_not_drained():
    with pytest.raises(ProtocolError, match="timestamp not drained"):
        timestamp_from_sql(bytes(9))


def test_date_not_drained():
    with pytest.raises(ProtocolError, match="date not drained"):
        date_from_sql(bytes(5))


def test_macaddr():
    mac = bytes([0x02, 0x00, 0x00, 0x00, 0x00, 0x01])
    assert macaddr_from_sql(macaddr_to_sql(mac)) == mac
    with pytest.raises(ProtocolError, match="macaddr length mismatch"):
        macaddr_from_sql(b"\x00" * 5)


def test_uuid():
    value = uuid.UUID("a0eebc99-9c0b-4ef8-bb6d-6bb9bd380a11")
    buf = uuid_to_sql(value)
    assert buf == value.bytes
    assert uuid_from_sql(buf) == value


def test_uuid_size_mismatch():
    with pytest.raises(ProtocolError, match="uuid size mismatch"):
        uuid_from_sql(b"\x00" * 15)