import pytest

from tntwire.codec import DecodeError, pack_value
from tntwire.operators import (
    OpAdd,
    OpAssign,
    OpBitAND,
    OpBitOR,
    OpBitXOR,
    OpDelete,
    OpInsert,
    OpSplice,
    OpSub,
    marshal_operator,
    unmarshal_operator,
)


@pytest.mark.parametrize(
    "op",
    [
        OpAdd(field=1, argument=5),
        OpAdd(field=2, argument=-7),
        OpSub(field=3, argument=10),
        OpBitAND(field=1, argument=0xFF),
        OpBitXOR(field=4, argument=1 << 40),
        OpBitOR(field=0, argument=3),
        OpDelete(from_=2, count=3),
        OpInsert(before=1, argument="hello"),
        OpInsert(before=-1, argument=[1, "two", None]),
        OpAssign(field=5, argument={"k": "v"}),
        OpAssign(field=1, argument=None),
        OpSplice(field=2, offset=3, position=1, argument="abc"),
    ],
)
def test_round_trip(op):
    decoded, rest = unmarshal_operator(marshal_operator(op))
    assert decoded == op
    assert type(decoded) is type(op)
    assert rest == b""


def test_add_wire_bytes():
    assert marshal_operator(OpAdd(field=1, argument=2)) == b"\x93\xa1+\x01\x02"


def test_splice_tuple_order_puts_position_before_offset():
    op = OpSplice(field=1, offset=10, position=20, argument="x")
    assert op.as_tuple() == [":", 1, 20, 10, "x"]


def test_delete_tuple():
    assert OpDelete(from_=4, count=2).as_tuple() == ["#", 4, 2]


def test_remaining_bytes_returned():
    data = marshal_operator(OpSub(field=1, argument=1)) + b"\xc0"
    op, rest = unmarshal_operator(data)
    assert op == OpSub(field=1, argument=1)
    assert rest == b"\xc0"


def test_wrong_argument_count():
    with pytest.raises(DecodeError, match="unexpected number of arguments in OpAdd: 4"):
        unmarshal_operator(pack_value(["+", 1, 2, 3]))


def test_wrong_splice_argument_count():
    with pytest.raises(DecodeError, match="OpSplice: 3"):
        unmarshal_operator(pack_value([":", 1, 2]))


def test_unknown_operator():
    with pytest.raises(DecodeError, match="unknown op"):
        unmarshal_operator(pack_value(["?", 1, 2]))


def test_bitwise_argument_must_be_unsigned():
    with pytest.raises(DecodeError):
        unmarshal_operator(pack_value(["&", 1, -1]))


def test_not_an_array():
    with pytest.raises(DecodeError):
        unmarshal_operator(pack_value("+"))