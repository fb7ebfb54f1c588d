import base64
import hashlib

import pytest

from tntwire.codec import DecodeError, Reader, pack_map_header, pack_uint, pack_value
from tntwire.constants import Command, ErrorCode, Key
from tntwire.errors import QueryError
from tntwire.packdata import PackData
from tntwire.queries import (
    Auth,
    Call,
    Call17,
    Delete,
    Eval,
    FetchSnapshot,
    Insert,
    Join,
    Ping,
    new_query,
    scramble,
)

SALT = base64.b64encode(bytes(range(32)))


@pytest.fixture
def pack_data():
    data = PackData()
    data.space_map["tester"] = 42
    data.space_map["tester2"] = 43
    data.index_map[42] = {"primary": 0}
    data.index_map[43] = {"primary": 0}
    return data


@pytest.mark.parametrize("query_type", [Call, Call17])
@pytest.mark.parametrize(
    "name, args",
    [("sel_all", None), ("sel_name", [2, "Music"]), ("call_case_1", None)],
)
def test_call_round_trip(query_type, name, args):
    query = query_type(name=name, tuple=args)
    decoded = query_type()
    assert decoded.unmarshal(query.marshal()) == b""
    assert decoded.name == query.name
    assert decoded.tuple == query.tuple


def test_call_empty_tuple_becomes_none():
    decoded = Call17()
    decoded.unmarshal(Call17(name="f", tuple=[]).marshal())
    assert decoded.tuple is None


def test_call_wire_layout():
    reader = Reader(Call(name="sel_all").marshal())
    assert reader.read_map_header() == 2
    assert reader.read_uint() == Key.FUNCTION_NAME
    assert reader.read_string() == "sel_all"
    assert reader.read_uint() == Key.TUPLE
    assert reader.read_array_header() == 0


def test_call_unmarshal_errors():
    one_entry = pack_map_header(1) + pack_uint(Key.FUNCTION_NAME) + pack_value("f")
    with pytest.raises(DecodeError, match="map of length 2"):
        Call().unmarshal(one_entry)
    no_name = (
        pack_map_header(2)
        + pack_uint(Key.FUNCTION_NAME)
        + pack_value("")
        + pack_uint(Key.TUPLE)
        + pack_value([])
    )
    with pytest.raises(DecodeError, match="Call17"):
        Call17().unmarshal(no_name)


def test_eval_pack_unpack():
    query = Eval(expression="return 2+2", tuple=["test"])
    decoded = Eval()
    decoded.unmarshal(query.marshal())
    assert decoded == query


def test_eval_wrong_map_size():
    with pytest.raises(DecodeError):
        Eval().unmarshal(pack_map_header(1) + pack_uint(Key.EXPRESSION) + pack_value("x"))


def test_insert_round_trip(pack_data):
    query = Insert(space="tester", tuple=[4, "Hello"])
    decoded = Insert()
    decoded.unmarshal(query.marshal(pack_data))
    assert decoded.space == 42
    assert decoded.tuple == query.tuple


def test_insert_requires_tuple(pack_data):
    with pytest.raises(ValueError, match="Tuple can not be nil"):
        Insert(space="tester").marshal(pack_data)


def test_insert_unknown_space_with_default_pack_data():
    with pytest.raises(ValueError):
        Insert(space="tester", tuple=[1]).marshal()


def test_insert_unmarshal_missing_fields():
    with pytest.raises(DecodeError, match="no space"):
        Insert().unmarshal(pack_map_header(1) + pack_uint(Key.TUPLE) + pack_value([1]))
    with pytest.raises(DecodeError, match="no tuple"):
        Insert().unmarshal(pack_map_header(1) + pack_uint(Key.SPACE_NO) + pack_uint(42))


def test_delete_single_key(pack_data):
    query = Delete(space="tester", key=4)
    decoded = Delete()
    decoded.unmarshal(query.marshal(pack_data))
    assert decoded.space == 42
    assert decoded.key == query.key
    assert decoded.key_tuple is None
    assert decoded.index == 0


def test_delete_key_tuple(pack_data):
    query = Delete(space="tester2", key_tuple=[4, "World"])
    decoded = Delete()
    decoded.unmarshal(query.marshal(pack_data))
    assert decoded.space == 43
    assert decoded.key_tuple == query.key_tuple
    assert decoded.key is None


def test_delete_named_index(pack_data):
    pack_data.index_map[42]["by_name"] = 2
    decoded = Delete()
    decoded.unmarshal(Delete(space="tester", index="by_name", key=1).marshal(pack_data))
    assert decoded.index == 2


def test_delete_errors(pack_data):
    with pytest.raises(ValueError):
        Delete(space="tester").marshal(pack_data)
    with pytest.raises(DecodeError, match="no space"):
        Delete().unmarshal(pack_map_header(1) + pack_uint(Key.KEY) + pack_value([1]))
    with pytest.raises(DecodeError, match="no tuple"):
        Delete().unmarshal(pack_map_header(1) + pack_uint(Key.SPACE_NO) + pack_uint(42))


def test_ping_has_empty_body():
    assert Ping().marshal() == b""
    assert Ping().unmarshal(b"anything") == b""


def test_join_wire_layout():
    reader = Reader(Join(uuid="uuid-1").marshal())
    assert reader.read_map_header() == 1
    assert reader.read_uint() == Key.INSTANCE_UUID
    assert reader.read_string() == "uuid-1"


@pytest.mark.parametrize("query", [Join(), FetchSnapshot()])
def test_unsupported_unmarshal(query):
    with pytest.raises(QueryError) as info:
        query.unmarshal(b"")
    assert info.value.code == ErrorCode.UNSUPPORTED


def test_fetch_snapshot_empty_body():
    assert FetchSnapshot().marshal() == b""


def test_scramble_verifies_like_server():
    password = "password"
    scr = scramble(SALT, password)
    salt = base64.b64decode(SALT)
    step1 = hashlib.sha1(password.encode()).digest()
    step3 = hashlib.sha1(salt[:20] + hashlib.sha1(step1).digest()).digest()
    assert len(scr) == 20
    assert bytes(a ^ b for a, b in zip(scr, step3)) == step1


def test_scramble_rejects_bad_salt():
    with pytest.raises(ValueError):
        scramble(b"not base64!", "password")
    with pytest.raises(ValueError):
        scramble(base64.b64encode(b"short"), "password")


def test_auth_marshal_and_unmarshal():
    password = "password"
    query = Auth(user="guest", password=password, greeting_auth=SALT)
    body = query.marshal()
    reader = Reader(body)
    assert reader.read_map_header() == 2
    assert reader.read_uint() == Key.USER_NAME
    assert reader.read_string() == "guest"
    assert reader.read_uint() == Key.TUPLE
    assert reader.read_array_header() == 2
    assert reader.read_string() == "chap-sha1"
    assert reader.read_bytes() == scramble(SALT, password)

    decoded = Auth()
    decoded.unmarshal(body)
    assert decoded.user == "guest"
    assert decoded.greeting_auth == scramble(SALT, password)


def test_auth_unmarshal_string_scramble():
    body = (
        pack_map_header(1)
        + pack_uint(Key.TUPLE)
        + pack_value(["chap-sha1", "abc"])
    )
    decoded = Auth()
    decoded.unmarshal(body)
    assert decoded.greeting_auth == b"abc"


def test_auth_bad_salt_fails():
    password = "password"
    with pytest.raises(ValueError, match="scrambling failure"):
        Auth(user="guest", password=password, greeting_auth=b"!!").marshal()


def test_auth_unknown_key():
    with pytest.raises(DecodeError):
        Auth().unmarshal(pack_map_header(1) + pack_uint(Key.SPACE_NO) + pack_uint(1))


@pytest.mark.parametrize(
    "cmd",
    [Command.AUTH, Command.INSERT, Command.DELETE, Command.CALL, Command.CALL17,
     Command.PING, Command.EVAL],
)
def test_new_query_known(cmd):
    assert new_query(cmd).command == cmd


def test_new_query_unknown():
    assert new_query(Command.JOIN) is None
    assert new_query(Command.OK) is None