"""Protocol constants: command codes, body keys, iterators, error codes and defaults."""

from __future__ import annotations

from enum import IntEnum


class Command(IntEnum):
    """Request and response type codes carried under ``Key.CODE``."""

    OK = 0
    SELECT = 1
    INSERT = 2
    REPLACE = 3
    UPDATE = 4
    DELETE = 5
    CALL = 6
    AUTH = 7
    EVAL = 8
    UPSERT = 9
    CALL17 = 10  # server >= 1.7.2
    PING = 64
    JOIN = 65
    SUBSCRIBE = 66
    VOTE = 68  # server >= 1.9.0
    FETCH_SNAPSHOT = 69  # anonymous replication, server >= 2.3.1
    REGISTER = 70  # anonymous -> normal replica, server >= 2.3.1
    ERROR_FLAG = 0x8000


class Key(IntEnum):
    """Map keys used in packet headers and bodies."""

    CODE = 0x00
    SYNC = 0x01
    INSTANCE_ID = 0x02
    LSN = 0x03
    TIMESTAMP = 0x04
    SCHEMA_ID = 0x05
    SPACE_NO = 0x10
    INDEX_NO = 0x11
    LIMIT = 0x12
    OFFSET = 0x13
    ITERATOR = 0x14
    KEY = 0x20
    TUPLE = 0x21
    FUNCTION_NAME = 0x22
    USER_NAME = 0x23
    INSTANCE_UUID = 0x24
    REPLICA_SET_UUID = 0x25
    VCLOCK = 0x26
    EXPRESSION = 0x27
    DEF_TUPLE = 0x28
    BALLOT = 0x29  # server >= 1.9.0
    DATA = 0x30
    ERROR = 0x31
    REPLICA_ANON = 0x50  # server >= 2.3.1


class IterType(IntEnum):
    """Index iterator types."""

    EQ = 0  # key == x, ascending
    REQ = 1  # key == x, descending
    ALL = 2  # all tuples
    LT = 3  # key < x
    LE = 4  # key <= x
    GE = 5  # key >= x
    GT = 6  # key > x
    BITS_ALL_SET = 7  # all bits from x are set in key
    BITS_ANY_SET = 8  # at least one bit of x is set
    BITS_ALL_NOT_SET = 9  # all bits are not set


class ErrorCode(IntEnum):
    """Server error codes."""

    UNKNOWN = 0x00
    ILLEGAL_PARAMS = 0x01
    MEMORY_ISSUE = 0x02
    TUPLE_FOUND = 0x03
    TUPLE_NOT_FOUND = 0x04
    UNSUPPORTED = 0x05
    NONMASTER = 0x06
    READONLY = 0x07
    INJECTION = 0x08
    CREATE_SPACE = 0x09
    SPACE_EXISTS = 0x0A
    DROP_SPACE = 0x0B
    ALTER_SPACE = 0x0C
    INDEX_TYPE = 0x0D
    MODIFY_INDEX = 0x0E
    LAST_DROP = 0x0F
    TUPLE_FORMAT_LIMIT = 0x10
    DROP_PRIMARY_KEY = 0x11
    KEY_PART_TYPE = 0x12
    EXACT_MATCH = 0x13
    INVALID_MSGPACK = 0x14
    PROC_RET = 0x15
    TUPLE_NOT_ARRAY = 0x16
    FIELD_TYPE = 0x17
    FIELD_TYPE_MISMATCH = 0x18
    SPLICE = 0x19
    ARG_TYPE = 0x1A
    TUPLE_IS_TOO_LONG = 0x1B
    UNKNOWN_UPDATE_OP = 0x1C
    UPDATE_FIELD = 0x1D
    FIBER_STACK = 0x1E
    KEY_PART_COUNT = 0x1F
    PROC_LUA = 0x20
    NO_SUCH_PROC = 0x21
    NO_SUCH_TRIGGER = 0x22
    NO_SUCH_INDEX = 0x23
    NO_SUCH_SPACE = 0x24
    NO_SUCH_FIELD = 0x25
    SPACE_FIELD_COUNT = 0x26
    INDEX_FIELD_COUNT = 0x27
    WAL_IO = 0x28
    MORE_THAN_ONE_TUPLE = 0x29
    ACCESS_DENIED = 0x2A
    CREATE_USER = 0x2B
    DROP_USER = 0x2C
    NO_SUCH_USER = 0x2D
    USER_EXISTS = 0x2E
    PASSWORD_MISMATCH = 0x2F
    UNKNOWN_REQUEST_TYPE = 0x30
    UNKNOWN_SCHEMA_OBJECT = 0x31
    CREATE_FUNCTION = 0x32
    NO_SUCH_FUNCTION = 0x33
    FUNCTION_EXISTS = 0x34
    FUNCTION_ACCESS_DENIED = 0x35
    FUNCTION_MAX = 0x36
    SPACE_ACCESS_DENIED = 0x37
    USER_MAX = 0x38
    NO_SUCH_ENGINE = 0x39
    RELOAD_CFG = 0x3A
    CFG = 0x3B
    SOPHIA = 0x3C
    LOCAL_SERVER_IS_NOT_ACTIVE = 0x3D
    UNKNOWN_SERVER = 0x3E
    CLUSTER_ID_MISMATCH = 0x3F
    INVALID_UUID = 0x40
    CLUSTER_ID_IS_RO = 0x41
    RESERVED66 = 0x42
    SERVER_ID_IS_RESERVED = 0x43
    INVALID_ORDER = 0x44
    MISSING_REQUEST_FIELD = 0x45
    IDENTIFIER = 0x46
    DROP_FUNCTION = 0x47
    ITERATOR_TYPE = 0x48
    REPLICA_MAX = 0x49
    INVALID_XLOG = 0x4A
    INVALID_XLOG_NAME = 0x4B
    INVALID_XLOG_ORDER = 0x4C
    NO_CONNECTION = 0x4D
    TIMEOUT = 0x4E
    ACTIVE_TRANSACTION = 0x4F
    NO_ACTIVE_TRANSACTION = 0x50
    CROSS_ENGINE_TRANSACTION = 0x51
    NO_SUCH_ROLE = 0x52
    ROLE_EXISTS = 0x53
    CREATE_ROLE = 0x54
    INDEX_EXISTS = 0x55
    TUPLE_REF_OVERFLOW = 0x56
    ROLE_LOOP = 0x57
    GRANT = 0x58
    PRIV_GRANTED = 0x59
    ROLE_GRANTED = 0x5A
    PRIV_NOT_GRANTED = 0x5B
    ROLE_NOT_GRANTED = 0x5C
    MISSING_SNAPSHOT = 0x5D
    CANT_UPDATE_PRIMARY_KEY = 0x5E
    UPDATE_INTEGER_OVERFLOW = 0x5F
    GUEST_USER_PASSWORD = 0x60
    TRANSACTION_CONFLICT = 0x61
    UNSUPPORTED_ROLE_PRIV = 0x62
    LOAD_FUNCTION = 0x63
    FUNCTION_LANGUAGE = 0x64
    RTREE_RECT = 0x65
    PROC_C = 0x66
    UNKNOWN_RTREE_INDEX_DISTANCE_TYPE = 0x67
    PROTOCOL = 0x68
    UPSERT_UNIQUE_SECONDARY_KEY = 0x69
    WRONG_INDEX_RECORD = 0x6A
    WRONG_INDEX_PARTS = 0x6B
    WRONG_INDEX_OPTIONS = 0x6C
    WRONG_SCHEMA_VERSION = 0x6D
    SLAB_ALLOC_MAX = 0x6E
    XLOG_GAP = 0xDB


SCHEMA_KEY_CLUSTER_UUID = "cluster"
REPLICA_SET_MAX_SIZE = 32
VCLOCK_MAX = REPLICA_SET_MAX_SIZE
UUID_STR_LENGTH = 36

SPACE_SCHEMA = 272
SPACE_SPACE = 280
VIEW_SPACE = 281
SPACE_INDEX = 288
VIEW_INDEX = 289
SPACE_FUNC = 296
SPACE_USER = 304
SPACE_PRIV = 312
SPACE_CLUSTER = 320
SPACE_SYSTEM_MAX = 511

GREETING_SIZE = 128
SERVER_IDENT = "Tarantool 1.6.8 (Binary)"

DEFAULT_INDEX = "primary"
DEFAULT_LIMIT = 100
DEFAULT_CONNECT_TIMEOUT = 1.0  # seconds
DEFAULT_QUERY_TIMEOUT = 1.0  # seconds
DEFAULT_READER_BUF_SIZE = 128 * 1024
DEFAULT_WRITER_BUF_SIZE = 4 * 1024


def version_id(major: int, minor: int, patch: int) -> int:
    """Pack a server version into a single comparable 32-bit integer."""
    return ((((major << 8) | minor) << 8) | patch) & 0xFFFFFFFF


VERSION_1_7_0 = 67328
VERSION_1_7_7 = 67335
VERSION_2_3_1 = 131841  # minimum version for anonymous replication
VERSION_2_5_1 = 132353


def iterator_name(iter_type: int) -> str:
    """Return the symbolic name of an iterator type, or ``"ER"`` if unknown."""
    try:
        return IterType(iter_type).name
    except ValueError:
        return "ER"