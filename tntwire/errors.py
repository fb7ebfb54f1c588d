"""Exception types raised by the client."""

from __future__ import annotations

from .constants import ErrorCode


class TarantoolError(Exception):
    """Base class of all client errors."""

    def temporary(self) -> bool:
        """True if retrying the operation may succeed."""
        return False

    def timeout(self) -> bool:
        """True if the error is a timeout."""
        return False


CONNECTION_CLOSED = TarantoolError("connection closed")
OLD_VERSION_ANON = TarantoolError(
    "tarantool version is too old for anonymous replication. Min version is 2.3.1"
)


def _caused_by(exc: BaseException | None, target: BaseException) -> bool:
    seen = set()
    while exc is not None and id(exc) not in seen:
        if exc is target:
            return True
        seen.add(id(exc))
        exc = exc.__cause__
    return False


class ConnectionError(TarantoolError):
    """Something happened to the connection to the server."""

    def __init__(self, message: str, remote_addr: str = "") -> None:
        super().__init__(message)
        self.remote_addr = remote_addr

    def temporary(self) -> bool:
        return not _caused_by(self.__cause__, CONNECTION_CLOSED)


def connection_error(remote_addr: str, error: BaseException | str) -> ConnectionError:
    """Wrap ``error`` in a ConnectionError mentioning the remote address."""
    exc = ConnectionError(f"{error}, remote: {remote_addr}", remote_addr)
    if isinstance(error, BaseException):
        exc.__cause__ = error
    return exc


def connection_closed_error(
    remote_addr: str, first_error: BaseException | str | None = None
) -> ConnectionError:
    """Build the error reported for a closed connection.

    ``first_error`` is the first error seen on the connection, if any.
    """
    inner: TarantoolError = CONNECTION_CLOSED
    if first_error is not None:
        inner = TarantoolError(f"{CONNECTION_CLOSED}: Connection error: {first_error}")
        inner.__cause__ = CONNECTION_CLOSED
    return connection_error(remote_addr, inner)


class ContextError(TarantoolError):
    """A request ended because its deadline passed or it was cancelled."""

    def __init__(self, message: str, remote_addr: str, ctx_error: BaseException) -> None:
        super().__init__(f"{message}: {ctx_error}, remote: {remote_addr}")
        self.remote_addr = remote_addr
        self.ctx_error = ctx_error

    def temporary(self) -> bool:
        return True

    def timeout(self) -> bool:
        return isinstance(self.ctx_error, TimeoutError)


class QueryError(TarantoolError):
    """The server or the client rejected a query; carries an error code."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code

    def temporary(self) -> bool:
        return False


class UnexpectedReplicaSetUUIDError(QueryError):
    """The replica set UUID received differs from the one expected."""

    def __init__(self, expected: str, got: str) -> None:
        super().__init__(
            ErrorCode.CLUSTER_ID_MISMATCH,
            f"Replica set UUID mismatch: expected {expected}, got {got}",
        )
        self.expected = expected
        self.got = got


NOT_SUPPORTED = QueryError(ErrorCode.UNSUPPORTED, "not supported yet")
NOT_IN_REPLICA_SET = QueryError(0, "Full Replica Set params hasn't been set")
BAD_RESULT = QueryError(0, "invalid result")
VECTOR_CLOCK = QueryError(0, "vclock manipulation")
UNKNOWN_ERROR = QueryError(ErrorCode.UNKNOWN, "unknown error")