"""Status codes, modes and kinds used across package boundaries."""

from enum import StrEnum


class Operation(StrEnum):
    """Storage contract operation.

    Stored in log records (LogRecord.operation).
    """

    GET = "get"
    PUT = "put"
    DELETE = "delete"
    MERGE = "merge"


class HashAlgorithm(StrEnum):
    """Digest algorithms accepted in hash references.

    The value doubles as the reference scheme (``md5:<base58>``).
    """

    MD5 = "md5"  # 128-bit general digest
    SHAKE256 = "shake256"  # 512 bits of SHAKE256 output


class RouteMatch(StrEnum):
    """How a Multiplexer picks a backend for a reference.

    - exact: first path segment must equal a route key
    - longest_prefix: longest route key that prefixes the first path segment
    - scheme: reference scheme must equal a route key
    """

    EXACT = "exact"
    LONGEST_PREFIX = "longest_prefix"
    SCHEME = "scheme"
