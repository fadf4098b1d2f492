# src/strata/contracts/records.py
"""Bookkeeping records written by combinators.

These are OUR data: combinators write them and read them back. If a stored
record fails to decode or violates its invariants, something catastrophic
happened (corruption, a foreign writer) - raise IntegrityError, never coerce.
"""

from __future__ import annotations

import bisect
import json
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from strata.contracts.enums import Operation
from strata.contracts.errors import IntegrityError, NotFoundError
from strata.contracts.reference import Reference

__all__ = [
    "CollectionRecord",
    "LogRecord",
    "VersionRecord",
    "Versions",
    "format_timestamp",
    "parse_timestamp",
]


def format_timestamp(value: datetime) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2024-05-01T12:00:00.123Z."""
    if value.tzinfo is None:
        raise ValueError(f"timestamp must be timezone-aware, got naive {value!r}")
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(text: str) -> datetime:
    """Inverse of format_timestamp (accepts any ISO-8601 offset)."""
    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        raise ValueError(f"timestamp {text!r} has no timezone")
    return parsed.astimezone(UTC)


@dataclass(frozen=True, slots=True)
class VersionRecord:
    """One entry in a version chain.

    Attributes:
        source: Logical reference the caller wrote to
        target: Hash-derived reference the payload was stored at
        version: Version number, starting at 1
        created_at: When the version was written (UTC)
    """

    source: Reference
    target: Reference
    version: int
    created_at: datetime

    def __post_init__(self) -> None:
        if self.version < 1:
            raise ValueError(f"version must be >= 1, got {self.version}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": str(self.source),
            "target": str(self.target),
            "version": self.version,
            "created_at": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VersionRecord:
        return cls(
            source=Reference.parse(data["source"]),
            target=Reference.parse(data["target"]),
            version=int(data["version"]),
            created_at=parse_timestamp(data["created_at"]),
        )


@dataclass(frozen=True)
class Versions:
    """Ascending, contiguous list of VersionRecord.

    Invariant: version numbers are exactly 1..n in order.
    """

    records: tuple[VersionRecord, ...] = field(default=())

    def __post_init__(self) -> None:
        for expected, record in enumerate(self.records, start=1):
            if record.version != expected:
                raise IntegrityError(f"version index is not contiguous: expected version {expected}, found {record.version}")

    def __iter__(self) -> Iterator[VersionRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def __getitem__(self, index: int) -> VersionRecord:
        return self.records[index]

    @property
    def max_version(self) -> int:
        """Highest version number, 0 when empty."""
        return self.records[-1].version if self.records else 0

    @property
    def latest(self) -> VersionRecord:
        if not self.records:
            raise NotFoundError(detail="no versions")
        return self.records[-1]

    def find(self, version: int) -> VersionRecord:
        """Binary-search for a version number.

        Raises:
            NotFoundError: If the version was never assigned
        """
        i = bisect.bisect_left(self.records, version, key=lambda r: r.version)
        if i < len(self.records) and self.records[i].version == version:
            return self.records[i]
        raise NotFoundError(detail=f"no version {version}")

    def appended(self, source: Reference, target: Reference, created_at: datetime) -> Versions:
        record = VersionRecord(source=source, target=target, version=self.max_version + 1, created_at=created_at)
        return Versions(records=(*self.records, record))

    def to_ndjson(self) -> bytes:
        lines = (json.dumps(r.to_dict(), separators=(",", ":")) + "\n" for r in self.records)
        return "".join(lines).encode("utf-8")

    @classmethod
    def from_ndjson(cls, data: bytes) -> Versions:
        """Decode a stored index.

        Raises:
            IntegrityError: If a line is not a valid record or the chain is broken
        """
        records: list[VersionRecord] = []
        for lineno, line in enumerate(data.decode("utf-8").splitlines(), start=1):
            if not line.strip():
                continue
            try:
                records.append(VersionRecord.from_dict(json.loads(line)))
            except (ValueError, KeyError, TypeError) as e:
                raise IntegrityError(f"corrupt version index at line {lineno}: {e}") from e
        return cls(records=tuple(records))


@dataclass(frozen=True, slots=True)
class CollectionRecord:
    """One entry in a compacting collection.

    Attributes:
        id: Unique id, used to de-duplicate re-delivered records
        timestamp: UTC creation time (millisecond precision on the wire)
        payload: Arbitrary JSON-serializable value
    """

    id: str
    timestamp: datetime
    payload: Any

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "timestamp": format_timestamp(self.timestamp), "payload": self.payload}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CollectionRecord:
        return cls(id=data["id"], timestamp=parse_timestamp(data["timestamp"]), payload=data["payload"])


@dataclass(frozen=True, slots=True)
class LogRecord:
    """Audit/listing entry describing one operation.

    Attributes:
        id: Unique id of the entry
        timestamp: When the operation was issued (UTC)
        operation: Which contract method was called
        source: Reference the caller used
        target: Reference the operation resolved to, when the logger rewrites it
    """

    id: str
    timestamp: datetime
    operation: Operation
    source: Reference
    target: Reference | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "timestamp": format_timestamp(self.timestamp),
            "operation": self.operation.value,
            "source": str(self.source),
        }
        if self.target is not None:
            data["target"] = str(self.target)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LogRecord:
        target = data.get("target")
        return cls(
            id=data["id"],
            timestamp=parse_timestamp(data["timestamp"]),
            operation=Operation(data["operation"]),
            source=Reference.parse(data["source"]),
            target=Reference.parse(target) if target is not None else None,
        )
