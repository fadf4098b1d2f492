# tests/unit/contracts/test_records.py
"""Tests for bookkeeping records: version index, collection and log records."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from strata.contracts.enums import Operation
from strata.contracts.errors import IntegrityError, NotFoundError
from strata.contracts.records import (
    CollectionRecord,
    LogRecord,
    VersionRecord,
    Versions,
    format_timestamp,
    parse_timestamp,
)
from strata.contracts.reference import Reference

SOURCE = Reference.parse("/doc")
T0 = datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=UTC)


def _versions(n: int) -> Versions:
    versions = Versions()
    for i in range(n):
        versions = versions.appended(SOURCE, Reference(scheme="version", opaque=f"t{i + 1}"), T0 + timedelta(seconds=i))
    return versions


class TestTimestamps:
    def test_millisecond_precision_with_z(self) -> None:
        assert format_timestamp(T0) == "2024-05-01T12:00:00.123Z"

    def test_other_offsets_converted_to_utc(self) -> None:
        plus_two = datetime(2024, 5, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))

        assert format_timestamp(plus_two) == "2024-05-01T12:00:00.000Z"

    def test_naive_rejected(self) -> None:
        with pytest.raises(ValueError, match="timezone-aware"):
            format_timestamp(datetime(2024, 5, 1))

    def test_parse_inverse(self) -> None:
        parsed = parse_timestamp("2024-05-01T12:00:00.123Z")

        assert parsed == datetime(2024, 5, 1, 12, 0, 0, 123000, tzinfo=UTC)

    def test_parse_requires_timezone(self) -> None:
        with pytest.raises(ValueError, match="no timezone"):
            parse_timestamp("2024-05-01T12:00:00")


class TestVersions:
    """Version index invariants."""

    def test_empty_index(self) -> None:
        versions = Versions()

        assert len(versions) == 0
        assert versions.max_version == 0
        with pytest.raises(NotFoundError):
            _ = versions.latest

    def test_appended_numbers_contiguously(self) -> None:
        versions = _versions(3)

        assert [r.version for r in versions] == [1, 2, 3]
        assert versions.max_version == 3
        assert versions.latest.target == Reference(scheme="version", opaque="t3")

    def test_find_uses_version_number(self) -> None:
        versions = _versions(5)

        assert versions.find(4).target == Reference(scheme="version", opaque="t4")

    @pytest.mark.parametrize("missing", [0, 6, -1])
    def test_find_missing_raises(self, missing: int) -> None:
        with pytest.raises(NotFoundError):
            _versions(5).find(missing)

    def test_gap_violates_invariant(self) -> None:
        records = (
            VersionRecord(SOURCE, Reference.parse("version:a"), 1, T0),
            VersionRecord(SOURCE, Reference.parse("version:b"), 3, T0),
        )
        with pytest.raises(IntegrityError, match="not contiguous"):
            Versions(records=records)

    def test_version_zero_rejected(self) -> None:
        with pytest.raises(ValueError):
            VersionRecord(SOURCE, Reference.parse("version:a"), 0, T0)

    def test_ndjson_round_trip(self) -> None:
        versions = _versions(3)

        decoded = Versions.from_ndjson(versions.to_ndjson())

        assert [r.to_dict() for r in decoded] == [r.to_dict() for r in versions]

    def test_ndjson_one_record_per_line(self) -> None:
        assert len(_versions(3).to_ndjson().splitlines()) == 3

    def test_corrupt_line_is_integrity_error(self) -> None:
        data = _versions(1).to_ndjson() + b"{not json\n"

        with pytest.raises(IntegrityError, match="line 2"):
            Versions.from_ndjson(data)

    def test_stored_gap_is_integrity_error(self) -> None:
        lines = _versions(3).to_ndjson().splitlines()
        data = lines[0] + b"\n" + lines[2] + b"\n"

        with pytest.raises(IntegrityError):
            Versions.from_ndjson(data)


class TestCollectionRecord:
    def test_to_dict(self) -> None:
        record = CollectionRecord(id="r1", timestamp=T0, payload={"k": [1, 2]})

        assert record.to_dict() == {"id": "r1", "timestamp": "2024-05-01T12:00:00.123Z", "payload": {"k": [1, 2]}}

    def test_from_dict(self) -> None:
        record = CollectionRecord.from_dict({"id": "r1", "timestamp": "2024-05-01T12:00:00.123Z", "payload": "x"})

        assert record.id == "r1"
        assert record.timestamp == datetime(2024, 5, 1, 12, 0, 0, 123000, tzinfo=UTC)
        assert record.payload == "x"


class TestLogRecord:
    def test_target_omitted_when_absent(self) -> None:
        record = LogRecord(id="l1", timestamp=T0, operation=Operation.PUT, source=SOURCE)

        data = record.to_dict()

        assert data["operation"] == "put"
        assert data["source"] == "/doc"
        assert "target" not in data

    def test_from_dict_with_target(self) -> None:
        data = {
            "id": "l1",
            "timestamp": "2024-05-01T12:00:00.123Z",
            "operation": "get",
            "source": "/doc",
            "target": "md5:abc",
        }

        record = LogRecord.from_dict(data)

        assert record.operation is Operation.GET
        assert record.target == Reference.parse("md5:abc")
