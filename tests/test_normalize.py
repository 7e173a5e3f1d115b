"""Tests for berthwatch.ingestion.normalize: timestamps and record construction."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from berthwatch.ingestion.normalize import (
    CrawlWindow,
    Terminal,
    is_empty_value,
    make_record,
    normalize_datetime,
    parse_timestamp,
)
from berthwatch.ingestion.status import Status, StatusSignalMap

TERMINAL = Terminal(code="PNC", name="부산신항만(PNC)", url="https://svc.pncport.com", port="부산신항")
NOW = datetime(2024, 1, 10, 12, 0)


class TestNormalizeDatetime:
    @pytest.mark.parametrize(
        "raw",
        [
            "2024-01-10 08:00",
            "2024/01/10 08:00",
            "2024.01.10 08:00",
            "2024-01-10T08:00",
            "202401100800",
            "(2024-01-10 08:00)",
        ],
    )
    def test_common_formats(self, raw):
        assert normalize_datetime(raw) == "2024-01-10 08:00"

    def test_drops_seconds(self):
        assert normalize_datetime("2024-01-10 08:00:45") == "2024-01-10 08:00"

    def test_compact_digits_with_seconds(self):
        assert normalize_datetime("20240110080045") == "2024-01-10 08:00"

    def test_weekday_suffix(self):
        assert normalize_datetime("2024/01/10 08:00(Wed)") == "2024-01-10 08:00"

    def test_date_only(self):
        assert normalize_datetime("2024-01-10") == "2024-01-10 00:00"

    @pytest.mark.parametrize("raw", [None, "", "  ", "-", "--", "/"])
    def test_empty_placeholders(self, raw):
        assert normalize_datetime(raw) == ""

    def test_unparseable(self):
        assert normalize_datetime("TBA") == ""


class TestParseTimestamp:
    def test_normalized_value(self):
        assert parse_timestamp("2024-01-10 08:00") == datetime(2024, 1, 10, 8, 0)

    def test_iso_with_offset_is_naive(self):
        parsed = parse_timestamp("2024-01-10T08:00:30+09:00")
        assert parsed == datetime(2024, 1, 10, 8, 0)
        assert parsed.tzinfo is None

    def test_empty_returns_none(self):
        assert parse_timestamp("-") is None

    def test_garbage_returns_none(self):
        assert parse_timestamp("not a date") is None


class TestIsEmptyValue:
    def test_placeholders(self):
        assert is_empty_value(None)
        assert is_empty_value(" - ")
        assert not is_empty_value("2024-01-10 08:00")


class TestCrawlWindow:
    def test_around_defaults(self):
        window = CrawlWindow.around(date(2024, 1, 10))
        assert window.start == date(2024, 1, 3)
        assert window.end == date(2024, 2, 9)

    def test_around_custom(self):
        window = CrawlWindow.around(date(2024, 1, 10), past_days=1, future_days=2)
        assert window == CrawlWindow(start=date(2024, 1, 9), end=date(2024, 1, 12))


class TestMakeRecord:
    def test_stamps_terminal_identity(self):
        record = make_record(TERMINAL, vessel_name="HANJIN BUSAN", voyage="001E", now=NOW)
        assert record.source_id == "PNC"
        assert record.source_name == "부산신항만(PNC)"
        assert record.source_url == "https://svc.pncport.com"

    def test_normalizes_timestamps(self):
        record = make_record(
            TERMINAL,
            vessel_name="HANJIN BUSAN",
            arrival="2024/01/10 08:00",
            departure="20240111 18:30",
            cutoff="-",
            now=NOW,
        )
        assert record.arrival == "2024-01-10 08:00"
        assert record.departure == "2024-01-11 18:30"
        assert record.cutoff == ""

    def test_missing_carrier_becomes_dash(self):
        record = make_record(TERMINAL, vessel_name="EVER GIVEN", now=NOW)
        assert record.carrier_code == "-"

    def test_strips_text_fields(self):
        record = make_record(
            TERMINAL, vessel_name="  EVER GIVEN ", voyage=" 123W ", carrier_code=" EMC ", now=NOW
        )
        assert record.vessel_name == "EVER GIVEN"
        assert record.voyage == "123W"
        assert record.carrier_code == "EMC"

    def test_empty_vessel_name_rejected(self):
        with pytest.raises(ValueError, match="vessel_name"):
            make_record(TERMINAL, vessel_name="   ", now=NOW)

    def test_status_derived_from_timestamps(self):
        arrived = make_record(
            TERMINAL, vessel_name="A", arrival="2024-01-10 08:00",
            departure="2024-01-11 08:00", now=NOW,
        )
        departed = make_record(
            TERMINAL, vessel_name="B", arrival="2024-01-09 08:00",
            departure="2024-01-10 09:00", now=NOW,
        )
        planned = make_record(TERMINAL, vessel_name="C", arrival="2024-01-12 08:00", now=NOW)
        assert arrived.status == Status.ARRIVED
        assert departed.status == Status.DEPARTED
        assert planned.status == Status.PLANNED

    def test_explicit_signal_overrides_timestamps(self):
        record = make_record(
            TERMINAL,
            vessel_name="A",
            arrival="2024-01-12 08:00",
            status_signal="B",
            signal_map=StatusSignalMap(arrived=("B",)),
            now=NOW,
        )
        assert record.status == Status.ARRIVED

    def test_diff_key(self):
        record = make_record(TERMINAL, vessel_name="A", voyage="001", now=NOW)
        assert record.diff_key == ("A", "001")
