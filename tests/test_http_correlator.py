"""Tests for HTTP request correlation and bandwidth sampling."""

from datetime import datetime, timedelta, timezone

import pytest

from src.http_correlator import HttpCorrelator
from src.models import NO_STATUS, LogRecord

BASE = datetime(2017, 3, 10, 12, 0, 0, tzinfo=timezone.utc)
URL = "http://aem.example.com/api/assets/photos/big.jpg"
MIB = 1024 * 1024


def _record(record_id, message, offset_ms=0) -> LogRecord:
    return LogRecord(
        timestamp=BASE + timedelta(milliseconds=offset_ms),
        level="INFO",
        subsystem="http",
        context="CTX",
        id=record_id,
        message=message,
    )


def _request(record_id, method="GET", url=URL, offset_ms=0):
    return _record(record_id, f"req -> {method} {url}", offset_ms)


def _response(record_id, status="200", method="GET", url=URL, meta="", offset_ms=0):
    status_part = f"{status} " if status else ""
    tail = f" {meta}" if meta else ""
    return _record(record_id, f"req <- {status_part}{method} {url}{tail}", offset_ms)


@pytest.fixture
def http():
    return HttpCorrelator(top_count=5)


class TestCorrelation:
    def test_matched_request(self, http):
        http.feed(_request("r1"))
        http.feed(_response("r1", offset_ms=120))
        assert http.total == 1
        assert http.runtimes.get("GET").total_ms == 120
        assert http.status_counts["200"] == 1
        [longest] = http.longest.ranked()
        assert longest.payload.path == "/photos/big.jpg"

    def test_friendly_path_in_duplicates(self, http):
        http.feed(_request("r1", url="http://h/api/assets/a%20b.jpg"))
        http.feed(_request("r2", url="http://h/api/assets/a%20b.jpg"))
        assert http.top_duplicates() == [("GET:/a b.jpg", 2)]

    def test_metadata_stripped_from_completed_path(self, http):
        http.feed(_request("r1"))
        http.feed(_response("r1", meta="[a][b]", offset_ms=10))
        [longest] = http.longest.ranked()
        assert longest.payload.path == "/photos/big.jpg"

    def test_second_request_replaces_first(self, http):
        http.feed(_request("same", offset_ms=0))
        http.feed(_request("same", offset_ms=30))
        http.feed(_response("same", offset_ms=100))
        assert http.total == 2
        assert http.runtimes.get("GET").count == 1
        assert http.runtimes.get("GET").total_ms == 70
        assert http.incomplete() == []

    def test_incomplete_requests(self, http):
        http.feed(_request("r1", method="PUT"))
        [op] = http.incomplete()
        assert op.description == "PUT"


class TestAnomalies:
    def test_response_without_request(self, http):
        http.feed(_response("ghost", status="404"))
        assert http.total == 1
        assert http.requests_without_begin == 1
        assert http.status_counts["404"] == 1

    def test_response_without_status(self, http):
        http.feed(_response("ghost", status=None))
        assert http.status_counts[NO_STATUS] == 1

    def test_unknown_direction(self, http):
        http.feed(_record("u", f"req ?? 200 GET {URL}"))
        assert http.unknown_format == 1
        assert http.total == 0
        assert http.status_counts.total() == 0
        assert http.pending == {}

    def test_unrecognised_message_ignored(self, http):
        http.feed(_record("u", "garbage"))
        assert http.unknown_format == 0
        assert http.total == 0


class TestBandwidth:
    def test_large_transfer_sampled(self, http):
        http.feed(_request("r1"))
        http.feed(_response("r1", meta=f"[a][b][{2 * MIB}b][c]", offset_ms=1000))
        assert http.bandwidth.samples == [2097]
        [lowest] = http.lowest_bandwidth.ranked()
        assert lowest.metric == 2097
        assert lowest.payload.id == "r1"

    def test_threshold_is_inclusive(self, http):
        http.feed(_request("r1"))
        http.feed(_response("r1", meta=f"[a][b][{MIB}b][c]", offset_ms=1024))
        assert http.bandwidth.samples == [1024]

    def test_small_transfer_skipped(self, http):
        http.feed(_request("r1"))
        http.feed(_response("r1", meta=f"[a][b][{MIB - 1}b][c]", offset_ms=10))
        assert len(http.bandwidth) == 0
        assert http.bandwidth.mean_kib_per_second() is None

    def test_json_listing_skipped(self, http):
        url = "http://h/api/assets/folder.json?limit=100"
        http.feed(_request("r1", url=url))
        http.feed(_response("r1", url=url, meta=f"[a][b][{5 * MIB}b][c]", offset_ms=10))
        assert len(http.bandwidth) == 0
        assert http.runtimes.get("GET").count == 1

    def test_size_unknown_skipped(self, http):
        http.feed(_request("r1"))
        http.feed(_response("r1", meta="[a][b]", offset_ms=10))
        assert len(http.bandwidth) == 0

    def test_startless_response_not_sampled(self, http):
        http.feed(_response("ghost", meta=f"[a][b][{5 * MIB}b][c]"))
        assert len(http.bandwidth) == 0

    def test_zero_runtime_not_sampled(self, http):
        http.feed(_request("r1", offset_ms=5))
        http.feed(_response("r1", meta=f"[a][b][{5 * MIB}b][c]", offset_ms=5))
        assert len(http.bandwidth) == 0
        assert http.runtimes.get("GET").count == 1

    def test_oversized_byte_count_not_sampled(self, http):
        http.feed(_request("r1"))
        http.feed(_response("r1", meta=f"[a][b][{'9' * 400}b][c]", offset_ms=10))
        assert len(http.bandwidth) == 0
        assert http.runtimes.get("GET").count == 1
        [longest] = http.longest.ranked()
        assert longest.payload.path == "/photos/big.jpg"

    def test_huge_byte_count_on_fast_response(self, http):
        http.feed(_request("r1"))
        http.feed(_response("r1", meta=f"[a][b][{'9' * 18}b][c]", offset_ms=1))
        assert len(http.bandwidth) == 1

    def test_custom_threshold(self):
        http = HttpCorrelator(rate_size_threshold=100)
        http.feed(_request("r1"))
        http.feed(_response("r1", meta="[a][b][300b][c]", offset_ms=3))
        assert http.bandwidth.samples == [100]

    def test_lowest_keeps_slowest(self):
        http = HttpCorrelator(top_count=2, rate_size_threshold=0, top_policy="exact")
        for i, runtime in enumerate((10, 40, 20, 80)):
            http.feed(_request(f"r{i}"))
            http.feed(_response(f"r{i}", meta="[a][b][8000b][c]", offset_ms=runtime))
        assert http.bandwidth.samples == [800, 200, 400, 100]
        assert [e.metric for e in http.lowest_bandwidth.ranked()] == [100, 200]
        assert http.bandwidth.mean_rate() == 375
