"""HTTP request trace correlation and bandwidth sampling."""

import logging

from src.aggregates import (
    LEGACY_POLICY, LOWEST,
    BandwidthSampler, TopKTracker, round_half_up,
)
from src.correlator import Correlator
from src.models import (
    INBOUND, NO_STATUS, OUTBOUND,
    CompletedOperation, LogRecord, SizeKnown, TracedOperation,
)
from src.parser import friendly_path, parse_http_message, parse_transfer_meta

logger = logging.getLogger(__name__)

DEFAULT_API_PREFIX = "/api/assets"
DEFAULT_JSON_LISTING_MARKER = ".json?limit="
DEFAULT_RATE_SIZE_THRESHOLD = 1024 * 1024


class HttpCorrelator(Correlator):
    """Pairs HTTP requests with their responses and samples transfer rates.

    Only responses that report a byte count of at least
    ``rate_size_threshold`` and are not JSON listings contribute a
    bandwidth sample; small transfers finish too fast to give a usable rate.
    """

    def __init__(
        self,
        top_count: int = 10,
        top_policy: str = LEGACY_POLICY,
        rate_size_threshold: int = DEFAULT_RATE_SIZE_THRESHOLD,
        api_prefix: str = DEFAULT_API_PREFIX,
        json_listing_marker: str = DEFAULT_JSON_LISTING_MARKER,
    ):
        super().__init__(top_count, top_policy)
        self.rate_size_threshold = rate_size_threshold
        self.api_prefix = api_prefix
        self.json_listing_marker = json_listing_marker
        self.bandwidth = BandwidthSampler()
        self.lowest_bandwidth = TopKTracker(top_count, keep=LOWEST, policy=top_policy)
        self.unknown_format = 0

    def feed(self, record: LogRecord):
        request = parse_http_message(record.message)
        if request is None:
            logger.debug("Skipping unrecognised HTTP message: %r", record.message)
            return

        path = friendly_path(request.url, self.api_prefix)
        status = request.status_code if request.status_code is not None else NO_STATUS

        if request.direction == OUTBOUND:
            self.begin(TracedOperation(record, request.method, path, status))
            return

        if request.direction != INBOUND:
            self.unknown_format += 1
            return

        meta = parse_transfer_meta(path)
        if meta is not None:
            path = meta.path

        op = TracedOperation(record, request.method, path, status)
        completed = self.complete(op)
        if completed is None:
            self.record_startless(op)
        elif isinstance(meta, SizeKnown):
            self._sample_bandwidth(completed, meta.size_bytes)

    def _sample_bandwidth(self, completed: CompletedOperation, size_bytes: int):
        if self.json_listing_marker and self.json_listing_marker in completed.path:
            return
        if size_bytes < self.rate_size_threshold:
            return
        if completed.runtime_ms <= 0:
            logger.debug("No rate for %s: runtime %.3fms", completed.id, completed.runtime_ms)
            return

        rate = round_half_up(size_bytes / completed.runtime_ms)
        self.bandwidth.add(rate)
        self.lowest_bandwidth.add(completed, rate)

    @property
    def requests_without_begin(self) -> int:
        return self.startless
