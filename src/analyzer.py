"""Two-stream driver: reads the SMB command and HTTP request traces concurrently.

Both files are consumed by coroutines on one event loop. Lines from the two
streams may interleave, but each line is handed to its correlator and
processed to completion before the loop switches, so the correlators need
no locking.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Callable

import aiofiles

from src.aggregates import TimeRange
from src.config import Config
from src.http_correlator import HttpCorrelator
from src.parser import parse_line
from src.smb_correlator import SmbCorrelator

logger = logging.getLogger(__name__)


class StreamTracker:
    """Counts the streams that have not finished yet.

    Starts at the number of registered streams and drops by exactly one
    when a stream closes or fails to open. ``wait()`` returns once it
    reaches zero.
    """

    def __init__(self, expected: int):
        if expected < 0:
            raise ValueError(f"expected must be >= 0, got {expected}")
        self.expected = expected
        self.remaining = expected
        self.closed: list[str] = []
        self.failed: list[str] = []
        self._done = asyncio.Event()
        if expected == 0:
            self._done.set()

    def _finish(self, name: str):
        if self.remaining <= 0:
            raise RuntimeError(f"stream {name} finished after all streams were done")
        self.remaining -= 1
        if self.remaining == 0:
            self._done.set()

    def close(self, name: str):
        self.closed.append(name)
        self._finish(name)

    def fail(self, name: str):
        self.failed.append(name)
        self._finish(name)

    @property
    def done(self) -> bool:
        return self._done.is_set()

    async def wait(self):
        await self._done.wait()


@dataclass
class AnalysisResult:
    smb: SmbCorrelator
    http: HttpCorrelator
    time_range: TimeRange
    missing: list[str] = field(default_factory=list)
    line_counts: dict[str, int] = field(default_factory=dict)


class Analysis:
    """Owns both correlators and the run-wide time range."""

    def __init__(self, config: Config):
        self.config = config
        self.smb = SmbCorrelator(
            top_count=config.top_count,
            top_policy=config.top_policy,
            notification_commands=config.notification_commands,
        )
        self.http = HttpCorrelator(
            top_count=config.top_count,
            top_policy=config.top_policy,
            rate_size_threshold=config.rate_size_threshold,
            api_prefix=config.api_prefix,
            json_listing_marker=config.json_listing_marker,
        )
        self.time_range = TimeRange()

    def _feed(self, correlator, line: str) -> bool:
        record = parse_line(line)
        if record is None:
            return False
        self.time_range.observe(record.timestamp)
        correlator.feed(record)
        return True

    def handle_smb_line(self, line: str) -> bool:
        """Feed one SMB command trace line. Returns False if it was unparseable."""
        return self._feed(self.smb, line)

    def handle_http_line(self, line: str) -> bool:
        """Feed one HTTP request trace line. Returns False if it was unparseable."""
        return self._feed(self.http, line)

    def result(self, tracker: StreamTracker | None = None,
               line_counts: dict[str, int] | None = None) -> AnalysisResult:
        return AnalysisResult(
            smb=self.smb,
            http=self.http,
            time_range=self.time_range,
            missing=list(tracker.failed) if tracker else [],
            line_counts=dict(line_counts or {}),
        )


async def consume_stream(
    path: str,
    handle_line: Callable[[str], bool],
    tracker: StreamTracker,
    line_counts: dict[str, int],
) -> None:
    """Read *path* line by line into *handle_line*, then report to *tracker*.

    A file that cannot be opened or read finishes the stream as failed;
    the run carries on with the other stream.
    """
    name = os.path.basename(path)
    parsed = 0
    opened = False
    try:
        async with aiofiles.open(path, mode="r", encoding="utf-8", errors="replace") as f:
            opened = True
            async for line in f:
                if handle_line(line):
                    parsed += 1
    except OSError as e:
        if opened:
            logger.error("Failed reading %s after %d lines: %s", path, parsed, e)
        else:
            logger.warning("%s not found, excluding it from the report (%s)", name, e)
        line_counts[name] = parsed
        tracker.fail(name)
        return

    line_counts[name] = parsed
    logger.info("Finished %s: %d parsed lines", name, parsed)
    tracker.close(name)


async def analyze_files(cmd_log: str | None, request_log: str | None, config: Config) -> AnalysisResult:
    """Correlate both trace files and return the aggregates once every stream is done."""
    analysis = Analysis(config)
    sources = []
    if cmd_log:
        sources.append((cmd_log, analysis.handle_smb_line))
    if request_log:
        sources.append((request_log, analysis.handle_http_line))

    tracker = StreamTracker(len(sources))
    line_counts: dict[str, int] = {}
    tasks = [
        asyncio.create_task(consume_stream(path, handler, tracker, line_counts))
        for path, handler in sources
    ]

    await asyncio.gather(*tasks)
    await tracker.wait()
    return analysis.result(tracker, line_counts)


async def analyze_directory(log_dir: str, config: Config) -> AnalysisResult:
    """Correlate the configured trace files found in *log_dir*."""
    cmd_log = os.path.join(log_dir, config.cmd_log_name)
    request_log = os.path.join(log_dir, config.request_log_name)
    logger.info("Analyzing %s and %s", cmd_log, request_log)
    return await analyze_files(cmd_log, request_log, config)
