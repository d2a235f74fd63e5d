"""Running aggregates folded from completed operations."""

import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Any

HIGHEST = "highest"
LOWEST = "lowest"

LEGACY_POLICY = "legacy"
EXACT_POLICY = "exact"
TOP_POLICIES = (LEGACY_POLICY, EXACT_POLICY)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards +infinity."""
    return math.floor(value + 0.5)


class StatusCounter:
    """Occurrence count per label."""

    def __init__(self):
        self._counts: Counter = Counter()

    def add(self, label: str):
        self._counts[label] += 1

    def __getitem__(self, label: str) -> int:
        return self._counts[label]

    def __len__(self) -> int:
        return len(self._counts)

    def total(self) -> int:
        return sum(self._counts.values())

    def most_common(self, n: int | None = None) -> list[tuple[str, int]]:
        """Labels by descending count; ties keep first-seen order."""
        return self._counts.most_common(n)


@dataclass
class RuntimeStat:
    total_ms: float = 0.0
    count: int = 0

    @property
    def mean_ms(self) -> float:
        return self.total_ms / self.count


class RuntimeAccumulator:
    """Sum of elapsed time and number of completions per operation label."""

    def __init__(self):
        self._stats: dict[str, RuntimeStat] = {}

    def add(self, description: str, runtime_ms: float):
        stat = self._stats.setdefault(description, RuntimeStat())
        stat.total_ms += runtime_ms
        stat.count += 1

    def get(self, description: str) -> RuntimeStat | None:
        return self._stats.get(description)

    def __len__(self) -> int:
        return len(self._stats)

    def mean_runtimes(self) -> list[tuple[str, int]]:
        """(label, rounded mean ms) by descending mean."""
        means = [(label, round_half_up(s.mean_ms)) for label, s in self._stats.items()]
        return sorted(means, key=lambda item: item[1], reverse=True)

    def counts(self) -> list[tuple[str, int]]:
        """(label, completions) by descending count."""
        counts = [(label, s.count) for label, s in self._stats.items()]
        return sorted(counts, key=lambda item: item[1], reverse=True)


@dataclass(frozen=True)
class RankedEntry:
    payload: Any
    metric: float


class TopKTracker:
    """Keeps at most *capacity* samples with the most extreme metric.

    Once full, a new sample replaces a single held entry it beats:
      - "legacy": the last entry it beats in scan order. The delta threshold
        is never raised during the scan, so this can evict a better entry
        than necessary and keep a suboptimal set.
      - "exact": the entry it beats by the widest margin, which always
        evicts the current worst entry.
    Entries are kept unsorted; ranked() sorts once for presentation.
    """

    def __init__(self, capacity: int = 10, keep: str = HIGHEST, policy: str = LEGACY_POLICY):
        if capacity < 0:
            raise ValueError(f"capacity must be >= 0, got {capacity}")
        if keep not in (HIGHEST, LOWEST):
            raise ValueError(f"keep must be {HIGHEST!r} or {LOWEST!r}, got {keep!r}")
        if policy not in TOP_POLICIES:
            raise ValueError(f"unknown top-K policy {policy!r}")
        self.capacity = capacity
        self.keep = keep
        self.policy = policy
        self._entries: list[RankedEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, payload: Any, metric: float) -> bool:
        """Offer a sample. Returns True if it was retained."""
        entry = RankedEntry(payload=payload, metric=metric)
        if len(self._entries) < self.capacity:
            self._entries.append(entry)
            return True

        best_delta = 0
        to_swap = -1
        for i, held in enumerate(self._entries):
            delta = metric - held.metric
            if self.keep == LOWEST:
                delta = -delta
            if delta > best_delta:
                to_swap = i
                if self.policy == EXACT_POLICY:
                    best_delta = delta

        if to_swap < 0:
            return False
        self._entries[to_swap] = entry
        return True

    def ranked(self) -> list[RankedEntry]:
        """Descending metric for a "highest" tracker, ascending for "lowest"."""
        return sorted(self._entries, key=lambda e: e.metric, reverse=self.keep == HIGHEST)


class BandwidthSampler:
    """Unbounded list of transfer rates in bytes per millisecond."""

    def __init__(self):
        self.samples: list[int] = []

    def add(self, rate: int):
        self.samples.append(rate)

    def __len__(self) -> int:
        return len(self.samples)

    def mean_rate(self) -> float | None:
        if not self.samples:
            return None
        return sum(self.samples) / len(self.samples)

    def mean_kib_per_second(self) -> int | None:
        """Mean rate in KiB/s, or None when nothing was sampled."""
        mean = self.mean_rate()
        if mean is None:
            return None
        return to_kib_per_second(mean)


def to_kib_per_second(rate: float) -> int:
    """Convert bytes/ms to rounded KiB/s."""
    return round_half_up(rate * 1000 / 1024)


class TimeRange:
    """Earliest and latest timestamp seen across all streams."""

    def __init__(self):
        self.start: datetime | None = None
        self.end: datetime | None = None

    def observe(self, timestamp: datetime):
        if self.start is None or timestamp < self.start:
            self.start = timestamp
        if self.end is None or timestamp > self.end:
            self.end = timestamp

    @property
    def empty(self) -> bool:
        return self.start is None

    def elapsed_minutes(self) -> int:
        if self.start is None or self.end is None:
            return 0
        return round_half_up((self.end - self.start).total_seconds() / 60)
