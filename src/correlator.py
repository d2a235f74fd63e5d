"""Begin/end correlation state shared by the SMB and HTTP correlators."""

import logging

from src.aggregates import (
    HIGHEST, LEGACY_POLICY,
    RuntimeAccumulator, StatusCounter, TopKTracker,
)
from src.models import CompletedOperation, TracedOperation, runtime_between

logger = logging.getLogger(__name__)


class Correlator:
    """Joins begin and end records by id and folds completions into aggregates.

    At most one begin is pending per id; a second begin for the same id
    replaces the first. Unmatched begins stay in ``pending`` until the run
    ends and are reported as incomplete.
    """

    def __init__(self, top_count: int = 10, top_policy: str = LEGACY_POLICY):
        self.top_count = top_count
        self.pending: dict[str, TracedOperation] = {}
        self.runtimes = RuntimeAccumulator()
        self.status_counts = StatusCounter()
        self.longest = TopKTracker(top_count, keep=HIGHEST, policy=top_policy)
        self.by_path = StatusCounter()
        self.total = 0
        self.startless = 0

    def begin(self, op: TracedOperation):
        """Register an outbound record as pending under its id."""
        self.total += 1
        if op.id in self.pending:
            logger.debug("Begin for id %s replaces an unmatched begin", op.id)
        self.pending[op.id] = op
        self.by_path.add(f"{op.description}:{op.path}")

    def complete(self, op: TracedOperation) -> CompletedOperation | None:
        """Match an inbound record against its pending begin.

        Returns the completed operation, or None when no begin is pending
        for the id (the caller decides how to classify that).
        """
        started = self.pending.pop(op.id, None)
        if started is None:
            return None

        runtime_ms = runtime_between(started.timestamp, op.timestamp)
        completed = CompletedOperation(
            id=op.id,
            description=op.description,
            path=op.path,
            runtime_ms=runtime_ms,
            status=op.status,
            finished_at=op.timestamp,
        )
        self.runtimes.add(completed.description, runtime_ms)
        self.longest.add(completed, runtime_ms)
        self.status_counts.add(completed.status)
        return completed

    def record_startless(self, op: TracedOperation):
        """Count a response that arrived with no begin."""
        self.total += 1
        self.startless += 1
        self.status_counts.add(op.status)

    def incomplete(self) -> list[TracedOperation]:
        """Begins still waiting for a response, in arrival order."""
        return list(self.pending.values())

    def top_duplicates(self) -> list[tuple[str, int]]:
        return self.by_path.most_common(self.top_count)
