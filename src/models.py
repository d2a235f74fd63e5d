"""Records produced while correlating the SMB command and HTTP request traces."""

from dataclasses import dataclass
from datetime import datetime, timedelta

NO_PATH = "<no path>"
NO_STATUS = "<no status>"
UNKNOWN_COMMAND = "<unknown command>"

OUTBOUND = "->"
INBOUND = "<-"


@dataclass(frozen=True)
class LogRecord:
    timestamp: datetime
    level: str
    subsystem: str
    context: str
    id: str
    message: str


@dataclass(frozen=True)
class SmbCommand:
    direction: str       # "->" for a begin, anything else is a response
    status: str          # empty on begin lines
    command_name: str
    file_name: str


@dataclass(frozen=True)
class HttpRequest:
    channel: str
    direction: str
    status_code: str | None
    method: str
    url: str


@dataclass(frozen=True)
class SizeKnown:
    """Transfer metadata that carried a byte count."""
    path: str
    size_bytes: int


@dataclass(frozen=True)
class SizeUnknown:
    """Transfer metadata without a byte count."""
    path: str


@dataclass(frozen=True)
class TracedOperation:
    """One side (begin or end) of a traced operation."""
    record: LogRecord
    description: str
    path: str
    status: str = ""

    @property
    def id(self) -> str:
        return self.record.id

    @property
    def timestamp(self) -> datetime:
        return self.record.timestamp


@dataclass(frozen=True)
class CompletedOperation:
    id: str
    description: str
    path: str
    runtime_ms: float
    status: str
    finished_at: datetime


def runtime_between(begin: datetime, end: datetime) -> float:
    """Elapsed milliseconds from *begin* to *end*."""
    return (end - begin) / timedelta(milliseconds=1)
