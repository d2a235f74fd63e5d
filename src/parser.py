"""Line grammars for the SMB command and HTTP request traces.

Every parser returns a typed result or None for "no match"; none of them
raise on bad input.

Envelope (both traces):
    2017-03-10T12:00:00.000Z - INFO smb-cmd client-1 id-42 <message>

SMB message:
    -> {"commandName":"read","fileName":"/a/b"}
    <- STATUS_SUCCESS {"commandName":"read","fileName":"/a/b"}

HTTP message:
    req -> GET http://host/api/assets/a.jpg
    req <- 200 GET http://host/api/assets/a.jpg [x][y][2048b][z]
"""

import json
import logging
import re
from datetime import datetime, timezone
from urllib.parse import unquote

from src.models import (
    NO_PATH, UNKNOWN_COMMAND,
    HttpRequest, LogRecord, SizeKnown, SizeUnknown, SmbCommand,
)

logger = logging.getLogger(__name__)

LOG_PATTERN = re.compile(
    r"^([^ ]+)\s-\s([^ ]+)\s([^ ]+)\s([^ ]+)\s([^ ]+)\s(.+)$"
)

SMB_MESSAGE_PATTERN = re.compile(
    r"^(?P<direction>[-<>]+)\s(?P<status>[^{]*)(?P<payload>\{.*)$"
)

HTTP_MESSAGE_PATTERN = re.compile(
    r"^(?P<channel>[^ ]+)\s(?P<direction>[^ ]+)\s(?:(?P<status>[0-9]+)\s)?"
    r"(?P<method>[^ ]+)\s(?P<url>.+)$"
)

# Path followed by a trailing run of bracketed groups, e.g. "/a.jpg [x][y]"
_TRANSFER_TAIL = re.compile(r"^(?P<path>.+?)\s(?P<groups>(?:\[[^\]]*\])+)$")
_TRANSFER_GROUP = re.compile(r"\[([^\]]*)\]")
_SIZE_GROUP = re.compile(r"^(?P<size>[0-9]+)b$")
# Byte counts longer than this are treated as unknown (exabyte range)
MAX_SIZE_DIGITS = 18


def parse_timestamp(value: str) -> datetime | None:
    """Parse an ISO-8601 timestamp. Naive values are taken as UTC."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_line(line: str) -> LogRecord | None:
    """Parse one raw trace line into a LogRecord. Returns None for unparseable lines."""
    match = LOG_PATTERN.match(line.rstrip("\r\n"))
    if not match:
        return None

    timestamp_str, level, subsystem, context, record_id, message = match.groups()
    timestamp = parse_timestamp(timestamp_str)
    if timestamp is None:
        return None

    return LogRecord(
        timestamp=timestamp,
        level=level,
        subsystem=subsystem,
        context=context,
        id=record_id,
        message=message,
    )


def parse_smb_message(message: str) -> SmbCommand | None:
    """Split an SMB message into direction, status and command payload.

    A payload that is not a JSON object degrades to an unknown command
    with no path instead of dropping the line.
    """
    match = SMB_MESSAGE_PATTERN.match(message)
    if not match:
        return None

    try:
        payload = json.loads(match.group("payload"))
    except json.JSONDecodeError as e:
        logger.debug("Invalid command payload %r: %s", match.group("payload"), e)
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    command_name = payload.get("commandName") or UNKNOWN_COMMAND
    file_name = payload.get("fileName") or NO_PATH
    return SmbCommand(
        direction=match.group("direction"),
        status=match.group("status").strip(),
        command_name=str(command_name),
        file_name=str(file_name),
    )


def parse_http_message(message: str) -> HttpRequest | None:
    """Split an HTTP message into channel, direction, optional status, method and URL."""
    match = HTTP_MESSAGE_PATTERN.match(message)
    if not match:
        return None
    return HttpRequest(
        channel=match.group("channel"),
        direction=match.group("direction"),
        status_code=match.group("status"),
        method=match.group("method"),
        url=match.group("url"),
    )


def friendly_path(url: str, api_prefix: str) -> str:
    """Percent-decode *url* and keep only what follows *api_prefix*, if present."""
    path = unquote(url)
    if api_prefix:
        index = path.find(api_prefix)
        if index >= 0:
            path = path[index + len(api_prefix):]
    return path


def parse_transfer_meta(path: str) -> SizeKnown | SizeUnknown | None:
    """Strip the bracketed transfer metadata from a response path.

    Four or more groups whose second-to-last is "<digits>b" carry a byte
    count; any other run of two or more groups carries none. Groups may be
    empty. A byte count over MAX_SIZE_DIGITS digits is reported as unknown.
    Returns None when the path has no such trailer.
    """
    match = _TRANSFER_TAIL.match(path)
    if not match:
        return None

    groups = _TRANSFER_GROUP.findall(match.group("groups"))
    if len(groups) < 2:
        return None

    stripped = match.group("path")
    if len(groups) >= 4:
        size = _SIZE_GROUP.match(groups[-2])
        if size and len(size.group("size")) <= MAX_SIZE_DIGITS:
            return SizeKnown(path=stripped, size_bytes=int(size.group("size")))
        if size:
            logger.debug("Ignoring %d-digit transfer size on %s", len(size.group("size")), stripped)
    return SizeUnknown(path=stripped)
