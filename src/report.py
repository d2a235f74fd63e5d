"""Report rendering: human-readable text and JSON."""

import json
from datetime import datetime

from src.aggregates import round_half_up, to_kib_per_second
from src.analyzer import AnalysisResult
from src.correlator import Correlator

RULE = "************************************"
UNDERLINE = "------------------------------------"
NOT_AVAILABLE = "N/A"


def _fmt_ts(value: datetime | None) -> str:
    return value.isoformat() if value is not None else NOT_AVAILABLE


def _fmt_ms(value: float) -> str:
    return f"{round_half_up(value)}ms"


def per_minute(total: int, elapsed_minutes: int) -> int | None:
    """Operations per elapsed minute, or None for a run shorter than half a minute."""
    if elapsed_minutes <= 0:
        return None
    return round_half_up(total / elapsed_minutes)


def _or_na(value) -> str:
    return NOT_AVAILABLE if value is None else str(value)


def format_section(label: str, correlator: Correlator) -> list[str]:
    """Per-category block: incomplete, mean runtime, counts, results, longest, duplicated."""
    lines = ["", RULE, f"{label} SUMMARY DATA", RULE, ""]

    lines.append(f"INCOMPLETE {label}S")
    lines.append(UNDERLINE)
    for op in correlator.incomplete():
        lines.append(f"{op.id} {op.description} {op.path}")
    lines.append("")

    lines.append(f"AVG {label} RUNTIME")
    lines.append(UNDERLINE)
    for description, mean in correlator.runtimes.mean_runtimes():
        lines.append(f"{description} {mean}ms")
    lines.append("")

    lines.append(f"{label} COUNTS")
    lines.append(UNDERLINE)
    for description, count in correlator.runtimes.counts():
        lines.append(f"{description} {count}")
    lines.append("")

    lines.append(f"{label} RESULT COUNTS")
    lines.append(UNDERLINE)
    for status, count in correlator.status_counts.most_common():
        lines.append(f"{status} {count}")
    lines.append("")

    longest = correlator.longest.ranked()
    lines.append(f"TOP {len(longest)} {label}S WITH LONGEST RUNTIME")
    lines.append(UNDERLINE)
    for entry in longest:
        op = entry.payload
        lines.append(f"{op.id} {op.description} {op.path} {_fmt_ms(entry.metric)}")
    lines.append("")

    lines.append(f"TOP {correlator.top_count} DUPLICATED {label}S")
    lines.append(UNDERLINE)
    for key, count in correlator.top_duplicates():
        lines.append(f"{key} {count}")
    return lines


def format_report_text(result: AnalysisResult) -> str:
    """Full report: global summary, SMB and HTTP sections, lowest bandwidth."""
    smb, http, span = result.smb, result.http, result.time_range
    minutes = span.elapsed_minutes()
    mean_bandwidth = http.bandwidth.mean_kib_per_second()

    lines = [RULE, "SUMMARY", RULE]
    if span.empty:
        lines.append(f"date range: {NOT_AVAILABLE}")
    else:
        lines.append(f"date range: {_fmt_ts(span.start)} - {_fmt_ts(span.end)}")
    lines.append(f"elapsed minutes: {minutes}")
    lines.append(f"total smb commands: {smb.total}")
    lines.append(f"smb commands per minute: {_or_na(per_minute(smb.total, minutes))}")
    lines.append(f"total smb commands without begin: {smb.startless}")
    lines.append(f"total smb notifications sent: {smb.notifications}")
    lines.append(f"total http requests: {http.total}")
    lines.append(f"http requests per minute: {_or_na(per_minute(http.total, minutes))}")
    lines.append(f"total http requests without begin: {http.requests_without_begin}")
    lines.append(f"total http requests with unknown format: {http.unknown_format}")
    if mean_bandwidth is None:
        lines.append(f"average bandwidth: {NOT_AVAILABLE}")
    else:
        lines.append(f"average bandwidth: {mean_bandwidth} KB/s")
    lines.append(
        f"   ({len(http.bandwidth)} occurrences greater than "
        f"{http.rate_size_threshold} bytes sampled)"
    )
    for name in result.missing:
        lines.append(f"   ({name} not found)")
    for name, count in sorted(result.line_counts.items()):
        if name in result.missing:
            continue
        lines.append(f"   ({count} lines parsed from {name})")

    lines.extend(format_section("SMB COMMAND", smb))
    lines.extend(format_section("HTTP REQUEST", http))

    lines.append("")
    lines.append("LOWEST BANDWIDTH OBSERVED")
    lines.append(UNDERLINE)
    for entry in http.lowest_bandwidth.ranked():
        op = entry.payload
        lines.append(
            f"{op.id} {_fmt_ts(op.finished_at)} {op.description} {op.path} "
            f"{to_kib_per_second(entry.metric)} KB/sec"
        )

    return "\n".join(lines)


def _section_dict(correlator: Correlator) -> dict:
    return {
        "total": correlator.total,
        "without_begin": correlator.startless,
        "incomplete": [
            {"id": op.id, "description": op.description, "path": op.path}
            for op in correlator.incomplete()
        ],
        "mean_runtime_ms": dict(correlator.runtimes.mean_runtimes()),
        "counts": dict(correlator.runtimes.counts()),
        "result_counts": dict(correlator.status_counts.most_common()),
        "longest": [
            {
                "id": e.payload.id,
                "description": e.payload.description,
                "path": e.payload.path,
                "runtime_ms": round_half_up(e.metric),
            }
            for e in correlator.longest.ranked()
        ],
        "duplicated": dict(correlator.top_duplicates()),
    }


def build_report(result: AnalysisResult) -> dict:
    """Report contents as plain data."""
    smb, http, span = result.smb, result.http, result.time_range
    minutes = span.elapsed_minutes()

    smb_section = _section_dict(smb)
    smb_section["per_minute"] = per_minute(smb.total, minutes)
    smb_section["notifications"] = smb.notifications

    http_section = _section_dict(http)
    http_section["per_minute"] = per_minute(http.total, minutes)
    http_section["unknown_format"] = http.unknown_format

    return {
        "date_range": {
            "start": span.start.isoformat() if span.start else None,
            "end": span.end.isoformat() if span.end else None,
        },
        "elapsed_minutes": minutes,
        "missing_logs": list(result.missing),
        "parsed_lines": dict(sorted(result.line_counts.items())),
        "smb": smb_section,
        "http": http_section,
        "bandwidth": {
            "average_kb_per_sec": http.bandwidth.mean_kib_per_second(),
            "samples": len(http.bandwidth),
            "size_threshold_bytes": http.rate_size_threshold,
            "lowest": [
                {
                    "id": e.payload.id,
                    "finished_at": e.payload.finished_at.isoformat(),
                    "description": e.payload.description,
                    "path": e.payload.path,
                    "kb_per_sec": to_kib_per_second(e.metric),
                }
                for e in http.lowest_bandwidth.ranked()
            ],
        },
    }


def format_report_json(result: AnalysisResult) -> str:
    return json.dumps(build_report(result), indent=2)
