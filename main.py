#!/usr/bin/env python3
"""smb-trace-analyzer: correlate SMB command and HTTP request traces into a performance report."""

import sys
import os
import asyncio
import argparse
import logging

# Ensure src package is importable when run as `python main.py`
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from src.aggregates import TOP_POLICIES
from src.analyzer import analyze_directory
from src.config import load_config, load_yaml_config
from src.report import format_report_json, format_report_text

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="smb-trace-analyzer",
        description=(
            "Summarize the SMB command (smb-cmd.log) and HTTP request "
            "(smb-request.log) traces found in a log directory."
        ),
    )
    parser.add_argument(
        "log_dir",
        help="Directory containing the trace files",
    )
    parser.add_argument(
        "--config", default=None,
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--top-count", type=int, default=None,
        help="Number of entries kept in each top list (default: 10)",
    )
    parser.add_argument(
        "--rate-size-threshold", type=int, default=None,
        help="Minimum transfer size in bytes for bandwidth samples (default: 1048576)",
    )
    parser.add_argument(
        "--top-policy", choices=TOP_POLICIES, default=None,
        help="Top list replacement policy (default: legacy)",
    )
    parser.add_argument(
        "--output", choices=["text", "json"], default="text",
        help="Report format (default: text)",
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Log debug details to stderr",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [ANALYZER] %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_config(args, load_yaml_config(args.config))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    logger.info("Config: top_count=%d, rate_size_threshold=%d, top_policy=%s",
                config.top_count, config.rate_size_threshold, config.top_policy)

    result = asyncio.run(analyze_directory(args.log_dir, config))

    if args.output == "json":
        print(format_report_json(result))
    else:
        print(format_report_text(result))
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(0)
    except BrokenPipeError:
        sys.exit(0)
