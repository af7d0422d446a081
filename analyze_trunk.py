#!/usr/bin/env python3
"""Collect trunk commits and workflow runs from GitHub and write a metrics report

Supports flexible date ranges: 30d, 90d, 365d, Q1-2025, 2024, or custom ranges.
Use --date-range argument to specify the time window.
"""

import argparse
import json
import os
import sys

from trunk_metrics.collectors.github_actions_collector import GitHubActionsCollector, GitHubAPIError
from trunk_metrics.config import Config
from trunk_metrics.models.metrics import TrunkMetricsCalculator
from trunk_metrics.utils.date_ranges import DateRangeError, parse_date_range
from trunk_metrics.utils.logging import get_logger, setup_logging

# Default time window (used if no --date-range provided)
DEFAULT_RANGE = "90d"


def build_parser():
    parser = argparse.ArgumentParser(
        description="Calculate trunk-based DORA metrics from GitHub commits and Actions runs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python analyze_trunk.py                        # Use default 90-day window
  python analyze_trunk.py --date-range 30d       # Last 30 days
  python analyze_trunk.py --date-range Q1-2025   # Q1 2025
  python analyze_trunk.py --workflow Deploy      # Another deployment workflow
  python analyze_trunk.py -o report.json         # Write the report to a file
  python analyze_trunk.py -q                     # Quiet mode (errors only)
        """,
    )
    parser.add_argument(
        "--date-range",
        type=str,
        default=DEFAULT_RANGE,
        help=f"Date range to analyze (default: {DEFAULT_RANGE}). "
        "Formats: 30d, 90d, Q1-2025, 2024, YYYY-MM-DD:YYYY-MM-DD",
    )
    parser.add_argument("--owner", type=str, help="Repository owner (default: github.owner in config)")
    parser.add_argument("--repo", type=str, help="Repository name (default: github.repo in config)")
    parser.add_argument("--branch", type=str, help="Trunk branch (default: github.branch in config, else main)")
    parser.add_argument("--workflow", type=str, help="Deployment workflow name (default: github.workflow_name)")
    parser.add_argument("--lookback-days", type=int, help="Days before the window searched for failures")
    parser.add_argument("--lookahead-days", type=int, help="Days after the window searched for runs")
    parser.add_argument("-o", "--output", type=str, help="Write the JSON report here instead of stdout")
    parser.add_argument("--config", type=str, help="Path to config.yaml (default: config/config.yaml)")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity: -v (INFO), -vv (DEBUG)")
    parser.add_argument("-q", "--quiet", action="store_true", help="Quiet mode (warnings and errors only)")
    parser.add_argument("--log-file", type=str, help="Override log file location")
    return parser


def resolve_log_level(args):
    if args.quiet:
        return "WARNING"
    if args.verbose >= 2:
        return "DEBUG"
    return "INFO"


def resolve_days(value, default, name):
    days = default if value is None else value
    if days < 0:
        raise ValueError(f"--{name} must not be negative")
    return days


def logging_settings(args, config):
    """Keyword arguments for setup_logging: -v/-q and --log-file win over the config's ``logging`` section"""
    settings = config.logging_config if config is not None else {}
    level = resolve_log_level(args) if (args.quiet or args.verbose) else settings.get("level", "INFO")
    return {
        "log_level": level,
        "log_file": args.log_file or settings.get("file"),
        "config_file": settings.get("config_file", "config/logging.yaml"),
        "quiet": args.quiet,
    }


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        config, config_error = Config(args.config), None
    except FileNotFoundError as e:
        config, config_error = None, e

    setup_logging(**logging_settings(args, config))
    out = get_logger("trunk_metrics.cli")

    try:
        window = parse_date_range(args.date_range)
    except DateRangeError as e:
        out.error(f"Error: {e}")
        out.info("")
        out.info("Valid formats:")
        out.info("  - Days: 30d, 90d, 180d, 365d", indent=2)
        out.info("  - Quarters: Q1-2025, Q2-2024", indent=2)
        out.info("  - Years: 2024, 2025", indent=2)
        out.info("  - Custom: 2024-01-01:2024-12-31", indent=2)
        return 1

    if config_error is not None:
        out.error(str(config_error))
        return 1

    try:
        lookback = resolve_days(args.lookback_days, config.dora_config["lookback_days"], "lookback-days")
        lookahead = resolve_days(args.lookahead_days, config.dora_config["lookahead_days"], "lookahead-days")
        workflow_name = args.workflow or config.workflow_name
    except ValueError as e:
        out.error(str(e))
        return 1

    owner = args.owner or config.github_owner
    repo = args.repo or config.github_repo
    if not (owner and repo and config.github_token):
        out.error("GitHub token, owner and repo are required (config.yaml or --owner/--repo)")
        return 1

    out.section("Trunk Metrics Analysis")
    out.info(f"Date Range: {window.description}", emoji="📅")
    out.info(f"From: {window.start_date.isoformat()}", indent=2)
    out.info(f"To:   {window.end_date.isoformat()}", indent=2)
    out.info(f"Repository: {owner}/{repo} ({args.branch or config.github_branch})", indent=2)
    out.info(f"Workflow: {workflow_name}", indent=2)
    out.info("")

    collector = GitHubActionsCollector(
        token=config.github_token,
        owner=owner,
        repo=repo,
        workflow_name=workflow_name,
        branch=args.branch or config.github_branch,
        api_url=config.github_api_url,
    )

    try:
        data = collector.collect(window, lookback_days=lookback, lookahead_days=lookahead)
    except GitHubAPIError as e:
        out.error(f"Collection failed: {e}")
        return 1

    report = TrunkMetricsCalculator(
        data.commits, data.runs, window, lookback_days=lookback, lookahead_days=lookahead
    ).analyze()

    payload = json.dumps(report.to_dict(), indent=2)
    if args.output:
        directory = os.path.dirname(args.output)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(payload)
        out.success(f"Report written to {args.output}")
    else:
        print(payload)

    return 0


if __name__ == "__main__":
    sys.exit(main())
