from __future__ import annotations

import argparse
import asyncio
import json
import sys
import time
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

from dotenv import load_dotenv

from .config import RuntimeConfig, load_runtime_config, normalize_log_format, normalize_log_level
from .errors import ReportFeedError
from .export import DEFAULT_EXPORT_FILENAME, to_frame
from .logging_config import configure_logging, get_logger, log_event
from .models import DateRange, FilterCriteria, parse_report_date
from .session import FeedSession, ReportSource
from .sources import HttpReportSource, JsonFileReportSource, LocalPushChannel, replay_events


PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_ARTIFACTS_DIR = PROJECT_ROOT / "artifacts"
DEFAULT_EXPORT_OUTPUT = DEFAULT_ARTIFACTS_DIR / DEFAULT_EXPORT_FILENAME
DEFAULT_RUN_ID = "feed-run"


def _resolve_optional_arg(args: argparse.Namespace, name: str, fallback: Any) -> Any:
    value = getattr(args, name, None)
    return fallback if value is None else value


def _resolve_path(path: Path) -> Path:
    return path.expanduser().resolve()


def _parse_cli_date(raw: str) -> datetime:
    return parse_report_date(raw)


def _resolve_runtime_config(args: argparse.Namespace) -> RuntimeConfig:
    load_dotenv(override=False)
    runtime = load_runtime_config()
    if getattr(args, "log_level", None):
        runtime = replace(runtime, log_level=normalize_log_level(args.log_level))
    if getattr(args, "log_format", None):
        runtime = replace(runtime, log_format=normalize_log_format(args.log_format))
    return runtime


def _build_criteria(args: argparse.Namespace) -> FilterCriteria:
    return FilterCriteria(
        categories=frozenset(args.category or ()),
        statuses=frozenset(args.status or ()),
        search=args.search or "",
        date_range=DateRange(start=args.date_from, end=args.date_to),
    )


def _make_source(args: argparse.Namespace, runtime: RuntimeConfig) -> ReportSource:
    if args.reports is not None:
        return JsonFileReportSource(_resolve_path(args.reports))
    api_url = _resolve_optional_arg(args, "api_url", runtime.api_url)
    if api_url:
        return HttpReportSource(
            api_url,
            timeout_sec=float(
                _resolve_optional_arg(args, "fetch_timeout_sec", runtime.fetch_timeout_sec)
            ),
        )
    raise ValueError("No report source: pass --reports, --api-url or set REPORT_FEED_API_URL.")


async def _run_session(
    args: argparse.Namespace,
    runtime: RuntimeConfig,
    logger: Any,
) -> FeedSession:
    channel = LocalPushChannel()
    session = FeedSession(
        _make_source(args, runtime),
        channel,
        event_name=str(_resolve_optional_arg(args, "event_name", runtime.event_name)),
        criteria=_build_criteria(args),
        page_size=runtime.page_size,
        export_date_format=runtime.export_date_format,
        session_id=args.run_id,
    )
    session.on_report(
        lambda report, outcome: log_event(
            logger,
            "info",
            "new_report_received",
            run_id=args.run_id,
            report_id=report.id,
            outcome=outcome.value,
        )
    )

    await session.start()
    try:
        if args.events is not None:
            replayed = replay_events(channel, _resolve_path(args.events), session.event_name)
            await session.join()
            log_event(logger, "info", "events_replayed", run_id=args.run_id, events=replayed)
    finally:
        session.stop()

    if session.error is not None:
        raise session.error
    return session


def _cmd_export(args: argparse.Namespace, runtime: RuntimeConfig, logger: Any) -> int:
    started = time.perf_counter()
    output_path = _resolve_path(args.output)

    log_event(logger, "info", "export_start", run_id=args.run_id, output_path=str(output_path))
    session = asyncio.run(_run_session(args, runtime, logger))
    frame = to_frame(session.export_current_view())

    output_path.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(output_path, index=False)

    elapsed = time.perf_counter() - started
    log_event(
        logger,
        "info",
        "export_complete",
        run_id=args.run_id,
        rows=int(len(frame)),
        total_reports=int(len(session.snapshot())),
        rejected=session.rejected_count,
        output_path=str(output_path),
        elapsed_sec=round(elapsed, 3),
    )
    return 0


def build_summary_payload(session: FeedSession, run_id: str) -> dict[str, Any]:
    criteria = session.criteria
    view = session.current_view()
    found = session.facets()
    return {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "run_id": run_id,
        "criteria": {
            "categories": sorted(criteria.categories),
            "statuses": sorted(criteria.statuses),
            "search": criteria.search,
            "date_from": criteria.date_range.lower.isoformat() if criteria.date_range.lower else None,
            "date_to": criteria.date_range.upper.isoformat() if criteria.date_range.upper else None,
        },
        "total_reports": int(len(session.snapshot())),
        "visible_reports": int(len(view)),
        "rejected_reports": session.rejected_count,
        "facets": {
            "categories": list(found.categories),
            "statuses": list(found.statuses),
        },
        "summary": session.summary().to_dict(),
        "data_errors": [
            {"id": report_id, "error": error} for report_id, error in session.data_errors()
        ],
    }


def _cmd_summary(args: argparse.Namespace, runtime: RuntimeConfig, logger: Any) -> int:
    started = time.perf_counter()
    session = asyncio.run(_run_session(args, runtime, logger))
    payload = build_summary_payload(session, args.run_id)
    text = json.dumps(payload, indent=2)

    if args.output is None:
        sys.stdout.write(text + "\n")
        destination = "stdout"
    else:
        output_path = _resolve_path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(text, encoding="utf-8")
        destination = str(output_path)

    elapsed = time.perf_counter() - started
    log_event(
        logger,
        "info",
        "summary_complete",
        run_id=args.run_id,
        visible_reports=payload["visible_reports"],
        total_reports=payload["total_reports"],
        output=destination,
        elapsed_sec=round(elapsed, 3),
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--run-id",
        type=str,
        default=DEFAULT_RUN_ID,
        help=f"Run identifier for logs and summary metadata. Default: {DEFAULT_RUN_ID}",
    )
    common.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Override log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).",
    )
    common.add_argument(
        "--log-format",
        type=str,
        default=None,
        help="Override log format (auto, json, console).",
    )
    common.add_argument(
        "--reports",
        type=Path,
        default=None,
        help="JSON file holding the initial report batch.",
    )
    common.add_argument(
        "--api-url",
        type=str,
        default=None,
        help="Reports endpoint used when --reports is absent.",
    )
    common.add_argument(
        "--fetch-timeout-sec",
        type=float,
        default=None,
        help="Timeout override for the reports endpoint.",
    )
    common.add_argument(
        "--events",
        type=Path,
        default=None,
        help="JSON-lines file of pushed reports replayed after the initial load.",
    )
    common.add_argument(
        "--event-name",
        type=str,
        default=None,
        help="Push event name override.",
    )
    common.add_argument(
        "--category",
        action="append",
        default=None,
        help="Keep only this category. Repeatable.",
    )
    common.add_argument(
        "--status",
        action="append",
        default=None,
        help="Keep only this status. Repeatable.",
    )
    common.add_argument(
        "--search",
        type=str,
        default=None,
        help="Case-insensitive text matched against description and category.",
    )
    common.add_argument(
        "--date-from",
        type=_parse_cli_date,
        default=None,
        help="Inclusive lower date bound (ISO-8601).",
    )
    common.add_argument(
        "--date-to",
        type=_parse_cli_date,
        default=None,
        help="Inclusive upper date bound (ISO-8601).",
    )

    parser = argparse.ArgumentParser(
        prog="report-feed",
        description="Live filtered report feed CLI.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    parser_export = subparsers.add_parser(
        "export", parents=[common], description="Export the filtered view as CSV."
    )
    parser_export.add_argument(
        "--output",
        type=Path,
        default=DEFAULT_EXPORT_OUTPUT,
        help=f"Output CSV path. Default: {DEFAULT_EXPORT_OUTPUT}",
    )
    parser_export.set_defaults(handler=_cmd_export)

    parser_summary = subparsers.add_parser(
        "summary", parents=[common], description="Write KPI counts and facets as JSON."
    )
    parser_summary.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output JSON path. Default: stdout",
    )
    parser_summary.set_defaults(handler=_cmd_summary)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    runtime = _resolve_runtime_config(args)
    effective_log_format = configure_logging(runtime.log_level, runtime.log_format)
    logger = get_logger("report_feed.cli")
    log_event(
        logger,
        "info",
        "command_start",
        run_id=args.run_id,
        command=args.command,
        log_level=runtime.log_level,
        log_format=effective_log_format,
    )

    try:
        return int(args.handler(args, runtime, logger))
    except KeyboardInterrupt:
        log_event(
            logger,
            "warning",
            "command_interrupted",
            run_id=args.run_id,
            command=args.command,
        )
        return 130
    except (ReportFeedError, FileNotFoundError, ValueError, OSError, json.JSONDecodeError) as exc:
        log_event(
            logger,
            "error",
            "command_failed",
            run_id=args.run_id,
            command=args.command,
            error=str(exc),
        )
        return 1
