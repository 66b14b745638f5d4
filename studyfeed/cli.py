"""
CLI (Command Line Interface).

Quick terminal commands, e.g.:

    studyfeed add-feed <url>
    studyfeed remove-feed <url>
    studyfeed feeds
    studyfeed refresh [--catalog catalog.json] [--vsb-xml class-data.xml]
    studyfeed show

Note:
- refresh prints a plain-text summary and stores a snapshot
- show renders the last snapshot with rich tables
- a feed "URL" that is not http(s)/webcal is read as a local .ics file
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import List, Optional

from studyfeed.catalog import load_catalog_json, parse_vsb_class_data
from studyfeed.config import PipelineConfig, default_data_dir
from studyfeed.context import RefreshContext
from studyfeed.errors import FetchError
from studyfeed.fetch import fetch_ics
from studyfeed.model import CourseCatalogEntry
from studyfeed.pipeline import run_refresh
from studyfeed.report import render_report
from studyfeed.storage import (
    BINDINGS_FILE,
    FEEDS_FILE,
    SNAPSHOT_FILE,
    apply_course_bindings,
    load_course_bindings,
    load_feed_urls,
    load_refresh_result,
    result_to_dict,
    save_course_bindings,
    save_feed_urls,
    save_refresh_result,
)


def _data_path(args: argparse.Namespace, filename: str) -> Path:
    base = Path(args.data_dir) if args.data_dir else default_data_dir()
    return base / filename


def _fetch_or_read(url: str, timeout: float) -> str:
    """
    Fetch remote feeds; read anything else as a local file.
    """
    if url.lower().startswith(("http://", "https://", "webcal://")):
        return fetch_ics(url, timeout)
    try:
        return Path(url).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise FetchError(url, str(exc)) from exc


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _cmd_feeds(args: argparse.Namespace) -> int:
    urls = load_feed_urls(_data_path(args, FEEDS_FILE))
    if not urls:
        print("No feeds configured.")
        return 0
    for i, url in enumerate(urls, start=1):
        print(f"{i}. {url}")
    return 0


def _cmd_add_feed(args: argparse.Namespace) -> int:
    url = (args.url or "").strip()
    if not url:
        print("Please provide a feed URL.")
        return 1

    path = _data_path(args, FEEDS_FILE)
    urls = load_feed_urls(path)
    if url in urls:
        print(f"Already added: {url}")
        return 0

    urls.append(url)
    save_feed_urls(urls, path)
    print(f"Added feed (total: {len(urls)})")
    return 0


def _cmd_remove_feed(args: argparse.Namespace) -> int:
    url = (args.url or "").strip()
    if not url:
        print("Please provide a feed URL.")
        return 1

    path = _data_path(args, FEEDS_FILE)
    urls = load_feed_urls(path)
    if url not in urls:
        print(f"Not configured: {url}")
        return 0

    urls.remove(url)
    save_feed_urls(urls, path)
    print(f"Removed feed (total: {len(urls)})")
    return 0


def _load_catalog(args: argparse.Namespace) -> List[CourseCatalogEntry]:
    catalog: List[CourseCatalogEntry] = []
    if args.catalog:
        catalog.extend(load_catalog_json(args.catalog))
    if args.vsb_xml:
        try:
            xml_text = Path(args.vsb_xml).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            print(f"Warning: cannot read class-data file ({exc}); continuing without it.")
        else:
            catalog.extend(parse_vsb_class_data(xml_text, args.enrolled or None))
    return catalog


def _config_from_args(args: argparse.Namespace) -> PipelineConfig:
    config = PipelineConfig()
    if args.timeout is not None:
        config.fetch_timeout = args.timeout
    if args.horizon_months is not None:
        config.horizon_months = args.horizon_months
    if args.workers is not None:
        config.max_workers = args.workers
    config.current_semester_only = bool(args.current_semester)
    return config


def _cmd_refresh(args: argparse.Namespace) -> int:
    """
    Run the pipeline over --url arguments, or the configured feeds.
    """
    urls = [u for u in (args.url or []) if u.strip()] or load_feed_urls(_data_path(args, FEEDS_FILE))
    if not urls:
        print("No feeds configured. Use 'add-feed <url>' or pass --url.")
        return 1

    ctx = RefreshContext(config=_config_from_args(args), catalog=_load_catalog(args))
    result = run_refresh(urls, ctx, fetch=_fetch_or_read)

    bindings_path = _data_path(args, BINDINGS_FILE)
    result.assignments = apply_course_bindings(result.assignments, load_course_bindings(bindings_path))
    save_course_bindings(result.assignments, bindings_path, now=ctx.now)
    save_refresh_result(result, _data_path(args, SNAPSHOT_FILE))

    if args.json:
        print(json.dumps(result_to_dict(result), indent=2, ensure_ascii=False))
        return 0

    matched = sum(1 for a in result.assignments if a.is_matched_to_catalog)
    print(f"Assignments: {len(result.assignments)} ({matched} matched to catalog)")
    print(f"Class sessions: {len(result.occurrences)}")
    print(f"Weekly class hours: {result.weekly_class_hours:.1f}")
    if result.skipped_blocks:
        print(f"Skipped unreadable events: {result.skipped_blocks}")
    for f in result.failures:
        print(f"Failed ({f.stage}): {f.url} - {f.message}")
    return 0


def _cmd_show(args: argparse.Namespace) -> int:
    result = load_refresh_result(_data_path(args, SNAPSHOT_FILE))
    if result is None:
        print("Nothing to show yet. Run 'refresh' first.")
        return 1
    render_report(result)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="studyfeed", description="StudyFeed CLI")
    parser.add_argument("--data-dir", type=str, default=None, help="Directory for feeds/bindings/snapshot")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More log output (-vv for debug)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("feeds", help="List configured ICS feeds")

    p_add = sub.add_parser("add-feed", help="Add an ICS feed URL")
    p_add.add_argument("url", type=str, help="Feed URL (https:// or webcal://)")

    p_remove = sub.add_parser("remove-feed", help="Remove an ICS feed URL")
    p_remove.add_argument("url", type=str, help="Feed URL")

    p_refresh = sub.add_parser("refresh", help="Fetch feeds and rebuild classes/assignments")
    p_refresh.add_argument("--url", action="append", help="Feed URL or .ics path (repeatable)")
    p_refresh.add_argument("--catalog", type=str, help="Course catalog JSON ([{key, title}, ...])")
    p_refresh.add_argument("--vsb-xml", type=str, help="Scheduling portal class-data XML")
    p_refresh.add_argument("--enrolled", action="append", help="Enrolled selection key (repeatable)")
    p_refresh.add_argument("--timeout", type=float, default=None, help="Fetch timeout in seconds")
    p_refresh.add_argument("--horizon-months", type=int, default=None, help="How far ahead to look")
    p_refresh.add_argument("--workers", type=int, default=None, help="Concurrent feed fetches")
    p_refresh.add_argument("--current-semester", action="store_true", help="Drop items before this term")
    p_refresh.add_argument("--json", action="store_true", help="Print the result as JSON")

    sub.add_parser("show", help="Show the last refresh result")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if args.command == "feeds":
        raise SystemExit(_cmd_feeds(args))
    if args.command == "add-feed":
        raise SystemExit(_cmd_add_feed(args))
    if args.command == "remove-feed":
        raise SystemExit(_cmd_remove_feed(args))
    if args.command == "refresh":
        raise SystemExit(_cmd_refresh(args))
    if args.command == "show":
        raise SystemExit(_cmd_show(args))

    raise SystemExit(2)
