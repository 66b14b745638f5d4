"""
Refresh pipeline: fetch -> parse -> classify/extract -> aggregate -> match.

Feeds are fetched and parsed concurrently. Each feed either yields a
FeedResult or a FeedFailure; one broken feed never hides the others, and a
refresh with no usable feed returns empty lists.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from studyfeed.aggregate import aggregate, extract_feed
from studyfeed.config import PipelineConfig
from studyfeed.context import RefreshContext
from studyfeed.errors import FetchError, ParseError
from studyfeed.fetch import fetch_ics
from studyfeed.matcher import match_assignments
from studyfeed.model import CourseCatalogEntry, FeedFailure, FeedResult, RefreshResult
from studyfeed.parse import parse_ics_with_stats


logger = logging.getLogger(__name__)

# (url, timeout) -> ICS text; raises FetchError
FetchFn = Callable[[str, float], str]


def _unique_urls(urls: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(u.strip() for u in urls if u and u.strip()))


def process_ics_text(url: str, text: str, ctx: RefreshContext) -> FeedResult:
    """
    Parse and extract one feed whose text is already at hand.

    Raises:
        ParseError: if the text is not calendar data at all.
    """
    events, skipped = parse_ics_with_stats(text, ctx.config.default_tz)
    result = extract_feed(url, events, ctx)
    result.skipped_blocks = skipped
    return result


def process_feed(url: str, ctx: RefreshContext, fetch: FetchFn = fetch_ics) -> FeedResult:
    """
    Fetch, parse and extract one feed.

    Raises:
        FetchError / ParseError: handled per feed by run_refresh().
    """
    text = fetch(url, ctx.config.fetch_timeout)
    return process_ics_text(url, text, ctx)


def run_refresh(
    urls: Iterable[str],
    ctx: RefreshContext,
    fetch: FetchFn = fetch_ics,
) -> RefreshResult:
    """
    Run the full pipeline for all `urls` inside one context.
    """
    feed_urls = _unique_urls(urls)
    results: List[FeedResult] = []
    failures: List[FeedFailure] = []

    if feed_urls:
        workers = max(1, min(ctx.config.max_workers, len(feed_urls)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_url = {executor.submit(process_feed, url, ctx, fetch): url for url in feed_urls}

            for future in as_completed(future_to_url):
                url = future_to_url[future]
                try:
                    results.append(future.result())
                except FetchError as exc:
                    logger.warning("%s", exc)
                    failures.append(FeedFailure(url=url, stage="fetch", message=str(exc)))
                except ParseError as exc:
                    logger.warning("Failed to parse %s: %s", url[:50], exc)
                    failures.append(FeedFailure(url=url, stage="parse", message=str(exc)))

    merged = aggregate(results, failures, generated_at=ctx.now)
    index = ctx.catalog_index(merged.assignments)
    merged.assignments = match_assignments(merged.assignments, index)

    logger.info(
        "Refresh done: %d assignments (%d matched), %d classes, %.1f h/week, %d failed feeds, %d skipped events",
        len(merged.assignments),
        sum(1 for a in merged.assignments if a.is_matched_to_catalog),
        len(merged.occurrences),
        merged.weekly_class_hours,
        len(merged.failures),
        merged.skipped_blocks,
    )
    return merged


def refresh(
    urls: Iterable[str],
    catalog: Iterable[CourseCatalogEntry] = (),
    config: Optional[PipelineConfig] = None,
    now: Optional[datetime] = None,
    fetch: FetchFn = fetch_ics,
) -> RefreshResult:
    """
    Convenience entry point: build a fresh context and run the pipeline.
    """
    ctx = RefreshContext(
        now=now or datetime.now(timezone.utc),
        config=config or PipelineConfig(),
        catalog=list(catalog),
    )
    return run_refresh(urls, ctx, fetch)
