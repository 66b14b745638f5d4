"""
Exceptions raised by the fetch and parse stages.

The pipeline turns both into FeedFailure records; nothing here is meant to
abort a whole refresh.
"""

from __future__ import annotations


class StudyFeedError(Exception):
    """Base class for all StudyFeed errors."""


class FetchError(StudyFeedError):
    """Network failure, timeout or non-2xx response. Retryable by the caller."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Failed to fetch ICS from {url}: {reason}")
        self.url = url
        self.reason = reason


class ParseError(StudyFeedError):
    """Input is not calendar text at all (no VCALENDAR markers)."""
