"""
Cross-source matching: assignment course codes (from the ICS feed) against
the course catalog (from the scheduling portal).

Tiers, first hit wins:
    EXACT       raw code == catalog key
    NORMALIZED  codes equal after removing hyphens/whitespace and uppercasing
                (each component of a cross-listed key is indexed on its own)
    PARTIAL     one normalised code contains the other
    NONE        assignment keeps its extracted code

When several catalog entries qualify, the longest key wins, then the
alphabetically first one, so the result never depends on catalog order.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple

from studyfeed.course_code import normalize_code
from studyfeed.model import (
    GENERAL_COURSE,
    UNKNOWN_COURSE,
    Assignment,
    CourseCatalogEntry,
    CourseCodeMatch,
    MatchTier,
)


logger = logging.getLogger(__name__)

SENTINEL_CODES = frozenset({UNKNOWN_COURSE, GENERAL_COURSE})

# Shorter codes would substring-match half the catalog.
MIN_PARTIAL_LENGTH = 4


def _pick(candidates: Iterable[CourseCatalogEntry]) -> CourseCatalogEntry:
    return sorted(candidates, key=lambda e: (-len(e.key), e.key))[0]


class CatalogIndex:
    """
    Lookup structures for one matching pass over a read-only catalog.

    `assignment_codes` are the codes the student's own feed uses; for
    cross-listed catalog keys ("CP8307/CPS843") the component matching one of
    them becomes the display key, instead of the raw combined key.
    """

    def __init__(
        self,
        entries: Iterable[CourseCatalogEntry],
        assignment_codes: Iterable[str] = (),
    ) -> None:
        by_key: Dict[str, CourseCatalogEntry] = {}
        for entry in sorted(entries, key=lambda e: (e.key, e.title)):
            key = entry.key.strip()
            if key and key not in by_key:
                by_key[key] = entry

        self.entries: List[CourseCatalogEntry] = list(by_key.values())
        self._exact = by_key
        self._normalized: Dict[str, List[CourseCatalogEntry]] = {}
        self._partial: List[Tuple[str, CourseCatalogEntry]] = []
        self._preferred: Dict[str, str] = {}

        for entry in self.entries:
            norms = {normalize_code(entry.key)}
            norms.update(normalize_code(c) for c in entry.components)
            for norm in sorted(n for n in norms if n):
                self._normalized.setdefault(norm, []).append(entry)
                self._partial.append((norm, entry))

        wanted = {normalize_code(c) for c in assignment_codes if c and c not in SENTINEL_CODES}
        for entry in self.entries:
            if len(entry.components) < 2:
                continue
            # Later components first: the second-listed code is the usual display code.
            for comp in reversed(entry.components):
                if normalize_code(comp) in wanted:
                    self._preferred[entry.key] = comp
                    break

    def __len__(self) -> int:
        return len(self.entries)

    def preferred_key(self, catalog_key: str) -> Optional[str]:
        return self._preferred.get(catalog_key)

    def _display_key(self, entry: CourseCatalogEntry) -> str:
        return self._preferred.get(entry.key, entry.key)

    def match(self, course_code: str) -> CourseCodeMatch:
        raw = (course_code or "").strip()
        if not raw or raw in SENTINEL_CODES or not self.entries:
            return CourseCodeMatch(assignment_course_code=raw)

        entry = self._exact.get(raw)
        if entry is not None:
            return CourseCodeMatch(raw, entry.key, entry.title, MatchTier.EXACT)

        norm = normalize_code(raw)
        candidates = self._normalized.get(norm)
        if candidates:
            entry = _pick(candidates)
            return CourseCodeMatch(raw, self._display_key(entry), entry.title, MatchTier.NORMALIZED)

        if len(norm) >= MIN_PARTIAL_LENGTH:
            partial = [
                e
                for key_norm, e in self._partial
                if len(key_norm) >= MIN_PARTIAL_LENGTH and (norm in key_norm or key_norm in norm)
            ]
            if partial:
                entry = _pick(partial)
                return CourseCodeMatch(raw, self._display_key(entry), entry.title, MatchTier.PARTIAL)

        return CourseCodeMatch(assignment_course_code=raw)


def build_catalog_index(
    entries: Iterable[CourseCatalogEntry],
    assignments: Iterable[Assignment] = (),
) -> CatalogIndex:
    return CatalogIndex(entries, [a.course_code for a in assignments])


def match_course_code(course_code: str, index: CatalogIndex) -> CourseCodeMatch:
    """
    Best catalog match for one extracted code (tier NONE if there is none).
    """
    return index.match(course_code)


def match_assignments(assignments: Iterable[Assignment], index: CatalogIndex) -> List[Assignment]:
    """
    Return copies of `assignments` enriched with their catalog match.
    Unmatched assignments are returned unchanged.
    """
    out: List[Assignment] = []
    for a in assignments:
        result = match_course_code(a.course_code, index)
        logger.debug("Match %s -> %s (%s)", a.course_code, result.matched_catalog_key, result.tier.value)
        if not result.is_match:
            out.append(a)
            continue
        out.append(
            replace(
                a,
                matched_course_key=result.matched_catalog_key,
                matched_course_name=result.matched_catalog_title,
                is_matched_to_catalog=True,
            )
        )
    return out
