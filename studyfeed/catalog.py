"""
Course catalog ingestion.

The catalog is the authoritative course list from the scheduling portal.
It is produced elsewhere; this module only reads its two usual outputs:
- a JSON list of {"key": ..., "title": ...}
- the portal's class-data XML (<course key=... title=...> elements)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from bs4 import BeautifulSoup

from studyfeed.model import CourseCatalogEntry


logger = logging.getLogger(__name__)


def _entry_from_mapping(item: Any) -> Optional[CourseCatalogEntry]:
    if not isinstance(item, dict):
        return None
    key = str(item.get("key", "") or "").strip()
    if not key:
        return None
    title = str(item.get("title", "") or "").strip() or key
    return CourseCatalogEntry(key=key, title=title)


def catalog_from_records(records: Iterable[Any]) -> List[CourseCatalogEntry]:
    """
    Build catalog entries from {key, title} mappings; duplicates keep the
    first occurrence, records without a key are dropped.
    """
    out: Dict[str, CourseCatalogEntry] = {}
    for item in records:
        entry = _entry_from_mapping(item)
        if entry is not None and entry.key not in out:
            out[entry.key] = entry
    return list(out.values())


def load_catalog_json(path: str | Path) -> List[CourseCatalogEntry]:
    """
    Load a catalog JSON file.

    Never crashes on missing or broken files: returns [] instead,
    so a refresh can still run without a catalog.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.warning("Catalog file not found: %s", path)
        return []
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
        logger.warning("Catalog file unreadable (%s): %s", path, exc)
        return []

    if not isinstance(data, list):
        return []
    return catalog_from_records(data)


def parse_vsb_class_data(
    xml_text: str,
    enrolled_keys: Optional[Iterable[str]] = None,
) -> List[CourseCatalogEntry]:
    """
    Extract catalog entries from the portal's class-data XML.

    If `enrolled_keys` is given, only courses with a <uselection> whose key
    is enrolled are kept.
    """
    soup = BeautifulSoup(xml_text or "", "html.parser")
    enrolled = {str(k).strip() for k in enrolled_keys} if enrolled_keys is not None else None

    records: List[Dict[str, str]] = []
    for course in soup.find_all("course"):
        key = (course.get("key") or "").strip()
        if not key:
            continue

        if enrolled is not None:
            selection_keys = {(u.get("key") or "").strip() for u in course.find_all("uselection")}
            if not (selection_keys & enrolled):
                continue

        title = (course.get("title") or course.get("desc") or "").strip()
        records.append({"key": key, "title": title})

    entries = catalog_from_records(records)
    logger.info("Catalog: %d courses from class-data", len(entries))
    return entries
