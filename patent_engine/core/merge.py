"""Deduplicator/Normalizer - merges records from every page and strategy."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable

from patent_engine.core.models import CandidateRecord, ResultSet, normalize_key

logger = logging.getLogger("patent_engine.merge")


def dedupe_records(records: Iterable[CandidateRecord]) -> list[CandidateRecord]:
    """
    Collapse repeated natural keys, keeping the most complete instance.

    Output order follows the first time each key was seen; on equal
    completeness the earlier record wins.
    """
    best: dict[str, CandidateRecord] = {}
    for record in records:
        key = normalize_key(record.natural_key)
        if not key or record.is_sentinel:
            continue
        if record.natural_key != key:
            record = replace(record, natural_key=key)
        current = best.get(key)
        if current is None:
            best[key] = record
        elif record.completeness() > current.completeness():
            best[key] = record
    return list(best.values())


def merge(per_page_records: Iterable[Iterable[CandidateRecord]], source_name: str = "") -> ResultSet:
    """Build the final ResultSet, or the NO_RESULTS sentinel when nothing was found."""
    flattened = [record for page in per_page_records for record in page]
    unique = dedupe_records(flattened)

    if not unique:
        logger.info(f"[Merge] No records for {source_name or 'source'}; returning NO_RESULTS")
        return ResultSet.no_results(source_name)

    duplicates = len(flattened) - len(unique)
    logger.info(f"[Merge] ✓ {len(unique)} unique records ({duplicates} duplicates dropped)")
    return ResultSet(records=tuple(unique))
