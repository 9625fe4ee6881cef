"""
Record Extractor - runs the extraction strategies as an ordered chain.

Each strategy turns one PageSnapshot into candidate records. The chain stops
at the first strategy that yields at least one record; a strategy that raises
is logged and treated as empty, exactly like a strategy that found nothing.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Optional, Sequence

from patent_engine.core.errors import ExtractionEmpty
from patent_engine.core.merge import dedupe_records
from patent_engine.core.models import CandidateRecord, PageSnapshot

logger = logging.getLogger("patent_engine.extractor")


class ExtractionStrategy(ABC):
    """One tier of the extraction chain."""

    name: str = "strategy"

    @abstractmethod
    async def extract(self, snapshot: PageSnapshot) -> list[CandidateRecord]:
        """Return the records this strategy can read from ``snapshot``."""


class RecordExtractor:
    """
    Ordered strategy chain for one source.

    Typical order: structured DOM -> AI-assisted -> pattern -> OCR.
    """

    def __init__(self, strategies: Sequence[ExtractionStrategy], source_name: str = "") -> None:
        if not strategies:
            raise ValueError("RecordExtractor needs at least one strategy")
        self._strategies = list(strategies)
        self._source_name = source_name
        self.last_strategy: Optional[str] = None

    @property
    def strategies(self) -> list[ExtractionStrategy]:
        return list(self._strategies)

    async def extract(self, snapshot: PageSnapshot) -> list[CandidateRecord]:
        """
        Run the chain on one page.

        Raises:
            ExtractionEmpty: every strategy returned zero records
        """
        self.last_strategy = None
        for strategy in self._strategies:
            logger.info(f"[Extractor] → Trying {strategy.name} on {snapshot.url}")
            try:
                records = await strategy.extract(snapshot)
            except Exception as e:
                logger.warning(f"[Extractor] {strategy.name} error: {e}")
                continue

            records = dedupe_records(records)
            if records:
                self.last_strategy = strategy.name
                logger.info(f"[Extractor] ✓ {strategy.name} yielded {len(records)} records")
                return [self._stamp(record, strategy.name) for record in records]

            logger.info(f"[Extractor] {strategy.name} found nothing. Promoting to next strategy...")

        logger.warning(f"[Extractor] ✗ All strategies exhausted on {snapshot.url}")
        raise ExtractionEmpty(f"No records extracted from {snapshot.url}")

    def _stamp(self, record: CandidateRecord, strategy_name: str) -> CandidateRecord:
        return replace(
            record,
            source_strategy=record.source_strategy or strategy_name,
            source_name=record.source_name or self._source_name,
        )
