"""Tier 3: identifier pattern scan over the full page text."""

from __future__ import annotations

import logging
from typing import Optional

from bs4 import BeautifulSoup

from patent_engine.core.models import CandidateRecord, PageSnapshot
from patent_engine.core.strategies.base import ExtractionStrategy
from patent_engine.core.strategies.identifiers import IdentifierScanner

logger = logging.getLogger("patent_engine.extractor.pattern")


class PatternStrategy(ExtractionStrategy):
    """Each patent number found in the text becomes a minimal record."""

    name = "pattern"

    def __init__(self, scanner: Optional[IdentifierScanner] = None) -> None:
        self._scanner = scanner or IdentifierScanner()

    async def extract(self, snapshot: PageSnapshot) -> list[CandidateRecord]:
        text = snapshot.text
        if not text and snapshot.html:
            text = BeautifulSoup(snapshot.html, "html.parser").get_text("\n")
        records = self._scanner.scan(text, source_strategy=self.name)
        logger.info(f"[Pattern] Found {len(records)} identifiers in page text")
        return records
