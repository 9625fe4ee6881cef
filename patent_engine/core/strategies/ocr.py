"""
Tier 4: OCR over a full-page screenshot.

Only runs when the page looks canvas- or script-rendered, since a page whose
text the DOM already exposes has nothing more to give to OCR.
"""

from __future__ import annotations

import logging
from typing import Optional

from bs4 import BeautifulSoup

from patent_engine.core.collaborators import OCRCollaborator
from patent_engine.core.errors import CollaboratorUnavailable
from patent_engine.core.models import CandidateRecord, PageSnapshot
from patent_engine.core.strategies.base import ExtractionStrategy
from patent_engine.core.strategies.identifiers import IdentifierScanner

logger = logging.getLogger("patent_engine.extractor.ocr")

RENDERED_CONTENT_TAGS = ["canvas", "embed", "object"]


def suspects_rendered_content(snapshot: PageSnapshot, min_text_chars: int = 200) -> bool:
    """True when the DOM hides what the user sees: canvases, embeds, or almost no text."""
    soup = BeautifulSoup(snapshot.html or "", "html.parser")
    if soup.find(RENDERED_CONTENT_TAGS) is not None:
        return True
    text = snapshot.text or soup.get_text(" ")
    return len(text.strip()) < min_text_chars


class OcrStrategy(ExtractionStrategy):
    """Recognizes the screenshot text, then applies the identifier scan."""

    name = "ocr"

    def __init__(
        self,
        ocr: OCRCollaborator,
        scanner: Optional[IdentifierScanner] = None,
        min_text_chars: int = 200,
    ) -> None:
        self._ocr = ocr
        self._scanner = scanner or IdentifierScanner()
        self._min_text_chars = min_text_chars

    async def extract(self, snapshot: PageSnapshot) -> list[CandidateRecord]:
        if not suspects_rendered_content(snapshot, self._min_text_chars):
            logger.info("[OCR] Page text is readable from the DOM; skipping OCR")
            return []

        image = await snapshot.load_screenshot()
        if not image:
            logger.info("[OCR] No screenshot available")
            return []

        try:
            text = await self._ocr.recognize(image)
        except CollaboratorUnavailable as e:
            logger.warning(f"[OCR] No OCR result: {e.message}")
            return []

        records = self._scanner.scan(text, source_strategy=self.name)
        logger.info(f"[OCR] Found {len(records)} identifiers in recognized text")
        return records
