"""
Tier 2: AI-assisted extraction.

A size-bounded, cleaned HTML fragment goes to the AI collaborator with a JSON
array output contract. The answer is untrusted input: it is validated for
shape, and records whose number does not appear on the page are dropped.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from bs4 import BeautifulSoup

from patent_engine.core.collaborators import AICollaborator
from patent_engine.core.errors import CollaboratorUnavailable
from patent_engine.core.models import CandidateRecord, PageSnapshot, normalize_key
from patent_engine.core.strategies.base import ExtractionStrategy

logger = logging.getLogger("patent_engine.extractor.ai")

OUTPUT_KEYS = {
    "publicationNumber": "natural_key",
    "title": "title",
    "abstract": "abstract",
    "applicant": "applicant",
    "inventor": "inventor",
    "date": "date",
}

# Containers that usually hold the result list, most specific first.
RESULT_CONTAINERS = (
    "table.resultTable",
    "#resultListForm",
    "main",
    "body",
)

_KEPT_ATTRIBUTES = ("class", "href", "title")


class AiExtractionStrategy(ExtractionStrategy):
    """Asks the AI collaborator to read result records out of trimmed markup."""

    name = "ai"

    def __init__(self, ai: AICollaborator, max_snippet_chars: int = 12_000) -> None:
        """
        Args:
            ai: AI collaborator used for the round trip
            max_snippet_chars: Upper bound on markup sent in the prompt
        """
        self._ai = ai
        self._max_chars = max_snippet_chars

    async def extract(self, snapshot: PageSnapshot) -> list[CandidateRecord]:
        snippet = self.trim_html(snapshot.html)
        if not snippet:
            logger.info("[AI] Nothing to send; page markup is empty")
            return []

        prompt = f"""Extract every patent search result from this HTML fragment.

HTML:
{snippet}

Return ONLY a JSON array. Each element is an object with these keys:
{json.dumps(list(OUTPUT_KEYS))}
"publicationNumber" is required (publication or application number exactly as shown).
Use an empty string for any other field that is not present. Return [] if there are no results."""

        try:
            answer = await self._ai.complete_json(prompt, max_tokens=4000)
            records = self.validate(answer, page_text=snapshot.text or self._text_of(snapshot.html))
        except CollaboratorUnavailable as e:
            logger.warning(f"[AI] Collaborator unavailable: {e.message}")
            return []

        logger.info(f"[AI] Accepted {len(records)} records from AI answer")
        return records

    def trim_html(self, html: str) -> str:
        """Result container markup without scripts, styles or noisy attributes."""
        soup = BeautifulSoup(html or "", "html.parser")
        for junk in soup.find_all(["script", "style", "svg", "noscript", "head", "iframe", "img", "link", "meta"]):
            junk.decompose()

        container = None
        for selector in RESULT_CONTAINERS:
            container = soup.select_one(selector)
            if container is not None:
                break
        if container is None:
            container = soup

        for element in [container, *container.find_all(True)]:
            element.attrs = {key: value for key, value in element.attrs.items() if key in _KEPT_ATTRIBUTES}
        markup = re.sub(r"\s+", " ", str(container)).strip()
        return markup[: self._max_chars]

    @staticmethod
    def _text_of(html: str) -> str:
        return BeautifulSoup(html or "", "html.parser").get_text(" ")

    def validate(self, answer: Any, page_text: str = "") -> list[CandidateRecord]:
        """
        Check the AI answer against the output contract.

        Raises:
            CollaboratorUnavailable: the answer is not a JSON array
        """
        if not isinstance(answer, list):
            raise CollaboratorUnavailable("AI extraction answer is not a JSON array")

        haystack = normalize_key(page_text) if page_text else ""
        records: list[CandidateRecord] = []
        for item in answer:
            record = self._to_record(item)
            if record is None:
                continue
            if haystack and record.natural_key not in haystack:
                logger.debug(f"[AI] Dropping {record.natural_key}: not present on the page")
                continue
            records.append(record)
        return records

    def _to_record(self, item: Any) -> Optional[CandidateRecord]:
        if not isinstance(item, dict):
            return None
        key = item.get("publicationNumber")
        if not isinstance(key, str) or not key.strip():
            return None
        values = {
            field_name: item.get(json_key) or ""
            for json_key, field_name in OUTPUT_KEYS.items()
            if field_name != "natural_key"
        }
        return CandidateRecord.build(key, source_strategy=self.name, **values)
