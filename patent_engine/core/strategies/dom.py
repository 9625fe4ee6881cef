"""
Tier 1: structured-DOM extraction.

Matches the page against known result-row and result-card shapes and reads
fields by semantic class name, then by table column position.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Sequence

from bs4 import BeautifulSoup, Tag

from patent_engine.core.models import CandidateRecord, PageSnapshot, clean_text
from patent_engine.core.strategies.base import ExtractionStrategy
from patent_engine.core.strategies.identifiers import IdentifierScanner

logger = logging.getLogger("patent_engine.extractor.dom")

RECORD_FIELDS = ("title", "abstract", "applicant", "inventor", "date")

# Class-name tokens that identify each field inside a result row.
SEMANTIC_CLASS_HINTS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "natural_key": ("pubnumber", "publication-number", "application-number", "patent-number", "docnumber"),
    "title": ("title", "titulo"),
    "abstract": ("abstract", "summary", "resumo"),
    "applicant": ("applicant", "assignee", "depositante", "titular"),
    "inventor": ("inventor", "inventors", "inventores"),
    "date": ("date", "pubdate", "filing"),
})


@dataclass(frozen=True)
class ResultShape:
    """
    A known layout of one search result.

    Args:
        name: Label used in logs
        row_selector: CSS selector matching one element per result
        key_selector: Element holding the patent number; rows without it are skipped
        field_selectors: Explicit CSS selectors per record field
        columns: Table cell index per record field, for rows without class hints
    """
    name: str
    row_selector: str
    key_selector: Optional[str] = None
    field_selectors: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    columns: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))


DEFAULT_SHAPES: tuple[ResultShape, ...] = (
    ResultShape(
        name="patentscope_card",
        row_selector=".ps-patent-result",
        field_selectors=MappingProxyType({
            "title": ".ps-patent-result--title--title",
            "abstract": ".ps-patent-result--abstract",
        }),
    ),
    ResultShape(
        name="patentscope_table",
        row_selector="table.resultTable tr",
    ),
    ResultShape(
        name="inpi_result_rows",
        row_selector="tr",
        key_selector='a[href*="Action=detail"]',
        columns=MappingProxyType({"date": 1, "title": 2}),
    ),
    ResultShape(
        name="result_cards",
        row_selector="article, li.result, div.result, div.result-item, div.search-result",
    ),
)


class StructuredDomStrategy(ExtractionStrategy):
    """Reads result rows whose layout matches one of the known shapes."""

    name = "structured_dom"

    def __init__(
        self,
        shapes: Optional[Sequence[ResultShape]] = None,
        scanner: Optional[IdentifierScanner] = None,
    ) -> None:
        self._shapes = list(shapes or DEFAULT_SHAPES)
        self._scanner = scanner or IdentifierScanner()

    async def extract(self, snapshot: PageSnapshot) -> list[CandidateRecord]:
        return self.extract_html(snapshot.html)

    def extract_html(self, html: str) -> list[CandidateRecord]:
        soup = BeautifulSoup(html or "", "html.parser")
        for shape in self._shapes:
            rows = soup.select(shape.row_selector)
            if not rows:
                continue
            records = [record for record in (self._read_row(row, shape) for row in rows) if record]
            if records:
                logger.info(f"[DOM] Shape '{shape.name}' matched {len(records)} rows")
                return records
        return []

    def _read_row(self, row: Tag, shape: ResultShape) -> Optional[CandidateRecord]:
        key = self._read_key(row, shape)
        if not key:
            return None

        values: dict[str, str] = {}
        for field_name in RECORD_FIELDS:
            values[field_name] = (
                self._by_selector(row, shape.field_selectors.get(field_name))
                or self._by_class_hint(row, field_name)
                or self._by_column(row, shape.columns.get(field_name))
            )

        if not values["title"]:
            values["title"] = self._first_line_without_key(row)

        return CandidateRecord.build(key, source_strategy=self.name, **values)

    def _read_key(self, row: Tag, shape: ResultShape) -> Optional[str]:
        if shape.key_selector:
            element = row.select_one(shape.key_selector)
            if element is None:
                return None
            text = clean_text(element.get_text(" "))
            return self._scanner.first_key(text) or text or None

        hinted = self._by_class_hint(row, "natural_key")
        if hinted:
            return self._scanner.first_key(hinted) or hinted
        return self._scanner.first_key(clean_text(row.get_text(" ")))

    @staticmethod
    def _by_selector(row: Tag, selector: Optional[str]) -> str:
        if not selector:
            return ""
        element = row.select_one(selector)
        return clean_text(element.get_text(" ")) if element else ""

    @staticmethod
    def _by_class_hint(row: Tag, field_name: str) -> str:
        hints = SEMANTIC_CLASS_HINTS[field_name]
        for element in row.find_all(class_=True):
            classes = element.get("class") or []
            tokens = {token for css in classes for token in re.split(r"[^a-z0-9]+", css.lower()) if token}
            tokens.update(css.lower() for css in classes)
            if tokens.intersection(hints):
                text = clean_text(element.get_text(" "))
                if text:
                    return text
        return ""

    @staticmethod
    def _by_column(row: Tag, index: Optional[int]) -> str:
        if index is None:
            return ""
        cells = row.find_all("td", recursive=False) or row.find_all("td")
        if index >= len(cells):
            return ""
        return clean_text(cells[index].get_text(" "))

    def _first_line_without_key(self, row: Tag) -> str:
        for line in row.get_text("\n").splitlines():
            line = clean_text(line)
            if len(line) >= 8 and not self._scanner.first_key(line):
                return line[:300]
        return ""
