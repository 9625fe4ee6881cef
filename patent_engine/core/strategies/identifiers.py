"""Patent identifier scanning shared by the pattern and OCR tiers."""

from __future__ import annotations

import re
from typing import Iterable, Optional, Sequence

from patent_engine.core.merge import dedupe_records
from patent_engine.core.models import CandidateRecord, clean_text, normalize_key

# Authority prefix followed by a numeric sequence. The INPI formats go first
# so "BR 10 2019 012345-6" is not cut short by the generic form.
DEFAULT_IDENTIFIER_PATTERNS: tuple[str, ...] = (
    r"\bBR\s?\d{2}\s?\d{4}\s?\d{6}(?:-\d)?",
    r"\b(?:PI|MU)\s?\d{7}(?:-\d)?",
    r"\b(?:WO|US|EP|CN|JP|KR|BR|CA|AU|IN)\s?/?\s?\d{4,}(?:[/\s]\d{5,})?",
)

_TITLE_TRIM = " \t-–—|:;,."
MIN_TITLE_CHARS = 8
MAX_TITLE_CHARS = 300


class IdentifierScanner:
    """Finds patent numbers in free text and turns them into minimal records."""

    def __init__(self, patterns: Optional[Sequence[str]] = None) -> None:
        self._regex = re.compile("|".join(f"(?:{p})" for p in (patterns or DEFAULT_IDENTIFIER_PATTERNS)))

    def find_keys(self, text: str) -> list[str]:
        """Normalized identifiers in order of appearance, without repeats."""
        seen: dict[str, None] = {}
        for match in self._regex.finditer(text or ""):
            seen.setdefault(normalize_key(match.group(0)), None)
        return list(seen)

    def first_key(self, text: str) -> Optional[str]:
        match = self._regex.search(text or "")
        return normalize_key(match.group(0)) if match else None

    def scan(self, text: str, source_strategy: str) -> list[CandidateRecord]:
        """One record per identifier, titled from the text around it."""
        lines = [line.strip() for line in (text or "").splitlines()]
        records: list[CandidateRecord] = []
        for index, line in enumerate(lines):
            for match in self._regex.finditer(line):
                title = self._title_near(lines, index, match.group(0))
                records.append(CandidateRecord.build(
                    match.group(0),
                    title=title,
                    source_strategy=source_strategy,
                ))
        return dedupe_records(records)

    def _title_near(self, lines: list[str], index: int, identifier: str) -> str:
        remainder = self._regex.sub(" ", lines[index].replace(identifier, " "))
        remainder = clean_text(remainder).strip(_TITLE_TRIM)
        if len(remainder) >= MIN_TITLE_CHARS:
            return remainder[:MAX_TITLE_CHARS]
        for candidate in self._following(lines, index):
            if self._regex.search(candidate):
                break
            candidate = clean_text(candidate).strip(_TITLE_TRIM)
            if len(candidate) >= MIN_TITLE_CHARS:
                return candidate[:MAX_TITLE_CHARS]
        return ""

    @staticmethod
    def _following(lines: list[str], index: int, window: int = 2) -> Iterable[str]:
        return (line for line in lines[index + 1: index + 1 + window] if line)
