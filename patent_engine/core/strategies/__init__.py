"""
Extraction strategy chain, cheapest and most precise first.

Tier 1 (structured_dom): known result-row shapes
Tier 2 (ai): AI collaborator over a trimmed HTML fragment
Tier 3 (pattern): identifier regex over the page text
Tier 4 (ocr): identifier regex over OCR text of a screenshot
"""

from patent_engine.core.strategies.base import ExtractionStrategy, RecordExtractor
from patent_engine.core.strategies.dom import ResultShape, StructuredDomStrategy
from patent_engine.core.strategies.ai import AiExtractionStrategy
from patent_engine.core.strategies.pattern import PatternStrategy
from patent_engine.core.strategies.ocr import OcrStrategy, suspects_rendered_content
from patent_engine.core.strategies.identifiers import IdentifierScanner

__all__ = [
    "ExtractionStrategy",
    "RecordExtractor",
    "ResultShape",
    "StructuredDomStrategy",
    "AiExtractionStrategy",
    "PatternStrategy",
    "OcrStrategy",
    "suspects_rendered_content",
    "IdentifierScanner",
]
