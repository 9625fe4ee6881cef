"""Core module containing the patent extraction engine."""

from patent_engine.core.config import EngineConfig
from patent_engine.core.engine import PatentSearchEngine
from patent_engine.core.models import (
    CandidateRecord,
    Credentials,
    LocatorSet,
    PageKind,
    ResultSet,
    ResultStatus,
    SourceDescriptor,
)
from patent_engine.core.sources import inpi_source, patentscope_source

__all__ = [
    "CandidateRecord",
    "Credentials",
    "EngineConfig",
    "LocatorSet",
    "PageKind",
    "PatentSearchEngine",
    "ResultSet",
    "ResultStatus",
    "SourceDescriptor",
    "inpi_source",
    "patentscope_source",
]
