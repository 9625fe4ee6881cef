"""Shared fixtures for the patent engine tests."""

import pytest

from patent_engine.core.config import EngineConfig
from patent_engine.core.models import SourceDescriptor

from fakes import SEARCH_URL


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(max_attempts=3, base_delay=0.0, attempt_timeout=None, ocr_enabled=False)


@pytest.fixture
def open_descriptor() -> SourceDescriptor:
    return SourceDescriptor(name="FakeSource", search_url=SEARCH_URL, step_timeout=1.0)
