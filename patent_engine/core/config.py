"""Engine configuration, read from the environment by callers."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").lower() == "true"


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for PatentSearchEngine."""
    # Browser
    headless: bool = True
    viewport_width: int = 1280
    viewport_height: int = 800
    user_agent: Optional[str] = None
    locale: str = "en-US"
    timezone_id: str = "America/Sao_Paulo"
    default_timeout_ms: int = 60_000
    stealth_mode: bool = True
    proxy: Optional[dict[str, str]] = None

    # AI collaborator (any OpenAI-compatible endpoint, e.g. Groq)
    openai_api_key: Optional[str] = field(default=None, repr=False)
    openai_base_url: Optional[str] = None
    ai_model: str = "gpt-4o-mini"
    ai_timeout: float = 30.0
    discovery_excerpt_chars: int = 6_000
    extraction_snippet_chars: int = 12_000

    # OCR collaborator
    ocr_enabled: bool = True
    ocr_languages: tuple[str, ...] = ("en", "pt")
    ocr_use_gpu: bool = False
    ocr_timeout: float = 60.0

    # Retry supervisor
    max_attempts: int = 3
    base_delay: float = 2.0
    attempt_timeout: Optional[float] = 300.0

    @property
    def ai_enabled(self) -> bool:
        return bool(self.openai_api_key)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build configuration from ``PATENT_ENGINE_*`` environment variables."""
        languages = os.getenv("PATENT_ENGINE_OCR_LANGUAGES", "en,pt")
        attempt_timeout = os.getenv("PATENT_ENGINE_ATTEMPT_TIMEOUT", "300")
        return cls(
            headless=_env_bool("PATENT_ENGINE_HEADLESS", True),
            viewport_width=int(os.getenv("PATENT_ENGINE_VIEWPORT_WIDTH", "1280")),
            viewport_height=int(os.getenv("PATENT_ENGINE_VIEWPORT_HEIGHT", "800")),
            user_agent=os.getenv("PATENT_ENGINE_USER_AGENT"),
            default_timeout_ms=int(os.getenv("PATENT_ENGINE_TIMEOUT_MS", "60000")),
            stealth_mode=_env_bool("PATENT_ENGINE_STEALTH", True),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_base_url=os.getenv("OPENAI_BASE_URL"),
            ai_model=os.getenv("PATENT_ENGINE_AI_MODEL", "gpt-4o-mini"),
            ai_timeout=float(os.getenv("PATENT_ENGINE_AI_TIMEOUT", "30")),
            ocr_enabled=_env_bool("PATENT_ENGINE_OCR", True),
            ocr_languages=tuple(lang.strip() for lang in languages.split(",") if lang.strip()),
            ocr_use_gpu=_env_bool("PATENT_ENGINE_OCR_GPU", False),
            ocr_timeout=float(os.getenv("PATENT_ENGINE_OCR_TIMEOUT", "60")),
            max_attempts=int(os.getenv("PATENT_ENGINE_MAX_ATTEMPTS", "3")),
            base_delay=float(os.getenv("PATENT_ENGINE_BASE_DELAY", "2")),
            attempt_timeout=float(attempt_timeout) if attempt_timeout else None,
        )
