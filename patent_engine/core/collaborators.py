"""
External collaborators: the AI text-completion endpoint and the OCR reader.

Both are unreliable by nature. Any failure, timeout or malformed answer is
raised as CollaboratorUnavailable so callers can fall back uniformly.
"""

from __future__ import annotations

import asyncio
import io
import json
import logging
import re
import threading
from typing import Any, Optional, Sequence

from openai import AsyncOpenAI
from PIL import Image, UnidentifiedImageError

from patent_engine.core.config import EngineConfig
from patent_engine.core.errors import CollaboratorUnavailable

logger = logging.getLogger("patent_engine.collaborators")

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class AICollaborator:
    """
    Thin wrapper around an OpenAI-compatible chat completion endpoint.

    Pointing ``base_url`` at Groq (https://api.groq.com/openai/v1) works the
    same way as OpenAI itself.
    """

    SYSTEM_PROMPT = (
        "You are an expert at analyzing HTML and extracting structured data. "
        "You ONLY return valid JSON, never markdown or explanations."
    )

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4o-mini",
        timeout: float = 30.0,
    ) -> None:
        """
        Args:
            client: AsyncOpenAI client (or any object with the same interface)
            model: Chat model used for every prompt
            timeout: Upper bound for one round trip, in seconds
        """
        self._client = client
        self._model = model
        self._timeout = timeout

    @classmethod
    def from_config(cls, config: EngineConfig) -> Optional["AICollaborator"]:
        """Build a collaborator, or None when no API key is configured."""
        if not config.ai_enabled:
            logger.info("[AI] No API key configured; AI-assisted tiers disabled")
            return None
        client = AsyncOpenAI(
            api_key=config.openai_api_key,
            base_url=config.openai_base_url,
            timeout=config.ai_timeout,
        )
        return cls(client, model=config.ai_model, timeout=config.ai_timeout)

    @property
    def model(self) -> str:
        return self._model

    async def complete(self, prompt: str, max_tokens: int = 2000) -> str:
        """Send one prompt and return the raw completion text."""
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._model,
                    messages=[
                        {"role": "system", "content": self.SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                    temperature=0,
                    max_tokens=max_tokens,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise CollaboratorUnavailable(f"AI call timed out after {self._timeout}s") from e
        except Exception as e:
            raise CollaboratorUnavailable(f"AI call failed: {e}") from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError) as e:
            raise CollaboratorUnavailable("AI response has no message content") from e
        if not content:
            raise CollaboratorUnavailable("AI response was empty")
        return content

    async def complete_json(self, prompt: str, max_tokens: int = 2000) -> Any:
        """Send one prompt and parse the answer as JSON."""
        content = await self.complete(prompt, max_tokens=max_tokens)
        return parse_json_response(content)


def parse_json_response(content: str) -> Any:
    """Parse a model answer, tolerating a surrounding markdown code fence."""
    stripped = _CODE_FENCE.sub("", content.strip())
    try:
        return json.loads(stripped)
    except (TypeError, ValueError) as e:
        raise CollaboratorUnavailable(f"AI response is not valid JSON: {e}") from e


class OCRCollaborator:
    """
    Optical character recognition over page screenshots, backed by EasyOCR.

    The reader is heavy to build, so it is created lazily on first use and
    recognition runs in a worker thread to keep the event loop free.
    """

    # Tall full-page captures are cropped; results live near the top anyway.
    MAX_IMAGE_HEIGHT = 12_000

    def __init__(
        self,
        languages: Sequence[str] = ("en", "pt"),
        use_gpu: bool = False,
        timeout: float = 60.0,
        reader: Any = None,
    ) -> None:
        self._languages = list(languages)
        self._use_gpu = use_gpu
        self._timeout = timeout
        self._reader = reader
        self._reader_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: EngineConfig) -> Optional["OCRCollaborator"]:
        if not config.ocr_enabled:
            return None
        return cls(
            languages=config.ocr_languages,
            use_gpu=config.ocr_use_gpu,
            timeout=config.ocr_timeout,
        )

    def _get_reader(self) -> Any:
        # Recognition runs in executor threads; build the reader once.
        with self._reader_lock:
            if self._reader is None:
                try:
                    import easyocr
                    self._reader = easyocr.Reader(self._languages, gpu=self._use_gpu, verbose=False)
                    logger.info(f"[OCR] EasyOCR initialized (languages={self._languages}, GPU={self._use_gpu})")
                except Exception as e:
                    raise CollaboratorUnavailable(f"OCR engine could not be initialized: {e}") from e
            return self._reader

    def _prepare_image(self, image: bytes) -> bytes:
        try:
            with Image.open(io.BytesIO(image)) as img:
                img = img.convert("RGB")
                if img.height > self.MAX_IMAGE_HEIGHT:
                    img = img.crop((0, 0, img.width, self.MAX_IMAGE_HEIGHT))
                buffer = io.BytesIO()
                img.save(buffer, format="PNG")
                return buffer.getvalue()
        except (UnidentifiedImageError, OSError) as e:
            raise CollaboratorUnavailable(f"Screenshot is not a readable image: {e}") from e

    def _run_ocr(self, image: bytes) -> str:
        reader = self._get_reader()
        lines = reader.readtext(self._prepare_image(image), detail=0, paragraph=False)
        return "\n".join(str(line).strip() for line in lines if str(line).strip())

    async def recognize(self, image: bytes) -> str:
        """Return the plain text recognized in ``image``."""
        if not image:
            raise CollaboratorUnavailable("No image to recognize")

        loop = asyncio.get_running_loop()
        try:
            text = await asyncio.wait_for(
                loop.run_in_executor(None, self._run_ocr, image),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise CollaboratorUnavailable(f"OCR timed out after {self._timeout}s") from e
        except CollaboratorUnavailable:
            raise
        except Exception as e:
            raise CollaboratorUnavailable(f"OCR failed: {e}") from e

        logger.info(f"[OCR] Recognized {len(text)} characters")
        return text
