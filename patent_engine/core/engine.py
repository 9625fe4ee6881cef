"""
PatentSearchEngine - the sole entry point of the extraction engine.

One ``search`` call runs the whole flow for one source:

    open session -> (discover login form -> authenticate -> back to search page)
    -> discover search form -> submit query
    -> for each page: extraction chain, then pagination
    -> merge into a ResultSet

The flow is wrapped by the retry supervisor, and every component instance is
created per call; nothing outlives a search.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence

from patent_engine.core.collaborators import AICollaborator, OCRCollaborator
from patent_engine.core.config import EngineConfig
from patent_engine.core.discovery import DiscoveryPatterns, FieldDiscoverer
from patent_engine.core.errors import (
    AuthenticationFailed,
    ExtractionEmpty,
    LocatorNotFound,
    SubmissionFailed,
)
from patent_engine.core.interaction import InteractionDriver
from patent_engine.core.merge import merge
from patent_engine.core.models import (
    AuthResult,
    CandidateRecord,
    NoNextPage,
    PageKind,
    ResultSet,
    SourceDescriptor,
    SubmissionResult,
)
from patent_engine.core.pagination import PaginationWalker
from patent_engine.core.retry import RetrySupervisor
from patent_engine.core.session import SessionController, SessionHandle
from patent_engine.core.strategies import (
    AiExtractionStrategy,
    ExtractionStrategy,
    OcrStrategy,
    PatternStrategy,
    RecordExtractor,
    StructuredDomStrategy,
)

logger = logging.getLogger("patent_engine")

MAX_QUERY_CHARS = 200


class PatentSearchEngine:
    """
    Resilient structured extraction of patent records from web sources.

    Example:
        engine = PatentSearchEngine.from_config(EngineConfig.from_env())
        result = await engine.search(patentscope_source(), "ibuprofen")
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        ai: Optional[AICollaborator] = None,
        ocr: Optional[OCRCollaborator] = None,
        controller_factory: Optional[Callable[[EngineConfig], SessionController]] = None,
        discovery_patterns: Optional[DiscoveryPatterns] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Args:
            config: Engine configuration, defaults if not provided
            ai: AI collaborator; None disables the AI-assisted tiers
            ocr: OCR collaborator; None disables the OCR tier
            controller_factory: Builds a fresh SessionController per search
            discovery_patterns: Attribute substrings for heuristic field discovery
            sleep: Awaitable used for retry backoff
        """
        self.config = config or EngineConfig()
        self._ai = ai
        self._ocr = ocr
        self._controller_factory = controller_factory or SessionController
        self._patterns = discovery_patterns or DiscoveryPatterns()
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: EngineConfig) -> "PatentSearchEngine":
        """Engine with collaborators built from ``config``."""
        return cls(
            config=config,
            ai=AICollaborator.from_config(config),
            ocr=OCRCollaborator.from_config(config),
        )

    def build_extractor(self, descriptor: SourceDescriptor) -> RecordExtractor:
        """Strategy chain for one source; tiers without a collaborator are left out."""
        strategies: list[ExtractionStrategy] = [StructuredDomStrategy()]
        if self._ai is not None:
            strategies.append(AiExtractionStrategy(self._ai, self.config.extraction_snippet_chars))
        strategies.append(PatternStrategy())
        if self._ocr is not None:
            strategies.append(OcrStrategy(self._ocr))
        return RecordExtractor(strategies, source_name=descriptor.name)

    async def search(self, descriptor: SourceDescriptor, query: str) -> ResultSet:
        """
        Search one source for ``query``.

        Never raises: failures come back as a ResultSet holding one ERROR
        sentinel record, and an empty search as one NO_RESULTS record.
        """
        logger.info(f"[Engine] ═══ Searching {descriptor.name} for: '{query}' ═══")

        if not isinstance(query, str) or not query.strip():
            return ResultSet.error("search query must be a non-empty string", descriptor.name)
        if len(query.strip()) > MAX_QUERY_CHARS:
            return ResultSet.error(
                f"search query must be at most {MAX_QUERY_CHARS} characters",
                descriptor.name,
            )
        if descriptor.requires_auth and descriptor.credentials is None:
            logger.error(f"[Engine] ✗ {descriptor.name} requires login but no credentials were supplied")
            return ResultSet.error(
                f"authentication credentials not configured for {descriptor.name}",
                descriptor.name,
            )

        supervisor = RetrySupervisor(
            attempt_timeout=self.config.attempt_timeout,
            source_name=descriptor.name,
            sleep=self._sleep,
        )
        try:
            result = await supervisor.run(
                f"search:{descriptor.name}",
                lambda: self._search_once(descriptor, query.strip()),
                max_attempts=self.config.max_attempts,
                base_delay=self.config.base_delay,
            )
        except Exception as e:
            logger.exception(f"[Engine] Unexpected failure searching {descriptor.name}: {e}")
            result = ResultSet.error(f"{type(e).__name__}: {e}", descriptor.name)

        logger.info(f"[Engine] {descriptor.name}: {result.status.value} with {result.count} records")
        return result

    async def search_many(
        self,
        descriptors: Sequence[SourceDescriptor],
        query: str,
    ) -> dict[str, ResultSet]:
        """Search several sources concurrently, one session each. Keyed by source name."""
        results = await asyncio.gather(*(self.search(descriptor, query) for descriptor in descriptors))
        return {descriptor.name: result for descriptor, result in zip(descriptors, results)}

    async def _search_once(self, descriptor: SourceDescriptor, query: str) -> ResultSet:
        controller = self._controller_factory(self.config)
        discoverer = FieldDiscoverer(
            ai=self._ai,
            patterns=self._patterns,
            fallback_locators=descriptor.fallback_locators,
            excerpt_chars=self.config.discovery_excerpt_chars,
        )
        driver = InteractionDriver(controller, descriptor.auth_failure_markers)
        walker = PaginationWalker(controller, max_pages=descriptor.max_pages)
        extractor = self.build_extractor(descriptor)

        async with controller.session(descriptor) as handle:
            await controller.navigate(handle, descriptor.entry_url)

            if descriptor.requires_auth:
                await self._authenticate(controller, discoverer, driver, handle)
                # Being logged in does not mean the search form is on screen.
                await controller.navigate(handle, descriptor.search_url)

            snapshot = await controller.snapshot(handle)
            locators = await discoverer.discover(snapshot, PageKind.SEARCH)
            submission = await driver.submit_query(handle, locators, query)
            if submission == SubmissionResult.FIELD_NOT_FOUND:
                raise LocatorNotFound(f"query field not found on {descriptor.name}")
            if submission == SubmissionResult.SUBMIT_NOT_FOUND:
                raise SubmissionFailed(f"submit control not found on {descriptor.name}")

            pages = await self._collect_pages(controller, walker, extractor, handle)

        return merge(pages, descriptor.name)

    async def _authenticate(
        self,
        controller: SessionController,
        discoverer: FieldDiscoverer,
        driver: InteractionDriver,
        handle: SessionHandle,
    ) -> None:
        descriptor = handle.descriptor
        snapshot = await controller.snapshot(handle)
        locators = await discoverer.discover(snapshot, PageKind.LOGIN)
        outcome = await driver.authenticate(handle, locators, descriptor.credentials)
        if outcome == AuthResult.FAILED_CREDENTIALS:
            raise AuthenticationFailed(f"authentication failed: {descriptor.name} rejected the credentials")
        if outcome == AuthResult.SKIPPED:
            logger.info(f"[Engine] No login form on {descriptor.name}; continuing without authentication")

    async def _collect_pages(
        self,
        controller: SessionController,
        walker: PaginationWalker,
        extractor: RecordExtractor,
        handle: SessionHandle,
    ) -> list[list[CandidateRecord]]:
        pages: list[list[CandidateRecord]] = []
        while True:
            page_number = walker.current_page
            snapshot = await controller.snapshot(handle)
            try:
                records = await extractor.extract(snapshot)
            except ExtractionEmpty:
                if page_number == 1:
                    logger.info("[Engine] No results on the first page; stopping")
                    break
                records = []
            pages.append(records)
            logger.info(f"[Engine] Page {page_number}: {len(records)} records")

            outcome = await walker.advance(handle)
            if isinstance(outcome, NoNextPage):
                logger.info(f"[Engine] Pagination finished: {outcome.reason}")
                break
        return pages
