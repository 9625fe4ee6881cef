"""
Pagination Walker - follows "next page" controls up to a hard page bound.

Absence of every known next control is the normal end of a result list, not
an error. The bound protects against cyclic or endless pagination.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Union

from playwright.async_api import ElementHandle, Error as PlaywrightError

from patent_engine.core.models import NoNextPage, PageReady
from patent_engine.core.session import SessionController, SessionHandle

logger = logging.getLogger("patent_engine.pagination")


class PaginationWalker:
    """
    Walks result pages for one search.

    The walker counts the first results page as page 1, so with
    ``max_pages=5`` at most four ``advance`` calls succeed.
    """

    NEXT_PAGE_SELECTORS = [
        'a[id*="nextPageLink"]',
        'a[title*="Next"]',
        '.ui-paginator-next',
        'input[value*="Next"]',
        'a[rel="next"]',
        'a[title*="Próxima"]',
        'a:has-text("Próxima")',
        'a:has-text("Next »")',
    ]

    def __init__(
        self,
        controller: SessionController,
        max_pages: int = 5,
        selectors: Optional[Sequence[str]] = None,
    ) -> None:
        self._controller = controller
        self._max_pages = max_pages
        self._selectors = list(selectors or self.NEXT_PAGE_SELECTORS)
        self._current_page = 1

    @property
    def current_page(self) -> int:
        return self._current_page

    async def _find_next(self, handle: SessionHandle) -> Optional[ElementHandle]:
        page = handle.require_page()
        for selector in self._selectors:
            try:
                element = await page.query_selector(selector)
            except PlaywrightError as e:
                logger.debug(f"[Pagination] Selector '{selector}' failed: {e}")
                continue
            if element is None:
                continue
            if await self._is_disabled(element):
                logger.debug(f"[Pagination] Next control '{selector}' is disabled")
                continue
            return element
        return None

    @staticmethod
    async def _is_disabled(element: ElementHandle) -> bool:
        css_class = (await element.get_attribute("class")) or ""
        if "disabled" in css_class.lower():
            return True
        if (await element.get_attribute("aria-disabled")) == "true":
            return True
        return (await element.get_attribute("disabled")) is not None

    async def has_next(self, handle: SessionHandle) -> bool:
        """Whether any known next-page control is present and enabled."""
        return await self._find_next(handle) is not None

    async def advance(self, handle: SessionHandle) -> Union[PageReady, NoNextPage]:
        """Move to the next results page, unless the bound or the list end is reached."""
        if self._current_page >= self._max_pages:
            logger.info(f"[Pagination] Page limit reached ({self._max_pages})")
            return NoNextPage(reason=f"page limit {self._max_pages} reached")

        element = await self._find_next(handle)
        if element is None:
            logger.info("[Pagination] No next control found; probably the last page")
            return NoNextPage(reason="no next page control")

        try:
            await element.click(timeout=handle.descriptor.step_timeout_ms)
        except PlaywrightError as e:
            logger.warning(f"[Pagination] Failed to click next control: {e}")
            return NoNextPage(reason=f"next control not clickable: {e}")

        await self._controller.wait_for_settle(handle)
        self._current_page += 1
        page = handle.require_page()
        logger.info(f"[Pagination] ✓ Moved to page {self._current_page}")
        return PageReady(url=page.url, page_number=self._current_page)
