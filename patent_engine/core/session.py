"""
Session Controller - one browsing session per search.

Owns the Playwright browser, its context and the single page used by a
search. The browser is the most expensive resource in the engine, so it is
acquired through ``session()`` and released exactly once on every exit path.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Optional

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeout,
    Error as PlaywrightError
)

from patent_engine.core.config import EngineConfig
from patent_engine.core.errors import NavigationTimeout, SessionClosedError
from patent_engine.core.models import PageReady, PageSnapshot, SourceDescriptor

logger = logging.getLogger("patent_engine.session")


@dataclass
class SessionHandle:
    """Live browsing session. Only valid until ``SessionController.close``."""
    descriptor: SourceDescriptor
    page: Page
    playwright: Optional[Playwright] = None
    browser: Optional[Browser] = None
    context: Optional[BrowserContext] = None
    pages_loaded: int = 0
    closed: bool = False

    def require_page(self) -> Page:
        if self.closed:
            raise SessionClosedError(f"Session for {self.descriptor.name} is already closed")
        return self.page


class SessionController:
    """
    Opens, drives and tears down the browser for one search.

    A controller instance is never shared between concurrent searches.
    """

    STEALTH_HEADERS = {
        "Accept-Language": "en-US,en;q=0.9,pt-BR;q=0.8",
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
        "Upgrade-Insecure-Requests": "1",
    }

    DEFAULT_USER_AGENT = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    LAUNCH_ARGS = [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-dev-shm-usage",
        "--disable-gpu",
    ]

    STEALTH_JS = """
    Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
    Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en', 'pt-BR'] });
    window.chrome = { runtime: {} };
    """

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or EngineConfig()

    async def open(self, descriptor: SourceDescriptor) -> SessionHandle:
        """Launch a browser and return a handle with one blank page."""
        logger.info(f"[Session] Opening browser for {descriptor.name}")
        playwright = await async_playwright().start()
        handle: Optional[SessionHandle] = None
        try:
            launch_options: dict[str, Any] = {
                "headless": self.config.headless,
                "args": list(self.LAUNCH_ARGS),
            }
            if self.config.proxy:
                launch_options["proxy"] = self.config.proxy
            browser = await playwright.chromium.launch(**launch_options)

            context_options: dict[str, Any] = {
                "viewport": {
                    "width": self.config.viewport_width,
                    "height": self.config.viewport_height
                },
                "locale": self.config.locale,
                "timezone_id": self.config.timezone_id,
            }
            if self.config.stealth_mode:
                context_options["user_agent"] = self.config.user_agent or self.DEFAULT_USER_AGENT
                context_options["extra_http_headers"] = self.STEALTH_HEADERS
            context = await browser.new_context(**context_options)
            if self.config.stealth_mode:
                await context.add_init_script(self.STEALTH_JS)

            page = await context.new_page()
            page.set_default_timeout(descriptor.step_timeout_ms)
            handle = SessionHandle(
                descriptor=descriptor,
                page=page,
                playwright=playwright,
                browser=browser,
                context=context,
            )
        finally:
            if handle is None:
                await playwright.stop()

        logger.info("[Session] ✓ Browser ready")
        return handle

    async def navigate(self, handle: SessionHandle, url: str) -> PageReady:
        """
        Load ``url`` and wait until its content is ready.

        Raises:
            NavigationTimeout: the page did not load within the step timeout
        """
        page = handle.require_page()
        descriptor = handle.descriptor
        logger.info(f"[Session] Navigating to: {url}")

        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=descriptor.step_timeout_ms)
        except PlaywrightTimeout as e:
            raise NavigationTimeout(f"Timed out loading {url}: {e}") from e
        except PlaywrightError as e:
            raise NavigationTimeout(f"Navigation to {url} failed: {e}") from e

        if descriptor.settle_delay > 0:
            await asyncio.sleep(descriptor.settle_delay)

        handle.pages_loaded += 1
        logger.info(f"[Session] ✓ Navigation complete: {page.url}")
        return PageReady(url=page.url, page_number=1)

    async def wait_for_settle(self, handle: SessionHandle, timeout: Optional[float] = None) -> bool:
        """
        Wait for the page to settle after a click.

        Script-driven result pages often outlast navigation events, so a
        timeout here only means "continue and let extraction decide".
        """
        page = handle.require_page()
        timeout_s = timeout if timeout is not None else handle.descriptor.step_timeout
        settled = True
        try:
            await page.wait_for_load_state("domcontentloaded", timeout=int(timeout_s * 1000))
        except PlaywrightTimeout:
            logger.warning(f"[Session] Content did not settle within {timeout_s:.0f}s; continuing")
            settled = False
        if handle.descriptor.settle_delay > 0:
            await asyncio.sleep(handle.descriptor.settle_delay)
        return settled

    async def snapshot(self, handle: SessionHandle) -> PageSnapshot:
        """Capture the current page as markup plus visible text."""
        page = handle.require_page()
        html = await page.content()
        try:
            text = await page.inner_text("body", timeout=handle.descriptor.step_timeout_ms)
        except PlaywrightError as e:
            logger.debug(f"[Session] Could not read body text: {e}")
            text = ""

        async def capture() -> bytes:
            return await self.screenshot(handle)

        return PageSnapshot(url=page.url, html=html, text=text, screenshot_loader=capture)

    async def screenshot(self, handle: SessionHandle) -> bytes:
        page = handle.require_page()
        return await page.screenshot(full_page=True, type="png")

    async def close(self, handle: Optional[SessionHandle]) -> None:
        """Release the browser. Safe to call repeatedly; never raises."""
        if handle is None or handle.closed:
            return
        handle.closed = True
        logger.info(f"[Session] Closing browser for {handle.descriptor.name}...")

        for label, closer in (
            ("context", handle.context.close if handle.context else None),
            ("browser", handle.browser.close if handle.browser else None),
            ("playwright", handle.playwright.stop if handle.playwright else None),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except Exception as e:
                logger.error(f"[Session] Failed to close {label}: {e}")

        logger.info("[Session] ✓ Browser closed")

    @asynccontextmanager
    async def session(self, descriptor: SourceDescriptor) -> AsyncGenerator[SessionHandle, None]:
        """Scoped session: closed on success, error, timeout and cancellation."""
        handle = await self.open(descriptor)
        try:
            yield handle
        finally:
            await asyncio.shield(self.close(handle))
