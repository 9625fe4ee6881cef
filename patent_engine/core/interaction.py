"""
Interaction Driver - logs in and submits the search form.

Both operations type into the discovered fields, trigger the submit control
and wait for the page to settle. A settle timeout is not a failure: result
pages rendered by scripts can legitimately outlast navigation events.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from playwright.async_api import Locator, Page, Error as PlaywrightError

from patent_engine.core.errors import LocatorNotFound
from patent_engine.core.models import AuthResult, Credentials, LocatorSet, SubmissionResult
from patent_engine.core.session import SessionController, SessionHandle

logger = logging.getLogger("patent_engine.interaction")

# Phrases that login pages show when credentials are rejected.
DEFAULT_AUTH_FAILURE_MARKERS: tuple[str, ...] = (
    "senha inválida",
    "senha invalida",
    "login inválido",
    "login invalido",
    "usuário ou senha",
    "usuario ou senha",
    "invalid password",
    "invalid username",
    "invalid credentials",
    "incorrect password",
    "login failed",
)


class InteractionDriver:
    """Drives login and query submission on an open session."""

    def __init__(
        self,
        controller: SessionController,
        failure_markers: Sequence[str] = (),
    ) -> None:
        """
        Args:
            controller: Session controller that owns the handles passed in
            failure_markers: Extra source-specific login failure phrases
        """
        self._controller = controller
        self._markers = tuple(m.lower() for m in (*DEFAULT_AUTH_FAILURE_MARKERS, *failure_markers))

    async def _resolve(self, page: Page, selector: Optional[str]) -> Optional[Locator]:
        if not selector:
            return None
        try:
            locator = page.locator(selector)
            if await locator.count() == 0:
                return None
            return locator.first
        except PlaywrightError as e:
            logger.warning(f"[Interaction] Selector '{selector}' is not usable: {e}")
            return None

    async def authenticate(
        self,
        handle: SessionHandle,
        locators: LocatorSet,
        credentials: Optional[Credentials],
    ) -> AuthResult:
        """
        Fill and submit the login form.

        Raises:
            LocatorNotFound: the login or password field is not on the page
        """
        if not locators.login_field:
            logger.info("[Interaction] No login field; authentication skipped")
            return AuthResult.SKIPPED
        if credentials is None:
            logger.error("[Interaction] ✗ Login form present but no credentials supplied")
            return AuthResult.FAILED_CREDENTIALS

        page = handle.require_page()
        timeout_ms = handle.descriptor.step_timeout_ms

        login = await self._resolve(page, locators.login_field)
        if login is None:
            raise LocatorNotFound(f"Login field '{locators.login_field}' not found on {page.url}")
        password = await self._resolve(page, locators.password_field)
        if password is None:
            raise LocatorNotFound(f"Password field '{locators.password_field}' not found on {page.url}")

        logger.info(f"[Interaction] Logging in to {handle.descriptor.name}...")
        url_before = page.url
        await login.fill(credentials.username, timeout=timeout_ms)
        await password.fill(credentials.password, timeout=timeout_ms)

        submit = await self._resolve(page, locators.submit_selector)
        if submit is not None:
            await submit.click(timeout=timeout_ms)
        else:
            logger.info("[Interaction] No login submit control; pressing Enter")
            await password.press("Enter", timeout=timeout_ms)

        await self._controller.wait_for_settle(handle)

        if await self._login_rejected(page, locators, url_before):
            logger.error(f"[Interaction] ✗ Credentials rejected by {handle.descriptor.name}")
            return AuthResult.FAILED_CREDENTIALS

        logger.info("[Interaction] ✓ Logged in")
        return AuthResult.SUCCESS

    async def _login_rejected(self, page: Page, locators: LocatorSet, url_before: str) -> bool:
        try:
            body = (await page.inner_text("body")).lower()
        except PlaywrightError:
            body = ""
        if any(marker in body for marker in self._markers):
            return True

        if page.url != url_before:
            return False
        password = await self._resolve(page, locators.password_field)
        if password is None:
            return False
        try:
            return await password.is_visible()
        except PlaywrightError:
            return False

    async def submit_query(
        self,
        handle: SessionHandle,
        locators: LocatorSet,
        query: str,
    ) -> SubmissionResult:
        """Type ``query`` into the search field and submit it."""
        page = handle.require_page()
        timeout_ms = handle.descriptor.step_timeout_ms

        field = await self._resolve(page, locators.query_field)
        if field is None:
            logger.error(f"[Interaction] ✗ Query field '{locators.query_field}' not found")
            return SubmissionResult.FIELD_NOT_FOUND

        await field.fill(query, timeout=timeout_ms)

        submit = await self._resolve(page, locators.submit_selector)
        if submit is None:
            logger.error(f"[Interaction] ✗ Submit control '{locators.submit_selector}' not found")
            return SubmissionResult.SUBMIT_NOT_FOUND

        logger.info(f"[Interaction] Submitting query: '{query}'")
        await submit.click(timeout=timeout_ms)
        await self._controller.wait_for_settle(handle)
        logger.info("[Interaction] ✓ Query submitted")
        return SubmissionResult.SUCCESS
