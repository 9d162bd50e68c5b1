"""Playwright browser lifecycle with one isolated context per execution."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import (
    Browser,
    Error as PlaywrightError,
    Page,
    Playwright,
    async_playwright,
)

from scenably.errors import InfrastructureError

logger = logging.getLogger("scenably.browser.executor")

NAVIGATION_TIMEOUT_MS = 30_000
INTERACTION_TIMEOUT_MS = 10_000
SUPPORTED_BROWSERS = {"chromium", "firefox", "webkit"}


class BrowserExecutor:
    """Owns the Playwright driver and lazily launched browsers.

    Headless runs and headed debug runs use separate browser instances; every
    execution gets a fresh BrowserContext that is closed when it finishes.
    """

    def __init__(
        self,
        *,
        browser_name: str = "chromium",
        headless: bool = True,
        debug_slow_mo_ms: int = 500,
        action_timeout_ms: int = INTERACTION_TIMEOUT_MS,
        navigation_timeout_ms: int = NAVIGATION_TIMEOUT_MS,
    ) -> None:
        if browser_name not in SUPPORTED_BROWSERS:
            raise ValueError(f"unsupported browser: {browser_name}")
        self.browser_name = browser_name
        self.headless = headless
        self.debug_slow_mo_ms = debug_slow_mo_ms
        self.action_timeout_ms = action_timeout_ms
        self.navigation_timeout_ms = navigation_timeout_ms
        self._playwright: Optional[Playwright] = None
        self._browsers: dict[bool, Browser] = {}
        self._lock = asyncio.Lock()

    async def _ensure_browser(self, debug: bool) -> Browser:
        async with self._lock:
            browser = self._browsers.get(debug)
            if browser is not None and browser.is_connected():
                return browser
            try:
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                launcher = getattr(self._playwright, self.browser_name)
                if debug:
                    logger.info("Launching headed %s for debug execution", self.browser_name)
                    browser = await launcher.launch(headless=False, slow_mo=self.debug_slow_mo_ms)
                else:
                    logger.info("Launching %s (headless=%s)", self.browser_name, self.headless)
                    browser = await launcher.launch(headless=self.headless)
            except PlaywrightError as exc:
                raise InfrastructureError(f"failed to launch {self.browser_name}: {exc}") from exc
            self._browsers[debug] = browser
            return browser

    @asynccontextmanager
    async def open_context(self, *, debug: bool = False) -> AsyncIterator[Page]:
        """Yield a page in a brand-new browser context and always close the context."""
        browser = await self._ensure_browser(debug)
        try:
            context = await browser.new_context()
        except PlaywrightError as exc:
            raise InfrastructureError(f"failed to open browser context: {exc}") from exc
        try:
            context.set_default_timeout(self.action_timeout_ms)
            context.set_default_navigation_timeout(self.navigation_timeout_ms)
            page = await context.new_page()
            yield page
        finally:
            try:
                await context.close()
            except PlaywrightError as exc:
                logger.warning("Failed to close browser context cleanly: %s", exc)

    async def close(self) -> None:
        """Close browsers and stop the Playwright driver."""
        logger.info("Closing browser executor resources")
        for browser in list(self._browsers.values()):
            try:
                await browser.close()
            except PlaywrightError as exc:
                logger.warning("Browser close failed: %s", exc)
        self._browsers.clear()

        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
