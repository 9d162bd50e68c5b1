"""Browser action primitives resolving Selector descriptors to Playwright locators."""

import logging
from typing import Optional

from playwright.async_api import Locator, Page, TimeoutError as PlaywrightTimeoutError

from scenably.browser.executor import INTERACTION_TIMEOUT_MS, NAVIGATION_TIMEOUT_MS
from scenably.recorder.script import Selector

logger = logging.getLogger("scenably.browser.actions")

NETWORK_IDLE_GRACE_MS = 3_000


class BrowserActions:
    """Thin action layer over one Playwright page."""

    def __init__(
        self,
        page: Page,
        *,
        action_timeout_ms: int = INTERACTION_TIMEOUT_MS,
        navigation_timeout_ms: int = NAVIGATION_TIMEOUT_MS,
    ):
        self.page = page
        self.action_timeout_ms = action_timeout_ms
        self.navigation_timeout_ms = navigation_timeout_ms

    def locate(self, selector: Selector) -> Locator:
        """Build the Playwright locator described by ``selector``."""
        page = self.page
        kind = selector.kind
        if kind == "role":
            if selector.name is not None:
                locator = page.get_by_role(selector.value, name=selector.name, exact=selector.exact)
            else:
                locator = page.get_by_role(selector.value)
        elif kind == "text":
            locator = page.get_by_text(selector.value, exact=selector.exact)
        elif kind == "label":
            locator = page.get_by_label(selector.value, exact=selector.exact)
        elif kind == "placeholder":
            locator = page.get_by_placeholder(selector.value, exact=selector.exact)
        elif kind == "test_id":
            locator = page.get_by_test_id(selector.value)
        elif kind == "alt_text":
            locator = page.get_by_alt_text(selector.value, exact=selector.exact)
        elif kind == "title":
            locator = page.get_by_title(selector.value, exact=selector.exact)
        else:
            locator = page.locator(selector.value)

        if selector.nth == 0:
            return locator.first
        if selector.nth == -1:
            return locator.last
        if selector.nth is not None:
            return locator.nth(selector.nth)
        return locator

    async def navigate(self, url: str) -> None:
        """Navigate and wait for DOM readiness, then briefly for network idle."""
        logger.info("Navigating to %s", url)
        await self.page.goto(url, wait_until="domcontentloaded", timeout=self.navigation_timeout_ms)
        try:
            await self.page.wait_for_load_state("networkidle", timeout=NETWORK_IDLE_GRACE_MS)
        except PlaywrightTimeoutError:
            pass

    async def click(self, selector: Selector) -> None:
        await self.locate(selector).click(timeout=self.action_timeout_ms)

    async def dblclick(self, selector: Selector) -> None:
        await self.locate(selector).dblclick(timeout=self.action_timeout_ms)

    async def fill(self, selector: Selector, value: str) -> None:
        await self.locate(selector).fill(value, timeout=self.action_timeout_ms)

    async def press(self, selector: Optional[Selector], key: str) -> None:
        """Press ``key`` on the target element, or on the page keyboard when untargeted."""
        if selector is None:
            await self.page.keyboard.press(key)
            return
        await self.locate(selector).press(key, timeout=self.action_timeout_ms)

    async def check(self, selector: Selector) -> None:
        await self.locate(selector).check(timeout=self.action_timeout_ms)

    async def uncheck(self, selector: Selector) -> None:
        await self.locate(selector).uncheck(timeout=self.action_timeout_ms)

    async def select_option(self, selector: Selector, value: str) -> None:
        await self.locate(selector).select_option(value, timeout=self.action_timeout_ms)

    async def hover(self, selector: Selector) -> None:
        await self.locate(selector).hover(timeout=self.action_timeout_ms)

    async def focus(self, selector: Selector) -> None:
        await self.locate(selector).focus(timeout=self.action_timeout_ms)
