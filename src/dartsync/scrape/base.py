"""
Browser session shared by all Nakka scrapers.

Uses Playwright for browser automation because the site renders everything
client-side (including the statistics view inside an iframe).

Key features:
- Async context manager for proper resource cleanup
- Stealth mode to avoid bot detection
- Bounded navigation (fixed timeout) followed by a fixed settle delay
"""

import logging
from typing import Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Page
from playwright_stealth import Stealth

from dartsync.config import settings

logger = logging.getLogger(__name__)

# Stealth configuration to avoid bot detection
_stealth = Stealth()


class BrowserSession:
    """
    One Chromium browser and context for one scraping operation.

    Lifecycle only: scrapers open pages through it and read them; no
    extraction logic lives here.

    Usage:
        async with BrowserSession() as browser:
            page = await browser.new_page()
            try:
                await browser.navigate(page, url)
                html = await page.content()
            finally:
                await page.close()
    """

    def __init__(self, headless: Optional[bool] = None):
        """
        Args:
            headless: Whether to run browser in headless mode.
                     If None, uses settings.scrape_headless
        """
        self.headless = headless if headless is not None else settings.scrape_headless
        self.navigation_timeout = settings.scrape_navigation_timeout
        self.settle_delay = settings.scrape_settle_delay

        # Playwright objects (initialized in __aenter__)
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    async def __aenter__(self) -> "BrowserSession":
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self.headless)
        self._context = await self._browser.new_context(
            user_agent=settings.scrape_user_agent,
            viewport={"width": 1920, "height": 1080},
            locale="en-US",
        )
        self._context.set_default_timeout(self.navigation_timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Always closes context, browser and Playwright, even after an error."""
        if self._context:
            await self._context.close()
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()

    async def new_page(self) -> Page:
        """
        Create a new browser page with stealth mode enabled.

        Returns:
            New Playwright Page object with stealth enabled
        """
        if not self._context:
            raise RuntimeError("Browser session not started. Use 'async with' context manager.")

        page = await self._context.new_page()
        await _stealth.apply_stealth_async(page)
        return page

    async def navigate(self, page: Page, url: str) -> None:
        """
        Load a URL and give the page's own scripts time to run.

        Waits for DOMContentLoaded rather than network idle because the site
        keeps long-lived connections open. Raises Playwright's TimeoutError
        when the navigation bound is exceeded.
        """
        logger.debug("Navigating to %s", url)
        await page.goto(url, wait_until="domcontentloaded", timeout=self.navigation_timeout)
        await page.wait_for_timeout(self.settle_delay * 1000)
