"""Browser session management for Playwright automation."""
import logging
from typing import Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from booker.config import Settings, settings as default_settings
from booker.page import PlaywrightPage

logger = logging.getLogger(__name__)


class BrowserSession:
    """Manages one browser instance for one discovery-and-booking run."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.main_page: Optional[Page] = None

    @property
    def is_running(self) -> bool:
        return self.browser is not None and self.browser.is_connected()

    async def start(self):
        """Start the browser if it is not already running."""
        if self.is_running:
            logger.debug("Browser already running and connected - skipping start")
            return

        self.playwright = await async_playwright().start()
        self.browser = await self.playwright.chromium.launch(
            headless=self.config.headless,
            args=[
                '--no-sandbox',
                '--disable-setuid-sandbox',
                '--disable-dev-shm-usage',
            ])
        self.context = await self.browser.new_context(
            viewport={
                'width': self.config.viewport_width,
                'height': self.config.viewport_height,
            },
            timezone_id=self.config.calendar_timezone,
        )
        self.context.set_default_timeout(self.config.browser_timeout)
        logger.info(f"Browser started (headless={self.config.headless})")

    async def new_page(self) -> PlaywrightPage:
        """Open the run's page, starting the browser when needed."""
        if not self.is_running:
            await self.start()
        self.main_page = await self.context.new_page()
        return PlaywrightPage(self.main_page, navigation_timeout=self.config.browser_timeout)

    async def stop(self):
        """Stop browser instance and clean up resources.

        Each step is attempted even when an earlier one fails, and close
        errors are logged rather than raised so they never hide the error
        that caused the shutdown.
        """
        if self.main_page and not self.main_page.is_closed():
            await self._close_quietly("page", self.main_page.close)
        self.main_page = None
        if self.context:
            await self._close_quietly("context", self.context.close)
            self.context = None
        if self.browser:
            await self._close_quietly("browser", self.browser.close)
            self.browser = None
        if self.playwright:
            await self._close_quietly("playwright", self.playwright.stop)
            self.playwright = None
        logger.info("Browser stopped")

    @staticmethod
    async def _close_quietly(name: str, close):
        try:
            await close()
        except Exception as e:
            logger.warning(f"Error closing {name}: {e}")
