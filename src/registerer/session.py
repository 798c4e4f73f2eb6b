"""Playwright browser session shared by the portal and availability adapters.

A BrowserSession owns one Chromium browser and at most one page at a time.
Opening a page always closes the previous one first, and close() releases
everything it holds so the orchestrator can call it on every exit path.
"""

from dataclasses import dataclass

from playwright.async_api import (
    Browser,
    Error as PlaywrightError,
    Page,
    Playwright,
    async_playwright,
)
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from registerer.errors import BrowserLaunchError
from registerer.logging import get_logger
from registerer.utils import configure_page

logger = get_logger(__name__)

# Default bound for full page loads (goto, reload, post-submit navigation).
LOAD_TIMEOUT_MS = 30000

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
]


@dataclass(frozen=True)
class PageCapture:
    """Rendered state of the current page at the time of capture."""

    pdf: bytes | None
    html: str | None


class BrowserSession:
    """One browser handle plus at most one open page for a single web service."""

    service = "browser"

    def __init__(
        self,
        url: str,
        *,
        timeout_ms: int,
        load_timeout_ms: int = LOAD_TIMEOUT_MS,
        headless: bool = True,
    ) -> None:
        """Initialize BrowserSession.

        Args:
            url: Entry URL loaded by every new page.
            timeout_ms: Bound for element waits.
            load_timeout_ms: Bound for page loads and navigations after a click.
            headless: Launch Chromium without a window.
        """
        self.url = url
        self.timeout_ms = timeout_ms
        self.load_timeout_ms = load_timeout_ms
        self.headless = headless
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._page: Page | None = None

    @property
    def is_open(self) -> bool:
        return self._browser is not None

    @property
    def page(self) -> Page:
        if self._page is None or self._page.is_closed():
            raise RuntimeError(f"{self.service} session has no open page")
        return self._page

    async def open(self) -> None:
        """Launch the browser and load the service URL in a fresh page.

        An already open session is closed first, so at most one browser per
        service exists at any time.

        Raises:
            BrowserLaunchError: If Chromium cannot be started after retrying.
        """
        if self.is_open:
            await self.close()

        try:
            await self._launch()
        except PlaywrightError as e:
            logger.error("browser_launch_failed", service=self.service, error=str(e))
            await self.close()
            raise BrowserLaunchError(f"Could not launch browser: {e}") from e

        logger.info("session_opened", service=self.service, headless=self.headless)
        await self.new_page()

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_fixed(5),
        retry=retry_if_exception_type(PlaywrightError),
        reraise=True,
    )
    async def _launch(self) -> None:
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.headless, args=CHROMIUM_ARGS
        )

    async def new_page(self) -> Page:
        """Replace the current page with a new one on the service URL."""
        if self._browser is None:
            raise RuntimeError(f"{self.service} session is not open")

        await self._close_page()
        self._page = await self._browser.new_page()
        await configure_page(
            self._page, timeout_ms=self.timeout_ms, load_timeout_ms=self.load_timeout_ms
        )
        await self._page.goto(
            self.url, wait_until="networkidle", timeout=self.load_timeout_ms
        )
        logger.debug("page_opened", service=self.service, url=self.url)
        return self._page

    async def capture(self) -> PageCapture | None:
        """Render the current page as PDF and HTML, or None if no page is open.

        PDF rendering only works in headless Chromium; in headed mode only the
        HTML is captured.
        """
        if self._page is None or self._page.is_closed():
            return None

        html = await self._page.content()
        try:
            pdf = await self._page.pdf(format="A4")
        except PlaywrightError as e:
            logger.debug("pdf_capture_unavailable", service=self.service, error=str(e))
            pdf = None
        return PageCapture(pdf=pdf, html=html)

    async def close(self) -> None:
        """Close the page, the browser and the Playwright driver.

        Safe to call repeatedly. Errors from an already dead browser are logged
        and ignored so that cleanup always completes.
        """
        await self._close_page()

        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                logger.info("browser_close_ignored", service=self.service, error=str(e))
            self._browser = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except PlaywrightError as e:
                logger.info("playwright_stop_ignored", service=self.service, error=str(e))
            self._playwright = None

        logger.info("session_closed", service=self.service)

    async def _close_page(self) -> None:
        if self._page is None:
            return
        try:
            if not self._page.is_closed():
                await self._page.close()
        except PlaywrightError as e:
            logger.info("page_close_ignored", service=self.service, error=str(e))
        self._page = None
