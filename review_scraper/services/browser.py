"""Browser automation capability and its backends.

The scraping loop only talks to the BrowserPage protocol. Two backends
implement it:
- PlaywrightBrowser: async Playwright driving headless Chromium
- ChromeDriverBrowser: undetected Chrome through Selenium, with blocking
  driver calls moved off the event loop via asyncio.to_thread()

Each instance owns exactly one browser process and one page; close() releases
both and is safe to call more than once.
"""

import asyncio
import os
from typing import Any, Protocol

import logfire

from review_scraper.config import Settings
from review_scraper.constants import BROWSER_LAUNCH_ARGS, BROWSER_PAGE_LOAD_TIMEOUT_SECONDS


class BrowserPage(Protocol):
    """Protocol for a rendered page the scraper can drive."""

    async def navigate(self, url: str) -> None:
        """Load url in the page."""
        ...

    async def wait_for_element(self, selector: str, timeout: float) -> None:
        """Wait until selector matches, raising on timeout (seconds)."""
        ...

    async def find_optional(self, selector: str) -> Any | None:
        """Return the first element matching selector, or None."""
        ...

    async def click(self, element: Any) -> None:
        """Click an element returned by find_optional()."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Let the page settle."""
        ...

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        """Run a JavaScript function expression in the page with one argument.

        The script must be a function expression such as "(arg) => ...".
        """
        ...

    async def current_html(self) -> str:
        """Return the current serialized DOM."""
        ...

    async def close(self) -> None:
        """Release the browser."""
        ...


class PlaywrightBrowser:
    """BrowserPage backed by async Playwright Chromium."""

    def __init__(self, playwright: Any, browser: Any, page: Any):
        self._playwright = playwright
        self._browser = browser
        self._page = page
        self._closed = False

    @classmethod
    async def launch(
        cls,
        headless: bool = True,
        navigation_timeout: float = BROWSER_PAGE_LOAD_TIMEOUT_SECONDS,
    ) -> "PlaywrightBrowser":
        """Start Playwright, launch Chromium and open a blank page.

        Playwright is imported lazily so the chromedriver backend does not
        require it.
        """
        from playwright.async_api import async_playwright

        playwright = await async_playwright().start()
        browser = None
        try:
            browser = await playwright.chromium.launch(
                headless=headless, args=list(BROWSER_LAUNCH_ARGS)
            )
            page = await browser.new_page()
            page.set_default_navigation_timeout(navigation_timeout * 1000)
        except Exception:
            try:
                if browser is not None:
                    await browser.close()
            finally:
                await playwright.stop()
            raise
        logfire.info("Browser launched", backend="playwright", headless=headless)
        return cls(playwright, browser, page)

    async def navigate(self, url: str) -> None:
        await self._page.goto(url)

    async def wait_for_element(self, selector: str, timeout: float) -> None:
        await self._page.wait_for_selector(selector, timeout=timeout * 1000)

    async def find_optional(self, selector: str) -> Any | None:
        return await self._page.query_selector(selector)

    async def click(self, element: Any) -> None:
        await element.click()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self._page.evaluate(script, arg)

    async def current_html(self) -> str:
        return await self._page.content()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._browser.close()
        finally:
            await self._playwright.stop()
        logfire.info("Browser closed", backend="playwright")


class ChromeDriverBrowser:
    """BrowserPage backed by undetected Chrome (Selenium WebDriver).

    Set CHROME_VERSION_MAIN to your Chrome major version (e.g. 143) if you see
    "This version of ChromeDriver only supports Chrome version X".
    """

    def __init__(self, driver: Any):
        self._driver = driver
        self._closed = False

    @classmethod
    async def launch(
        cls,
        headless: bool = True,
        page_load_timeout: float = BROWSER_PAGE_LOAD_TIMEOUT_SECONDS,
    ) -> "ChromeDriverBrowser":
        driver = await asyncio.to_thread(
            cls._create_driver_sync, headless, page_load_timeout
        )
        logfire.info("Browser launched", backend="chromedriver", headless=headless)
        return cls(driver)

    @staticmethod
    def _create_driver_sync(headless: bool, page_load_timeout: float) -> Any:
        import undetected_chromedriver as uc

        options = uc.ChromeOptions()
        for arg in BROWSER_LAUNCH_ARGS:
            options.add_argument(arg)
        kwargs: dict = {"options": options, "headless": headless}
        version_main = os.environ.get("CHROME_VERSION_MAIN")
        if version_main is not None:
            try:
                kwargs["version_main"] = int(version_main)
            except ValueError:
                pass
        driver = uc.Chrome(**kwargs)
        driver.set_page_load_timeout(page_load_timeout)
        return driver

    async def navigate(self, url: str) -> None:
        await asyncio.to_thread(self._driver.get, url)

    async def wait_for_element(self, selector: str, timeout: float) -> None:
        await asyncio.to_thread(self._wait_for_element_sync, selector, timeout)

    def _wait_for_element_sync(self, selector: str, timeout: float) -> None:
        from selenium.webdriver.common.by import By
        from selenium.webdriver.support import expected_conditions
        from selenium.webdriver.support.ui import WebDriverWait

        WebDriverWait(self._driver, timeout).until(
            expected_conditions.presence_of_element_located((By.CSS_SELECTOR, selector))
        )

    async def find_optional(self, selector: str) -> Any | None:
        from selenium.webdriver.common.by import By

        elements = await asyncio.to_thread(
            self._driver.find_elements, By.CSS_SELECTOR, selector
        )
        return elements[0] if elements else None

    async def click(self, element: Any) -> None:
        await asyncio.to_thread(element.click)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        # execute_script runs a function body, so wrap the expression and call it
        return await asyncio.to_thread(
            self._driver.execute_script, f"return ({script})(arguments[0]);", arg
        )

    async def current_html(self) -> str:
        return await asyncio.to_thread(lambda: self._driver.page_source)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await asyncio.to_thread(self._driver.quit)
        logfire.info("Browser closed", backend="chromedriver")


async def launch_browser(settings: Settings) -> BrowserPage:
    """Launch the backend selected by settings.browser_backend."""
    if settings.browser_backend == "chromedriver":
        return await ChromeDriverBrowser.launch(
            headless=settings.browser_headless,
            page_load_timeout=settings.browser_page_load_timeout_seconds,
        )
    return await PlaywrightBrowser.launch(
        headless=settings.browser_headless,
        navigation_timeout=settings.browser_page_load_timeout_seconds,
    )
