"""Document accessor backed by a live Playwright page.

Browser launch, cookies and sign-in stay with the caller; this adapter only
wraps an already-open ``Page``.
"""

from __future__ import annotations

from playwright.async_api import ElementHandle, Page
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from orderharvest.core.document import INNER_HTML
from orderharvest.core.errors import BatchAbort, NavigationFailure


class PlaywrightDocument:
    """Reads a page through Playwright's async API."""

    def __init__(
        self,
        page: Page,
        navigation_timeout: float = 15.0,
        wait_timeout: float = 3.0,
        scroll_pause: float = 1.5,
    ) -> None:
        """Initialize the accessor.

        Args:
            page: Open Playwright page, already signed in if needed
            navigation_timeout: Seconds allowed for ``page.goto``
            wait_timeout: Seconds to wait for the ``wait_for`` selector
            scroll_pause: Seconds to let lazy content load after a scroll
        """
        self._page = page
        self._navigation_timeout_ms = navigation_timeout * 1000
        self._wait_timeout_ms = wait_timeout * 1000
        self._scroll_pause_ms = scroll_pause * 1000

    async def navigate(self, url: str, wait_for: str | None = None) -> None:
        if self._page.is_closed():
            msg = "Browser page is closed"
            raise BatchAbort(msg)
        try:
            await self._page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self._navigation_timeout_ms,
            )
        except PlaywrightError as e:
            raise NavigationFailure(url, str(e)) from e

        if wait_for:
            try:
                await self._page.wait_for_selector(
                    wait_for, timeout=self._wait_timeout_ms
                )
            except PlaywrightTimeoutError:
                # The selector is a hint; layouts without it are still probed.
                pass

    async def query(
        self, selector: str, within: ElementHandle | None = None
    ) -> list[ElementHandle]:
        if within is not None:
            return await within.query_selector_all(selector)
        return await self._page.query_selector_all(selector)

    async def read_text(self, node: ElementHandle) -> str:
        return await node.inner_text()

    async def read_attribute(self, node: ElementHandle, name: str) -> str | None:
        if name == INNER_HTML:
            return await node.inner_html()
        return await node.get_attribute(name)

    def current_url(self) -> str:
        return self._page.url

    async def scroll_to_bottom(self) -> None:
        await self._page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
        await self._page.wait_for_timeout(self._scroll_pause_ms)
