# rate_pipeline/browser.py

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from playwright.async_api import Download, Page, Response, async_playwright
from playwright.async_api import Error as PlaywrightError

from .config_behavior import (
    BROWSER_INIT_SCRIPT,
    BROWSER_LAUNCH_ARGS,
    BROWSER_LOCALE,
    BROWSER_SETTLE_SECONDS,
    BROWSER_TIMEOUT_SECONDS,
    BROWSER_USER_AGENT,
    BROWSER_VIEWPORT,
)

logger = logging.getLogger(__name__)


class BrowserSessionError(Exception):
    """Raised when the headless browser cannot produce the target document"""
    pass


class BrowserSessionFetcher:
    """
    Headless-browser fallback for sources behind fingerprinting bot protection.

    The home page is loaded first so the site hands out its session cookies;
    only then is the document requested. Depending on the server the document
    comes back either as the navigation response or as a download, so both
    signals are raced. This path is expensive and is never retried.
    """

    def __init__(
        self,
        timeout_seconds: float = BROWSER_TIMEOUT_SECONDS,
        settle_seconds: float = BROWSER_SETTLE_SECONDS,
        headless: bool = True,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.settle_seconds = settle_seconds
        self.headless = headless

    def fetch_via_session(self, target_url: str, home_url: str) -> bytes:
        """
        Synchronous entry point; runs the browser session on its own event loop
        """
        logger.info("Fetching %s through a browser session (home=%s)", target_url, home_url)
        return asyncio.run(self._fetch(target_url, home_url))

    async def _fetch(self, target_url: str, home_url: str) -> bytes:
        timeout_ms = int(self.timeout_seconds * 1000)

        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=self.headless, args=BROWSER_LAUNCH_ARGS)
            try:
                context = await browser.new_context(
                    user_agent=BROWSER_USER_AGENT,
                    viewport=BROWSER_VIEWPORT,
                    locale=BROWSER_LOCALE,
                    accept_downloads=True,
                )
                await context.add_init_script(BROWSER_INIT_SCRIPT)
                page = await context.new_page()

                home = await page.goto(home_url, wait_until="networkidle", timeout=timeout_ms)
                if home is None or not home.ok:
                    status = home.status if home is not None else "no response"
                    raise BrowserSessionError(f"Failed to load home page {home_url}: HTTP {status}")

                await page.wait_for_timeout(self.settle_seconds * 1000)
                return await self._race_document(page, target_url, timeout_ms)
            except PlaywrightError as e:
                raise BrowserSessionError(f"Browser session failed for {target_url}: {e}") from e
            finally:
                await browser.close()

    async def _race_document(self, page: Page, target_url: str, timeout_ms: int) -> bytes:
        download_task = asyncio.ensure_future(
            page.wait_for_event("download", timeout=timeout_ms)
        )
        goto_task = asyncio.ensure_future(
            page.goto(target_url, wait_until="commit", timeout=timeout_ms)
        )
        try:
            done, _ = await asyncio.wait(
                {download_task, goto_task},
                timeout=self.timeout_seconds,
                return_when=asyncio.FIRST_COMPLETED,
            )

            if download_task in done and download_task.exception() is None:
                return await self._read_download(download_task.result())

            response: Optional[Response] = None
            if goto_task in done and goto_task.exception() is None:
                response = goto_task.result()

            if response is not None and response.ok:
                return await response.body()

            # The navigation either failed (a download aborts it) or answered
            # with an error page; a download may still be on its way.
            if not download_task.done():
                try:
                    download = await asyncio.wait_for(download_task, timeout=self.timeout_seconds)
                    return await self._read_download(download)
                except (asyncio.TimeoutError, PlaywrightError):
                    pass

            if response is not None:
                raise BrowserSessionError(
                    f"HTTP {response.status}: {response.status_text} for {target_url}"
                )
            raise BrowserSessionError(
                f"Neither a response nor a download arrived for {target_url}"
            )
        finally:
            for task in (download_task, goto_task):
                if not task.done():
                    task.cancel()
            # Consume leftover exceptions so asyncio does not log them
            await asyncio.gather(download_task, goto_task, return_exceptions=True)

    async def _read_download(self, download: Download) -> bytes:
        path = await download.path()
        if not path:
            raise BrowserSessionError("Download finished without a file on disk")
        return Path(path).read_bytes()
