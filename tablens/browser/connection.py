"""
Browser connection over the Chrome DevTools Protocol.

Attaches Playwright to an already running Chrome (started with
--remote-debugging-port) for the lifetime of one CLI invocation.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger
from playwright.async_api import (
    Browser,
    CDPSession,
    Page,
    Playwright,
    async_playwright,
)
from playwright.async_api import Error as PlaywrightError

from tablens.core.errors import TabClosedError
from tablens.core.types import TargetInfo

_HIDDEN_URL_PREFIXES = ("chrome-extension://", "devtools://")


@dataclass
class TabHandle:
    """A live page plus a CDP session attached to it."""

    target_id: str
    page: Page
    cdp: CDPSession

    async def detach(self) -> None:
        await self.cdp.detach()


async def _detach_quietly(cdp: CDPSession) -> None:
    try:
        await cdp.detach()
    except PlaywrightError as exc:
        logger.debug(f"detach failed: {exc}")


def _is_visible_target(info: dict) -> bool:
    return info.get("type") == "page" and not str(info.get("url", "")).startswith(
        _HIDDEN_URL_PREFIXES
    )


class BrowserConnection:
    """
    Usage:
        async with BrowserConnection(9222) as conn:
            targets = await conn.list_targets()
            tab = await conn.open_tab(targets[0].target_id)
    """

    def __init__(self, port: int = 9222, host: str = "127.0.0.1") -> None:
        self.port = port
        self.host = host
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    @property
    def endpoint(self) -> str:
        return f"http://{self.host}:{self.port}"

    async def __aenter__(self) -> BrowserConnection:
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.connect_over_cdp(self.endpoint)
        except BaseException:
            await self._playwright.stop()
            self._playwright = None
            raise
        logger.debug(f"connected to {self.endpoint}")
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        # Stopping the driver only disconnects; the user's Chrome keeps running
        if self._playwright is not None:
            await self._playwright.stop()
        self._playwright = None
        self._browser = None

    @property
    def browser(self) -> Browser:
        if self._browser is None:
            raise RuntimeError("BrowserConnection used outside 'async with'")
        return self._browser

    # ------------------------------------------------------------------
    # Browser-level Target domain
    # ------------------------------------------------------------------

    async def _browser_send(self, method: str, params: dict | None = None) -> dict:
        cdp = await self.browser.new_browser_cdp_session()
        try:
            return await cdp.send(method, params or {})
        finally:
            await cdp.detach()

    async def list_targets(self) -> list[TargetInfo]:
        """Page targets, excluding extension and devtools pages."""
        result = await self._browser_send("Target.getTargets")
        return [
            TargetInfo(
                target_id=info["targetId"],
                title=info.get("title", ""),
                url=info.get("url", ""),
            )
            for info in result.get("targetInfos", [])
            if _is_visible_target(info)
        ]

    async def new_tab(self, url: str = "about:blank", new_window: bool = False) -> str:
        result = await self._browser_send(
            "Target.createTarget", {"url": url, "newWindow": new_window}
        )
        return result["targetId"]

    async def close_tab(self, target_id: str) -> bool:
        result = await self._browser_send("Target.closeTarget", {"targetId": target_id})
        return bool(result.get("success", True))

    # ------------------------------------------------------------------
    # Page-level access
    # ------------------------------------------------------------------

    async def _find_page(self, target_id: str) -> tuple[Page, CDPSession] | None:
        for context in self.browser.contexts:
            for page in context.pages:
                cdp = await context.new_cdp_session(page)
                matched = False
                try:
                    info = await cdp.send("Target.getTargetInfo")
                    matched = info.get("targetInfo", {}).get("targetId") == target_id
                except PlaywrightError as exc:
                    # The page may be closing while we scan
                    logger.debug(f"skipping page {page.url}: {exc}")
                finally:
                    if not matched:
                        await _detach_quietly(cdp)
                if matched:
                    return page, cdp
        return None

    async def open_tab(self, target_id: str, short_id: str = "") -> TabHandle:
        found = await self._find_page(target_id)
        if found is None:
            raise TabClosedError(short_id)
        page, cdp = found
        await cdp.send("DOM.enable")
        await cdp.send("Runtime.enable")
        return TabHandle(target_id=target_id, page=page, cdp=cdp)
