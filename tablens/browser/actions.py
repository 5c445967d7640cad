"""
Actions — click, fill, type, check, select, press, scroll, navigate, eval.

Element actions take a RefEntry from the ref cache and address the node
through its backendDOMNodeId; page actions go through Playwright.
"""

from __future__ import annotations

import asyncio
import datetime
import os
from pathlib import Path
from typing import Any

from loguru import logger
from playwright.async_api import CDPSession
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from tablens.browser.connection import TabHandle
from tablens.core.errors import ActionError, StaleElementError
from tablens.core.types import RefEntry

DEFAULT_NAV_TIMEOUT_MS = 10_000
DEFAULT_SCROLL_AMOUNT = 400
_SETTLE_SECONDS = 0.05

_SCROLL_DELTAS = {
    "up": (0, -1),
    "down": (0, 1),
    "left": (-1, 0),
    "right": (1, 0),
}


# ---------------------------------------------------------------------------
# Element resolution
# ---------------------------------------------------------------------------


async def resolve_element(cdp: CDPSession, entry: RefEntry) -> str:
    """Resolve a ref's element handle to a Runtime object id."""
    try:
        result = await cdp.send("DOM.resolveNode", {"backendNodeId": entry.element_handle})
    except PlaywrightError as exc:
        raise StaleElementError(entry.id) from exc
    object_id = (result.get("object") or {}).get("objectId")
    if not object_id:
        raise StaleElementError(entry.id)
    return object_id


async def call_on_node(tab: TabHandle, entry: RefEntry, fn: str, *args: Any) -> Any:
    """Call a JS function with ``this`` bound to the ref's element."""
    object_id = await resolve_element(tab.cdp, entry)
    try:
        result = await tab.cdp.send(
            "Runtime.callFunctionOn",
            {
                "objectId": object_id,
                "functionDeclaration": fn,
                "arguments": [{"value": a} for a in args],
                "returnByValue": True,
            },
        )
    finally:
        try:
            await tab.cdp.send("Runtime.releaseObject", {"objectId": object_id})
        except PlaywrightError as exc:
            logger.debug(f"releaseObject failed: {exc}")

    details = result.get("exceptionDetails")
    if details:
        text = details.get("text") or (details.get("exception") or {}).get("description")
        raise ActionError(f"Action failed: {text or 'unknown error'}")
    return (result.get("result") or {}).get("value")


async def _focus(tab: TabHandle, entry: RefEntry) -> None:
    try:
        await tab.cdp.send("DOM.focus", {"backendNodeId": entry.element_handle})
    except PlaywrightError as exc:
        raise StaleElementError(entry.id) from exc


# ---------------------------------------------------------------------------
# Element actions
# ---------------------------------------------------------------------------


async def click(tab: TabHandle, entry: RefEntry) -> None:
    await call_on_node(tab, entry, "function() { this.scrollIntoView({block: 'center', behavior: 'instant'}); }")
    await asyncio.sleep(_SETTLE_SECONDS)
    await call_on_node(tab, entry, "function() { this.click(); }")


async def fill(tab: TabHandle, entry: RefEntry, text: str) -> None:
    """Clear the field and insert text (fires input events frameworks listen to)."""
    await _focus(tab, entry)
    await tab.page.keyboard.press("ControlOrMeta+A")
    await tab.page.keyboard.press("Backspace")
    if text:
        await tab.page.keyboard.insert_text(text)
    await call_on_node(
        tab, entry, "function() { this.dispatchEvent(new Event('change', {bubbles: true})); }"
    )


async def type_text(tab: TabHandle, entry: RefEntry, text: str) -> None:
    """Append text without clearing."""
    await _focus(tab, entry)
    await tab.page.keyboard.insert_text(text)


_SELECT_FN = """function(val) {
  if (this.tagName !== 'SELECT') {
    this.click();
    return {note: 'Not a <select>. Clicked to open; click the option ref instead.'};
  }
  let option = Array.from(this.options).find(o => o.value === val);
  if (!option) option = Array.from(this.options).find(o => o.textContent.trim() === val);
  if (!option) {
    const available = Array.from(this.options).map(o => o.textContent.trim()).join(', ');
    return {error: 'Option not found: ' + val + '. Available: ' + available};
  }
  this.value = option.value;
  this.dispatchEvent(new Event('change', {bubbles: true}));
  return {selected: option.textContent.trim(), value: option.value};
}"""


async def select_option(tab: TabHandle, entry: RefEntry, value: str) -> dict[str, str]:
    """Select a dropdown option by value or visible label."""
    result = await call_on_node(tab, entry, _SELECT_FN, value) or {}
    if result.get("error"):
        raise ActionError(result["error"])
    return result


async def check(tab: TabHandle, entry: RefEntry) -> None:
    await call_on_node(tab, entry, "function() { if (!this.checked) this.click(); }")


async def uncheck(tab: TabHandle, entry: RefEntry) -> None:
    await call_on_node(tab, entry, "function() { if (this.checked) this.click(); }")


async def focus(tab: TabHandle, entry: RefEntry) -> None:
    await _focus(tab, entry)


async def hover(tab: TabHandle, entry: RefEntry) -> None:
    center = await call_on_node(
        tab,
        entry,
        """function() {
  this.scrollIntoView({block: 'center', behavior: 'instant'});
  const r = this.getBoundingClientRect();
  return {x: r.x + r.width / 2, y: r.y + r.height / 2};
}""",
    )
    await asyncio.sleep(_SETTLE_SECONDS)
    await tab.page.mouse.move(center["x"], center["y"])


async def scroll_into_view(tab: TabHandle, entry: RefEntry) -> None:
    await call_on_node(tab, entry, "function() { this.scrollIntoView({block: 'center', behavior: 'smooth'}); }")


async def upload(tab: TabHandle, entry: RefEntry, file_paths: list[str]) -> list[str]:
    """Set files on a file input element."""
    resolved = [os.path.abspath(p) for p in file_paths]
    missing = [p for p in resolved if not os.path.isfile(p)]
    if missing:
        raise ActionError(f"File not found: {', '.join(missing)}")
    try:
        await tab.cdp.send(
            "DOM.setFileInputFiles",
            {"files": resolved, "backendNodeId": entry.element_handle},
        )
    except PlaywrightError as exc:
        raise ActionError(f"Upload failed: {exc}") from exc
    await call_on_node(
        tab,
        entry,
        """function() {
  this.dispatchEvent(new Event('change', {bubbles: true}));
  this.dispatchEvent(new Event('input', {bubbles: true}));
}""",
    )
    return resolved


# ---------------------------------------------------------------------------
# Page actions
# ---------------------------------------------------------------------------


async def press(tab: TabHandle, key: str) -> None:
    """Press a key (Enter, Tab, Escape, ArrowDown, Control+A, ...)."""
    try:
        await tab.page.keyboard.press(key)
    except PlaywrightError as exc:
        raise ActionError(f"Cannot press {key!r}: {exc}") from exc


async def scroll(tab: TabHandle, direction: str, amount: int = DEFAULT_SCROLL_AMOUNT) -> None:
    if direction not in _SCROLL_DELTAS:
        raise ValueError(f"Invalid scroll direction: {direction}. Use up/down/left/right.")
    dx, dy = _SCROLL_DELTAS[direction]
    await tab.page.mouse.move(400, 300)
    await tab.page.mouse.wheel(dx * amount, dy * amount)


def normalize_url(url: str) -> str:
    if url.startswith(("http://", "https://", "about:", "file://", "data:")):
        return url
    return "https://" + url


async def _settle(coro: Any, what: str) -> Any:
    """Await a navigation; a load timeout is not fatal, the page is used as-is."""
    try:
        return await coro
    except PlaywrightTimeoutError:
        logger.debug(f"{what}: load event not seen before timeout, continuing")
        return None


async def navigate(tab: TabHandle, url: str, timeout_ms: int = DEFAULT_NAV_TIMEOUT_MS) -> str:
    url = normalize_url(url)
    try:
        await _settle(tab.page.goto(url, wait_until="load", timeout=timeout_ms), "navigate")
    except PlaywrightError as exc:
        raise ActionError(f"Navigation failed: {exc}") from exc
    return url


async def go_back(tab: TabHandle, timeout_ms: int = DEFAULT_NAV_TIMEOUT_MS) -> None:
    await _settle(tab.page.go_back(wait_until="load", timeout=timeout_ms), "back")


async def go_forward(tab: TabHandle, timeout_ms: int = DEFAULT_NAV_TIMEOUT_MS) -> None:
    await _settle(tab.page.go_forward(wait_until="load", timeout=timeout_ms), "forward")


async def reload(tab: TabHandle, timeout_ms: int = DEFAULT_NAV_TIMEOUT_MS) -> None:
    await _settle(tab.page.reload(wait_until="load", timeout=timeout_ms), "reload")


async def evaluate(tab: TabHandle, expression: str) -> Any:
    try:
        return await tab.page.evaluate(expression)
    except PlaywrightError as exc:
        raise ActionError(f"JS error: {exc}") from exc


async def get_url(tab: TabHandle) -> str:
    return await evaluate(tab, "location.href")


async def get_title(tab: TabHandle) -> str:
    return await tab.page.title()


async def wait(ms: int) -> None:
    await asyncio.sleep(ms / 1000)


def default_screenshot_path(directory: str | os.PathLike) -> Path:
    stamp = datetime.datetime.now().strftime("%Y%m%d-%H%M%S-%f")
    return Path(directory).expanduser() / f"screenshot-{stamp}.png"


async def screenshot(tab: TabHandle, path: str | os.PathLike, full_page: bool = False) -> str:
    dest = Path(path).expanduser()
    dest.parent.mkdir(parents=True, exist_ok=True)
    await tab.page.screenshot(path=str(dest), full_page=full_page)
    return str(dest.resolve())
