"""tablens CLI — drive a running Chrome from independent, stateless invocations."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import typer
from loguru import logger
from playwright.async_api import Error as PlaywrightError

from tablens.browser import actions
from tablens.browser.connection import BrowserConnection, TabHandle
from tablens.cache.refs import ref_key
from tablens.cache.store import CacheStore
from tablens.core.config import TabLensConfig, load_config
from tablens.core.errors import TabLensError
from tablens.core.lens import TabLens
from tablens.core.logging import configure_logging
from tablens.core.types import RefEntry, RenderPolicy
from tablens.formatter.token_budget import TokenBudget

app = typer.Typer(
    name="tablens",
    help="Interact with your running Chrome via CDP. Start Chrome with --remote-debugging-port=9222.",
    no_args_is_help=True,
    add_completion=False,
)
cache_app = typer.Typer(name="cache", help="Manage cached tab maps and refs.", no_args_is_help=True)
app.add_typer(cache_app)


class Direction(str, Enum):
    up = "up"
    down = "down"
    left = "left"
    right = "right"


class PageField(str, Enum):
    url = "url"
    title = "title"


@dataclass
class CliState:
    config: TabLensConfig
    tab: str | None = None

    @property
    def store(self) -> CacheStore:
        return CacheStore(self.config.cache_dir)


def _fail(message: str) -> None:
    typer.echo(f"✗ {message}", err=True)
    raise typer.Exit(1)


def _state(ctx: typer.Context) -> CliState:
    return ctx.obj


def _run(ctx: typer.Context, fn: Callable[[TabLens], Awaitable[None]]) -> None:
    """Connect to Chrome, run fn against a TabLens, and report failures uniformly."""
    state = _state(ctx)
    config = state.config

    async def runner() -> None:
        async with BrowserConnection(config.port, config.host) as conn:
            lens = TabLens(conn, state.store, port=config.port, agent=config.agent_id)
            await fn(lens)

    try:
        asyncio.run(runner())
    except (TabLensError, ValueError) as exc:
        _fail(str(exc))
    except PlaywrightError as exc:
        logger.debug(f"playwright error: {exc!r}")
        _fail(f"Chrome at {config.host}:{config.port}: {exc.message}")


def _run_on_tab(ctx: typer.Context, fn: Callable[[TabLens, Any, TabHandle], Awaitable[None]]) -> None:
    tab_arg = _state(ctx).tab

    async def on_tab(lens: TabLens) -> None:
        async with lens.open(tab_arg) as (tab, handle):
            await fn(lens, tab, handle)

    _run(ctx, on_tab)


def _run_on_ref(
    ctx: typer.Context,
    ref: str,
    fn: Callable[[TabHandle, RefEntry], Awaitable[Any]],
    message: Callable[[RefEntry, Any], str],
) -> None:
    async def on_ref(lens: TabLens, tab: Any, handle: TabHandle) -> None:
        entry, result = await lens.element_action(tab, handle, ref, fn)
        typer.echo(message(entry, result))

    _run_on_tab(ctx, on_ref)


# ---------------------------------------------------------------------------
# Global options
# ---------------------------------------------------------------------------


@app.callback()
def main(
    ctx: typer.Context,
    port: Optional[int] = typer.Option(
        None, "--port", "-p", envvar="TABLENS_PORT", help="Chrome debug port (default 9222)"
    ),
    tab: Optional[str] = typer.Option(
        None, "--tab", "-t", help="Target tab (e.g. t1). Omit to use the last-used tab."
    ),
    agent_id: Optional[str] = typer.Option(
        None, "--agent-id", "-a", envvar="TABLENS_AGENT_ID", help="Isolate cached refs and tabs per agent"
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="Config file (default ~/.tablens/config.yaml)"
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level for stderr"),
) -> None:
    """Interact with your running Chrome via CDP."""
    try:
        config = load_config(config_path)
        overrides = {
            k: v
            for k, v in {"port": port, "agent_id": agent_id, "log_level": log_level}.items()
            if v is not None
        }
        if overrides:
            config = TabLensConfig.model_validate({**config.model_dump(), **overrides})
    except ValueError as exc:
        _fail(str(exc))
    configure_logging(config.log_level)
    ctx.obj = CliState(config=config, tab=tab)


# ---------------------------------------------------------------------------
# Tabs
# ---------------------------------------------------------------------------


@app.command("tabs")
def tabs_cmd(ctx: typer.Context) -> None:
    """List all Chrome tabs with short IDs."""

    async def run(lens: TabLens) -> None:
        tabs = await lens.tabs()
        if not tabs:
            typer.echo("No Chrome page tabs found.")
            return
        typer.echo(f"{len(tabs)} tab{'s' if len(tabs) != 1 else ''}:")
        for t in tabs:
            typer.echo(f"  {t.short_id}  {t.title[:60]:<60}  {t.url}")

    _run(ctx, run)


@app.command("newtab")
def newtab_cmd(ctx: typer.Context, url: str = typer.Argument("about:blank")) -> None:
    """Open a new tab and make it the last-used tab."""

    async def run(lens: TabLens) -> None:
        target_id = await lens.connection.new_tab(actions.normalize_url(url))
        for t in await lens.tabs():
            if t.target_id == target_id:
                await lens.resolve_tab(t.short_id)
                typer.echo(f"✓ Opened {t.short_id} → {t.url or url}")
                return
        typer.echo(f"✓ Opened new tab → {url}")

    _run(ctx, run)


@app.command("closetab")
def closetab_cmd(ctx: typer.Context) -> None:
    """Close the selected tab (--tab, or the last-used tab)."""
    tab_arg = _state(ctx).tab

    async def run(lens: TabLens) -> None:
        tab = await lens.resolve_tab(tab_arg)
        await lens.connection.close_tab(tab.target_id)
        lens.store.delete(ref_key(lens.port, tab.target_id, lens.agent))
        typer.echo(f"✓ Closed {tab.short_id}")

    _run(ctx, run)


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


@app.command("snapshot")
def snapshot_cmd(
    ctx: typer.Context,
    interactive: bool = typer.Option(False, "--interactive", "-i", help="Only interactive elements"),
    compact: bool = typer.Option(False, "--compact", "-c", help="Remove empty structural elements"),
    depth: Optional[int] = typer.Option(None, "--depth", "-d", min=0, help="Max rendered depth"),
    max_tokens: Optional[int] = typer.Option(
        None, "--max-tokens", min=0, help="Truncate output to this many tokens (0 = unlimited)"
    ),
) -> None:
    """Accessibility tree with refs."""
    policy = RenderPolicy(interactive_only=interactive, compact=compact, max_depth=depth)
    budget_tokens = max_tokens if max_tokens is not None else _state(ctx).config.max_tokens

    async def run(lens: TabLens, tab: Any, handle: TabHandle) -> None:
        result = await lens.snapshot(tab, handle, policy)
        budget = TokenBudget()
        text, _ = budget.truncate(result.snapshot.text, budget_tokens)
        typer.echo(result.header)
        typer.echo(text)
        typer.echo(f"\n{result.snapshot.summary(budget)}")

    _run_on_tab(ctx, run)


# ---------------------------------------------------------------------------
# Element interactions
# ---------------------------------------------------------------------------


@app.command("click")
def click_cmd(ctx: typer.Context, ref: str = typer.Argument(..., help="@eN")) -> None:
    """Click element by ref."""
    _run_on_ref(ctx, ref, actions.click, lambda e, _: f'✓ Clicked {e.role} "{e.name}"')


@app.command("fill")
def fill_cmd(ctx: typer.Context, ref: str, text: list[str] = typer.Argument(...)) -> None:
    """Clear field and type text."""
    value = " ".join(text)

    async def do(handle: TabHandle, entry: RefEntry) -> None:
        await actions.fill(handle, entry, value)

    _run_on_ref(ctx, ref, do, lambda e, _: f'✓ Filled {ref} with "{value}"')


@app.command("type")
def type_cmd(ctx: typer.Context, ref: str, text: list[str] = typer.Argument(...)) -> None:
    """Append text to field."""
    value = " ".join(text)

    async def do(handle: TabHandle, entry: RefEntry) -> None:
        await actions.type_text(handle, entry, value)

    _run_on_ref(ctx, ref, do, lambda e, _: f'✓ Typed "{value}" into {ref}')


@app.command("select")
def select_cmd(ctx: typer.Context, ref: str, value: list[str] = typer.Argument(...)) -> None:
    """Select dropdown option by value or label."""
    option = " ".join(value)

    async def do(handle: TabHandle, entry: RefEntry) -> dict:
        return await actions.select_option(handle, entry, option)

    def message(entry: RefEntry, result: dict) -> str:
        if result.get("note"):
            return f"ℹ {result['note']}"
        return f'✓ Selected "{result.get("selected")}" (value: {result.get("value")})'

    _run_on_ref(ctx, ref, do, message)


@app.command("check")
def check_cmd(ctx: typer.Context, ref: str) -> None:
    """Check checkbox/radio."""
    _run_on_ref(ctx, ref, actions.check, lambda e, _: f"✓ Checked {ref}")


@app.command("uncheck")
def uncheck_cmd(ctx: typer.Context, ref: str) -> None:
    """Uncheck checkbox."""
    _run_on_ref(ctx, ref, actions.uncheck, lambda e, _: f"✓ Unchecked {ref}")


@app.command("focus")
def focus_cmd(ctx: typer.Context, ref: str) -> None:
    """Focus element."""
    _run_on_ref(ctx, ref, actions.focus, lambda e, _: f"✓ Focused {ref}")


@app.command("hover")
def hover_cmd(ctx: typer.Context, ref: str) -> None:
    """Hover element."""
    _run_on_ref(ctx, ref, actions.hover, lambda e, _: f"✓ Hovered {ref}")


@app.command("scrollintoview")
def scrollintoview_cmd(ctx: typer.Context, ref: str) -> None:
    """Scroll element into view."""
    _run_on_ref(ctx, ref, actions.scroll_into_view, lambda e, _: f"✓ Scrolled {ref} into view")


@app.command("upload")
def upload_cmd(ctx: typer.Context, ref: str, files: list[str] = typer.Argument(...)) -> None:
    """Upload files to a file input."""

    async def do(handle: TabHandle, entry: RefEntry) -> list[str]:
        return await actions.upload(handle, entry, files)

    _run_on_ref(ctx, ref, do, lambda e, paths: f"✓ Uploaded {len(paths)} file(s) to {ref}")


# ---------------------------------------------------------------------------
# Page interactions
# ---------------------------------------------------------------------------


def _page_command(ctx: typer.Context, fn: Callable[[TabHandle], Awaitable[str]]) -> None:
    async def run(lens: TabLens, tab: Any, handle: TabHandle) -> None:
        out = await fn(handle)
        if out:
            typer.echo(out)

    _run_on_tab(ctx, run)


@app.command("press")
def press_cmd(ctx: typer.Context, key: str = typer.Argument(..., help="Enter, Tab, Escape, ArrowDown, ...")) -> None:
    """Press key."""

    async def do(handle: TabHandle) -> str:
        await actions.press(handle, key)
        return f"✓ Pressed {key}"

    _page_command(ctx, do)


@app.command("scroll")
def scroll_cmd(
    ctx: typer.Context,
    direction: Direction = typer.Argument(Direction.down),
    amount: Optional[int] = typer.Argument(None, min=1, help="Pixels"),
) -> None:
    """Scroll page."""
    px = amount or _state(ctx).config.scroll_amount

    async def do(handle: TabHandle) -> str:
        await actions.scroll(handle, direction.value, px)
        return f"✓ Scrolled {direction.value} {px}px"

    _page_command(ctx, do)


@app.command("open")
def open_cmd(ctx: typer.Context, url: str) -> None:
    """Navigate to URL."""
    timeout = _state(ctx).config.nav_timeout_ms

    async def do(handle: TabHandle) -> str:
        return f"✓ Navigated to {await actions.navigate(handle, url, timeout)}"

    _page_command(ctx, do)


@app.command("back")
def back_cmd(ctx: typer.Context) -> None:
    """Go back."""
    timeout = _state(ctx).config.nav_timeout_ms

    async def do(handle: TabHandle) -> str:
        await actions.go_back(handle, timeout)
        return f"✓ Back → {await actions.get_url(handle)}"

    _page_command(ctx, do)


@app.command("forward")
def forward_cmd(ctx: typer.Context) -> None:
    """Go forward."""
    timeout = _state(ctx).config.nav_timeout_ms

    async def do(handle: TabHandle) -> str:
        await actions.go_forward(handle, timeout)
        return f"✓ Forward → {await actions.get_url(handle)}"

    _page_command(ctx, do)


@app.command("reload")
def reload_cmd(ctx: typer.Context) -> None:
    """Reload page."""
    timeout = _state(ctx).config.nav_timeout_ms

    async def do(handle: TabHandle) -> str:
        await actions.reload(handle, timeout)
        return "✓ Reloaded"

    _page_command(ctx, do)


@app.command("eval")
def eval_cmd(ctx: typer.Context, expression: list[str] = typer.Argument(..., help="JavaScript")) -> None:
    """Run JavaScript."""
    expr = " ".join(expression)

    async def do(handle: TabHandle) -> str:
        result = await actions.evaluate(handle, expr)
        if result is None:
            return ""
        if isinstance(result, (dict, list)):
            return json.dumps(result, indent=2)
        return str(result)

    _page_command(ctx, do)


@app.command("get")
def get_cmd(ctx: typer.Context, what: PageField) -> None:
    """Get current url or title."""

    async def do(handle: TabHandle) -> str:
        if what is PageField.url:
            return await actions.get_url(handle)
        return await actions.get_title(handle)

    _page_command(ctx, do)


@app.command("screenshot")
def screenshot_cmd(
    ctx: typer.Context,
    path: Optional[Path] = typer.Argument(None),
    full: bool = typer.Option(False, "--full", help="Capture the full page"),
) -> None:
    """Take screenshot (PNG)."""
    dest = path or actions.default_screenshot_path(_state(ctx).config.get_screenshot_path())

    async def do(handle: TabHandle) -> str:
        return await actions.screenshot(handle, dest, full_page=full)

    _page_command(ctx, do)


@app.command("wait")
def wait_cmd(ms: int = typer.Argument(1000, min=0)) -> None:
    """Wait milliseconds."""
    asyncio.run(actions.wait(ms))
    typer.echo(f"✓ Waited {ms}ms")


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


@cache_app.command("clear")
def cache_clear_cmd(ctx: typer.Context) -> None:
    """Remove cached tab maps and refs for the current agent id."""
    state = _state(ctx)
    removed = state.store.clear(state.config.agent_id)
    label = state.config.agent_id or "shared"
    typer.echo(f"✓ Removed {removed} cached file{'s' if removed != 1 else ''} ({label})")


if __name__ == "__main__":
    app()
