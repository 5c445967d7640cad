"""TabLens — per-invocation orchestrator tying the browser, tab map and ref cache together."""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable

from loguru import logger

from tablens.browser import actions
from tablens.browser.connection import BrowserConnection, TabHandle
from tablens.cache.refs import load_refs, resolve_ref, save_refs
from tablens.cache.store import CacheStore
from tablens.core.types import RefEntry, RefTable, RenderPolicy, TabRecord
from tablens.extractors._cdp import build_tree, fetch_ax_records
from tablens.formatter.formatter import Snapshot, SnapshotRenderer
from tablens.tabs.tab_map import TabMap


@dataclass
class SnapshotResult:
    short_id: str
    url: str
    snapshot: Snapshot
    latency_ms: float = 0.0

    @property
    def header(self) -> str:
        return f"[{self.short_id}] {self.url}"


class TabLens:
    """
    Sits between the CLI and a running Chrome.

    Usage:
        async with BrowserConnection(9222) as conn:
            lens = TabLens(conn, CacheStore(), port=9222)
            async with lens.open("t1") as (tab, handle):
                result = await lens.snapshot(tab, handle, RenderPolicy(compact=True))
                # result.snapshot.text -> send to the agent
    """

    def __init__(
        self,
        connection: BrowserConnection,
        store: CacheStore,
        *,
        port: int,
        agent: str | None = None,
    ) -> None:
        self.connection = connection
        self.store = store
        self.port = port
        self.agent = agent
        self.tab_map = TabMap(store, connection, port, agent)

    # ------------------------------------------------------------------
    # Tabs
    # ------------------------------------------------------------------

    async def tabs(self) -> list[TabRecord]:
        return await self.tab_map.list_tabs()

    async def resolve_tab(self, short_id: str | None = None) -> TabRecord:
        return await self.tab_map.resolve(short_id)

    @asynccontextmanager
    async def open(self, short_id: str | None = None) -> AsyncIterator[tuple[TabRecord, TabHandle]]:
        """Resolve a tab and attach to it for the duration of the block."""
        tab = await self.resolve_tab(short_id)
        handle = await self.connection.open_tab(tab.target_id, tab.short_id)
        try:
            yield tab, handle
        finally:
            await handle.detach()

    # ------------------------------------------------------------------
    # Snapshots and refs
    # ------------------------------------------------------------------

    async def snapshot(
        self,
        tab: TabRecord,
        handle: TabHandle,
        policy: RenderPolicy | None = None,
    ) -> SnapshotResult:
        """Render the tab's accessibility tree and replace its cached ref table."""
        t0 = time.monotonic()
        records = await fetch_ax_records(handle.cdp)
        snap = SnapshotRenderer(policy).render(build_tree(records))
        save_refs(self.store, self.port, tab.target_id, snap.refs, self.agent)
        url = await actions.get_url(handle)
        latency_ms = (time.monotonic() - t0) * 1000
        logger.debug(
            f"snapshot {tab.short_id}: {len(records)} records -> "
            f"{len(snap.lines)} lines, {snap.ref_count} refs in {latency_ms:.0f}ms"
        )
        return SnapshotResult(
            short_id=tab.short_id, url=url, snapshot=snap, latency_ms=latency_ms
        )

    def cached_refs(self, tab: TabRecord) -> RefTable | None:
        return load_refs(self.store, self.port, tab.target_id, self.agent)

    def resolve_ref(self, tab: TabRecord, ref_arg: str) -> RefEntry:
        return resolve_ref(self.cached_refs(tab), ref_arg)

    async def element_action(
        self,
        tab: TabRecord,
        handle: TabHandle,
        ref_arg: str,
        action: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> tuple[RefEntry, Any]:
        """Resolve a cached ref and run an element action against it."""
        entry = self.resolve_ref(tab, ref_arg)
        logger.debug(f"{getattr(action, '__name__', 'action')} {entry.id} on {tab.short_id}")
        return entry, await action(handle, entry, *args)
