"""Tab identity map — short, stable t<N> ids for browser page targets."""

from __future__ import annotations

import re
from typing import Any, Sequence

from loguru import logger

from tablens.cache.store import CacheKey, CacheStore
from tablens.core.errors import NoTabsError, TabNotFoundError
from tablens.core.types import TabRecord, TargetInfo

LAST_KEY = "__last"  # most recently used short id
NEXT_KEY = "__next"  # next suffix to issue; suffixes are never reused

_SHORT_ID_RE = re.compile(r"^t(\d+)$")


def tab_key(port: int | str, agent: str | None = None) -> CacheKey:
    return CacheKey(endpoint=port, name="tabs", agent=agent)


def _next_suffix(doc: dict[str, Any]) -> int:
    highest = 0
    for k in doc:
        m = _SHORT_ID_RE.match(k)
        if m:
            highest = max(highest, int(m.group(1)))
    stored = doc.get(NEXT_KEY)
    if isinstance(stored, int) and not isinstance(stored, bool):
        return max(stored, highest + 1)
    return highest + 1


def reconcile(
    targets: Sequence[TargetInfo], old: dict[str, Any] | None
) -> tuple[list[TabRecord], dict[str, Any]]:
    """
    Assign short ids to the current targets.

    Known targets keep their short id; new ones get the next suffix.
    Returns the tab records in target order and the new map document.
    """
    old = old or {}
    target_to_short = {
        v: k for k, v in old.items() if _SHORT_ID_RE.match(k) and isinstance(v, str)
    }
    next_num = _next_suffix(old)

    doc: dict[str, Any] = {}
    records: list[TabRecord] = []
    for target in targets:
        short_id = target_to_short.get(target.target_id)
        if short_id is None or short_id in doc:
            short_id = f"t{next_num}"
            next_num += 1
        doc[short_id] = target.target_id
        records.append(
            TabRecord(
                short_id=short_id,
                target_id=target.target_id,
                title=target.title,
                url=target.url,
            )
        )

    last = old.get(LAST_KEY)
    if isinstance(last, str) and last in doc:
        doc[LAST_KEY] = last
    doc[NEXT_KEY] = next_num
    return records, doc


class TabMap:
    """
    Lists and resolves tabs for one (endpoint, agent) pair.

    ``source`` is anything with ``async list_targets() -> list[TargetInfo]``
    (normally a BrowserConnection).
    """

    def __init__(
        self,
        store: CacheStore,
        source: Any,
        port: int | str,
        agent: str | None = None,
    ) -> None:
        self._store = store
        self._source = source
        self._key = tab_key(port, agent)
        self.port = port

    async def _refresh(self) -> tuple[list[TabRecord], dict[str, Any]]:
        targets = await self._source.list_targets()
        records, doc = reconcile(targets, self._store.get(self._key))
        self._store.put(self._key, doc)
        logger.debug(f"tab map: {[r.short_id for r in records]}")
        return records, doc

    async def list_tabs(self) -> list[TabRecord]:
        records, _ = await self._refresh()
        return records

    async def resolve(self, short_id: str | None = None) -> TabRecord:
        """
        Resolve a short id, or the last-used tab, or the first tab.

        The resolved tab becomes the last-used tab.
        """
        records, doc = await self._refresh()
        if not records:
            raise NoTabsError(self.port)

        by_short = {r.short_id: r for r in records}
        if short_id:
            record = by_short.get(short_id)
            if record is None:
                available = [f"{r.short_id} ({r.title[:40]})" for r in records]
                raise TabNotFoundError(short_id, available)
        else:
            record = by_short.get(doc.get(LAST_KEY), records[0])

        doc[LAST_KEY] = record.short_id
        self._store.put(self._key, doc)
        return record
