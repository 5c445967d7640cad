"""Ref cache — persists a tab's ref table between CLI invocations."""

from __future__ import annotations

from loguru import logger

from tablens.cache.store import CacheKey, CacheStore
from tablens.core.errors import NoSnapshotError, RefNotFoundError
from tablens.core.types import RefEntry, RefTable

# Target ids are long hex strings; a prefix keeps file names short
_TARGET_PREFIX_LEN = 8


def ref_key(port: int | str, target_id: str, agent: str | None = None) -> CacheKey:
    return CacheKey(
        endpoint=port, name=f"{target_id[:_TARGET_PREFIX_LEN]}.refs", agent=agent
    )


def save_refs(
    store: CacheStore,
    port: int | str,
    target_id: str,
    refs: RefTable,
    agent: str | None = None,
) -> None:
    """Replace the cached ref table for a tab."""
    store.put(
        ref_key(port, target_id, agent),
        {ref_id: entry.to_dict() for ref_id, entry in refs.items()},
    )


def load_refs(
    store: CacheStore,
    port: int | str,
    target_id: str,
    agent: str | None = None,
) -> RefTable | None:
    """Load the cached ref table for a tab, or None if no snapshot was cached."""
    doc = store.get(ref_key(port, target_id, agent))
    if doc is None:
        return None
    table: RefTable = {}
    for ref_id, data in doc.items():
        if not isinstance(data, dict):
            logger.warning(f"Skipping malformed ref entry {ref_id!r}")
            continue
        table[ref_id] = RefEntry.from_dict(ref_id, data)
    return table


def parse_ref(ref_arg: str) -> str:
    """Accept e5, @e5, ref=e5 and @ref=e5."""
    ref = ref_arg.strip()
    if ref.startswith("@"):
        ref = ref[1:]
    if ref.startswith("ref="):
        ref = ref[4:]
    return ref


def resolve_ref(table: RefTable | None, ref_arg: str) -> RefEntry:
    if table is None:
        raise NoSnapshotError()
    entry = table.get(parse_ref(ref_arg))
    if entry is None:
        raise RefNotFoundError(ref_arg, list(table))
    return entry
