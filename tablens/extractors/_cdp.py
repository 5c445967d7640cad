"""
CDP accessibility tree extraction.

Uses Accessibility.getFullAXTree (Chrome DevTools Protocol) over a
Playwright CDPSession and rebuilds the flat node list as a TreeNode tree.
"""

from __future__ import annotations

from typing import Any, Iterator, Sequence

from loguru import logger
from playwright.async_api import CDPSession

from tablens.core.types import AXRecord, TreeNode
from tablens.extractors.roles import classify, normalize_role


def _ax_value(v: Any) -> Any:
    """Pull the concrete value out of a CDP AXValue envelope."""
    if isinstance(v, dict):
        return v.get("value")
    return v


def _as_list(v: Any) -> list:
    return v if isinstance(v, list) else []


def _get_props(raw_node: dict) -> dict[str, Any]:
    """Flatten the CDP properties array into a {name: value} dict."""
    props: dict[str, Any] = {}
    for p in _as_list(raw_node.get("properties")):
        if isinstance(p, dict) and isinstance(p.get("name"), str) and p["name"]:
            props[p["name"]] = _ax_value(p.get("value"))
    return props


def _as_text(v: Any) -> str:
    v = _ax_value(v)
    return "" if v is None else str(v)


def record_from_cdp(raw: dict) -> AXRecord:
    """Convert one raw getFullAXTree node. Missing fields fall back to defaults."""
    return AXRecord(
        node_id=str(raw.get("nodeId", "")),
        role=_as_text(raw.get("role")),
        name=_as_text(raw.get("name")),
        value=_as_text(raw.get("value")),
        element_handle=raw.get("backendDOMNodeId"),
        child_ids=[str(c) for c in _as_list(raw.get("childIds"))],
        properties=_get_props(raw),
    )


def records_from_cdp(nodes: Sequence[Any]) -> list[AXRecord]:
    return [record_from_cdp(n) for n in nodes if isinstance(n, dict)]


async def fetch_ax_records(cdp: CDPSession) -> list[AXRecord]:
    """Fetch the full accessibility tree of the session's page as flat records."""
    result = await cdp.send("Accessibility.getFullAXTree")
    nodes = _as_list(result.get("nodes"))
    logger.debug(f"getFullAXTree returned {len(nodes)} nodes")
    return records_from_cdp(nodes)


def build_tree(records: Sequence[AXRecord]) -> TreeNode | None:
    """
    Link flat records into a tree rooted at the first surviving record.

    Returns None for an empty record list. Records whose role normalizes
    to None are dropped along with everything only reachable through
    them; child ids that don't resolve are skipped.
    """
    if not records:
        return None

    by_id: dict[str, tuple[AXRecord, str]] = {}
    root_id: str | None = None
    for rec in records:
        role = normalize_role(rec.role)
        if role is None:
            continue
        by_id.setdefault(rec.node_id, (rec, role))
        if root_id is None:
            root_id = rec.node_id

    if root_id is None:
        return None

    return _link(root_id, by_id)


def _link(root_id: str, by_id: dict[str, tuple[AXRecord, str]]) -> TreeNode:
    """
    Depth-first linking with an explicit stack, so page depth is not
    limited by the interpreter's recursion limit.

    A node is claimed when first reached; unknown ids, dropped roles and
    already-owned nodes (cycles) are skipped.
    """
    claimed = {root_id}
    # (node id, remaining child ids, linked children so far)
    stack: list[tuple[str, Iterator[str], list[TreeNode]]] = [
        (root_id, iter(by_id[root_id][0].child_ids), [])
    ]
    while True:
        node_id, pending, children = stack[-1]
        for child_id in pending:
            if child_id in by_id and child_id not in claimed:
                claimed.add(child_id)
                stack.append((child_id, iter(by_id[child_id][0].child_ids), []))
                break
        else:
            stack.pop()
            node = _make_node(by_id[node_id], children)
            if not stack:
                return node
            stack[-1][2].append(node)


def _make_node(entry: tuple[AXRecord, str], children: list[TreeNode]) -> TreeNode:
    rec, role = entry
    return TreeNode(
        node_id=rec.node_id,
        role=role,
        kind=classify(rec.role, role),
        name=rec.name or "",
        value=rec.value or "",
        element_handle=rec.element_handle,
        properties=dict(rec.properties or {}),
        children=tuple(children),
    )
