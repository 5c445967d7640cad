"""RefManager — issues eN reference IDs for one snapshot."""

from __future__ import annotations

from tablens.core.types import RefEntry, RefTable, TreeNode
from tablens.extractors.roles import INTERACTIVE_ROLES


class RefManager:
    """
    Hands out e1, e2, ... in the order nodes are assigned.

    One manager backs one render pass; the resulting table replaces
    whatever was cached for the tab before.
    """

    def __init__(self) -> None:
        self._counter = 0
        self._table: RefTable = {}

    def assign(self, node: TreeNode) -> RefEntry:
        self._counter += 1
        entry = RefEntry(
            id=f"e{self._counter}",
            element_handle=node.element_handle,
            role=node.role,
            name=node.name,
        )
        self._table[entry.id] = entry
        return entry

    @property
    def table(self) -> RefTable:
        return dict(self._table)

    @property
    def total_refs(self) -> int:
        return self._counter

    @property
    def interactive_refs(self) -> int:
        return sum(1 for e in self._table.values() if e.role in INTERACTIVE_ROLES)
