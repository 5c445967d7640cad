"""Shared types and dataclasses for tablens."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class RoleKind(str, Enum):
    INTERACTIVE = "interactive"  # always gets a ref, never pruned
    CONTENT = "content"  # gets a ref when named
    STRUCTURAL = "structural"  # prunable wrapper in compact mode
    TEXT = "text"  # inline leaf content
    ROOT = "root"  # outer page wrapper, children spliced in its place
    PLAIN = "plain"  # everything else (paragraph, img, dialog, ...)


@dataclass
class AXRecord:
    """One raw accessibility record in simple attribute form."""

    node_id: str
    role: str  # raw taxonomy string (StaticText, RootWebArea, button, ...)
    name: str = ""
    value: str = ""
    element_handle: Any = None  # backendDOMNodeId, opaque to the core
    child_ids: list[str] = field(default_factory=list)
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TreeNode:
    """A linked accessibility node with its normalized role and classification."""

    node_id: str
    role: str
    kind: RoleKind
    name: str = ""
    value: str = ""
    element_handle: Any = None
    properties: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    children: tuple[TreeNode, ...] = ()

    @property
    def is_interactive(self) -> bool:
        return self.kind is RoleKind.INTERACTIVE

    @property
    def has_text(self) -> bool:
        return self.kind is RoleKind.TEXT and bool(self.name.strip())


@dataclass(frozen=True)
class RefEntry:
    """A snapshot ref (eN) pointing at one element handle."""

    id: str
    element_handle: Any
    role: str
    name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "backendDOMNodeId": self.element_handle,
            "role": self.role,
            "name": self.name,
        }

    @classmethod
    def from_dict(cls, ref_id: str, d: dict[str, Any]) -> RefEntry:
        return cls(
            id=ref_id,
            element_handle=d.get("backendDOMNodeId"),
            role=str(d.get("role", "")),
            name=str(d.get("name", "") or ""),
        )


# Ref id -> entry, in assignment order
RefTable = dict[str, RefEntry]


@dataclass(frozen=True)
class TargetInfo:
    """A raw page target as reported by the browser."""

    target_id: str
    title: str = ""
    url: str = ""


@dataclass(frozen=True)
class TabRecord:
    short_id: str  # t1, t2, ...
    target_id: str
    title: str = ""
    url: str = ""


@dataclass(frozen=True)
class RenderPolicy:
    interactive_only: bool = False
    compact: bool = False
    max_depth: int | None = None

    def __post_init__(self) -> None:
        if self.max_depth is not None and self.max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {self.max_depth}")
