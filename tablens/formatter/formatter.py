"""SnapshotRenderer — converts a TreeNode tree to compact, agent-ready text with refs."""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from tablens.core.types import RefTable, RenderPolicy, RoleKind, TreeNode
from tablens.formatter.ref_manager import RefManager
from tablens.formatter.token_budget import TokenBudget

_INDENT = "  "
EMPTY_PAGE = "(empty page)"


@dataclass
class Snapshot:
    """Rendered lines plus the ref table built while rendering them."""

    lines: list[str]
    refs: RefTable = field(default_factory=dict)
    interactive_refs: int = 0

    @property
    def text(self) -> str:
        return "\n".join(self.lines) if self.lines else EMPTY_PAGE

    @property
    def ref_count(self) -> int:
        return len(self.refs)

    def token_count(self, budget: TokenBudget | None = None) -> int:
        return (budget or TokenBudget()).count(self.text)

    def summary(self, budget: TokenBudget | None = None) -> str:
        return (
            f"{self.ref_count} refs ({self.interactive_refs} interactive), "
            f"~{self.token_count(budget)} tokens"
        )


def _is_true(v: object) -> bool:
    return v is True or v == "true"


def extra_info(node: TreeNode) -> str:
    """Bracketed state tags from the node's properties ([level=2] [checked] ...)."""
    props = node.properties
    parts: list[str] = []
    if props.get("level") is not None:
        parts.append(f"[level={props['level']}]")
    if props.get("checked") is not None:
        parts.append("[checked]" if _is_true(props["checked"]) else "[unchecked]")
    if _is_true(props.get("selected")):
        parts.append("[selected]")
    if props.get("expanded") is not None:
        parts.append("[expanded]" if _is_true(props["expanded"]) else "[collapsed]")
    if _is_true(props.get("required")):
        parts.append("[required]")
    if _is_true(props.get("disabled")):
        parts.append("[disabled]")
    return " ".join(parts)


def has_meaningful_content(node: TreeNode) -> bool:
    """True if the subtree holds an interactive node, named content or visible text."""
    stack = [node]
    while stack:
        n = stack.pop()
        if n.kind is RoleKind.INTERACTIVE:
            return True
        if n.kind is RoleKind.CONTENT and n.name:
            return True
        if n.has_text:
            return True
        stack.extend(n.children)
    return False


@dataclass
class _Visit:
    """What one node contributes: an optional line, then children to render."""

    line: str | None = None
    children: tuple[TreeNode, ...] = ()
    depth: int = 0
    parent_name: str = ""


class SnapshotRenderer:
    """
    Renders one tree under a RenderPolicy.

    Output lines look like::

        - heading "Example Domain" [ref=e1] [level=1]
        - paragraph: Some text content
        - button "Submit" [ref=e2]
        - textbox "Email" [ref=e3]: me@example.com
    """

    def __init__(self, policy: RenderPolicy | None = None) -> None:
        self.policy = policy or RenderPolicy()

    def render(self, root: TreeNode | None) -> Snapshot:
        refs = RefManager()
        lines = self._walk(root, refs) if root is not None else []
        logger.debug(f"rendered {len(lines)} lines, {refs.total_refs} refs")
        return Snapshot(lines=lines, refs=refs.table, interactive_refs=refs.interactive_refs)

    # ------------------------------------------------------------------
    # Depth-first pass
    # ------------------------------------------------------------------

    def _walk(self, root: TreeNode, refs: RefManager) -> list[str]:
        """Pre-order walk with an explicit stack; pages can nest deeper than the recursion limit."""
        lines: list[str] = []
        stack: list[tuple[TreeNode, int, str]] = [(root, 0, "")]
        while stack:
            node, depth, parent_name = stack.pop()
            visit = self._visit(node, depth, parent_name, refs)
            if visit.line is not None:
                lines.append(visit.line)
            # Reversed so the first child is rendered (and gets its ref) first
            for child in reversed(visit.children):
                stack.append((child, visit.depth, visit.parent_name))
        return lines

    def _visit(self, node: TreeNode, depth: int, parent_name: str, refs: RefManager) -> _Visit:
        policy = self.policy

        if node.kind is RoleKind.ROOT:
            return _Visit(children=node.children, depth=depth, parent_name=parent_name)

        if policy.max_depth is not None and depth > policy.max_depth:
            return _Visit()

        if policy.interactive_only:
            return self._visit_interactive(node, depth, refs)

        if policy.compact and node.kind is RoleKind.STRUCTURAL and not node.name:
            if not has_meaningful_content(node):
                return _Visit()
            # The wrapper itself produces no line
            return _Visit(children=node.children, depth=depth, parent_name=parent_name)

        indent = _INDENT * depth

        if node.kind is RoleKind.TEXT:
            text = node.name.strip()
            if not text:
                return _Visit()
            if policy.compact and parent_name and text == parent_name.strip():
                return _Visit()
            return _Visit(line=f"{indent}- text: {text}")

        ref_str = ""
        if node.is_interactive or (node.kind is RoleKind.CONTENT and node.name):
            ref_str = f" [ref={refs.assign(node).id}]"

        name_part = f' "{node.name}"' if node.name else ""
        extra = extra_info(node)
        extra_str = f" {extra}" if extra else ""
        head = f"{indent}- {node.role}{name_part}{ref_str}{extra_str}"

        child_parent_name = node.name if policy.compact and node.name else parent_name
        text_children = [c for c in node.children if c.has_text]

        # Only text leaves below: collapse them onto this line
        if text_children and len(text_children) == len(node.children) and not node.is_interactive:
            text = " ".join(c.name.strip() for c in text_children)
            return _Visit(line=f"{head}: {text}")

        if node.value and node.is_interactive:
            return _Visit(
                line=f"{head}: {node.value}",
                children=tuple(c for c in node.children if c.kind is not RoleKind.TEXT),
                depth=depth + 1,
                parent_name=child_parent_name,
            )

        return _Visit(
            line=head, children=node.children, depth=depth + 1, parent_name=child_parent_name
        )

    def _visit_interactive(self, node: TreeNode, depth: int, refs: RefManager) -> _Visit:
        """Interactive-only mode: one line per interactive node, wrappers are transparent."""
        if not node.is_interactive:
            # No visible line, so descendants stay at this depth
            return _Visit(children=node.children, depth=depth)

        ref = refs.assign(node)
        name_part = f' "{node.name}"' if node.name else ""
        line = f"{_INDENT * depth}- {node.role}{name_part} [ref={ref.id}]"
        extra = extra_info(node)
        if extra:
            line += f" {extra}"
        if node.value:
            line += f": {node.value}"
        return _Visit(line=line, children=node.children, depth=depth + 1)
