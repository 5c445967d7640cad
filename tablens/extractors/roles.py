"""Role normalization and classification for raw accessibility roles."""

from __future__ import annotations

from tablens.core.types import RoleKind

# Chrome internal role names -> normalised role strings. None means the
# record contributes nothing (it and its subtree are dropped).
_INTERNAL_ROLE_MAP: dict[str, str | None] = {
    "StaticText": "text",
    "RootWebArea": "document",
    "WebArea": "document",
    "InlineTextBox": None,
    "LineBreak": None,
    "GenericContainer": "generic",
    "Section": "section",
    "LabelText": "label",
    "DescriptionList": "list",
    "DescriptionListTerm": "term",
    "DescriptionListDetail": "definition",
}

# Outer wrappers whose children take their place in the rendered tree
ROOT_WRAPPER_ROLES = frozenset({"RootWebArea"})

INTERACTIVE_ROLES = frozenset({
    "button", "link", "textbox", "checkbox", "radio", "combobox", "listbox",
    "menuitem", "menuitemcheckbox", "menuitemradio", "option", "searchbox",
    "slider", "spinbutton", "switch", "tab", "treeitem",
})

CONTENT_ROLES = frozenset({
    "heading", "cell", "gridcell", "columnheader", "rowheader",
    "listitem", "article", "region", "main", "navigation",
})

STRUCTURAL_ROLES = frozenset({
    "generic", "group", "list", "table", "row", "rowgroup", "grid",
    "treegrid", "menu", "menubar", "toolbar", "tablist", "tree",
    "directory", "document", "application", "presentation", "none",
    "section", "label",
})


def normalize_role(raw_role: str) -> str | None:
    """Map a raw role to its canonical name, or None for dropped records."""
    if raw_role in _INTERNAL_ROLE_MAP:
        return _INTERNAL_ROLE_MAP[raw_role]
    if not raw_role:
        return "generic"
    return raw_role[0].lower() + raw_role[1:]


def classify(raw_role: str, role: str) -> RoleKind:
    if raw_role in ROOT_WRAPPER_ROLES:
        return RoleKind.ROOT
    if role in INTERACTIVE_ROLES:
        return RoleKind.INTERACTIVE
    if role in CONTENT_ROLES:
        return RoleKind.CONTENT
    if role == "text":
        return RoleKind.TEXT
    if role in STRUCTURAL_ROLES:
        return RoleKind.STRUCTURAL
    return RoleKind.PLAIN
