"""Tests for the formatter layer."""

from unittest.mock import MagicMock, patch

import pytest

from tablens.core.types import RenderPolicy, RoleKind, TreeNode
from tablens.extractors.roles import classify
from tablens.formatter.formatter import EMPTY_PAGE, SnapshotRenderer, extra_info, has_meaningful_content
from tablens.formatter.ref_manager import RefManager
from tablens.formatter.token_budget import TokenBudget, _encoding


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_counter = iter(range(1, 1_000_000))


def make_node(role, name="", children=None, value="", handle=None, raw_role=None, **props):
    return TreeNode(
        node_id=str(next(_counter)),
        role=role,
        kind=classify(raw_role or role, role),
        name=name,
        value=value,
        element_handle=handle,
        properties=props,
        children=tuple(children or []),
    )


def text(s):
    return make_node("text", s, raw_role="StaticText")


def page(*children):
    return make_node("document", children=children, raw_role="RootWebArea")


def render(root, **policy):
    return SnapshotRenderer(RenderPolicy(**policy)).render(root)


# ---------------------------------------------------------------------------
# RefManager
# ---------------------------------------------------------------------------

class TestRefManager:
    def test_first_ref_is_e1(self):
        rm = RefManager()
        entry = rm.assign(make_node("button", "Submit", handle=5))
        assert entry.id == "e1"
        assert entry.element_handle == 5

    def test_refs_increase(self):
        rm = RefManager()
        ids = [rm.assign(make_node("link", str(i))).id for i in range(3)]
        assert ids == ["e1", "e2", "e3"]

    def test_interactive_refs_counted(self):
        rm = RefManager()
        rm.assign(make_node("button", "OK"))
        rm.assign(make_node("heading", "Title"))
        assert rm.total_refs == 2
        assert rm.interactive_refs == 1

    def test_table_is_a_copy(self):
        rm = RefManager()
        entry = rm.assign(make_node("button", "Submit"))
        table = rm.table
        table.clear()
        assert rm.table == {"e1": entry}


# ---------------------------------------------------------------------------
# TokenBudget
# ---------------------------------------------------------------------------

class TestTokenBudget:
    def test_count_nonempty(self):
        assert TokenBudget().count("Hello world") > 0

    def test_truncate_short_text(self):
        tb = TokenBudget()
        truncated, was_truncated = tb.truncate("short text", max_tokens=1000)
        assert not was_truncated
        assert truncated == "short text"

    def test_truncate_zero_means_unlimited(self):
        long = "\n".join(["- button \"Go\" [ref=e1]"] * 500)
        assert TokenBudget().truncate(long, 0) == (long, False)

    def test_truncate_long_text_on_line_boundary(self):
        tb = TokenBudget()
        long = "\n".join(f'- link "Item {i}" [ref=e{i}]' for i in range(1000))
        truncated, was_truncated = tb.truncate(long, max_tokens=50)
        assert was_truncated
        assert truncated.endswith("[... truncated to fit token budget ...]")
        body = truncated.rsplit("\n", 1)[0]
        assert all(line.endswith("]") for line in body.split("\n"))


class TestEncodingLoad:
    def setup_method(self):
        _encoding.cache_clear()

    def teardown_method(self):
        _encoding.cache_clear()

    def test_encoding_loaded_on_first_count_only(self):
        fake = MagicMock()
        fake.encode.return_value = [1, 2, 3]
        with patch("tablens.formatter.token_budget.tiktoken.get_encoding", return_value=fake) as get_enc:
            tb = TokenBudget()
            assert tb.truncate("x", 0) == ("x", False)
            get_enc.assert_not_called()

            assert tb.count("abc") == 3
            assert tb.count("def") == 3
        get_enc.assert_called_once_with("cl100k_base")


# ---------------------------------------------------------------------------
# Extra-state annotations
# ---------------------------------------------------------------------------

class TestExtraInfo:
    def test_level(self):
        assert extra_info(make_node("heading", "T", level=2)) == "[level=2]"

    def test_checked_states(self):
        assert extra_info(make_node("checkbox", "A", checked=True)) == "[checked]"
        assert extra_info(make_node("checkbox", "A", checked="true")) == "[checked]"
        assert extra_info(make_node("checkbox", "A", checked="false")) == "[unchecked]"

    def test_expanded_collapsed(self):
        assert extra_info(make_node("combobox", "C", expanded=True)) == "[expanded]"
        assert extra_info(make_node("combobox", "C", expanded=False)) == "[collapsed]"

    def test_flags_only_when_true(self):
        node = make_node("textbox", "E", required=True, disabled=False, selected=False)
        assert extra_info(node) == "[required]"

    def test_order(self):
        node = make_node("option", "O", selected=True, disabled=True)
        assert extra_info(node) == "[selected] [disabled]"

    def test_no_props(self):
        assert extra_info(make_node("button", "B")) == ""


# ---------------------------------------------------------------------------
# SnapshotRenderer — full mode
# ---------------------------------------------------------------------------

class TestFullMode:
    def test_empty_tree_returns_sentinel(self):
        snap = render(None)
        assert snap.text == EMPTY_PAGE
        assert snap.refs == {}

    def test_page_without_visible_lines_returns_sentinel(self):
        snap = render(page(text("   ")))
        assert snap.lines == []
        assert snap.text == EMPTY_PAGE

    def test_single_button(self):
        snap = render(page(make_node("button", "Submit", handle=77)))
        assert snap.lines == ['- button "Submit" [ref=e1]']
        entry = snap.refs["e1"]
        assert (entry.role, entry.name, entry.element_handle) == ("button", "Submit", 77)

    def test_root_wrapper_spliced(self):
        snap = render(page(make_node("heading", "Title", children=[text("Title")], level=1)))
        assert snap.lines == ['- heading "Title" [ref=e1] [level=1]: Title']

    def test_nested_indentation(self):
        tree = page(
            make_node("navigation", "Main", children=[
                make_node("list", children=[
                    make_node("listitem", children=[make_node("link", "Home")]),
                ]),
            ]),
        )
        snap = render(tree)
        assert snap.lines == [
            '- navigation "Main" [ref=e1]',
            "  - list",
            "    - listitem",
            '      - link "Home" [ref=e2]',
        ]

    def test_text_children_collapse(self):
        snap = render(page(make_node("paragraph", children=[text("Hello"), text("world")])))
        assert snap.lines == ["- paragraph: Hello world"]

    def test_empty_text_blocks_collapse(self):
        snap = render(page(make_node("paragraph", children=[text("Hi"), text("  ")])))
        assert snap.lines == ["- paragraph", "  - text: Hi"]

    def test_interactive_text_child_not_collapsed(self):
        snap = render(page(make_node("link", "More", children=[text("More")])))
        assert snap.lines == ['- link "More" [ref=e1]', "  - text: More"]

    def test_interactive_value_shown(self):
        box = make_node("textbox", "Email", value="me@example.com", children=[
            text("me@example.com"), make_node("button", "Clear"),
        ])
        snap = render(page(box))
        assert snap.lines == [
            '- textbox "Email" [ref=e1]: me@example.com',
            '  - button "Clear" [ref=e2]',
        ]

    def test_unnamed_content_gets_no_ref(self):
        snap = render(page(make_node("cell", children=[make_node("button", "Edit")])))
        assert snap.lines == ["- cell", '  - button "Edit" [ref=e1]']
        assert list(snap.refs) == ["e1"]

    def test_text_never_gets_ref(self):
        snap = render(page(text("Just words")))
        assert snap.lines == ["- text: Just words"]
        assert snap.refs == {}

    def test_structural_kept_without_compact(self):
        snap = render(page(make_node("generic", children=[make_node("generic")])))
        assert snap.lines == ["- generic", "  - generic"]

    def test_max_depth(self):
        tree = page(make_node("main", "M", children=[
            make_node("region", "R", children=[make_node("button", "Deep")]),
        ]))
        snap = render(tree, max_depth=1)
        assert snap.lines == ['- main "M" [ref=e1]', '  - region "R" [ref=e2]']

    def test_max_depth_zero(self):
        tree = page(make_node("main", "M", children=[make_node("button", "B")]))
        assert render(tree, max_depth=0).lines == ['- main "M" [ref=e1]']

    def test_negative_max_depth_rejected(self):
        with pytest.raises(ValueError):
            RenderPolicy(max_depth=-1)


# ---------------------------------------------------------------------------
# SnapshotRenderer — compact mode
# ---------------------------------------------------------------------------

class TestCompactMode:
    def test_empty_structural_pruned(self):
        tree = page(
            make_node("generic", children=[make_node("generic"), make_node("img")]),
            make_node("button", "OK"),
        )
        snap = render(tree, compact=True)
        assert snap.lines == ['- button "OK" [ref=e1]']

    def test_structural_with_content_spliced_at_same_depth(self):
        tree = page(make_node("main", "M", children=[
            make_node("generic", children=[make_node("generic", children=[make_node("link", "Deep")])]),
        ]))
        full = render(tree)
        compact = render(tree, compact=True)
        assert "    - generic" in full.lines
        assert compact.lines == ['- main "M" [ref=e1]', '  - link "Deep" [ref=e2]']

    def test_unnamed_content_not_enough_to_keep(self):
        tree = page(make_node("group", children=[make_node("listitem")]))
        assert render(tree, compact=True).lines == []

    def test_named_content_keeps_wrapper_children(self):
        tree = page(make_node("group", children=[make_node("heading", "News", level=2)]))
        assert render(tree, compact=True).lines == ['- heading "News" [ref=e1] [level=2]']

    def test_text_keeps_wrapper_children(self):
        tree = page(make_node("generic", children=[text("Footer")]))
        assert render(tree, compact=True).lines == ["- text: Footer"]

    def test_named_structural_not_pruned(self):
        tree = page(make_node("group", "Shipping"))
        assert render(tree, compact=True).lines == ['- group "Shipping"']

    def test_duplicate_text_suppressed(self):
        tree = page(make_node("link", "Home", children=[text("Home")]))
        assert render(tree, compact=True).lines == ['- link "Home" [ref=e1]']

    def test_duplicate_suppressed_through_spliced_wrapper(self):
        tree = page(make_node("button", "Save", children=[
            make_node("generic", children=[text(" Save ")]),
            make_node("img", "icon"),
        ]))
        snap = render(tree, compact=True)
        assert snap.lines == ['- button "Save" [ref=e1]', '  - img "icon"']

    def test_non_duplicate_text_kept(self):
        tree = page(make_node("link", "Home", children=[text("Go home")]))
        assert render(tree, compact=True).lines == ['- link "Home" [ref=e1]', "  - text: Go home"]

    def test_duplicate_text_kept_without_compact(self):
        tree = page(make_node("link", "Home", children=[text("Home")]))
        assert render(tree).lines == ['- link "Home" [ref=e1]', "  - text: Home"]


# ---------------------------------------------------------------------------
# SnapshotRenderer — interactive-only mode
# ---------------------------------------------------------------------------

def _form():
    return page(
        make_node("heading", "Sign in", level=1),
        make_node("generic", children=[
            make_node("textbox", "Email", value="a@b.c", required=True),
            make_node("group", children=[
                make_node("checkbox", "Remember me", checked=False),
            ]),
        ]),
        make_node("combobox", "Country", expanded=True, children=[
            make_node("listbox", children=[make_node("option", "France", selected=True)]),
        ]),
        make_node("paragraph", children=[text("Forgot?"), make_node("link", "Reset")]),
    )


class TestInteractiveOnly:
    def test_lines(self):
        snap = render(_form(), interactive_only=True)
        assert snap.lines == [
            '- textbox "Email" [ref=e1] [required]: a@b.c',
            '- checkbox "Remember me" [ref=e2] [unchecked]',
            '- combobox "Country" [ref=e3] [expanded]',
            '  - listbox [ref=e4]',
            '    - option "France" [ref=e5] [selected]',
            '- link "Reset" [ref=e6]',
        ]

    def test_only_interactive_refs(self):
        snap = render(_form(), interactive_only=True)
        assert all(e.role != "heading" for e in snap.refs.values())
        assert snap.interactive_refs == snap.ref_count == 6

    @pytest.mark.parametrize("compact", [False, True])
    def test_every_interactive_node_appears_once(self, compact):
        snap = render(_form(), interactive_only=True, compact=compact)
        names = [e.name for e in snap.refs.values()]
        assert sorted(names) == sorted(["Email", "Remember me", "Country", "", "France", "Reset"])
        assert len(snap.lines) == 6

    def test_max_depth_bounds_rendered_depth(self):
        # Wrappers produce no line, so they don't consume depth
        tree = page(make_node("generic", children=[make_node("generic", children=[
            make_node("generic", children=[make_node("button", "Deep")]),
        ])]))
        assert render(tree, interactive_only=True, max_depth=0).lines == ['- button "Deep" [ref=e1]']


# ---------------------------------------------------------------------------
# Deeply nested pages
# ---------------------------------------------------------------------------

def _wrapped(leaf, depth):
    node = leaf
    for _ in range(depth):
        node = make_node("generic", children=[node])
    return node


class TestDeepNesting:
    depth = 1500

    def test_compact_splices_every_wrapper(self):
        tree = page(_wrapped(make_node("button", "Deep"), self.depth))
        assert render(tree, compact=True).lines == ['- button "Deep" [ref=e1]']

    def test_interactive_only(self):
        tree = page(_wrapped(make_node("button", "Deep"), self.depth))
        assert render(tree, interactive_only=True).lines == ['- button "Deep" [ref=e1]']

    def test_full_mode_keeps_every_level(self):
        tree = page(_wrapped(make_node("button", "Deep"), self.depth))
        lines = render(tree).lines
        assert len(lines) == self.depth + 1
        assert lines[0] == "- generic"
        assert lines[-1] == "  " * self.depth + '- button "Deep" [ref=e1]'

    def test_compact_prunes_empty_chain(self):
        tree = page(_wrapped(make_node("generic"), self.depth), make_node("link", "Home"))
        assert render(tree, compact=True).lines == ['- link "Home" [ref=e1]']

    def test_meaningful_content_found_at_the_bottom(self):
        assert has_meaningful_content(_wrapped(text("leaf"), self.depth))
        assert not has_meaningful_content(_wrapped(text("   "), self.depth))


# ---------------------------------------------------------------------------
# Ordering and determinism
# ---------------------------------------------------------------------------

class TestRefOrdering:
    def test_refs_follow_visitation_order(self):
        tree = page(
            make_node("heading", "A", level=1),
            make_node("main", "M", children=[make_node("button", "B"), make_node("link", "C")]),
            make_node("button", "D"),
        )
        snap = render(tree)
        assert list(snap.refs) == ["e1", "e2", "e3", "e4", "e5"]
        assert [e.name for e in snap.refs.values()] == ["A", "M", "B", "C", "D"]

    def test_refs_strictly_increasing(self):
        snap = render(_form())
        numbers = [int(r[1:]) for r in snap.refs]
        assert numbers == sorted(set(numbers))
        assert numbers[0] == 1

    @pytest.mark.parametrize("policy", [
        {}, {"compact": True}, {"interactive_only": True}, {"compact": True, "max_depth": 1},
    ])
    def test_idempotent_render(self, policy):
        tree = _form()
        a = render(tree, **policy)
        b = render(tree, **policy)
        assert a.text == b.text
        assert list(a.refs.items()) == list(b.refs.items())

    def test_refs_appear_in_text(self):
        snap = render(_form())
        for ref_id in snap.refs:
            assert f"[ref={ref_id}]" in snap.text


class TestSnapshotStats:
    def test_summary(self):
        snap = render(page(make_node("button", "OK"), make_node("heading", "Title")))
        summary = snap.summary()
        assert summary.startswith("2 refs (1 interactive), ~")
        assert summary.endswith(" tokens")
        assert snap.token_count() > 0

    def test_empty_summary(self):
        assert render(None).summary().startswith("0 refs (0 interactive)")
