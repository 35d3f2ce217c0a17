"""
Unit tests for the row_index module.

Tests cover:
- Row order and nesting levels
- Collapsing categories, subcategories and groups
- Explicit category ordering
- Viewport windows
"""

import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import Task
from row_index import CollapseState, build_row_index, ordered_names
from task_tree import TaskIndex


def make_index():
    return TaskIndex([
        Task(id="p1", category="Civil", subcategory="Footings", subsubcategory="Pads", order=1),
        Task(id="f1", category="Civil", subcategory="Footings", order=2),
        Task(id="g", type="group", category="Civil", order=3),
        Task(id="c", parent_task_id="g", category="Civil", order=1),
        Task(id="e1", category="Electrical", order=4),
    ])


def kinds_and_keys(rows):
    return [(row.kind, row.key, row.level) for row in rows]


class TestBuildRowIndex:
    """Tests for flattening the grouping into rows."""

    def test_full_layout(self):
        rows = build_row_index(make_index())
        assert kinds_and_keys(rows) == [
            ('category', 'Civil', 0),
            ('subcategory', 'Civil::Footings', 1),
            ('subsubcategory', 'Civil::Footings::Pads', 2),
            ('task', 'p1', 2),
            ('task', 'f1', 1),
            ('task', 'g', 0),
            ('task', 'c', 1),
            ('category', 'Electrical', 0),
            ('task', 'e1', 0),
        ]

    def test_task_rows(self):
        rows = build_row_index(make_index())
        assert rows.row_of("c") == 6
        assert rows.row_of("missing") is None
        assert rows.total_height(32) == 9 * 32

    def test_collapsed_category_keeps_header(self):
        rows = build_row_index(make_index(), CollapseState(frozenset({"Civil"})))
        assert [row.key for row in rows] == ["Civil", "Electrical", "e1"]

    def test_collapsed_subcategory(self):
        rows = build_row_index(make_index(), CollapseState().toggle("Civil::Footings"))
        assert [row.key for row in rows][:3] == ["Civil", "Civil::Footings", "g"]

    def test_collapsed_group_hides_children(self):
        rows = build_row_index(make_index(), CollapseState().toggle("g"))
        assert rows.row_of("g") is not None
        assert rows.row_of("c") is None

    def test_category_order(self):
        rows = build_row_index(make_index(), category_order=["Electrical"])
        assert rows.rows[0].key == "Electrical"

    def test_empty(self):
        rows = build_row_index(TaskIndex([]))
        assert len(rows) == 0


class TestCollapseState:
    """Tests for CollapseState."""

    def test_toggle_twice_restores(self):
        state = CollapseState().toggle("x")
        assert state.is_collapsed("x")
        assert not state.toggle("x").is_collapsed("x")

    def test_expand(self):
        assert not CollapseState(frozenset({"x"})).expand("x").is_collapsed("x")


class TestViewport:
    """Tests for the visible row window."""

    def test_whole_list_fits(self):
        rows = build_row_index(make_index())
        assert rows.viewport(0) == (0, 9)

    def test_scrolled_window(self):
        rows = build_row_index(make_index())
        first, last = rows.viewport(64, height=64, row_height=32, overscan=0)
        assert (first, last) == (2, 4)
        assert [row.key for row in rows.window(first, last)] == ["Civil::Footings::Pads", "p1"]

    def test_scrolled_past_end(self):
        rows = build_row_index(make_index())
        assert rows.viewport(10000) == (9, 9)


class TestOrderedNames:
    """Tests for ordered_names."""

    def test_listed_names_first(self):
        assert ordered_names(["a", "b", "c"], ["c", "zz", "a"]) == ["c", "a", "b"]

    def test_no_order(self):
        assert ordered_names(["b", "a"]) == ["b", "a"]
