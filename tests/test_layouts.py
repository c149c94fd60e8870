"""
Tests for Layout Resolver

Tests for layouts.py
"""

import re

import pytest

from errors import LayoutError
from layouts import (
    CUSTOM_TEMPLATE_ID,
    LAYOUT_TEMPLATES,
    add_row,
    get_template,
    remove_row,
    resolve,
    set_columns,
)


class TestFixedTemplates:
    """Fixed templates pass through unchanged."""

    def test_fixed_template_passthrough(self):
        """Test a fixed template keeps its count and description."""
        template = get_template("4-grid")
        layout = resolve(template, [3, 3])

        assert layout.panel_count == 4
        assert layout.description == template.description

    def test_catalogue_ids_are_unique(self):
        """Test template ids are unique."""
        ids = [t.id for t in LAYOUT_TEMPLATES]
        assert len(ids) == len(set(ids))

    def test_unknown_template(self):
        """Test unknown template id raises."""
        with pytest.raises(LayoutError):
            get_template("nope")


class TestCustomLayout:
    """Custom row configurations."""

    @pytest.mark.parametrize("rows", [[1], [1, 2], [3, 1, 2], [2, 2, 2, 2]])
    def test_panel_count_and_row_mentions(self, rows):
        """Test count is the row sum and each row is described once."""
        layout = resolve(get_template(CUSTOM_TEMPLATE_ID), rows)

        assert layout.panel_count == sum(rows)
        mentions = re.findall(r"第 (\d+) 行有 (\d+) 个分镜", layout.description)
        assert [(int(i), int(k)) for i, k in mentions] == [(i + 1, k) for i, k in enumerate(rows)]
        assert f"包含 {len(rows)} 行" in layout.description

    def test_deterministic_description(self):
        """Test identical inputs give identical descriptions."""
        template = get_template(CUSTOM_TEMPLATE_ID)
        assert resolve(template, [1, 2]).description == resolve(template, [1, 2]).description

    @pytest.mark.parametrize("rows", [[], [0], [2, 0], [1, -1]])
    def test_invalid_rows(self, rows):
        """Test empty configs and rows below one column are rejected."""
        with pytest.raises(LayoutError):
            resolve(get_template(CUSTOM_TEMPLATE_ID), rows)


class TestRowEditing:
    """Custom row helpers."""

    def test_add_and_remove_rows(self):
        """Test rows can be added and removed but never below one."""
        rows = add_row([2])
        assert rows == [2, 1]
        assert remove_row(rows) == [2]
        assert remove_row([2]) == [2]

    def test_set_columns(self):
        """Test changing one row's columns."""
        assert set_columns([1, 1], 1, 3) == [1, 3]
        with pytest.raises(LayoutError):
            set_columns([1, 1], 0, 0)
        with pytest.raises(LayoutError):
            set_columns([1, 1], 5, 2)
