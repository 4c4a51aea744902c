"""
Tests for column width planning
"""

import pytest

from printbridge.core.errors import InvalidOption
from printbridge.printing.columns import (
    ITEM_TABLE_WIDTHS,
    column_widths,
    parse_width,
    plan_columns,
)


class TestColumnWidths:
    """column_widths"""

    def test_item_table(self):
        assert column_widths(4) == ITEM_TABLE_WIDTHS
        assert sum(column_widths(4)) == 100

    def test_label_value_table(self):
        assert column_widths(2) == (50, 50)

    def test_equal_split_absorbs_slack(self):
        assert column_widths(3) == (33, 33, 34)

    @pytest.mark.parametrize("count", range(1, 11))
    def test_widths_always_sum_to_100(self, count):
        widths = column_widths(count)
        assert len(widths) == count
        assert sum(widths) == 100

    def test_no_columns(self):
        assert column_widths(0) == ()


class TestExplicitWidths:
    """parse_width and plan_columns"""

    def test_parse_percentages(self):
        assert parse_width("40%") == 40
        assert parse_width(" 25 ") == 25

    @pytest.mark.parametrize("value", ["wide", "150%", "-5%", ""])
    def test_malformed_width(self, value):
        with pytest.raises(InvalidOption):
            parse_width(value)

    def test_explicit_widths_used_when_complete(self):
        assert plan_columns(3, ("50%", "25%", "25%")) == (50, 25, 25)

    def test_incomplete_widths_fall_back(self):
        assert plan_columns(4, ("50%", "50%")) == ITEM_TABLE_WIDTHS
