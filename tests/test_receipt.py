"""
Tests for legacy receipt conversion
"""

import pytest

from printbridge.core.errors import InvalidOption
from printbridge.printing.document import Alignment, SpacerBlock, TableBlock, TextBlock
from printbridge.printing.receipt import (
    THANK_YOU,
    ReceiptData,
    convert_receipt_to_document,
    format_money,
    format_quantity,
    parse_receipt,
)


@pytest.fixture
def receipt(receipt_payload):
    return parse_receipt(receipt_payload)


class TestFormatting:
    """Money and quantity formatting"""

    def test_money(self):
        assert format_money(7) == "$7.00"
        assert format_money(2.25) == "$2.25"

    def test_quantity(self):
        assert format_quantity(2.0) == "2"
        assert format_quantity(1.5) == "1.5"

    def test_large_and_precise_quantities(self):
        assert format_quantity(1234567.0) == "1234567"
        assert format_quantity(1234567.5) == "1234567.5"
        assert format_quantity(0.1234567) == "0.1234567"


class TestConvert:
    """convert_receipt_to_document"""

    def test_block_order(self, receipt):
        document = convert_receipt_to_document(receipt)
        assert [block.type for block in document.blocks] == [
            "text", "text", "text",
            "divider",
            "text", "text",
            "divider",
            "table", "divider",
            "table",
            "text",
            "divider",
            "text", "text",
            "spacer",
        ]

    def test_store_header(self, receipt):
        header = convert_receipt_to_document(receipt).blocks[0]
        assert isinstance(header, TextBlock)
        assert header.value == "Corner Cafe"
        assert header.style.align == Alignment.CENTER
        assert header.style.bold is True
        assert header.style.font_scale == 1.5
        assert header.style.margin_bottom == 5

    def test_receipt_info(self, receipt):
        blocks = convert_receipt_to_document(receipt).blocks
        assert blocks[4].value == "Receipt #: A-17"
        assert blocks[5].value == "Date: 2024-05-01"

    def test_items_table(self, receipt):
        items = convert_receipt_to_document(receipt).blocks[7]
        assert isinstance(items, TableBlock)
        assert items.headers == ("Item", "Qty", "Price", "Total")
        assert items.rows[0] == ("Coffee", "2", "$3.50", "$7.00")
        assert items.style.column_aligns == (
            Alignment.LEFT, Alignment.CENTER, Alignment.RIGHT, Alignment.RIGHT,
        )

    def test_totals_table(self, receipt):
        totals = convert_receipt_to_document(receipt).blocks[9]
        assert totals.headers is None
        assert totals.rows == (("Subtotal:", "$9.25"), ("Tax:", "$0.74"), ("TOTAL:", "$9.99"))
        assert totals.column_count == 2

    def test_footer(self, receipt):
        blocks = convert_receipt_to_document(receipt).blocks
        assert blocks[10].value == "Payment: Card"
        assert blocks[11].style.margin_top == 10
        assert blocks[12].value == "See you soon"
        assert blocks[13].value == THANK_YOU
        assert isinstance(blocks[14], SpacerBlock)
        assert blocks[14].height == 20

    def test_empty_receipt(self):
        document = convert_receipt_to_document(ReceiptData())
        assert [block.type for block in document.blocks] == [
            "divider", "divider", "divider", "text", "spacer",
        ]

    def test_zero_tax_is_kept(self):
        document = convert_receipt_to_document(ReceiptData(tax=0))
        totals = [block for block in document.blocks if block.type == "table"]
        assert totals[0].rows == (("Tax:", "$0.00"),)

    def test_invalid_receipt(self):
        with pytest.raises(InvalidOption):
            parse_receipt({"items": [{"name": "Coffee"}]})
