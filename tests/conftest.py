"""
Shared fixtures for printbridge tests
"""

import base64
from io import BytesIO

import pytest
from PIL import Image

from printbridge.core.errors import EncoderFailure
from printbridge.printing.barcode import BarcodeEncoder
from printbridge.printing.document import PrintOptions, parse_document


class FailingEncoder(BarcodeEncoder):
    """Encoder that rejects every value."""

    def encode(self, value, symbology=None, width=200, height=50):
        raise EncoderFailure(f"cannot encode {value!r}")


@pytest.fixture
def failing_encoder():
    return FailingEncoder()


@pytest.fixture
def options():
    """80mm options for a printer called Receipt"""
    return PrintOptions(printer_name="Receipt")


@pytest.fixture
def total_document():
    """Bold centered TOTAL followed by a divider"""
    return parse_document({
        "blocks": [
            {"type": "text", "value": "TOTAL", "style": {"align": "center", "bold": True}},
            {"type": "divider"},
        ]
    })


@pytest.fixture
def sample_document():
    """One block of every kind"""
    return parse_document({
        "blocks": [
            {"type": "text", "value": "Corner Cafe", "style": {"align": "center", "bold": True, "fontScale": 1.5}},
            {"type": "divider", "style": {"lineStyle": "solid"}},
            {
                "type": "table",
                "headers": ["Item", "Qty", "Price", "Total"],
                "rows": [["Coffee", "2", "$3.00", "$6.00"], "Refills are free"],
                "style": {"columnAligns": ["left", "center", "right", "right"]},
            },
            {"type": "spacer", "height": 15},
            {"type": "barcode", "value": "12345", "style": {"height": 40}},
        ]
    })


@pytest.fixture
def black_square_url():
    """10x10 black PNG as a data URL"""
    img = Image.new("L", (10, 10), 0)
    buf = BytesIO()
    img.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


@pytest.fixture
def receipt_payload():
    """Legacy receipt record in wire format"""
    return {
        "storeName": "Corner Cafe",
        "storeAddress": "1 Main St",
        "storePhone": "555-0100",
        "receiptNumber": "A-17",
        "date": "2024-05-01",
        "items": [
            {"name": "Coffee", "quantity": 2, "price": 3.5, "total": 7.0},
            {"name": "Bagel", "quantity": 1, "price": 2.25, "total": 2.25},
        ],
        "subtotal": 9.25,
        "tax": 0.74,
        "total": 9.99,
        "paymentMethod": "Card",
        "footer": "See you soon",
    }
