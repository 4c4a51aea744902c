"""Legacy receipt records.

Older clients send a flat ``ReceiptData`` record instead of a block
document. ``convert_receipt_to_document`` turns it into the standard
receipt layout; every field is optional and missing ones are skipped.
"""

from typing import Any, Mapping, Optional

from pydantic import Field, ValidationError

from printbridge.core.errors import InvalidOption
from printbridge.printing.document import (
    Alignment,
    DividerBlock,
    DividerStyle,
    Document,
    SpacerBlock,
    TableBlock,
    TableStyle,
    TextBlock,
    TextStyle,
    WireModel,
    format_validation_error,
)

THANK_YOU = "Thank you for your business!"


class ReceiptItem(WireModel):
    name: str
    quantity: float
    price: float
    total: float


class ReceiptData(WireModel):
    """Flat receipt record (wire keys in camelCase)."""

    store_name: Optional[str] = None
    store_address: Optional[str] = None
    store_phone: Optional[str] = None
    receipt_number: Optional[str] = None
    date: Optional[str] = None
    items: tuple[ReceiptItem, ...] = Field(default_factory=tuple)
    subtotal: Optional[float] = None
    tax: Optional[float] = None
    total: Optional[float] = None
    payment_method: Optional[str] = None
    footer: Optional[str] = None


def format_money(amount: float) -> str:
    return f"${amount:.2f}"


def format_quantity(quantity: float) -> str:
    """Whole quantities print without a decimal point, others in full."""
    quantity = float(quantity)
    if quantity.is_integer():
        return str(int(quantity))
    return repr(quantity)


def convert_receipt_to_document(receipt: ReceiptData) -> Document:
    """Lay out a legacy receipt as a Document."""
    blocks = []

    # Header
    if receipt.store_name:
        blocks.append(TextBlock(
            value=receipt.store_name,
            style=TextStyle(align=Alignment.CENTER, bold=True, font_scale=1.5, margin_bottom=5),
        ))
    if receipt.store_address:
        blocks.append(TextBlock(
            value=receipt.store_address,
            style=TextStyle(align=Alignment.CENTER, font_scale=0.9),
        ))
    if receipt.store_phone:
        blocks.append(TextBlock(
            value=receipt.store_phone,
            style=TextStyle(align=Alignment.CENTER, font_scale=0.9, margin_bottom=5),
        ))

    blocks.append(DividerBlock())

    if receipt.receipt_number:
        blocks.append(TextBlock(
            value=f"Receipt #: {receipt.receipt_number}",
            style=TextStyle(margin_top=5),
        ))
    if receipt.date:
        blocks.append(TextBlock(
            value=f"Date: {receipt.date}",
            style=TextStyle(margin_bottom=5),
        ))

    blocks.append(DividerBlock())

    # Items
    if receipt.items:
        blocks.append(TableBlock(
            headers=("Item", "Qty", "Price", "Total"),
            rows=tuple(
                (
                    item.name,
                    format_quantity(item.quantity),
                    format_money(item.price),
                    format_money(item.total),
                )
                for item in receipt.items
            ),
            style=TableStyle(
                column_aligns=(Alignment.LEFT, Alignment.CENTER, Alignment.RIGHT, Alignment.RIGHT),
                margin_top=5,
                margin_bottom=5,
            ),
        ))
        blocks.append(DividerBlock())

    # Totals
    totals = []
    if receipt.subtotal is not None:
        totals.append(("Subtotal:", format_money(receipt.subtotal)))
    if receipt.tax is not None:
        totals.append(("Tax:", format_money(receipt.tax)))
    if receipt.total is not None:
        totals.append(("TOTAL:", format_money(receipt.total)))
    if totals:
        blocks.append(TableBlock(
            rows=tuple(totals),
            style=TableStyle(
                column_aligns=(Alignment.LEFT, Alignment.RIGHT),
                margin_top=5,
                margin_bottom=5,
            ),
        ))

    if receipt.payment_method:
        blocks.append(TextBlock(
            value=f"Payment: {receipt.payment_method}",
            style=TextStyle(margin_top=10),
        ))

    blocks.append(DividerBlock(style=DividerStyle(margin_top=10)))

    # Footer
    if receipt.footer:
        blocks.append(TextBlock(
            value=receipt.footer,
            style=TextStyle(align=Alignment.CENTER, margin_top=5),
        ))
    blocks.append(TextBlock(
        value=THANK_YOU,
        style=TextStyle(align=Alignment.CENTER, margin_top=5),
    ))
    blocks.append(SpacerBlock(height=20))

    return Document(blocks=tuple(blocks))


def parse_receipt(data: Mapping[str, Any]) -> ReceiptData:
    """Build ReceiptData from its wire representation.

    Raises:
        InvalidOption: If a field is malformed
    """
    try:
        return ReceiptData.model_validate(data)
    except ValidationError as exc:
        raise InvalidOption(f"Invalid receipt: {format_validation_error(exc)}", exc) from exc
