"""Printing module for printbridge - receipt documents and their renderers."""

from printbridge.printing.document import (
    Document,
    PrintOptions,
    PaperSize,
    Printer,
    parse_document,
    parse_options,
)
from printbridge.printing.render import Renderer, Artifact, MarkupArtifact, CommandArtifact
from printbridge.printing.markup import HtmlRenderer
from printbridge.printing.escpos import EscPosRenderer
from printbridge.printing.receipt import ReceiptData, convert_receipt_to_document, parse_receipt

__all__ = [
    # Document model
    "Document",
    "PrintOptions",
    "PaperSize",
    "Printer",
    "parse_document",
    "parse_options",
    # Rendering
    "Renderer",
    "Artifact",
    "MarkupArtifact",
    "CommandArtifact",
    "HtmlRenderer",
    "EscPosRenderer",
    # Legacy receipts
    "ReceiptData",
    "convert_receipt_to_document",
    "parse_receipt",
]
