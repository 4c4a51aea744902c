"""Printer sinks for printbridge."""

from printbridge.hardware.printer.escpos import EscPosDeviceSink
from printbridge.hardware.printer.dialog import DialogPrintSink
from printbridge.hardware.printer.mock import MockSink

__all__ = [
    "EscPosDeviceSink",
    "DialogPrintSink",
    "MockSink",
]
