"""Hardware abstraction layer for printbridge."""

from .base import PrinterDirectory, PrintSink
from .directory import (
    SystemPrinterDirectory,
    DevicePrinterDirectory,
    StaticPrinterDirectory,
    detect_printer_kind,
)

__all__ = [
    # Base classes
    "PrinterDirectory",
    "PrintSink",
    # Directories
    "SystemPrinterDirectory",
    "DevicePrinterDirectory",
    "StaticPrinterDirectory",
    "detect_printer_kind",
]
