"""printbridge - receipt document rendering and printing."""

__version__ = "0.1.0"
