"""Error taxonomy for the print pipeline.

Every failure a caller can observe maps onto one of these kinds. The
dispatcher turns them into a structured PrintResult; only EncoderFailure
is handled locally by the renderers (text fallback).
"""

from typing import Optional


class PrintBridgeError(Exception):
    """Base class for all print pipeline errors."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    @property
    def kind(self) -> str:
        """Error kind name reported to callers."""
        return type(self).__name__

    def __str__(self) -> str:
        if self.cause is not None and str(self.cause) not in self.message:
            return f"{self.message}: {self.cause}"
        return self.message


class PrinterNotFound(PrintBridgeError):
    """Requested printer is not known to the printer directory."""


class InvalidOption(PrintBridgeError):
    """Unsupported paper size or malformed document/style value."""


class EncoderFailure(PrintBridgeError):
    """Barcode generation failed."""


class RenderError(PrintBridgeError):
    """Unexpected failure while building an artifact."""


class DispatchError(PrintBridgeError):
    """The sink rejected or failed the physical job."""
