"""Core infrastructure for printbridge."""

from .errors import (
    PrintBridgeError,
    PrinterNotFound,
    InvalidOption,
    EncoderFailure,
    RenderError,
    DispatchError,
)
from .events import EventBus, Event, EventType

__all__ = [
    # Errors
    "PrintBridgeError",
    "PrinterNotFound",
    "InvalidOption",
    "EncoderFailure",
    "RenderError",
    "DispatchError",
    # Events
    "EventBus",
    "Event",
    "EventType",
]
