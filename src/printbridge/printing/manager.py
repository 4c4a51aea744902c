"""
Print dispatcher for printbridge.

Every print request runs through one job state machine:

States:
    IDLE: Job created
    VALIDATING: Looking up the target printer
    RENDERING: Building the backend artifact
    DISPATCHING: Handing the artifact to the sink
    SUCCEEDED: Sink accepted the job
    FAILED: Any stage failed; the error is reported, never retried
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional

from printbridge.config.settings import Settings
from printbridge.core.errors import PrintBridgeError, PrinterNotFound, RenderError
from printbridge.core.events import Event, EventBus, EventType
from printbridge.hardware.base import PrinterDirectory, PrintSink
from printbridge.hardware.directory import (
    DevicePrinterDirectory,
    StaticPrinterDirectory,
    SystemPrinterDirectory,
)
from printbridge.hardware.printer.dialog import DialogPrintSink
from printbridge.hardware.printer.escpos import EscPosDeviceSink
from printbridge.hardware.printer.mock import MockSink
from printbridge.printing.document import Document, Printer, PrintOptions
from printbridge.printing.escpos import EscPosRenderer
from printbridge.printing.fonts import FontCache
from printbridge.printing.markup import HtmlRenderer
from printbridge.printing.receipt import ReceiptData, convert_receipt_to_document
from printbridge.printing.render import Renderer

logger = logging.getLogger(__name__)

MOCK_PRINTER_NAME = "Mock Printer"


class DispatchState(Enum):
    """Print job states."""
    IDLE = auto()
    VALIDATING = auto()
    RENDERING = auto()
    DISPATCHING = auto()
    SUCCEEDED = auto()
    FAILED = auto()


TERMINAL_STATES = (DispatchState.SUCCEEDED, DispatchState.FAILED)


@dataclass
class PrintResult:
    """Outcome of one print request."""
    success: bool
    state: DispatchState
    history: List[DispatchState] = field(default_factory=list)
    error: Optional[str] = None
    message: str = ""
    printer: Optional[Printer] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "state": self.state.name,
            "history": [state.name for state in self.history],
            "error": self.error,
            "message": self.message,
            "printer": self.printer.model_dump(by_alias=True) if self.printer else None,
        }


class _Job:
    """Tracks the state of one print request."""

    # Valid state transitions
    VALID_TRANSITIONS: set[tuple[DispatchState, DispatchState]] = {
        (DispatchState.IDLE, DispatchState.VALIDATING),
        (DispatchState.VALIDATING, DispatchState.RENDERING),
        (DispatchState.VALIDATING, DispatchState.FAILED),
        (DispatchState.RENDERING, DispatchState.DISPATCHING),
        (DispatchState.RENDERING, DispatchState.FAILED),
        (DispatchState.DISPATCHING, DispatchState.SUCCEEDED),
        (DispatchState.DISPATCHING, DispatchState.FAILED),
    }

    def __init__(self, printer_name: str) -> None:
        self.printer_name = printer_name
        self.state = DispatchState.IDLE
        self.history = [DispatchState.IDLE]
        self.printer: Optional[Printer] = None

    def transition(self, to_state: DispatchState) -> None:
        if (self.state, to_state) not in self.VALID_TRANSITIONS:
            raise RuntimeError(f"Invalid print job transition: {self.state.name} -> {to_state.name}")
        logger.debug(f"Job for {self.printer_name}: {self.state.name} -> {to_state.name}")
        self.state = to_state
        self.history.append(to_state)

    def succeed(self) -> PrintResult:
        self.transition(DispatchState.SUCCEEDED)
        return PrintResult(
            success=True,
            state=self.state,
            history=list(self.history),
            message=f"Printed on {self.printer_name}",
            printer=self.printer,
        )

    def fail(self, error: PrintBridgeError) -> PrintResult:
        self.transition(DispatchState.FAILED)
        return PrintResult(
            success=False,
            state=self.state,
            history=list(self.history),
            error=error.kind,
            message=str(error),
            printer=self.printer,
        )


class PrintDispatcher:
    """Validates, renders and dispatches print jobs.

    Args:
        directory: Source of available printers
        renderer: Backend renderer producing the artifact
        sink: Backend consuming the artifact
        event_bus: Optional bus for lifecycle events
    """

    def __init__(
        self,
        directory: PrinterDirectory,
        renderer: Renderer,
        sink: PrintSink,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self._directory = directory
        self._renderer = renderer
        self._sink = sink
        self._event_bus = event_bus

    @property
    def renderer(self) -> Renderer:
        return self._renderer

    async def _emit(self, event_type: EventType, **data: Any) -> None:
        if self._event_bus:
            await self._event_bus.emit_async(Event(event_type, data=data, source="print_dispatcher"))

    async def list_printers(self) -> List[Printer]:
        """List printers known to the directory."""
        printers = await self._directory.list_printers()
        await self._emit(EventType.PRINTERS_LISTED, count=len(printers))
        return printers

    async def _find_printer(self, name: str) -> Printer:
        try:
            printer = await self._directory.find(name)
        except Exception as e:
            raise PrinterNotFound(f"Printer lookup failed for {name!r}", e) from e
        if printer is None:
            raise PrinterNotFound(f"Printer {name!r} not found")
        return printer

    async def print_document(self, document: Document, options: PrintOptions) -> PrintResult:
        """Print a document.

        Never raises for pipeline failures; they are reported in the
        returned PrintResult.
        """
        job = _Job(options.printer_name)
        await self._emit(EventType.PRINT_START, printer=options.printer_name, blocks=len(document.blocks))

        try:
            job.transition(DispatchState.VALIDATING)
            job.printer = await self._find_printer(options.printer_name)

            job.transition(DispatchState.RENDERING)
            try:
                # Rendering reads image and font files, keep it off the loop
                artifact = await asyncio.to_thread(self._renderer.render_document, document, options)
            except PrintBridgeError:
                raise
            except Exception as e:
                raise RenderError("Failed to render document", e) from e

            job.transition(DispatchState.DISPATCHING)
            await self._sink.dispatch(artifact, job.printer, options)

        except PrintBridgeError as e:
            logger.error(f"Print failed in {job.state.name}: {e}")
            result = job.fail(e)
            await self._emit(
                EventType.PRINT_ERROR,
                printer=options.printer_name,
                error=result.error,
                message=result.message,
            )
            return result

        result = job.succeed()
        logger.info(f"Print job completed on {job.printer.name}")
        await self._emit(EventType.PRINT_COMPLETE, printer=job.printer.name, copies=options.copies)
        return result

    async def print_receipt(self, receipt: ReceiptData, options: PrintOptions) -> PrintResult:
        """Print a legacy receipt record."""
        return await self.print_document(convert_receipt_to_document(receipt), options)


def create_renderer(settings: Settings) -> Renderer:
    """Create the renderer matching the configured backend."""
    if settings.backend == "dialog":
        return HtmlRenderer(fonts=FontCache.from_settings(settings.fonts))
    return EscPosRenderer.from_settings(settings.escpos)


def create_dispatcher(settings: Settings, event_bus: Optional[EventBus] = None) -> PrintDispatcher:
    """Factory function to create the configured dispatcher.

    Args:
        settings: Application settings
        event_bus: Optional bus for lifecycle events

    Returns:
        Dispatcher for the dialog, escpos or mock backend
    """
    renderer = create_renderer(settings)

    if settings.backend == "dialog":
        directory: PrinterDirectory = SystemPrinterDirectory()
        sink: PrintSink = DialogPrintSink.from_settings(settings.dialog)
    elif settings.backend == "escpos":
        directory = DevicePrinterDirectory.from_settings(settings.escpos)
        sink = EscPosDeviceSink.from_settings(settings.escpos)
    else:
        logger.info("Using mock printer backend")
        directory = StaticPrinterDirectory.from_names(MOCK_PRINTER_NAME)
        sink = MockSink()

    return PrintDispatcher(directory, renderer, sink, event_bus)
