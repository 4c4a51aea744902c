"""
Tests for the print dispatcher
"""

import asyncio
import time
from unittest.mock import Mock

import pytest

from printbridge.config.settings import Settings
from printbridge.core.events import EventBus, EventType
from printbridge.hardware.base import PrinterDirectory, PrintSink
from printbridge.hardware.directory import StaticPrinterDirectory
from printbridge.hardware.printer.mock import MockSink
from printbridge.printing.document import PrintOptions
from printbridge.printing.escpos import EscPosRenderer
from printbridge.printing.manager import (
    MOCK_PRINTER_NAME,
    DispatchState,
    PrintDispatcher,
    create_dispatcher,
)
from printbridge.printing.markup import HtmlRenderer
from printbridge.printing.receipt import parse_receipt


class SlowRenderer(EscPosRenderer):
    """Renderer that blocks like a large image decode."""

    def render_document(self, document, options):
        time.sleep(0.2)
        return super().render_document(document, options)


class BrokenDirectory(PrinterDirectory):
    async def list_printers(self):
        raise OSError("spooler unavailable")


class RecordingSink(PrintSink):
    """Sink that logs when each job starts and ends."""

    def __init__(self):
        super().__init__()
        self.log = []

    async def _submit(self, artifact, printer, options):
        self.log.append(("start", options.copies))
        await asyncio.sleep(0.01)
        self.log.append(("end", options.copies))


@pytest.fixture
def directory():
    return StaticPrinterDirectory.from_names("Receipt", "Kitchen")


@pytest.fixture
def sink():
    return MockSink()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def dispatcher(directory, sink, event_bus):
    return PrintDispatcher(directory, HtmlRenderer(), sink, event_bus)


class TestPrintDocument:
    """PrintDispatcher.print_document"""

    def test_success(self, dispatcher, sink, total_document):
        options = PrintOptions(printer_name="Receipt", copies=2)
        result = asyncio.run(dispatcher.print_document(total_document, options))

        assert result.success
        assert result.state == DispatchState.SUCCEEDED
        assert result.history == [
            DispatchState.IDLE,
            DispatchState.VALIDATING,
            DispatchState.RENDERING,
            DispatchState.DISPATCHING,
            DispatchState.SUCCEEDED,
        ]
        assert result.printer.name == "Receipt"
        assert len(sink.jobs) == 1
        assert sink.last_job.copies == 2
        assert sink.last_job.artifact.kind == "markup"

    def test_unknown_printer_skips_rendering(self, directory, sink, total_document):
        renderer = HtmlRenderer()
        renderer.render_document = Mock()
        dispatcher = PrintDispatcher(directory, renderer, sink)

        result = asyncio.run(dispatcher.print_document(total_document, PrintOptions(printer_name="Nowhere")))

        assert not result.success
        assert result.error == "PrinterNotFound"
        assert result.history == [DispatchState.IDLE, DispatchState.VALIDATING, DispatchState.FAILED]
        renderer.render_document.assert_not_called()
        assert sink.jobs == []

    def test_directory_failure_is_printer_not_found(self, sink, total_document):
        dispatcher = PrintDispatcher(BrokenDirectory(), HtmlRenderer(), sink)
        result = asyncio.run(dispatcher.print_document(total_document, PrintOptions(printer_name="Receipt")))
        assert result.error == "PrinterNotFound"
        assert "spooler unavailable" in result.message

    def test_unsupported_paper(self, dispatcher, sink, total_document):
        options = PrintOptions(printer_name="Receipt", paper_size="99mm")
        result = asyncio.run(dispatcher.print_document(total_document, options))

        assert result.state == DispatchState.FAILED
        assert result.error == "InvalidOption"
        assert DispatchState.RENDERING in result.history
        assert sink.jobs == []

    def test_renderer_crash(self, directory, sink, total_document, options):
        renderer = HtmlRenderer()
        renderer.render_document = Mock(side_effect=ValueError("boom"))
        dispatcher = PrintDispatcher(directory, renderer, sink)

        result = asyncio.run(dispatcher.print_document(total_document, options))
        assert result.error == "RenderError"

    def test_sink_failure(self, directory, total_document, options):
        dispatcher = PrintDispatcher(directory, EscPosRenderer(), MockSink(fail_with="paper out"))
        result = asyncio.run(dispatcher.print_document(total_document, options))

        assert result.error == "DispatchError"
        assert "paper out" in result.message
        assert result.history[-2:] == [DispatchState.DISPATCHING, DispatchState.FAILED]

    def test_printer_found_by_id(self, dispatcher, sink, total_document):
        result = asyncio.run(dispatcher.print_document(total_document, PrintOptions(printer_name="Kitchen")))
        assert result.success
        assert sink.last_job.printer.name == "Kitchen"

    def test_result_dict(self, dispatcher, total_document, options):
        result = asyncio.run(dispatcher.print_document(total_document, options)).to_dict()
        assert result["success"] is True
        assert result["state"] == "SUCCEEDED"
        assert result["printer"]["displayName"] == "Receipt"


class TestEvents:
    """Lifecycle events"""

    def test_success_events(self, dispatcher, event_bus, total_document, options):
        asyncio.run(dispatcher.print_document(total_document, options))
        types = [event.type for event in event_bus.get_history()]
        assert types == [EventType.PRINT_START, EventType.PRINT_COMPLETE]

    def test_async_subscribers_receive_events(self, dispatcher, event_bus, total_document, options):
        received = []

        async def on_complete(event):
            received.append(event.data["printer"])

        event_bus.subscribe(EventType.PRINT_COMPLETE, on_complete)
        asyncio.run(dispatcher.print_document(total_document, options))

        assert received == ["Receipt"]

    def test_failure_event(self, dispatcher, event_bus, total_document):
        asyncio.run(dispatcher.print_document(total_document, PrintOptions(printer_name="Nowhere")))
        error = event_bus.get_history(EventType.PRINT_ERROR)[0]
        assert error.data["error"] == "PrinterNotFound"
        assert error.source == "print_dispatcher"


class TestSerialization:
    """Jobs for one printer never interleave"""

    def test_same_printer_jobs_queue(self, directory, total_document):
        sink = RecordingSink()
        dispatcher = PrintDispatcher(directory, EscPosRenderer(), sink)

        async def run_both():
            return await asyncio.gather(
                dispatcher.print_document(total_document, PrintOptions(printer_name="Receipt", copies=1)),
                dispatcher.print_document(total_document, PrintOptions(printer_name="Receipt", copies=2)),
            )

        results = asyncio.run(run_both())

        assert all(result.success for result in results)
        # Either job may render first, but one finishes before the other starts
        assert [step for step, _ in sink.log] == ["start", "end", "start", "end"]
        assert sink.log[0][1] == sink.log[1][1]
        assert sorted(copies for _, copies in sink.log) == [1, 1, 2, 2]


class TestResponsiveness:
    """Rendering does not stall the event loop"""

    def test_loop_keeps_running_during_render(self, directory, sink, total_document, options):
        dispatcher = PrintDispatcher(directory, SlowRenderer(), sink)
        ticks = []

        async def run():
            done = asyncio.Event()

            async def heartbeat():
                while not done.is_set():
                    ticks.append(time.monotonic())
                    await asyncio.sleep(0.005)

            beat = asyncio.create_task(heartbeat())
            result = await dispatcher.print_document(total_document, options)
            done.set()
            await beat
            return result

        result = asyncio.run(run())

        assert result.success
        assert len(ticks) >= 10


class TestReceiptsAndFactory:
    """print_receipt, list_printers and create_dispatcher"""

    def test_print_receipt(self, dispatcher, sink, receipt_payload, options):
        result = asyncio.run(dispatcher.print_receipt(parse_receipt(receipt_payload), options))
        assert result.success
        assert "Thank you for your business!" in sink.last_job.artifact.html

    def test_list_printers(self, dispatcher, event_bus):
        printers = asyncio.run(dispatcher.list_printers())
        assert [p.name for p in printers] == ["Receipt", "Kitchen"]
        assert printers[0].is_default
        assert event_bus.get_history(EventType.PRINTERS_LISTED)[0].data["count"] == 2

    def test_mock_backend(self, total_document):
        dispatcher = create_dispatcher(Settings(backend="mock"))
        assert isinstance(dispatcher.renderer, EscPosRenderer)

        result = asyncio.run(dispatcher.print_document(total_document, PrintOptions(printer_name=MOCK_PRINTER_NAME)))
        assert result.success

    def test_dialog_backend_renders_markup(self):
        dispatcher = create_dispatcher(Settings(backend="dialog"))
        assert isinstance(dispatcher.renderer, HtmlRenderer)
