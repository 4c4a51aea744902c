"""
Tests for print sinks
"""

import asyncio
import sys

import pytest

from printbridge.core.errors import DispatchError
from printbridge.hardware.printer.dialog import DialogPrintSink
from printbridge.hardware.printer.escpos import (
    RECOVERY_COMMANDS,
    EscPosDeviceSink,
    is_serial_port,
)
from printbridge.hardware.printer.mock import MockSink
from printbridge.printing.document import Printer, PrintOptions
from printbridge.printing.render import CommandArtifact, MarkupArtifact


class FlakyDevice:
    """Device that fails on the second write."""

    def __init__(self):
        self.written = []
        self.calls = 0
        self.closed = False

    def write(self, data):
        self.calls += 1
        if self.calls == 2:
            raise OSError("cable pulled")
        self.written.append(data)

    def flush(self):
        pass

    def close(self):
        self.closed = True


@pytest.fixture
def commands():
    return CommandArtifact(units=(b"hello\n",), paper_width_mm=80, data=b"\x1b@hello\n\x1dV\x01")


@pytest.fixture
def markup():
    return MarkupArtifact(units=("<div>hi</div>",), paper_width_mm=80, html="<html><div>hi</div></html>")


def device_printer(port):
    return Printer(id="lp0", name="lp0", display_name="lp0", port=str(port) if port else None)


class TestEscPosDeviceSink:
    """EscPosDeviceSink"""

    @pytest.mark.parametrize("port, expected", [
        ("/dev/ttyUSB0", True),
        ("/dev/serial0", True),
        ("COM3", True),
        ("/dev/usb/lp0", False),
        ("/tmp/printer.bin", False),
    ])
    def test_serial_detection(self, port, expected):
        assert is_serial_port(port) is expected

    def test_writes_every_copy(self, tmp_path, commands):
        port = tmp_path / "lp0"
        sink = EscPosDeviceSink(chunk_size=4)
        options = PrintOptions(printer_name="lp0", copies=2)

        asyncio.run(sink.dispatch(commands, device_printer(port), options))

        assert port.read_bytes() == commands.data * 2

    def test_rejects_markup(self, tmp_path, markup):
        sink = EscPosDeviceSink()
        with pytest.raises(DispatchError):
            asyncio.run(sink.dispatch(markup, device_printer(tmp_path / "lp0"), PrintOptions(printer_name="lp0")))

    def test_printer_without_port(self, commands):
        with pytest.raises(DispatchError):
            asyncio.run(EscPosDeviceSink().dispatch(commands, device_printer(None), PrintOptions(printer_name="lp0")))

    def test_unopenable_device(self, tmp_path, commands):
        printer = device_printer(tmp_path / "missing" / "lp0")
        with pytest.raises(DispatchError) as exc_info:
            asyncio.run(EscPosDeviceSink().dispatch(commands, printer, PrintOptions(printer_name="lp0")))
        assert isinstance(exc_info.value.cause, FileNotFoundError)

    def test_failure_mid_stream_resets_printer(self, commands):
        device = FlakyDevice()
        sink = EscPosDeviceSink(chunk_size=4)
        sink._open = lambda port: device

        with pytest.raises(DispatchError):
            asyncio.run(sink.dispatch(commands, device_printer("/dev/usb/lp0"), PrintOptions(printer_name="lp0")))

        assert device.written[-1] == RECOVERY_COMMANDS
        assert device.closed
        assert not sink.is_busy(device_printer("/dev/usb/lp0"))


class TestDialogPrintSink:
    """DialogPrintSink"""

    def test_build_command(self, tmp_path):
        sink = DialogPrintSink()
        printer = Printer(id="Office", name="Office", display_name="Office")
        command = sink.build_command(printer, 3, tmp_path / "job.html")
        assert command == ["lp", "-d", "Office", "-n", "3", str(tmp_path / "job.html")]

    def test_silent_print_runs_command(self, tmp_path, markup):
        sink = DialogPrintSink(temp_dir=tmp_path)
        seen = {}

        async def fake_run(command):
            path = command[-1]
            seen["command"] = command
            with open(path, encoding="utf-8") as f:
                seen["html"] = f.read()

        sink._run = fake_run
        printer = Printer(id="Office", name="Office", display_name="Office")
        asyncio.run(sink.dispatch(markup, printer, PrintOptions(printer_name="Office", copies=2)))

        assert seen["command"][:5] == ["lp", "-d", "Office", "-n", "2"]
        assert seen["html"] == markup.html
        # Temporary file removed after printing
        assert list(tmp_path.iterdir()) == []

    def test_failing_command(self, tmp_path, markup):
        command = [sys.executable, "-c", "import sys; sys.exit(3)"]
        sink = DialogPrintSink(print_command=command, temp_dir=tmp_path)
        printer = Printer(id="Office", name="Office", display_name="Office")

        with pytest.raises(DispatchError) as exc_info:
            asyncio.run(sink.dispatch(markup, printer, PrintOptions(printer_name="Office")))
        assert "exited with 3" in str(exc_info.value)
        assert list(tmp_path.iterdir()) == []

    def test_interactive_opens_browser(self, tmp_path, markup, monkeypatch):
        opened = []
        monkeypatch.setattr("webbrowser.open", lambda uri: opened.append(uri) or True)
        sink = DialogPrintSink(temp_dir=tmp_path)
        printer = Printer(id="Office", name="Office", display_name="Office")

        asyncio.run(sink.dispatch(markup, printer, PrintOptions(printer_name="Office", silent=False)))

        assert len(opened) == 1
        assert opened[0].startswith("file://")
        assert opened[0].endswith(".html")
        assert len(sink.pending_files) == 1

        sink.cleanup()
        assert sink.pending_files == set()
        assert list(tmp_path.iterdir()) == []

    def test_interactive_file_removed_after_delay(self, tmp_path, markup, monkeypatch, caplog):
        monkeypatch.setattr("webbrowser.open", lambda uri: True)
        sink = DialogPrintSink(temp_dir=tmp_path, keep_seconds=0.01)
        printer = Printer(id="Office", name="Office", display_name="Office")

        async def print_and_wait():
            await sink.dispatch(markup, printer, PrintOptions(printer_name="Office", silent=False, copies=3))
            assert len(list(tmp_path.iterdir())) == 1
            await asyncio.sleep(0.05)

        with caplog.at_level("INFO", logger="printbridge.hardware.printer.dialog"):
            asyncio.run(print_and_wait())

        assert list(tmp_path.iterdir()) == []
        assert sink.pending_files == set()
        assert "Copy count 3 is left to the print dialog" in caplog.text

    def test_no_browser(self, tmp_path, markup, monkeypatch):
        monkeypatch.setattr("webbrowser.open", lambda uri: False)
        sink = DialogPrintSink(temp_dir=tmp_path)
        printer = Printer(id="Office", name="Office", display_name="Office")

        with pytest.raises(DispatchError):
            asyncio.run(sink.dispatch(markup, printer, PrintOptions(printer_name="Office", silent=False)))
        assert list(tmp_path.iterdir()) == []

    def test_rejects_commands(self, commands):
        printer = Printer(id="Office", name="Office", display_name="Office")
        with pytest.raises(DispatchError):
            asyncio.run(DialogPrintSink().dispatch(commands, printer, PrintOptions(printer_name="Office")))


class TestMockSink:
    """MockSink"""

    def test_records_jobs(self, commands):
        sink = MockSink()
        printer = device_printer(None)
        asyncio.run(sink.dispatch(commands, printer, PrintOptions(printer_name="lp0", copies=3)))

        assert sink.last_job.artifact is commands
        assert sink.last_job.copies == 3

    def test_fail_with(self, commands):
        sink = MockSink(fail_with="paper out")
        with pytest.raises(DispatchError, match="paper out"):
            asyncio.run(sink.dispatch(commands, device_printer(None), PrintOptions(printer_name="lp0")))
        assert sink.jobs == []
