"""Direct-write ESC/POS printer sink.

Sends command buffers straight to the printer device:

- Serial ports (``/dev/tty*``, ``/dev/serial*``, ``COM*``) through pyserial
- USB printer class devices (``/dev/usb/lp*``) and other paths as raw files

Writes are chunked to avoid overflowing the printer's input buffer and
run in a worker thread so the event loop never blocks on the device.
"""

import asyncio
import logging
import re
from typing import BinaryIO, Union

import serial

from printbridge.core.errors import DispatchError
from printbridge.hardware.base import PrintSink
from printbridge.printing.document import Printer, PrintOptions
from printbridge.printing.render import Artifact, CommandArtifact

logger = logging.getLogger(__name__)

_SERIAL_PORT = re.compile(r"^(/dev/(tty|serial|cu\.)|COM\d+$)", re.IGNORECASE)

# ESC @, three line feeds, partial cut
RECOVERY_COMMANDS = b'\x1b\x40' + b'\x1b\x64\x03' + b'\x1d\x56\x01'


def is_serial_port(port: str) -> bool:
    """Check if a device path names a serial port."""
    return bool(_SERIAL_PORT.match(port))


class EscPosDeviceSink(PrintSink):
    """Writes CommandArtifacts to ESC/POS devices.

    Args:
        baudrate: Serial baud rate
        timeout: Serial write timeout in seconds
        chunk_size: Bytes written per chunk
    """

    name = "escpos"

    DEFAULT_BAUD = 9600

    def __init__(
        self,
        baudrate: int = DEFAULT_BAUD,
        timeout: float = 2.0,
        chunk_size: int = 256,
    ) -> None:
        super().__init__()
        self._baudrate = baudrate
        self._timeout = timeout
        self._chunk_size = max(1, chunk_size)

    @classmethod
    def from_settings(cls, settings) -> "EscPosDeviceSink":
        """Create a sink from EscPosSettings."""
        return cls(
            baudrate=settings.baudrate,
            timeout=settings.timeout,
            chunk_size=settings.chunk_size,
        )

    def _open(self, port: str) -> Union[serial.Serial, BinaryIO]:
        """Open the device (blocking)."""
        if is_serial_port(port):
            return serial.Serial(
                port=port,
                baudrate=self._baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self._timeout,
                write_timeout=self._timeout,
            )
        return open(port, "wb")

    def _write(self, device: Union[serial.Serial, BinaryIO], data: bytes) -> None:
        """Blocking chunked write (runs in thread pool)."""
        for i in range(0, len(data), self._chunk_size):
            device.write(data[i:i + self._chunk_size])
            device.flush()

    def _send(self, port: str, data: bytes, copies: int) -> None:
        """Open the device, write every copy and close it again."""
        device = self._open(port)
        try:
            for index in range(copies):
                self._write(device, data)
                logger.debug(f"Copy {index + 1}/{copies}: {len(data)} bytes sent to {port}")
        except Exception:
            self._recover(device, port)
            raise
        finally:
            device.close()

    def _recover(self, device: Union[serial.Serial, BinaryIO], port: str) -> None:
        """Best effort: reset the printer and cut whatever was printed."""
        try:
            device.write(RECOVERY_COMMANDS)
            device.flush()
        except (OSError, serial.SerialException) as e:
            logger.warning(f"Printer recovery on {port} failed: {e}")

    async def _submit(self, artifact: Artifact, printer: Printer, options: PrintOptions) -> None:
        if not isinstance(artifact, CommandArtifact):
            raise DispatchError(f"{self.name} sink cannot print {artifact.kind} artifacts")
        if not printer.port:
            raise DispatchError(f"Printer {printer.name} has no device port")

        logger.info(f"Printing {options.copies} copies on {printer.name} ({printer.port})")
        await asyncio.to_thread(self._send, printer.port, artifact.data, options.copies)
        logger.info(f"Job sent to {printer.name}: {len(artifact.data) * options.copies} bytes")
