"""Printer directories.

``SystemPrinterDirectory`` asks the operating system for its queues
(CUPS ``lpstat`` on Linux/macOS, ``wmic`` on Windows).
``DevicePrinterDirectory`` lists direct-write ESC/POS devices from the
configuration plus auto-detected USB printer class devices.
``StaticPrinterDirectory`` holds a fixed list for mock mode and tests.
"""

import asyncio
import glob
import logging
import re
import sys
from typing import Dict, Iterable, List, Optional

from printbridge.hardware.base import PrinterDirectory
from printbridge.printing.document import Printer

logger = logging.getLogger(__name__)

DEFAULT_KIND = "ESC/POS"

# Name fragment -> printer kind, first match wins
_KIND_HINTS = (
    (("star",), "STAR"),
    (("tanca",), "TANCA"),
    (("daruma",), "DARUMA"),
    (("bematech",), "BEMATECH"),
    (("xprint", "xp-"), "XPrint"),
)

_LPSTAT_PRINTER = re.compile(r"^printer\s+(\S+)")
_LPSTAT_DEFAULT = "system default destination:"


def detect_printer_kind(name: str) -> str:
    """Guess the printer family from its name."""
    lowered = name.lower()
    for fragments, kind in _KIND_HINTS:
        if any(fragment in lowered for fragment in fragments):
            return kind
    return DEFAULT_KIND


def _make_printer(name: str, is_default: bool = False, port: Optional[str] = None) -> Printer:
    return Printer(
        id=name,
        name=name,
        display_name=name,
        is_default=is_default,
        kind=detect_printer_kind(name),
        port=port,
    )


def parse_lpstat(output: str) -> List[Printer]:
    """Parse ``lpstat -p -d`` output."""
    lines = [line for line in output.splitlines() if line.strip()]

    default_name = ""
    for line in lines:
        if _LPSTAT_DEFAULT in line:
            default_name = line.split(":", 1)[1].strip()
            break

    printers = []
    for line in lines:
        match = _LPSTAT_PRINTER.match(line)
        if match:
            name = match.group(1)
            printers.append(_make_printer(name, is_default=name == default_name))
    return printers


def parse_wmic(output: str) -> List[Printer]:
    """Parse ``wmic printer get name,default /format:csv`` output.

    Rows are ``Node,Default,Name``; the first non-empty line is the header.
    """
    lines = [line for line in output.splitlines() if line.strip()]

    printers = []
    for line in lines[1:]:
        # Name is the last column and may itself contain commas
        parts = line.split(",", 2)
        if len(parts) < 3:
            continue
        name = parts[2].strip()
        if name:
            printers.append(_make_printer(name, is_default=parts[1].strip().upper() == "TRUE"))
    return printers


class SystemPrinterDirectory(PrinterDirectory):
    """Printers known to the operating system's print spooler."""

    LPSTAT_COMMAND = ("lpstat", "-p", "-d")
    WMIC_COMMAND = ("wmic", "printer", "get", "name,default", "/format:csv")

    def __init__(self, platform: Optional[str] = None, timeout: float = 10.0) -> None:
        self._platform = platform or sys.platform
        self._timeout = timeout

    async def _run(self, command: Iterable[str]) -> str:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), self._timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise
        if process.returncode != 0:
            message = stderr.decode(errors="replace").strip()
            raise OSError(f"{' '.join(command)} exited with {process.returncode}: {message}")
        return stdout.decode(errors="replace")

    async def list_printers(self) -> List[Printer]:
        """List spooler queues; command failures yield an empty list."""
        windows = self._platform.startswith("win")
        command = self.WMIC_COMMAND if windows else self.LPSTAT_COMMAND

        try:
            output = await self._run(command)
        except (OSError, asyncio.TimeoutError) as e:
            logger.error(f"Error getting printers: {e}")
            return []

        printers = parse_wmic(output) if windows else parse_lpstat(output)
        logger.debug(f"Found {len(printers)} system printers")
        return printers


def auto_detect_devices() -> List[str]:
    """USB printer class devices (``/dev/usb/lp*``), sorted."""
    return sorted(glob.glob("/dev/usb/lp*"))


class DevicePrinterDirectory(PrinterDirectory):
    """Direct-write ESC/POS printers.

    Args:
        devices: Printer name -> device path
        auto_detect: Also list USB printer class devices not configured
    """

    def __init__(self, devices: Optional[Dict[str, str]] = None, auto_detect: bool = True) -> None:
        self._devices = dict(devices or {})
        self._auto_detect = auto_detect

    @classmethod
    def from_settings(cls, settings) -> "DevicePrinterDirectory":
        """Create a directory from EscPosSettings."""
        return cls(devices=settings.devices, auto_detect=settings.auto_detect)

    async def list_printers(self) -> List[Printer]:
        """Configured devices first, then detected ones; the first is the default."""
        entries = list(self._devices.items())

        if self._auto_detect:
            known_ports = set(self._devices.values())
            for port in await asyncio.to_thread(auto_detect_devices):
                if port not in known_ports:
                    logger.info(f"Auto-detected USB printer: {port}")
                    entries.append((port.rsplit("/", 1)[-1], port))

        return [
            _make_printer(name, is_default=index == 0, port=port)
            for index, (name, port) in enumerate(entries)
        ]


class StaticPrinterDirectory(PrinterDirectory):
    """A fixed list of printers."""

    def __init__(self, printers: Iterable[Printer]) -> None:
        self._printers = list(printers)

    @classmethod
    def from_names(cls, *names: str) -> "StaticPrinterDirectory":
        """Build a directory from names; the first is the default."""
        return cls(_make_printer(name, is_default=index == 0) for index, name in enumerate(names))

    async def list_printers(self) -> List[Printer]:
        return list(self._printers)
