"""
Abstract base classes for printer hardware.

These interfaces define the contract that real printer drivers,
operating-system adapters and mock implementations must follow.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from printbridge.core.errors import DispatchError, PrintBridgeError
from printbridge.printing.document import Printer, PrintOptions
from printbridge.printing.render import Artifact

logger = logging.getLogger(__name__)


class PrinterDirectory(ABC):
    """Abstract source of available printers."""

    @abstractmethod
    async def list_printers(self) -> List[Printer]:
        """
        List the printers currently available.

        Returns:
            Printers, at most one marked as default
        """
        ...

    async def find(self, identifier: str) -> Optional[Printer]:
        """Find a printer by id or name."""
        for printer in await self.list_printers():
            if printer.matches(identifier):
                return printer
        return None


class PrintSink(ABC):
    """Abstract consumer of rendered artifacts.

    Jobs for the same printer are serialized: a second job waits for
    the first to finish, so their output never interleaves. Jobs for
    different printers run independently.
    """

    name = "sink"

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._busy: set = set()

    def _lock_for(self, printer: Printer) -> asyncio.Lock:
        lock = self._locks.get(printer.id)
        if lock is None:
            lock = self._locks[printer.id] = asyncio.Lock()
        return lock

    def is_busy(self, printer: Printer) -> bool:
        """Check if a job is currently being sent to a printer."""
        return printer.id in self._busy

    async def dispatch(self, artifact: Artifact, printer: Printer, options: PrintOptions) -> None:
        """
        Send an artifact to a printer.

        Raises:
            DispatchError: If the backend fails to accept the job
        """
        lock = self._lock_for(printer)
        if lock.locked():
            logger.info(f"Printer {printer.name} busy, job queued")

        async with lock:
            self._busy.add(printer.id)
            try:
                await self._submit(artifact, printer, options)
            except DispatchError:
                raise
            except PrintBridgeError as e:
                raise DispatchError(str(e), e) from e
            except Exception as e:
                logger.error(f"{self.name} failed on {printer.name}: {e}")
                raise DispatchError(f"Failed to print on {printer.name}", e) from e
            finally:
                self._busy.discard(printer.id)

    @abstractmethod
    async def _submit(self, artifact: Artifact, printer: Printer, options: PrintOptions) -> None:
        """Hand the artifact to the backend (called with the printer lock held)."""
        ...
