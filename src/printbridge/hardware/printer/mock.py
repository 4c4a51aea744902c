"""Mock printer sink for testing and development."""

import logging
from dataclasses import dataclass
from typing import List, Optional

from printbridge.core.errors import DispatchError
from printbridge.hardware.base import PrintSink
from printbridge.printing.document import Printer, PrintOptions
from printbridge.printing.render import Artifact

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrintedJob:
    """A job accepted by the mock sink."""

    printer: Printer
    artifact: Artifact
    copies: int


class MockSink(PrintSink):
    """Records artifacts instead of printing them.

    Args:
        fail_with: If set, every job fails with this message
    """

    name = "mock"

    def __init__(self, fail_with: Optional[str] = None) -> None:
        super().__init__()
        self.fail_with = fail_with
        self.jobs: List[PrintedJob] = []

    async def _submit(self, artifact: Artifact, printer: Printer, options: PrintOptions) -> None:
        if self.fail_with:
            raise DispatchError(self.fail_with)

        self.jobs.append(PrintedJob(printer=printer, artifact=artifact, copies=options.copies))
        logger.info(
            f"=== MOCK PRINT === {printer.name}: {artifact.kind}, "
            f"{len(artifact.units)} blocks, {len(artifact.content)} bytes x{options.copies}"
        )

    @property
    def last_job(self) -> Optional[PrintedJob]:
        return self.jobs[-1] if self.jobs else None
