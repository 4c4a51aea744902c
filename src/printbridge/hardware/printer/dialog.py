"""Print-dialog sink for driver-based printers.

Markup artifacts are written to a temporary ``.html`` file. Silent jobs
hand the file to the configured print command (``lp`` by default);
interactive jobs open it in the browser so the user gets the print
dialog.
"""

import asyncio
import logging
import os
import tempfile
import webbrowser
from pathlib import Path
from typing import List, Optional, Sequence, Set

from printbridge.core.errors import DispatchError
from printbridge.hardware.base import PrintSink
from printbridge.printing.document import Printer, PrintOptions
from printbridge.printing.render import Artifact, MarkupArtifact

logger = logging.getLogger(__name__)

DEFAULT_PRINT_COMMAND = ("lp", "-d", "{printer}", "-n", "{copies}", "{file}")


class DialogPrintSink(PrintSink):
    """Prints MarkupArtifacts through the system print pipeline.

    Args:
        print_command: Command template; ``{printer}``, ``{copies}`` and
            ``{file}`` are substituted in every argument
        timeout: Seconds to wait for the print command
        temp_dir: Directory for the temporary markup files
        keep_seconds: How long an interactive job's file outlives the
            dialog before it is removed
    """

    name = "dialog"

    def __init__(
        self,
        print_command: Optional[Sequence[str]] = None,
        timeout: float = 60.0,
        temp_dir: Optional[Path] = None,
        keep_seconds: float = 300.0,
    ) -> None:
        super().__init__()
        self._print_command = list(print_command or DEFAULT_PRINT_COMMAND)
        self._timeout = timeout
        self._temp_dir = temp_dir
        self._keep_seconds = keep_seconds
        self._pending: Set[Path] = set()

    @classmethod
    def from_settings(cls, settings) -> "DialogPrintSink":
        """Create a sink from DialogSettings."""
        return cls(
            print_command=settings.print_command,
            timeout=settings.timeout,
            keep_seconds=settings.keep_seconds,
        )

    def build_command(self, printer: Printer, copies: int, path: Path) -> List[str]:
        """Fill in the print command template."""
        values = {"printer": printer.name, "copies": str(copies), "file": str(path)}
        return [argument.format(**values) for argument in self._print_command]

    @property
    def pending_files(self) -> Set[Path]:
        """Interactive job files still waiting for removal."""
        return set(self._pending)

    def _remove(self, path: Path) -> None:
        self._pending.discard(path)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove {path}: {e}")

    def cleanup(self) -> None:
        """Remove every pending interactive job file now."""
        for path in list(self._pending):
            self._remove(path)

    def _write_temp(self, artifact: MarkupArtifact) -> Path:
        fd, name = tempfile.mkstemp(prefix="printbridge-", suffix=".html", dir=self._temp_dir)
        with os.fdopen(fd, "wb") as f:
            f.write(artifact.content)
        return Path(name)

    async def _run(self, command: List[str]) -> None:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            _, stderr = await asyncio.wait_for(process.communicate(), self._timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise DispatchError(f"Print command timed out after {self._timeout}s") from None

        if process.returncode != 0:
            message = stderr.decode(errors="replace").strip()
            raise DispatchError(f"Print command exited with {process.returncode}: {message}")

    async def _open_dialog(self, path: Path, printer: Printer, options: PrintOptions) -> None:
        opened = await asyncio.to_thread(webbrowser.open, path.as_uri())
        if not opened:
            self._remove(path)
            raise DispatchError("No browser available to show the print dialog")

        # The browser loads the file asynchronously, remove it later
        self._pending.add(path)
        asyncio.get_running_loop().call_later(self._keep_seconds, self._remove, path)

        if options.copies > 1:
            logger.info(f"Copy count {options.copies} is left to the print dialog")
        logger.info(f"Print dialog opened for {printer.name}")

    async def _submit(self, artifact: Artifact, printer: Printer, options: PrintOptions) -> None:
        if not isinstance(artifact, MarkupArtifact):
            raise DispatchError(f"{self.name} sink cannot print {artifact.kind} artifacts")

        path = await asyncio.to_thread(self._write_temp, artifact)
        logger.debug(f"Markup written to {path} ({len(artifact.html)} chars)")

        if not options.silent:
            await self._open_dialog(path, printer, options)
            return

        try:
            command = self.build_command(printer, options.copies, path)
            logger.info(f"Printing on {printer.name}: {' '.join(command)}")
            await self._run(command)
        finally:
            path.unlink(missing_ok=True)
        logger.info(f"Job sent to {printer.name}")
