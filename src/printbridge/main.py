"""
Command line entry point for printbridge.

Subcommands:
    printers: List available printers as JSON
    render: Render a document JSON file to markup or ESC/POS bytes
    print: Print a document (or, with --receipt, a legacy receipt) JSON file
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from printbridge.config.settings import Settings, get_settings
from printbridge.core.errors import PrintBridgeError
from printbridge.core.events import Event, EventBus
from printbridge.printing.document import parse_document, parse_options
from printbridge.printing.escpos import EscPosRenderer
from printbridge.printing.fonts import FontCache
from printbridge.printing.manager import create_dispatcher
from printbridge.printing.markup import HtmlRenderer
from printbridge.printing.receipt import parse_receipt

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def _load_json(path: str) -> Any:
    if path == "-":
        return json.load(sys.stdin)
    return json.loads(Path(path).read_text(encoding="utf-8"))


def build_options(args: argparse.Namespace, settings: Settings, printer_name: str = "") -> Dict[str, Any]:
    """Merge command line options over the configured defaults (wire keys)."""
    defaults = settings.defaults
    silent = defaults.silent if args.silent is None else args.silent
    return {
        "printerName": printer_name,
        "paperSize": args.paper_size or defaults.paper_size,
        "fontSize": args.font_size or defaults.font_size,
        "fontScale": args.font_scale or defaults.font_scale,
        "copies": args.copies or defaults.copies,
        "silent": silent,
    }


async def cmd_printers(args: argparse.Namespace, settings: Settings) -> int:
    dispatcher = create_dispatcher(settings)
    printers = await dispatcher.list_printers()
    print(json.dumps([p.model_dump(by_alias=True) for p in printers], indent=2))
    return 0


async def cmd_render(args: argparse.Namespace, settings: Settings) -> int:
    document = parse_document(_load_json(args.document))
    options = parse_options(build_options(args, settings, printer_name="render"))

    if args.format == "escpos":
        renderer = EscPosRenderer.from_settings(settings.escpos)
    else:
        renderer = HtmlRenderer(fonts=FontCache.from_settings(settings.fonts))

    artifact = renderer.render_document(document, options)

    if args.output:
        Path(args.output).write_bytes(artifact.content)
        logger.info(f"Wrote {artifact.kind} artifact to {args.output} ({len(artifact.content)} bytes)")
    else:
        sys.stdout.buffer.write(artifact.content)
        sys.stdout.buffer.flush()
    return 0


async def cmd_print(args: argparse.Namespace, settings: Settings) -> int:
    event_bus = EventBus()

    def log_event(event: Event) -> None:
        logger.debug(f"Event {event.type}: {event.data}")

    event_bus.subscribe_all(log_event)
    dispatcher = create_dispatcher(settings, event_bus)

    printer_name = args.printer
    if not printer_name:
        printers = await dispatcher.list_printers()
        default = next((p for p in printers if p.is_default), None)
        if default is None:
            logger.error("No printer given and no default printer available")
            return 1
        printer_name = default.name

    options = parse_options(build_options(args, settings, printer_name=printer_name))
    data = _load_json(args.document)

    if args.receipt:
        result = await dispatcher.print_receipt(parse_receipt(data), options)
    else:
        result = await dispatcher.print_document(parse_document(data), options)

    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.success else 1


def _add_option_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--paper-size", help="Paper width, e.g. 80mm or 58mm")
    parser.add_argument("--font-size", type=float, help="Base font size in px")
    parser.add_argument("--font-scale", type=float, help="Base font scale")
    parser.add_argument("--copies", type=int, help="Number of copies")
    parser.add_argument("--silent", dest="silent", action="store_true", default=None,
                        help="Print without a dialog")
    parser.add_argument("--dialog", dest="silent", action="store_false",
                        help="Show the print dialog")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="printbridge", description="Receipt printing bridge")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--backend", choices=["dialog", "escpos", "mock"],
                        help="Override the configured backend")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("printers", help="List available printers")

    render = subparsers.add_parser("render", help="Render a document without printing")
    render.add_argument("document", help="Document JSON file ('-' for stdin)")
    render.add_argument("--format", choices=["markup", "escpos"], default="markup")
    render.add_argument("-o", "--output", help="Output file (default: stdout)")
    _add_option_arguments(render)

    print_ = subparsers.add_parser("print", help="Print a document")
    print_.add_argument("document", help="Document JSON file ('-' for stdin)")
    print_.add_argument("-p", "--printer", help="Printer name (default: system default)")
    print_.add_argument("--receipt", action="store_true", help="Input is a legacy receipt record")
    _add_option_arguments(print_)

    return parser


COMMANDS = {
    "printers": cmd_printers,
    "render": cmd_render,
    "print": cmd_print,
}


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    settings = get_settings()
    if args.backend:
        settings = settings.model_copy(update={"backend": args.backend})

    setup_logging(args.debug or settings.debug)

    try:
        return asyncio.run(COMMANDS[args.command](args, settings))
    except PrintBridgeError as e:
        logger.error(f"{e.kind}: {e}")
        return 1
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Cannot read input: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
