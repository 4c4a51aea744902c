"""ESC/POS rendering for direct-write thermal printers.

Converts documents to raw printer commands: text with alignment, weight
and character magnification, tables laid out on the character grid,
raster images and barcodes (GS v 0), then a feed and partial cut.

Widths come from the paper size at 203 dpi (576 dots on 80mm paper,
384 dots on 58mm) with Font A characters 12 dots wide.
"""

import base64
import logging
import textwrap
from io import BytesIO
from pathlib import Path
from typing import List, Optional
from urllib.parse import unquote_to_bytes, urlparse

import numpy as np
from PIL import Image

from printbridge.printing.barcode import BarcodeEncoder
from printbridge.printing.document import (
    Alignment,
    BarcodeBlock,
    DividerBlock,
    ImageBlock,
    LineStyle,
    TableBlock,
    TextBlock,
)
from printbridge.printing.render import (
    DEFAULT_LINE_STYLE,
    CommandArtifact,
    FullWidthRow,
    RenderContext,
    Renderer,
    TableCell,
    TableLayout,
)
from printbridge.printing.style import EffectiveStyle, round_half_up

logger = logging.getLogger(__name__)

# Everything below 0x20 (and DEL) could start a printer command
_CONTROL_CHARS = {code: " " for code in range(0x20) if code != 0x0A}
_CONTROL_CHARS[0x7F] = " "


class EscPosRenderer(Renderer[bytes]):
    """Renders documents to ESC/POS command streams.

    Args:
        codepage: Python codec used to encode text
        codepage_table: ESC t table number selecting the same code page
        feed_lines: Lines fed before the final cut
        encoder: Barcode encoder
    """

    name = "escpos"

    # ESC/POS command constants
    ESC = b'\x1b'
    GS = b'\x1d'
    LF = b'\x0a'

    CHAR_WIDTH = 12  # Font A, dots
    DOTS_PER_PX = 203 / 96  # 203 dpi head, 96 dpi CSS pixels
    BASE_CHAR_PX = 12  # Font size printed at 1x magnification
    MAX_MAGNIFICATION = 8

    def __init__(
        self,
        codepage: str = "cp437",
        codepage_table: int = 0,
        feed_lines: int = 3,
        encoder: Optional[BarcodeEncoder] = None,
    ) -> None:
        super().__init__(encoder)
        self.codepage = codepage
        self.codepage_table = codepage_table
        self.feed_lines = feed_lines

    @classmethod
    def from_settings(cls, settings, encoder: Optional[BarcodeEncoder] = None) -> "EscPosRenderer":
        """Create a renderer from EscPosSettings."""
        return cls(
            codepage=settings.codepage,
            codepage_table=settings.codepage_table,
            feed_lines=settings.feed_lines,
            encoder=encoder,
        )

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def _cmd_init(self) -> bytes:
        """Initialize printer command."""
        return self.ESC + b'@'

    def _cmd_codepage(self) -> bytes:
        """Select character code table."""
        return self.ESC + b't' + bytes([self.codepage_table & 0xFF])

    def _cmd_cut(self) -> bytes:
        """Partial paper cut command."""
        return self.GS + b'V' + b'\x01'

    def _cmd_align(self, alignment: Alignment) -> bytes:
        """Set text alignment."""
        align_byte = {
            Alignment.LEFT: b'\x00',
            Alignment.CENTER: b'\x01',
            Alignment.RIGHT: b'\x02',
        }
        return self.ESC + b'a' + align_byte.get(alignment, b'\x00')

    def _cmd_size(self, magnification: int) -> bytes:
        """GS ! n - same width and height magnification (1-8)."""
        factor = magnification - 1
        return self.GS + b'!' + bytes([(factor << 4) | factor])

    def _cmd_bold(self, enabled: bool) -> bytes:
        """Set bold mode."""
        return self.ESC + b'E' + (b'\x01' if enabled else b'\x00')

    def _cmd_feed_lines(self, lines: int) -> bytes:
        """ESC d n - print and feed n lines."""
        return self.ESC + b'd' + bytes([max(0, min(lines, 255))])

    def _feed(self, px: int) -> bytes:
        """Feed paper by a CSS pixel distance (ESC J, 255 dots at a time)."""
        dots = round_half_up(px * self.DOTS_PER_PX)
        commands = []
        while dots > 0:
            step = min(dots, 255)
            commands.append(self.ESC + b'J' + bytes([step]))
            dots -= step
        return b''.join(commands)

    # -------------------------------------------------------------------------
    # Text helpers
    # -------------------------------------------------------------------------

    def escape(self, text: str) -> str:
        """Replace control characters so text can never form a command."""
        return text.replace("\r\n", "\n").translate(_CONTROL_CHARS)

    def _encode(self, text: str) -> bytes:
        return text.encode(self.codepage, errors="replace")

    def _magnification(self, font_size: int) -> int:
        """Character magnification for a font size in pixels."""
        factor = round_half_up(font_size / self.BASE_CHAR_PX)
        return max(1, min(self.MAX_MAGNIFICATION, factor))

    def _max_chars(self, ctx: RenderContext, magnification: int = 1) -> int:
        """Maximum characters per line at a given magnification."""
        base = max(1, ctx.paper.print_dots // self.CHAR_WIDTH)
        return max(1, base // magnification)

    def device_pixels(self, px: int, ctx: RenderContext) -> int:
        return max(1, round_half_up(px * self.DOTS_PER_PX))

    def _wrap_text(self, text: str, max_chars: int) -> List[str]:
        """Wrap text to the line width, keeping each line's indentation."""
        lines: List[str] = []
        for raw in text.split("\n"):
            indent = len(raw) - len(raw.lstrip(" "))
            width = max_chars - indent
            if width < 1:
                indent, width = 0, max_chars

            wrapped = textwrap.wrap(raw.strip(" "), width=max(1, width), break_on_hyphens=False)
            if not wrapped:
                lines.append(raw[:max_chars])
                continue
            lines.extend(" " * indent + line for line in wrapped)

        return lines

    @staticmethod
    def _pad(text: str, width: int, alignment: Alignment) -> str:
        text = text[:width]
        if alignment == Alignment.CENTER:
            return text.center(width)
        if alignment == Alignment.RIGHT:
            return text.rjust(width)
        return text.ljust(width)

    # -------------------------------------------------------------------------
    # Blocks
    # -------------------------------------------------------------------------

    def render_text(self, block: TextBlock, style: EffectiveStyle, ctx: RenderContext) -> bytes:
        """Render a text block to commands."""
        magnification = self._magnification(style.font_size)
        lines = self._wrap_text(self.escape(block.value), self._max_chars(ctx, magnification)) or [""]

        commands = [
            self._feed(style.margin_top),
            self._cmd_align(style.align),
            self._cmd_size(magnification),
            self._cmd_bold(style.bold),
        ]
        for line in lines:
            commands.append(self._encode(line))
            commands.append(self.LF)

        # Reset formatting
        commands.append(self._cmd_bold(False))
        commands.append(self._cmd_size(1))
        commands.append(self._feed(style.margin_bottom))

        return b''.join(commands)

    def _column_chars(self, layout: TableLayout, line_chars: int) -> List[int]:
        """Character width of each column; the last takes what is left.

        Every column gets at least one character and the row never
        exceeds ``line_chars`` while there are enough characters to go
        around.
        """
        columns = [max(1, line_chars * width // 100) for width in layout.widths]
        if not columns:
            return columns
        columns[-1] = line_chars - sum(columns[:-1])
        while columns[-1] < 1:
            widest = max(range(len(columns) - 1), key=lambda i: columns[i], default=None)
            if widest is None or columns[widest] <= 1:
                columns[-1] = 1
                break
            columns[widest] -= 1
            columns[-1] += 1
        return columns

    def _render_cells(self, cells: tuple[TableCell, ...], columns: List[int]) -> bytes:
        """Lay out one table row, wrapping each cell inside its column."""
        last = len(columns) - 1
        wrapped = []
        for index, (cell, column) in enumerate(zip(cells, columns)):
            content_width = column if index == last else max(1, column - 1)
            wrapped.append(self._wrap_text(self.escape(cell.text), content_width) or [""])

        commands = []
        for line_index in range(max(len(lines) for lines in wrapped)):
            for index, (cell, column, lines) in enumerate(zip(cells, columns, wrapped)):
                content_width = column if index == last else max(1, column - 1)
                text = lines[line_index] if line_index < len(lines) else ""
                segment = self._pad(text, content_width, cell.align)
                if index != last:
                    segment += " " * (column - content_width)
                commands.append(self._cmd_bold(cell.bold))
                commands.append(self._encode(segment))
            commands.append(self._cmd_bold(False))
            commands.append(self.LF)

        return b''.join(commands)

    def _render_full_width(self, row: FullWidthRow, line_chars: int) -> bytes:
        lines = self._wrap_text(self.escape(row.text), line_chars) or [""]
        commands = [self._cmd_bold(row.bold)]
        for line in lines:
            commands.append(self._encode(self._pad(line, line_chars, row.align)))
            commands.append(self.LF)
        commands.append(self._cmd_bold(False))
        return b''.join(commands)

    def render_table(
        self,
        block: TableBlock,
        layout: TableLayout,
        style: EffectiveStyle,
        ctx: RenderContext,
    ) -> bytes:
        """Render a table on the character grid."""
        magnification = self._magnification(style.font_size)
        # Shrink until every column has a character
        while magnification > 1 and self._max_chars(ctx, magnification) < layout.column_count:
            magnification -= 1
        line_chars = self._max_chars(ctx, magnification)
        if line_chars < layout.column_count:
            logger.warning(f"Table has {layout.column_count} columns but only {line_chars} characters per line")
        columns = self._column_chars(layout, line_chars)

        commands = [
            self._feed(style.margin_top),
            self._cmd_align(Alignment.LEFT),
            self._cmd_size(magnification),
        ]

        if layout.header:
            commands.append(self._render_cells(layout.header, columns))

        for row in layout.rows:
            if isinstance(row, FullWidthRow):
                commands.append(self._render_full_width(row, line_chars))
            else:
                commands.append(self._render_cells(row, columns))

        commands.append(self._cmd_size(1))
        commands.append(self._feed(style.margin_bottom))
        return b''.join(commands)

    def _separator_text(self, line_style: LineStyle, chars_per_line: int) -> str:
        separators = {
            LineStyle.SOLID: "-" * chars_per_line,
            LineStyle.DASHED: ("- " * chars_per_line)[:chars_per_line],
            LineStyle.DOTTED: (". " * chars_per_line)[:chars_per_line],
        }
        return separators[line_style]

    def render_divider(self, block: DividerBlock, style: EffectiveStyle, ctx: RenderContext) -> bytes:
        """Render a separator line."""
        line_style = block.style.line_style or DEFAULT_LINE_STYLE
        text = self._separator_text(line_style, self._max_chars(ctx))
        return b''.join([
            self._feed(style.margin_top),
            self._cmd_align(Alignment.CENTER),
            self._cmd_size(1),
            self._encode(text),
            self.LF,
            self._feed(style.margin_bottom),
        ])

    def render_spacer(self, height: int, ctx: RenderContext) -> bytes:
        """Render vertical spacing."""
        return self._feed(height)

    def _load_image(self, url: str) -> Image.Image:
        """Open an image from a data URL or a local path."""
        if url.startswith("data:"):
            header, _, payload = url.partition(",")
            if header.endswith(";base64"):
                data = base64.b64decode(payload)
            else:
                data = unquote_to_bytes(payload)
        else:
            parsed = urlparse(url)
            if parsed.scheme in ("http", "https"):
                raise ValueError("remote images are not fetched for direct printing")
            path = Path(parsed.path) if parsed.scheme == "file" else Path(url)
            data = path.read_bytes()

        img = Image.open(BytesIO(data))
        img.load()
        return img

    @staticmethod
    def _flatten(img: Image.Image) -> Image.Image:
        """Composite transparent images onto white paper."""
        if img.mode in ('RGBA', 'LA', 'PA') or 'transparency' in img.info:
            background = Image.new('RGBA', img.size, 'white')
            return Image.alpha_composite(background, img.convert('RGBA'))
        return img

    def _image_size(self, block: ImageBlock, img: Image.Image, ctx: RenderContext) -> tuple[int, int]:
        """Target raster size in dots, never wider than the printable width."""
        width = self.device_pixels(block.style.width, ctx) if block.style.width else None
        height = self.device_pixels(block.style.height, ctx) if block.style.height else None

        if width and not height:
            height = round_half_up(width * img.height / img.width)
        elif height and not width:
            width = round_half_up(height * img.width / img.height)
        elif not width:
            width, height = img.width, img.height

        max_width = ctx.paper.print_dots
        if width > max_width:
            height = round_half_up(height * max_width / width)
            width = max_width
        return max(1, width), max(1, height)

    def render_image(self, block: ImageBlock, style: EffectiveStyle, ctx: RenderContext) -> bytes:
        """Render an image block as a dithered raster."""
        try:
            img = self._load_image(block.url)
        except (OSError, ValueError) as e:
            logger.error(f"Image rendering failed: {e}")
            return b''

        size = self._image_size(block, img, ctx)
        img = self._flatten(img).convert('L').resize(size, Image.Resampling.LANCZOS)
        img = img.convert('1', dither=Image.Dither.FLOYDSTEINBERG)

        return b''.join([
            self._feed(style.margin_top),
            self._image_to_raster(img, style.align),
            self._feed(style.margin_bottom),
        ])

    def _image_to_raster(self, img: Image.Image, alignment: Alignment) -> bytes:
        """Convert a 1-bit PIL image to GS v 0 raster commands."""
        black = ~np.asarray(img.convert('1'), dtype=bool)
        # packbits pads each row to whole bytes with white
        rows = np.packbits(black, axis=1)
        height, bytes_per_line = rows.shape

        # GS v 0 m xL xH yL yH data
        return b''.join([
            self._cmd_align(alignment),
            self.GS + b'v0',
            b'\x00',
            bytes([bytes_per_line & 0xFF, (bytes_per_line >> 8) & 0xFF]),
            bytes([height & 0xFF, (height >> 8) & 0xFF]),
            rows.tobytes(),
        ])

    def render_barcode(
        self,
        block: BarcodeBlock,
        image,
        width: int,
        style: EffectiveStyle,
        ctx: RenderContext,
    ) -> bytes:
        """Render a barcode raster with an optional caption."""
        if image.width > ctx.paper.print_dots:
            image = image.resize((ctx.paper.print_dots, image.height), Image.Resampling.NEAREST)

        commands = [
            self._feed(style.margin_top),
            self._image_to_raster(image, style.align),
        ]
        if block.style.display_value:
            commands.extend([
                self._cmd_align(style.align),
                self._cmd_size(self._magnification(style.font_size)),
                self._encode(self.escape(block.value).replace("\n", " ")),
                self.LF,
                self._cmd_size(1),
            ])
        commands.append(self._feed(style.margin_bottom))
        return b''.join(commands)

    def render_barcode_fallback(
        self,
        block: BarcodeBlock,
        style: EffectiveStyle,
        ctx: RenderContext,
    ) -> bytes:
        """Print the barcode value as plain text."""
        return b''.join([
            self._feed(style.margin_top),
            self._cmd_align(style.align),
            self._encode(self.escape(block.value).replace("\n", " ")),
            self.LF,
            self._feed(style.margin_bottom),
        ])

    def wrap(self, units: list[bytes], ctx: RenderContext) -> CommandArtifact:
        data = b''.join([
            self._cmd_init(),
            self._cmd_codepage(),
            *units,
            self._cmd_feed_lines(self.feed_lines),
            self._cmd_cut(),
        ])
        return CommandArtifact(units=tuple(units), paper_width_mm=ctx.paper_width_mm, data=data)
