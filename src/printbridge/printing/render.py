"""Shared document rendering for every printing backend.

The base Renderer owns everything that is not backend specific: paper
size validation, the document font size, style resolution, table column
planning, barcode sizing and the encoder fallback. Backends implement
only the leaf step for each block kind and the document shell.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from itertools import zip_longest
from typing import Generic, Optional, Sequence, TypeVar, Union, assert_never

from printbridge.core.errors import EncoderFailure, PrintBridgeError, RenderError
from printbridge.printing.barcode import DEFAULT_HEIGHT, BarcodeEncoder
from printbridge.printing.columns import plan_columns
from printbridge.printing.document import (
    Alignment,
    BarcodeBlock,
    Block,
    DividerBlock,
    Document,
    ImageBlock,
    LineStyle,
    PaperSize,
    PrintOptions,
    SpacerBlock,
    TableBlock,
    TextBlock,
)
from printbridge.printing.style import (
    EffectiveStyle,
    document_font_size,
    resolve_style,
    round_half_up,
)

logger = logging.getLogger(__name__)

SPACER_HEIGHT = 10
DEFAULT_LINE_STYLE = LineStyle.DASHED

# Page side margins in millimetres, and CSS pixels per millimetre (96 dpi)
PAGE_MARGIN_MM = 8
PX_PER_MM = 3.78

Unit = TypeVar("Unit", str, bytes)


# =============================================================================
# Render inputs
# =============================================================================


@dataclass(frozen=True)
class RenderContext:
    """Document-wide values every block renderer needs."""

    paper: PaperSize
    base_font_size: float
    font_scale: float
    font_size: int
    options: Optional[PrintOptions] = None

    @classmethod
    def from_options(cls, options: PrintOptions) -> "RenderContext":
        paper = PaperSize.parse(options.paper_size)
        return cls(
            paper=paper,
            base_font_size=options.font_size,
            font_scale=options.font_scale,
            font_size=document_font_size(options.font_size, options.font_scale),
            options=options,
        )

    @property
    def paper_width_mm(self) -> int:
        return self.paper.width_mm

    @property
    def usable_width_mm(self) -> int:
        return self.paper.width_mm - PAGE_MARGIN_MM


@dataclass(frozen=True)
class TableCell:
    text: str
    align: Alignment
    bold: bool = False


@dataclass(frozen=True)
class FullWidthRow:
    """A table row spanning every column."""

    text: str
    align: Alignment
    bold: bool = False


TableRow = Union[tuple[TableCell, ...], FullWidthRow]


@dataclass(frozen=True)
class TableLayout:
    """Resolved table: column widths in percent plus per-cell style."""

    widths: tuple[int, ...]
    header: Optional[tuple[TableCell, ...]]
    rows: tuple[TableRow, ...]

    @property
    def column_count(self) -> int:
        return len(self.widths)


def _pick(values: Optional[Sequence], index: int):
    if values is None or index >= len(values):
        return None
    return values[index]


def plan_table(block: TableBlock) -> TableLayout:
    """Resolve column widths and per-cell alignment and weight of a table.

    Header cells: column align, then ``headerAlign``, then left; bold
    unless ``headerBold`` is false. Body cells: column align, then left;
    bold from ``columnBolds``. String rows become FullWidthRow and never
    see column settings.
    """
    style = block.style
    count = block.column_count
    widths = plan_columns(count, style.column_widths)

    header = None
    if block.headers:
        header_bold = style.header_bold is not False
        header = tuple(
            TableCell(
                text=text,
                align=_pick(style.column_aligns, i) or style.header_align or Alignment.LEFT,
                bold=header_bold,
            )
            for i, text in enumerate(block.headers)
        )

    rows: list[TableRow] = []
    for row in block.rows:
        if isinstance(row, str):
            rows.append(FullWidthRow(
                text=row,
                align=style.full_width_row_align or Alignment.LEFT,
                bold=style.full_width_row_bold,
            ))
            continue
        if len(row) > count:
            logger.warning(f"Table row has {len(row)} cells for {count} columns, extra cells dropped")
        rows.append(tuple(
            TableCell(
                text=text,
                align=_pick(style.column_aligns, i) or Alignment.LEFT,
                bold=bool(_pick(style.column_bolds, i)),
            )
            for i, text in zip_longest(range(count), row[:count], fillvalue="")
        ))

    return TableLayout(widths=widths, header=header, rows=tuple(rows))


def barcode_size(block: BarcodeBlock, ctx: RenderContext) -> tuple[int, int]:
    """Barcode (width, height) in CSS pixels.

    Default width is half the usable paper width.
    """
    width = block.style.width or round_half_up(ctx.usable_width_mm * PX_PER_MM * 0.5)
    height = block.style.height or DEFAULT_HEIGHT
    return width, height


# =============================================================================
# Artifacts
# =============================================================================


@dataclass(frozen=True)
class Artifact:
    """Backend-specific rendering of one document."""

    units: tuple
    paper_width_mm: int

    kind = "artifact"


@dataclass(frozen=True)
class MarkupArtifact(Artifact):
    """HTML document for the print-dialog pipeline."""

    html: str = ""

    kind = "markup"

    @property
    def content(self) -> bytes:
        return self.html.encode("utf-8")


@dataclass(frozen=True)
class CommandArtifact(Artifact):
    """ESC/POS command buffer for direct device writes."""

    data: bytes = b""

    kind = "commands"

    @property
    def content(self) -> bytes:
        return self.data


# =============================================================================
# Renderer
# =============================================================================


class Renderer(ABC, Generic[Unit]):
    """Renders a Document into a backend artifact.

    Subclasses implement one ``render_*`` leaf per block kind plus
    ``wrap`` for the document shell. Rendering is pure: the same document
    and options always produce the same artifact.
    """

    name = "base"

    def __init__(self, encoder: Optional[BarcodeEncoder] = None) -> None:
        self._encoder = encoder or BarcodeEncoder()

    def render_document(self, document: Document, options: PrintOptions) -> Artifact:
        """Render a whole document.

        Raises:
            InvalidOption: Unsupported paper size (before any block renders)
                or a malformed style value
            RenderError: Any unexpected failure while rendering
        """
        ctx = RenderContext.from_options(options)
        logger.debug(
            f"Rendering {len(document.blocks)} blocks ({self.name}, "
            f"{ctx.paper.value}, base font {ctx.font_size}px)"
        )

        try:
            units = [self.render_block(block, ctx) for block in document.blocks]
            return self.wrap(units, ctx)
        except PrintBridgeError:
            raise
        except Exception as e:
            raise RenderError(f"Failed to render document ({self.name})", e) from e

    def render_block(self, block: Block, ctx: RenderContext) -> Unit:
        """Render one block into a backend unit."""
        style = resolve_style(
            getattr(block, "style", None),
            block.type,
            ctx.base_font_size,
            ctx.font_scale,
        )

        match block:
            case TextBlock():
                return self.render_text(block, style, ctx)
            case TableBlock():
                return self.render_table(block, plan_table(block), style, ctx)
            case DividerBlock():
                return self.render_divider(block, style, ctx)
            case SpacerBlock():
                height = block.height if block.height is not None else SPACER_HEIGHT
                return self.render_spacer(height, ctx)
            case ImageBlock():
                return self.render_image(block, style, ctx)
            case BarcodeBlock():
                return self._render_barcode(block, style, ctx)
            case _:
                assert_never(block)

    def _render_barcode(self, block: BarcodeBlock, style: EffectiveStyle, ctx: RenderContext) -> Unit:
        width, height = barcode_size(block, ctx)
        try:
            image = self._encoder.encode(
                block.value,
                block.barcode_type,
                self.device_pixels(width, ctx),
                self.device_pixels(height, ctx),
            )
        except EncoderFailure as e:
            logger.warning(f"Barcode fallback to text: {e}")
            return self.render_barcode_fallback(block, style, ctx)
        return self.render_barcode(block, image, width, style, ctx)

    def device_pixels(self, px: int, ctx: RenderContext) -> int:
        """Convert CSS pixels to the backend's raster pixels."""
        return px

    @abstractmethod
    def escape(self, text: str) -> str:
        """Neutralise user text so it cannot alter the output format."""

    @abstractmethod
    def render_text(self, block: TextBlock, style: EffectiveStyle, ctx: RenderContext) -> Unit:
        ...

    @abstractmethod
    def render_table(
        self,
        block: TableBlock,
        layout: TableLayout,
        style: EffectiveStyle,
        ctx: RenderContext,
    ) -> Unit:
        ...

    @abstractmethod
    def render_divider(self, block: DividerBlock, style: EffectiveStyle, ctx: RenderContext) -> Unit:
        ...

    @abstractmethod
    def render_spacer(self, height: int, ctx: RenderContext) -> Unit:
        ...

    @abstractmethod
    def render_image(self, block: ImageBlock, style: EffectiveStyle, ctx: RenderContext) -> Unit:
        ...

    @abstractmethod
    def render_barcode(
        self,
        block: BarcodeBlock,
        image,
        width: int,
        style: EffectiveStyle,
        ctx: RenderContext,
    ) -> Unit:
        """Render an encoded barcode image (``width`` in CSS pixels)."""

    @abstractmethod
    def render_barcode_fallback(
        self,
        block: BarcodeBlock,
        style: EffectiveStyle,
        ctx: RenderContext,
    ) -> Unit:
        """Render the barcode value as plain text."""

    @abstractmethod
    def wrap(self, units: list[Unit], ctx: RenderContext) -> Artifact:
        """Wrap rendered units in the backend document shell."""
