"""Document model for printbridge.

A Document is an ordered sequence of Blocks. Blocks are a closed tagged
union on the ``type`` field (text, table, divider, spacer, image, barcode),
each carrying an optional style record. Models are frozen: a document is
built once and never changes while it is rendered.

Wire keys are camelCase (``fontSize``, ``marginTop``); Python attributes
are snake_case.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Mapping, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    PositiveFloat,
    PositiveInt,
    ValidationError,
)
from pydantic.alias_generators import to_camel

from printbridge.core.errors import InvalidOption


class Alignment(str, Enum):
    """Horizontal alignment."""

    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class LineStyle(str, Enum):
    """Divider line styles."""

    SOLID = "solid"
    DASHED = "dashed"
    DOTTED = "dotted"


class BarcodeType(str, Enum):
    """Supported barcode symbologies."""

    CODE128 = "CODE128"
    EAN13 = "EAN13"
    EAN8 = "EAN8"
    UPC = "UPC"
    CODE39 = "CODE39"
    ITF14 = "ITF14"
    MSI = "MSI"
    PHARMACODE = "pharmacode"


class PaperSize(str, Enum):
    """Supported receipt paper widths."""

    MM80 = "80mm"
    MM78 = "78mm"
    MM76 = "76mm"
    MM58 = "58mm"
    MM57 = "57mm"
    MM44 = "44mm"

    @property
    def width_mm(self) -> int:
        """Physical paper width in millimetres."""
        return _PAPER_WIDTHS_MM[self]

    @property
    def print_dots(self) -> int:
        """Printable width in dots for a 203 dpi thermal head."""
        return _PAPER_PRINT_DOTS[self]

    @classmethod
    def parse(cls, selector: Union["PaperSize", str]) -> "PaperSize":
        """Map a selector such as ``"58mm"`` onto a paper size.

        Raises:
            InvalidOption: If the selector is not one of the supported sizes
        """
        if isinstance(selector, PaperSize):
            return selector
        try:
            return cls(str(selector).strip())
        except ValueError:
            supported = ", ".join(p.value for p in cls)
            raise InvalidOption(
                f"Unsupported paper size {selector!r} (expected one of: {supported})"
            ) from None


_PAPER_WIDTHS_MM = {
    PaperSize.MM80: 80,
    PaperSize.MM78: 78,
    PaperSize.MM76: 76,
    PaperSize.MM58: 58,
    PaperSize.MM57: 57,
    PaperSize.MM44: 44,
}

_PAPER_PRINT_DOTS = {
    PaperSize.MM80: 576,
    PaperSize.MM78: 560,
    PaperSize.MM76: 544,
    PaperSize.MM58: 384,
    PaperSize.MM57: 376,
    PaperSize.MM44: 288,
}


class WireModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


Margin = Optional[NonNegativeInt]
FontSize = Optional[PositiveFloat]
FontScale = Optional[PositiveFloat]
Dimension = Optional[PositiveInt]


# =============================================================================
# Block styles
# =============================================================================


class TextStyle(WireModel):
    align: Optional[Alignment] = None
    bold: bool = False
    font_size: FontSize = None
    font_scale: FontScale = None
    margin_top: Margin = None
    margin_bottom: Margin = None


class TableStyle(WireModel):
    header_align: Optional[Alignment] = None
    column_aligns: Optional[tuple[Optional[Alignment], ...]] = None
    column_widths: Optional[tuple[str, ...]] = None
    column_bolds: Optional[tuple[bool, ...]] = None
    header_bold: Optional[bool] = None
    font_size: FontSize = None
    font_scale: FontScale = None
    margin_top: Margin = None
    margin_bottom: Margin = None
    full_width_row_align: Optional[Alignment] = None
    full_width_row_bold: bool = False


class DividerStyle(WireModel):
    margin_top: Margin = None
    margin_bottom: Margin = None
    line_style: Optional[LineStyle] = None


class ImageStyle(WireModel):
    align: Optional[Alignment] = None
    width: Dimension = None
    height: Dimension = None
    margin_top: Margin = None
    margin_bottom: Margin = None


class BarcodeStyle(WireModel):
    align: Optional[Alignment] = None
    width: Dimension = None
    height: Dimension = None
    display_value: bool = True
    font_size: FontSize = None
    margin_top: Margin = None
    margin_bottom: Margin = None


# =============================================================================
# Blocks
# =============================================================================


class TextBlock(WireModel):
    """A run of text. Newlines are kept as line breaks."""

    type: Literal["text"] = "text"
    value: str
    style: TextStyle = Field(default_factory=TextStyle)


class TableBlock(WireModel):
    """A table. A row given as a single string spans the full width."""

    type: Literal["table"] = "table"
    headers: Optional[tuple[str, ...]] = None
    rows: tuple[Union[str, tuple[str, ...]], ...] = ()
    style: TableStyle = Field(default_factory=TableStyle)

    @property
    def column_count(self) -> int:
        """Headers decide the column count, else the widest cell row."""
        if self.headers:
            return len(self.headers)
        widths = [len(row) for row in self.rows if not isinstance(row, str)]
        return max(1, max(widths, default=1))


class DividerBlock(WireModel):
    """A horizontal rule."""

    type: Literal["divider"] = "divider"
    style: DividerStyle = Field(default_factory=DividerStyle)


class SpacerBlock(WireModel):
    """Vertical blank space, height in device-independent pixels."""

    type: Literal["spacer"] = "spacer"
    height: Optional[NonNegativeInt] = None


class ImageBlock(WireModel):
    """An image from a data URL, a file path or a remote URL."""

    type: Literal["image"] = "image"
    url: str
    style: ImageStyle = Field(default_factory=ImageStyle)


class BarcodeBlock(WireModel):
    """A linear barcode, optionally captioned with its value."""

    type: Literal["barcode"] = "barcode"
    value: str
    barcode_type: BarcodeType = BarcodeType.CODE128
    style: BarcodeStyle = Field(default_factory=BarcodeStyle)


Block = Annotated[
    Union[TextBlock, TableBlock, DividerBlock, SpacerBlock, ImageBlock, BarcodeBlock],
    Field(discriminator="type"),
]


class Document(WireModel):
    """An ordered sequence of blocks making up one print job."""

    blocks: tuple[Block, ...] = ()


class PrintOptions(WireModel):
    """Per-request print options."""

    printer_name: str
    paper_size: str = PaperSize.MM80.value
    font_size: float = Field(default=12, gt=0)
    font_scale: float = Field(default=1.0, gt=0)
    copies: int = Field(default=1, ge=1)
    silent: bool = True

    @property
    def paper(self) -> PaperSize:
        """Resolved paper size (raises InvalidOption if unsupported)."""
        return PaperSize.parse(self.paper_size)


class Printer(WireModel):
    """A printer known to a printer directory."""

    id: str
    name: str
    display_name: str
    is_default: bool = False
    kind: str = "ESC/POS"
    port: Optional[str] = None

    def matches(self, identifier: str) -> bool:
        """Check if an identifier names this printer."""
        return identifier in (self.id, self.name)


# =============================================================================
# Parsing
# =============================================================================


def format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)


def parse_document(data: Mapping[str, Any]) -> Document:
    """Build a Document from its wire representation.

    Raises:
        InvalidOption: If a block or style value is malformed
    """
    try:
        return Document.model_validate(data)
    except ValidationError as exc:
        raise InvalidOption(f"Invalid document: {format_validation_error(exc)}", exc) from exc


def parse_options(data: Mapping[str, Any]) -> PrintOptions:
    """Build PrintOptions from their wire representation.

    The paper size is checked here as well so bad requests fail early.

    Raises:
        InvalidOption: If an option is missing or malformed
    """
    try:
        options = PrintOptions.model_validate(data)
    except ValidationError as exc:
        raise InvalidOption(f"Invalid print options: {format_validation_error(exc)}", exc) from exc
    PaperSize.parse(options.paper_size)
    return options
