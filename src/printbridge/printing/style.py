"""Style resolution for document blocks.

Turns a block's optional style record plus the document-level typography
into concrete numbers every backend uses the same way.

Font size precedence, strongest first:
    1. block ``fontSize`` (multiplied by block ``fontScale`` when present)
    2. block ``fontScale`` applied to the document base size
    3. document base size (``round(options.fontSize * options.fontScale)``)
"""

import math
from dataclasses import dataclass
from typing import Any, Optional

from printbridge.printing.document import Alignment

DEFAULT_FONT_SIZE = 12
DEFAULT_FONT_SCALE = 1.0

# Dividers get a little air above them unless told otherwise
DIVIDER_MARGIN_TOP = 5

_DEFAULT_ALIGNMENT = {
    "text": Alignment.LEFT,
    "table": Alignment.LEFT,
    "divider": Alignment.CENTER,
    "spacer": Alignment.LEFT,
    "image": Alignment.CENTER,
    "barcode": Alignment.CENTER,
}


@dataclass(frozen=True)
class EffectiveStyle:
    """Fully resolved style of one block."""

    font_size: int
    align: Alignment
    bold: bool = False
    margin_top: int = 0
    margin_bottom: int = 0


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def document_font_size(
    base_font_size: Optional[float] = None,
    font_scale: Optional[float] = None,
) -> int:
    """Base font size of a whole document in pixels."""
    base = base_font_size if base_font_size is not None else DEFAULT_FONT_SIZE
    scale = font_scale if font_scale is not None else DEFAULT_FONT_SCALE
    return round_half_up(base * scale)


def resolve_font_size(
    font_size: Optional[float],
    font_scale: Optional[float],
    document_size: int,
) -> int:
    """Apply the font size precedence chain for a single block."""
    if font_size is not None:
        return round_half_up(font_size * (font_scale if font_scale is not None else 1.0))
    if font_scale is not None:
        return round_half_up(document_size * font_scale)
    return document_size


def resolve_style(
    style: Any,
    kind: str,
    base_font_size: Optional[float] = None,
    font_scale: Optional[float] = None,
) -> EffectiveStyle:
    """Resolve the effective style of a block.

    Args:
        style: The block's style record (any of the block style models) or None
        kind: Block type tag (``"text"``, ``"table"``, ...)
        base_font_size: Document base font size in pixels
        font_scale: Document font scale multiplier

    Returns:
        EffectiveStyle with every field populated
    """
    document_size = document_font_size(base_font_size, font_scale)
    font_size = resolve_font_size(
        getattr(style, "font_size", None),
        getattr(style, "font_scale", None),
        document_size,
    )

    align = getattr(style, "align", None) or _DEFAULT_ALIGNMENT.get(kind, Alignment.LEFT)

    margin_top = getattr(style, "margin_top", None)
    if margin_top is None:
        margin_top = DIVIDER_MARGIN_TOP if kind == "divider" else 0
    margin_bottom = getattr(style, "margin_bottom", None) or 0

    return EffectiveStyle(
        font_size=font_size,
        align=Alignment(align),
        bold=bool(getattr(style, "bold", False)),
        margin_top=margin_top,
        margin_bottom=margin_bottom,
    )
