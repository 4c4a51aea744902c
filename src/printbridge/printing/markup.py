"""Markup rendering for driver-based (print dialog) printing.

Produces a self-contained HTML page sized to the receipt paper width with
an unbounded page height. Barcodes are embedded as PNG data URLs and the
receipt typeface, when available, as base64 ``@font-face`` rules.
"""

import base64
import html
import logging
from io import BytesIO
from typing import Optional

from printbridge.printing.barcode import BarcodeEncoder
from printbridge.printing.document import (
    BarcodeBlock,
    DividerBlock,
    ImageBlock,
    TableBlock,
    TextBlock,
)
from printbridge.printing.fonts import FALLBACK_FAMILIES, FontCache
from printbridge.printing.render import (
    DEFAULT_LINE_STYLE,
    FullWidthRow,
    MarkupArtifact,
    RenderContext,
    Renderer,
    TableLayout,
)
from printbridge.printing.style import EffectiveStyle

logger = logging.getLogger(__name__)

DEFAULT_FONT_STACK = f"'Roboto Mono', {FALLBACK_FAMILIES}"


def _classes(*names: str) -> str:
    return " ".join(name for name in names if name)


def _margins(style: EffectiveStyle) -> str:
    return f"margin-top: {style.margin_top}px; margin-bottom: {style.margin_bottom}px;"


class HtmlRenderer(Renderer[str]):
    """Renders documents to HTML for the print-dialog pipeline.

    Args:
        fonts: Owned font cache used for ``@font-face`` rules (optional)
        encoder: Barcode encoder
    """

    name = "html"

    def __init__(
        self,
        fonts: Optional[FontCache] = None,
        encoder: Optional[BarcodeEncoder] = None,
    ) -> None:
        super().__init__(encoder)
        self._fonts = fonts

    def escape(self, text: str) -> str:
        """Escape HTML special characters and turn newlines into ``<br>``."""
        text = text.replace("\r\n", "\n")
        return html.escape(text, quote=True).replace("\n", "<br>")

    def render_text(self, block: TextBlock, style: EffectiveStyle, ctx: RenderContext) -> str:
        classes = _classes(f"text-{style.align.value}", "bold" if style.bold else "")
        inline = f"font-size: {style.font_size}px; {_margins(style)}"
        return f'<div class="{classes}" style="{inline}">{self.escape(block.value)}</div>\n'

    def render_table(
        self,
        block: TableBlock,
        layout: TableLayout,
        style: EffectiveStyle,
        ctx: RenderContext,
    ) -> str:
        inline = f"font-size: {style.font_size}px; {_margins(style)}"
        parts = [f'<table style="{inline}">\n']

        if layout.header:
            parts.append("<thead><tr>\n")
            for cell, width in zip(layout.header, layout.widths):
                classes = _classes(f"text-{cell.align.value}", "bold" if cell.bold else "")
                parts.append(
                    f'<td class="{classes}" style="width: {width}%; white-space: nowrap;">'
                    f"{self.escape(cell.text)}</td>\n"
                )
            parts.append("</tr></thead>\n")

        parts.append("<tbody>\n")
        for row in layout.rows:
            parts.append("<tr>\n")
            if isinstance(row, FullWidthRow):
                classes = _classes(f"text-{row.align.value}", "bold" if row.bold else "")
                parts.append(
                    f'<td colspan="{layout.column_count}" class="{classes}">'
                    f"{self.escape(row.text)}</td>\n"
                )
            else:
                for cell, width in zip(row, layout.widths):
                    classes = _classes(f"text-{cell.align.value}", "bold" if cell.bold else "")
                    parts.append(
                        f'<td class="{classes}" style="width: {width}%;">'
                        f"{self.escape(cell.text)}</td>\n"
                    )
            parts.append("</tr>\n")
        parts.append("</tbody>\n</table>\n")

        return "".join(parts)

    def render_divider(self, block: DividerBlock, style: EffectiveStyle, ctx: RenderContext) -> str:
        line_style = (block.style.line_style or DEFAULT_LINE_STYLE).value
        return f'<div class="divider divider-{line_style}" style="{_margins(style)}"></div>\n'

    def render_spacer(self, height: int, ctx: RenderContext) -> str:
        return f'<div style="height: {height}px;"></div>\n'

    def render_image(self, block: ImageBlock, style: EffectiveStyle, ctx: RenderContext) -> str:
        inline = _margins(style)
        if block.style.width:
            inline += f" width: {block.style.width}px;"
        if block.style.height:
            inline += f" height: {block.style.height}px;"

        src = html.escape(block.url, quote=True)
        return f'<div class="text-{style.align.value}"><img src="{src}" style="{inline}" /></div>\n'

    def render_barcode(
        self,
        block: BarcodeBlock,
        image,
        width: int,
        style: EffectiveStyle,
        ctx: RenderContext,
    ) -> str:
        buf = BytesIO()
        image.save(buf, format="PNG")
        data_url = "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")

        img_style = f"margin-top: {style.margin_top}px; max-width: 100%; width: {width}px;"
        parts = [
            f'<div class="text-{style.align.value}">\n',
            f'  <img src="{data_url}" style="{img_style}" />\n',
        ]
        if block.style.display_value:
            caption_style = (
                f"font-size: {style.font_size}px; margin-top: 2px; "
                f"margin-bottom: {style.margin_bottom}px;"
            )
            parts.append(f'  <div style="{caption_style}">{self.escape(block.value)}</div>\n')
        else:
            parts.append(f'  <div style="margin-bottom: {style.margin_bottom}px;"></div>\n')
        parts.append("</div>\n")

        return "".join(parts)

    def render_barcode_fallback(
        self,
        block: BarcodeBlock,
        style: EffectiveStyle,
        ctx: RenderContext,
    ) -> str:
        return (
            f'<div class="text-{style.align.value}" style="{_margins(style)}">'
            f"{self.escape(block.value)}</div>\n"
        )

    def wrap(self, units: list[str], ctx: RenderContext) -> MarkupArtifact:
        paper_width = ctx.paper_width_mm
        font_faces = self._fonts.font_face_css() if self._fonts else ""
        font_stack = self._fonts.font_stack if self._fonts else DEFAULT_FONT_STACK

        page = f"""<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<style>
{font_faces}

@page {{
  size: {paper_width}mm auto;
  margin: 0;
}}

* {{
  margin: 0;
  padding: 0;
  box-sizing: border-box;
}}

body {{
  width: {paper_width}mm;
  font-family: {font_stack};
  font-size: {ctx.font_size}px;
  line-height: 1.4;
  padding-top: 3mm;
  padding-bottom: 3mm;
}}

.content-wrapper {{
  max-width: {ctx.usable_width_mm}mm;
  width: 100%;
}}

.text-left {{ text-align: left; }}
.text-center {{ text-align: center; }}
.text-right {{ text-align: right; }}
.bold {{ font-weight: bold; }}

.divider {{
  border: none;
  margin: 6px 0;
}}

.divider-solid {{ border-top: 1px solid #000; }}
.divider-dashed {{ border-top: 1px dashed #000; }}
.divider-dotted {{ border-top: 1px dotted #000; }}

table {{
  width: 100%;
  border-collapse: collapse;
  table-layout: fixed;
}}

table td {{
  padding: 2px 2px;
  vertical-align: top;
  word-wrap: break-word;
}}

img {{
  max-width: 100%;
  height: auto;
}}
</style>
</head>
<body>
<div class="content-wrapper">
{"".join(units)}</div>
</body>
</html>
"""
        return MarkupArtifact(units=tuple(units), paper_width_mm=paper_width, html=page)
