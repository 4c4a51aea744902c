"""Column width planning for receipt tables.

Widths are a static decision made from the column count alone, tuned for
narrow receipt paper. Nothing here measures cell content.
"""

from typing import Optional, Sequence

from printbridge.core.errors import InvalidOption

# Item, Qty, Price, Total
ITEM_TABLE_WIDTHS = (42, 14, 22, 22)

# Label and value (Subtotal, Tax, Total)
LABEL_VALUE_WIDTHS = (50, 50)


def column_widths(column_count: int) -> tuple[int, ...]:
    """Percentage width of each column for a table with ``column_count`` columns.

    Equal splits use ``100 // n`` per column; the last column takes the
    rounding slack so the widths always add up to 100.
    """
    if column_count <= 0:
        return ()
    if column_count == 4:
        return ITEM_TABLE_WIDTHS
    if column_count == 2:
        return LABEL_VALUE_WIDTHS

    width = 100 // column_count
    widths = [width] * column_count
    widths[-1] += 100 - width * column_count
    return tuple(widths)


def parse_width(value: str) -> int:
    """Parse a ``"40%"`` style width into an integer percentage."""
    text = str(value).strip().rstrip("%").strip()
    try:
        width = round(float(text))
    except (ValueError, OverflowError):
        raise InvalidOption(f"Malformed column width {value!r}") from None
    if width < 0 or width > 100:
        raise InvalidOption(f"Column width {value!r} out of range")
    return width


def plan_columns(
    column_count: int,
    explicit: Optional[Sequence[str]] = None,
) -> tuple[int, ...]:
    """Column widths for a table, honouring explicit widths when they fit.

    Explicit widths are used only when there is exactly one per column;
    otherwise the count-based heuristic applies.
    """
    if explicit and len(explicit) == column_count:
        return tuple(parse_width(value) for value in explicit)
    return column_widths(column_count)
