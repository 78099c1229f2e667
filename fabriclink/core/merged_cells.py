"""Merged-Cell Reconstructor — refills cells emptied by spreadsheet merging.

Spreadsheets keep a merged region's value only in its top-left cell; every
other cell of the region reads back empty. Two repairs are offered:

- Horizontal (within one row): an empty cell takes the value of the nearest
  non-empty cell to its left, as long as that cell is at most
  `max_distance` columns away.
- Vertical (across rows): for merge-eligible columns only, an empty cell
  takes the most recent non-empty value seen in the same column.

Rows that look like section/category labels (many cells, few of them filled)
are never touched and reset the vertical carry.
"""

from datetime import date, datetime, time
from typing import Any, Iterable, Optional, Sequence

from fabriclink.core.config import settings

# Per-column carry: index = column, value = last non-empty cell (None = nothing to carry)
ColumnCarry = tuple[Any, ...]


def is_empty_cell(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def cell_to_str(value: Any) -> str:
    """Stringify a raw cell the way field values are stored."""
    if is_empty_cell(value):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def is_category_row(
    row: Sequence[Any],
    min_cells: Optional[int] = None,
    min_fill_ratio: Optional[float] = None,
) -> bool:
    """True for wide, mostly-empty rows (section headings, not data)."""
    min_cells = settings.category_row_min_cells if min_cells is None else min_cells
    min_fill_ratio = settings.category_row_min_fill_ratio if min_fill_ratio is None else min_fill_ratio
    if len(row) <= min_cells:
        return False
    filled = sum(1 for cell in row if not is_empty_cell(cell))
    return filled / len(row) < min_fill_ratio


def reconstruct_row(row: Sequence[Any], max_distance: Optional[int] = None) -> list[Any]:
    """Horizontal reconstruction of a single row. Returns a new list."""
    max_distance = settings.merge_max_distance if max_distance is None else max_distance
    cells = list(row)
    if is_category_row(cells):
        return cells

    carry: Any = None
    carry_col: Optional[int] = None
    for col, cell in enumerate(cells):
        if not is_empty_cell(cell):
            carry, carry_col = cell, col
            continue
        if carry_col is None:
            continue
        if col - carry_col > max_distance:
            carry, carry_col = None, None
            continue
        cells[col] = carry
    return cells


def empty_carry(width: int) -> ColumnCarry:
    return (None,) * width


def carry_forward(
    row: Sequence[Any],
    carry: ColumnCarry,
    merge_columns: Iterable[int],
) -> tuple[list[Any], ColumnCarry]:
    """Vertical reconstruction step for one row.

    Returns the filled row and the carry state to use for the next row.
    Only columns in `merge_columns` are read from or written to the carry.
    """
    cells = list(row)
    next_carry = list(carry) + [None] * max(0, len(cells) - len(carry))
    for col in merge_columns:
        if col >= len(cells):
            continue
        if is_empty_cell(cells[col]):
            if next_carry[col] is not None:
                cells[col] = next_carry[col]
        else:
            next_carry[col] = cells[col]
    return cells, tuple(next_carry)


def reconstruct_rows(
    rows: Sequence[Sequence[Any]],
    merge_columns: Iterable[int],
    horizontal: bool = False,
    max_distance: Optional[int] = None,
) -> list[list[Any]]:
    """Reconstruct a block of data rows.

    Category rows are returned unchanged and reset the carry state.
    """
    merge_columns = sorted(set(merge_columns))
    width = max((len(r) for r in rows), default=0)
    carry = empty_carry(width)
    result = []
    for row in rows:
        if is_category_row(row):
            result.append(list(row))
            carry = empty_carry(width)
            continue
        cells = reconstruct_row(row, max_distance) if horizontal else list(row)
        cells, carry = carry_forward(cells, carry, merge_columns)
        result.append(cells)
    return result
