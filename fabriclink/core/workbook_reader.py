"""Workbook Reader — loads raw cell grids from .xlsx files using openpyxl."""

import logging
from pathlib import Path
from typing import Any, Optional

import openpyxl

logger = logging.getLogger(__name__)


def list_sheet_names(file_path: Path) -> list[str]:
    """Names of all worksheets in the workbook, in workbook order."""
    wb = openpyxl.load_workbook(file_path, read_only=True)
    try:
        return list(wb.sheetnames)
    finally:
        wb.close()


def _trim_trailing_empty(values: list[Any]) -> list[Any]:
    end = len(values)
    while end > 0 and values[end - 1] is None:
        end -= 1
    return values[:end]


def read_sheet_grid(file_path: Path, sheet_name: Optional[str] = None) -> tuple[str, list[list[Any]]]:
    """Read one sheet as a list of rows of cell values.

    Formulas are read as their cached values. Merged regions come back the
    way the file stores them: value in the top-left cell only.
    Returns (sheet_name, grid).
    """
    wb = openpyxl.load_workbook(file_path, read_only=False, data_only=True)
    try:
        if sheet_name:
            if sheet_name not in wb.sheetnames:
                raise KeyError(f"Sheet '{sheet_name}' not found in workbook")
            ws = wb[sheet_name]
        else:
            ws = wb.active
            sheet_name = ws.title

        grid = [_trim_trailing_empty([cell.value for cell in row]) for row in ws.iter_rows()]
        while grid and not grid[-1]:
            grid.pop()
    finally:
        wb.close()

    logger.info(f"Read {len(grid)} rows from sheet '{sheet_name}' of {Path(file_path).name}")
    return sheet_name, grid
