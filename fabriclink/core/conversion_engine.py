"""Conversion Engine — orchestrates workbook-to-canonical-rows conversion.

Takes an .xlsx file plus a conversion map, reads the requested sheet(s) and
runs the row converter on each. Synchronous: the pipeline is pure apart from
reading the workbook, so callers may run sheets concurrently if they wish.
"""

import logging
from pathlib import Path
from typing import Optional

from fabriclink.core.conversion_map import ConversionMap
from fabriclink.core.models import ConversionOptions, ConversionResult
from fabriclink.core.row_converter import convert_grid
from fabriclink.core.transformation_engine import TransformationEngine
from fabriclink.core.workbook_reader import list_sheet_names, read_sheet_grid

logger = logging.getLogger(__name__)


def run_conversion(
    file_path: Path,
    conversion_map: ConversionMap,
    sheet_name: Optional[str] = None,
    options: Optional[ConversionOptions] = None,
    engine: Optional[TransformationEngine] = None,
) -> ConversionResult:
    """Convert one sheet (the active sheet when none is named).

    Missing files and sheets propagate as FileNotFoundError / KeyError.
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Workbook not found: {file_path}")

    resolved_sheet, grid = read_sheet_grid(file_path, sheet_name)
    result = convert_grid(
        grid,
        conversion_map,
        options=options,
        engine=engine,
        sheet_name=resolved_sheet,
        source_file=file_path.name,
    )
    logger.info(f"Conversion {result.conversion_id} of {file_path.name}/{resolved_sheet} complete: {result.stats}")
    return result


def convert_workbook(
    file_path: Path,
    conversion_map: ConversionMap,
    options: Optional[ConversionOptions] = None,
    engine: Optional[TransformationEngine] = None,
) -> list[ConversionResult]:
    """Convert every sheet of a workbook, one result per sheet."""
    engine = engine or TransformationEngine()
    results = []
    for name in list_sheet_names(Path(file_path)):
        results.append(run_conversion(file_path, conversion_map, name, options, engine))
    return results
