"""Conversion endpoints.

Handles workbook upload, JSON grid conversion, and sheet listing.
"""

import logging
import tempfile
import zipfile
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from openpyxl.utils.exceptions import InvalidFileException
from pydantic import ValidationError

from fabriclink.api.deps import get_engine, get_registry, optional_map_name
from fabriclink.core.conversion_engine import run_conversion
from fabriclink.core.conversion_map import ConversionMap, ConversionMapError
from fabriclink.core.map_registry import MapRegistry
from fabriclink.core.models import ConversionOptions, ConversionResult, GridConversionRequest
from fabriclink.core.row_converter import convert_grid
from fabriclink.core.transformation_engine import TransformationEngine
from fabriclink.core.workbook_reader import list_sheet_names

logger = logging.getLogger(__name__)

router = APIRouter()


def _check_workbook_name(filename: Optional[str]) -> str:
    if not filename or not filename.lower().endswith((".xlsx", ".xlsm")):
        raise HTTPException(status_code=400, detail="Only Excel files (.xlsx, .xlsm) are supported")
    return Path(filename).name


def _load_map(registry: MapRegistry, map_name: Optional[str]) -> ConversionMap:
    name = optional_map_name(map_name)
    try:
        return registry.get_map(name)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail=f"Conversion map '{name}' not found")
    except ConversionMapError as e:
        raise HTTPException(status_code=400, detail=f"Invalid conversion map '{name}': {e}")


@router.post("/conversions", response_model=ConversionResult)
async def convert_upload(
    file: UploadFile = File(...),
    map_name: Optional[str] = Form(None),
    sheet_name: Optional[str] = Form(None),
    options: Optional[str] = Form(None, description="ConversionOptions as JSON"),
    registry: MapRegistry = Depends(get_registry),
    engine: TransformationEngine = Depends(get_engine),
):
    """Upload an .xlsx workbook and convert one sheet to canonical rows.

    - **map_name**: conversion map to use (default map when omitted)
    - **sheet_name**: sheet to convert (active sheet when omitted)
    """
    filename = _check_workbook_name(file.filename)
    conversion_map = _load_map(registry, map_name)
    try:
        conversion_options = ConversionOptions.model_validate_json(options) if options else ConversionOptions()
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid conversion options: {e}")

    content = await file.read()
    with tempfile.TemporaryDirectory() as tmp:
        file_path = Path(tmp) / filename
        file_path.write_bytes(content)
        try:
            return run_conversion(file_path, conversion_map, sheet_name, conversion_options, engine)
        except KeyError as e:
            raise HTTPException(status_code=404, detail=str(e.args[0]) if e.args else "Sheet not found")
        except (OSError, ValueError, zipfile.BadZipFile, InvalidFileException) as e:
            logger.error(f"Conversion of {filename} failed: {e}", exc_info=True)
            raise HTTPException(status_code=400, detail=f"Could not read workbook: {e}")


@router.post("/conversions/grid", response_model=ConversionResult)
async def convert_raw_grid(
    body: GridConversionRequest,
    registry: MapRegistry = Depends(get_registry),
    engine: TransformationEngine = Depends(get_engine),
):
    """Convert an already-read grid of cells.

    An inline `conversion_map` takes precedence over `map_name`.
    """
    conversion_map = body.conversion_map or _load_map(registry, body.map_name)
    return convert_grid(body.grid, conversion_map, body.options, engine, sheet_name=body.sheet_name)


@router.post("/sheets")
async def list_sheets(file: UploadFile = File(...)):
    """Sheet names of an uploaded workbook."""
    filename = _check_workbook_name(file.filename)
    content = await file.read()
    with tempfile.TemporaryDirectory() as tmp:
        file_path = Path(tmp) / filename
        file_path.write_bytes(content)
        try:
            sheets = list_sheet_names(file_path)
        except (OSError, ValueError, zipfile.BadZipFile, InvalidFileException) as e:
            raise HTTPException(status_code=400, detail=f"Could not read workbook: {e}")
    return {"sheets": sheets}
