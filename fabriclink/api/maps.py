"""Conversion map endpoints: list, fetch, create, validate, table columns, API extraction."""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from fabriclink.api.deps import get_engine, get_map_name, get_registry
from fabriclink.core.api_extractor import extract_api_data
from fabriclink.core.compat import detect_map_format, downgrade_to_simple_map, read_simple_map, upgrade_simple_map
from fabriclink.core.conversion_map import ConversionMap, ConversionMapError
from fabriclink.core.map_loader import load_default_map, parse_map_data
from fabriclink.core.map_registry import MapRegistry, validate_map
from fabriclink.core.models import (
    ApiExtractionResult,
    MapCreate,
    MapFormat,
    MapSummary,
    TableColumnDefinition,
    ValidationResult,
)
from fabriclink.core.row_converter import generate_table_columns
from fabriclink.core.transformation_engine import TransformationEngine

logger = logging.getLogger(__name__)

router = APIRouter()


def _document_to_map(document: dict[str, Any]) -> ConversionMap:
    """Parse either a full map document or a legacy simple map."""
    if detect_map_format(document) == MapFormat.SIMPLE:
        header_row, mappings = read_simple_map(document)
        if not mappings:
            raise ConversionMapError("Simple map contains no header mappings")
        return upgrade_simple_map(mappings, header_row)
    return parse_map_data(document)


def _summary(name: str, conversion_map: ConversionMap) -> MapSummary:
    return MapSummary(
        name=name,
        version=conversion_map.version,
        header_row=conversion_map.header_row,
        field_names=conversion_map.field_names(),
        rule_names=sorted(conversion_map.transformation_rules),
    )


def _get_or_error(registry: MapRegistry, name: str) -> ConversionMap:
    try:
        return registry.get_map(name)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail=f"Conversion map '{name}' not found")
    except ConversionMapError as e:
        raise HTTPException(status_code=400, detail=f"Invalid conversion map '{name}': {e}")


@router.get("/maps")
async def list_maps(registry: MapRegistry = Depends(get_registry)):
    """List all known conversion map names."""
    return {"maps": registry.list_maps()}


@router.get("/maps/default")
async def get_default_map():
    """Return the conversion map bundled with the package."""
    return load_default_map().model_dump(mode="json")


@router.post("/maps", response_model=MapSummary, status_code=201)
async def create_map(body: MapCreate, registry: MapRegistry = Depends(get_registry)):
    """Create (or replace) a named map from a full or simple map document."""
    try:
        conversion_map = _document_to_map(body.document)
        registry.save_map(body.name, conversion_map)
    except ConversionMapError as e:
        raise HTTPException(status_code=400, detail=f"Invalid conversion map: {e}")
    logger.info(f"Created conversion map '{body.name}'")
    return _summary(body.name, conversion_map)


@router.post("/maps/validate", response_model=ValidationResult)
async def validate_map_document(
    document: dict[str, Any] = Body(...),
    engine: TransformationEngine = Depends(get_engine),
):
    """Validate a map document without registering it."""
    try:
        conversion_map = _document_to_map(document)
    except ConversionMapError as e:
        raise HTTPException(status_code=400, detail=f"Invalid conversion map: {e}")
    return validate_map(conversion_map, engine)


@router.get("/maps/{name}")
async def get_map(
    name: str = Depends(get_map_name),
    registry: MapRegistry = Depends(get_registry),
):
    """Return a named map document."""
    return _get_or_error(registry, name).model_dump(mode="json")


@router.get("/maps/{name}/summary", response_model=MapSummary)
async def get_map_summary(
    name: str = Depends(get_map_name),
    registry: MapRegistry = Depends(get_registry),
):
    return _summary(name, _get_or_error(registry, name))


@router.get("/maps/{name}/simple")
async def get_simple_map(
    name: str = Depends(get_map_name),
    registry: MapRegistry = Depends(get_registry),
):
    """Flatten a map to the legacy header -> field form."""
    return downgrade_to_simple_map(_get_or_error(registry, name))


@router.get("/maps/{name}/columns", response_model=list[TableColumnDefinition])
async def get_map_columns(
    name: str = Depends(get_map_name),
    registry: MapRegistry = Depends(get_registry),
):
    """Table column descriptors for rows converted with this map."""
    return generate_table_columns(_get_or_error(registry, name))


@router.post("/maps/{name}/extract", response_model=ApiExtractionResult)
async def extract_from_api_response(
    payload: Any = Body(...),
    name: str = Depends(get_map_name),
    registry: MapRegistry = Depends(get_registry),
):
    """Extract field values from a controller JSON response using the map's API paths."""
    return extract_api_data(payload, _get_or_error(registry, name))
