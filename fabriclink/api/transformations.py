"""Transformation and header-resolution endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from fabriclink.api.deps import get_engine, get_registry, optional_map_name
from fabriclink.core.conversion_map import ConversionMapError
from fabriclink.core.header_resolver import resolve_headers
from fabriclink.core.map_registry import MapRegistry
from fabriclink.core.models import (
    HeaderResolutionView,
    HeaderResolveRequest,
    TransformationTestRequest,
    TransformationTestResponse,
)
from fabriclink.core.transformation_engine import TransformationEngine, TransformationError

router = APIRouter()


@router.get("/transformations/functions")
async def list_functions(engine: TransformationEngine = Depends(get_engine)):
    """Names of the built-in and registered transformation functions."""
    return {"functions": engine.available_functions()}


@router.post("/transformations/test", response_model=TransformationTestResponse)
async def try_transformation(
    body: TransformationTestRequest,
    engine: TransformationEngine = Depends(get_engine),
):
    """Apply a single rule to a sample value.

    Configuration problems are reported in `failures`; the value is then
    returned unchanged.
    """
    problems = engine.validate_rule(body.rule)
    if problems:
        return TransformationTestResponse(output_value=body.input_value, applied=False, failures=problems)

    failures: list[str] = []
    try:
        output = engine.apply(body.rule, body.input_value, body.context, failures)
    except TransformationError as e:
        return TransformationTestResponse(output_value=body.input_value, applied=False, failures=[str(e)])
    return TransformationTestResponse(
        output_value=output,
        applied=output != body.input_value,
        failures=failures,
    )


@router.post("/headers/resolve", response_model=HeaderResolutionView)
async def resolve_header_row(
    body: HeaderResolveRequest,
    registry: MapRegistry = Depends(get_registry),
):
    """Resolve raw headers against a map (default map when none is named)."""
    name = optional_map_name(body.map_name)
    try:
        conversion_map = registry.get_map(name)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail=f"Conversion map '{name}' not found")
    except ConversionMapError as e:
        raise HTTPException(status_code=400, detail=f"Invalid conversion map '{name}': {e}")

    resolution = resolve_headers(body.headers, conversion_map, body.fuzzy_min_confidence)
    return resolution.to_view(conversion_map.header_row or 1)
