"""FastAPI dependencies for map-name validation and shared services."""

from typing import Optional

from fastapi import HTTPException, Path, Request

from fabriclink.core.map_registry import MapRegistry
from fabriclink.core.transformation_engine import TransformationEngine


def check_map_name(name: str) -> str:
    """Raise 400 unless `name` is lowercase alphanumeric with underscores."""
    if not name.replace("_", "").isalnum() or name != name.lower():
        raise HTTPException(
            status_code=400,
            detail=f"Invalid map name format: '{name}'. "
                   f"Must be lowercase alphanumeric with underscores."
        )
    return name


async def get_map_name(
    name: str = Path(..., description="Conversion map name", min_length=1, max_length=64)
) -> str:
    """Extract and validate a map name from the URL path."""
    return check_map_name(name)


def optional_map_name(name: Optional[str]) -> str:
    """Validated map name, or the default map when none is given."""
    return check_map_name(name) if name else "default"


def get_registry(request: Request) -> MapRegistry:
    return request.app.state.map_registry


def get_engine(request: Request) -> TransformationEngine:
    return request.app.state.engine
