"""Health check endpoint — verifies the backend can load its default map."""

import logging

from fastapi import APIRouter, Depends

from fabriclink.api.deps import get_registry
from fabriclink.core.map_registry import MapRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(registry: MapRegistry = Depends(get_registry)):
    """Check backend status and that the default conversion map is usable."""
    try:
        registry.get_map()
        default_ok = True
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Default conversion map unavailable: {e}")
        default_ok = False

    return {
        "status": "ok" if default_ok else "degraded",
        "maps_dir": str(registry.maps_dir),
        "checks": {
            "default_map": "ok" if default_ok else "error",
        }
    }
