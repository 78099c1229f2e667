"""FabricLink — FastAPI application entry point.

Sets up the conversion map registry on startup and registers API routers.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from fabriclink.api import conversions, health, maps, transformations
from fabriclink.core.config import settings
from fabriclink.core.map_registry import MapRegistry
from fabriclink.core.transformation_engine import TransformationEngine

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create shared services on startup."""
    logger.info("Starting FabricLink backend...")

    app.state.engine = TransformationEngine()
    app.state.map_registry = MapRegistry(engine=app.state.engine)
    logger.info(f"Map registry initialized from {app.state.map_registry.maps_dir}")

    logger.info("FabricLink backend ready")
    yield
    logger.info("FabricLink backend stopped")


app = FastAPI(
    title="FabricLink",
    version="0.1.0",
    description="Converts network cabling spreadsheets into canonical link records.",
    lifespan=lifespan,
)

app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(maps.router, prefix="/api", tags=["maps"])
app.include_router(transformations.router, prefix="/api", tags=["transformations"])
app.include_router(conversions.router, prefix="/api", tags=["conversions"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("fabriclink.main:app", host=settings.backend_host, port=settings.backend_port)
