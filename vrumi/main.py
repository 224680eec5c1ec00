# vrumi/main.py
"""
FastAPI application entrypoint.

Run locally with:
    uvicorn vrumi.main:app --reload
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
import uvicorn

from .core.config import is_running_tests, settings
from .core.constants import API_DESCRIPTION, API_TITLE, API_VERSION, BRAND_NAME
from .database import init_db
from .routes import metrics as metrics_routes
from .routes.v1 import availability as availability_v1
from .routes.v1 import bookings as bookings_v1
from .routes.v1 import packages as packages_v1

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")
    if not is_running_tests():
        init_db()
    yield
    logger.info(f"{BRAND_NAME} API shutting down...")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)

api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(availability_v1.router, prefix="/instructors")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(packages_v1.router, prefix="/packages")

app.include_router(api_v1)
app.include_router(metrics_routes.router)


@app.get("/health", tags=["health"])
def health_check() -> dict[str, str]:
    return {"status": "healthy", "environment": settings.environment}


__all__ = ["app"]


if __name__ == "__main__":
    uvicorn.run(
        "vrumi.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
    )
