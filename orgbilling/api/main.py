"""FastAPI application entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from orgbilling.api.routes import billing, health
from orgbilling.config import settings
from orgbilling.database import dispose_engine

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(
        "application_startup",
        env=settings.app_env,
        enforce_billing=settings.enforce_billing,
    )
    yield
    await dispose_engine()
    logger.info("application_shutdown")


app = FastAPI(
    title="Organization Billing",
    description="Subscription resolution and seat-based usage billing",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(
    billing.router,
    prefix="/api/v1",
    tags=["Billing"],
)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Organization Billing",
        "version": "0.1.0",
        "status": "running",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "orgbilling.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
    )
