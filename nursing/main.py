"""
Nursing records - FastAPI application
Patients, their clinical history and nursing observations
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from nursing import __version__
from nursing.config import settings
from nursing.database import engine, init_db
from nursing.exceptions import NursingError
from nursing.routes import histories, observations, patients

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting nursing records ({settings.environment})")
    init_db(engine, reset=settings.reset_db_on_startup)
    logger.info("Database tables ready.")
    yield
    logger.info("App shutting down.")


app = FastAPI(
    title="Nursing records",
    description="Patients, clinical histories and nursing observations",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(patients.router)
app.include_router(histories.router)
app.include_router(observations.router)


@app.get("/health", tags=["health"])
async def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": __version__,
        "environment": settings.environment,
    }


@app.exception_handler(NursingError)
async def nursing_error_handler(request: Request, exc: NursingError):
    """Map record errors to their HTTP status."""
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc) if settings.debug else "Internal server error"},
    )


if __name__ == "__main__":
    uvicorn.run(
        "nursing.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower(),
    )
