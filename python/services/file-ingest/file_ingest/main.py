"""
File Ingest Service - Main Application
FastAPI app streaming uploads into a sink while computing their SHA256 and size.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared_schemas.common import ErrorResponse
from shared_schemas.file_service import HealthCheckResponse
from file_ingest.core.config import settings
from file_ingest.core.dependencies import get_processor, shutdown_executor
from file_ingest.core.errors import IngestError
from file_ingest.api import upload

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Runs on startup and shutdown.
    """
    logger.info("Starting File Ingest Service...")
    logger.info(
        f"Strategy: {settings.INGEST_STRATEGY.value}, sink: {settings.SINK_BACKEND.value}, "
        f"flush threshold: {settings.FLUSH_THRESHOLD_BYTES} bytes, "
        f"relay capacity: {settings.RELAY_CAPACITY_CHUNKS} chunks"
    )

    yield

    logger.info("Shutting down File Ingest Service...")
    shutdown_executor()


# Create FastAPI app
app = FastAPI(
    title="File Ingest Service",
    description="Streaming upload ingestion with incremental SHA256 and bounded memory",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(upload.router)


@app.get("/", tags=["root"])
async def root():
    """Root endpoint with service information."""
    return {
        "service": "File Ingest Service",
        "version": "1.0.0",
        "status": "running",
        "strategy": settings.INGEST_STRATEGY.value,
        "endpoints": {
            "multipart": "POST /file/upload",
            "stream": "PUT /file/upload/{file_name}",
            "records": "/file/records",
            "health": "/health"
        }
    }


@app.get("/health", tags=["health"], response_model=HealthCheckResponse)
async def health_check():
    """Health check endpoint."""
    try:
        processor = get_processor()
        return HealthCheckResponse(
            status="healthy",
            sink=type(processor.strategy.sink).__name__,
            strategy=processor.strategy.name
        )
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "sink": "failed",
                "strategy": settings.INGEST_STRATEGY.value
            }
        )


@app.exception_handler(IngestError)
async def ingest_exception_handler(request: Request, exc: IngestError):
    """Ingest failures that escaped an endpoint's own handling."""
    logger.error(f"Unhandled ingest failure: {exc}")
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            detail=str(exc.cause),
            error_code=type(exc).__name__,
            file_name=exc.file_name
        ).model_dump()
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(detail="Internal server error").model_dump()
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "file_ingest.main:app",
        host="0.0.0.0",
        port=8000,
        log_level=settings.LOG_LEVEL.lower(),
        timeout_keep_alive=7200,  # 2 hours for very large file uploads
        limit_concurrency=100
    )
