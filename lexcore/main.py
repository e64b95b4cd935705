"""
LexCore API entrypoint
Access control and client lifecycle service for legal practices
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from lexcore import __version__
from lexcore.api.v1.router import api_router
from lexcore.core.database import close_database, init_database
from lexcore.core.logging import setup_logging
from lexcore.core.simple_config import settings
from lexcore.middleware.logging import LoggingMiddleware
from lexcore.schemas.base import ErrorResponse

setup_logging()
logger = structlog.get_logger()

IS_DEVELOPMENT = settings.ENVIRONMENT == "development"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("LexCore starting", version=__version__, environment=settings.ENVIRONMENT)
    await init_database()
    try:
        yield
    finally:
        await close_database()
        logger.info("LexCore stopped")


app = FastAPI(
    title="LexCore API",
    description="Access control and client lifecycle core for legal practices",
    version=__version__,
    docs_url="/docs" if IS_DEVELOPMENT else None,
    redoc_url=None,
    lifespan=lifespan,
)

# Added last so it wraps the logging middleware
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def liveness():
    return {"status": "healthy", "service": "lexcore", "version": __version__}


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception):
    logger.exception("Unhandled exception", method=request.method, path=request.url.path)
    body = ErrorResponse(
        error="internal_error",
        message="An unexpected error occurred",
        request_id=getattr(request.state, "request_id", None),
    )
    return JSONResponse(status_code=500, content=body.model_dump(mode="json"))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "lexcore.main:app",
        host="0.0.0.0",
        port=8000,
        reload=IS_DEVELOPMENT,
        log_level=settings.LOG_LEVEL.lower(),
    )
