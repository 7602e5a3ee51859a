"""
SOV Tracker - AI Share of Voice & GEO Scoring Service
Main FastAPI Application
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sovtrack.config import get_settings
from sovtrack.errors import SOVTrackError

logger = logging.getLogger(__name__)


def _is_serverless() -> bool:
    """Check if running in serverless environment"""
    return bool(os.environ.get("VERCEL") or os.environ.get("AWS_LAMBDA_FUNCTION_NAME"))


def configure_logging() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    # Skip table creation in serverless
    if not _is_serverless():
        from sovtrack.utils import init_db, close_db
        await init_db()
        yield
        await close_db()
    else:
        yield


def create_app() -> FastAPI:
    """Factory function to create FastAPI app"""
    settings = get_settings()
    configure_logging()

    application = FastAPI(
        title="SOV Tracker API",
        description="""
        AI Share of Voice tracking

        Measure how often AI answer engines mention your brand versus your
        competitors, follow that share over time, and score pages for
        Generative Engine Optimization (GEO).
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc" if settings.is_development else None,
    )

    # CORS middleware
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.exception_handler(SOVTrackError)
    async def sovtrack_exception_handler(request: Request, exc: SOVTrackError):
        """Typed error plus whatever partial data was computed"""
        logger.warning(f"{request.method} {request.url.path} -> {exc.error_type}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable_encoder({
                "success": False,
                "data": exc.partial,
                "error": exc.to_dict(),
            }),
        )

    # Global exception handler
    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle unexpected errors"""
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        settings = get_settings()
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "data": None,
                "error": {
                    "type": type(exc).__name__ if settings.DEBUG else "InternalError",
                    "message": str(exc) if settings.DEBUG else "Internal server error",
                    "details": {},
                },
            },
        )

    from sovtrack.api.routes import api_router
    application.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")

    # Health check
    @application.get("/health")
    async def health_check():
        """Health check endpoint"""
        settings = get_settings()
        return {
            "status": "healthy",
            "version": "1.0.0",
            "environment": settings.APP_ENV,
        }

    return application


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()

    uvicorn.run(
        "sovtrack.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development,
        workers=1 if settings.is_development else settings.WORKERS,
    )
