"""Main FastAPI application."""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from zipgeo.config import Settings, get_settings
from zipgeo.database import build_engine, build_session_factory, check_db, init_db
from zipgeo.routers import dataset, zipcodes
from zipgeo.services.reverse_geocoder import IndexCache

logger = logging.getLogger("zipgeo")


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    configure_logging(settings)
    logger.info("Starting up %s...", settings.app_name)

    engine = build_engine(settings)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.index_cache = IndexCache()
    app.state.populate_lock = asyncio.Lock()

    await init_db(engine)
    logger.info("Key-value store ready")

    yield

    logger.info("Shutting down...")
    await engine.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application; each app owns its engine and index cache."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
        debug=settings.debug,
        description="ZIP code lookup and reverse geocoding",
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.settings = settings

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(zipcodes.router, tags=["ZIP Codes"])
    app.include_router(dataset.router, tags=["Dataset"])

    @app.get("/", tags=["Health"])
    async def root():
        """Root endpoint."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "status": "healthy",
            "endpoints": {
                "zipcode": "/zipcode/{zip}",
                "reverse": "/reverse/{lat}/{long}",
                "populate": "/populate",
                "documentation": "/docs"
            }
        }

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint."""
        try:
            await check_db(request.app.state.engine)
            db_status = "healthy"
        except SQLAlchemyError as e:
            logger.warning("Database health check failed: %s", e)
            db_status = "unhealthy"

        return {
            "status": "healthy",
            "database": db_status,
            "index_epoch": request.app.state.index_cache.epoch
        }

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
        )
        return JSONResponse({"error": "Internal Server Error"}, status_code=500)

    return app


app = create_app()
