"""
Product Catalog - Backend API
Product listing/detail and product creation with ImageKit image ingestion
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Load environment variables
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)

from catalog_api.api import products
from catalog_api.connectors.imagekit_connector import ImageKitConnector
from catalog_api.core.config import Settings, get_settings
from catalog_api.core.database import Database
from catalog_api.core.exceptions import CatalogError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the shared collaborators on startup and close them on shutdown"""
    settings: Settings = app.state.settings

    http_client = httpx.AsyncClient()
    app.state.http_client = http_client

    app.state.database = None
    if settings.DATABASE_URL:
        app.state.database = Database.from_settings(settings)
    else:
        logger.warning("DATABASE_URL not configured, product endpoints will return 503")

    app.state.image_host = None
    if settings.IMAGEKIT_PRIVATE_KEY:
        app.state.image_host = ImageKitConnector.from_settings(http_client, settings)
    else:
        logger.warning("IMAGEKIT_PRIVATE_KEY not configured, product creation is disabled")

    try:
        yield
    finally:
        await http_client.aclose()
        if app.state.database is not None:
            app.state.database.dispose()
        logger.info("Shutdown complete")


async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} ({exc.error})")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(settings: Settings = None) -> FastAPI:
    settings = settings or get_settings()

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title=settings.API_TITLE,
        version=settings.API_VERSION,
        description=settings.API_DESCRIPTION,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Cookie"],
    )

    app.add_exception_handler(CatalogError, catalog_error_handler)

    app.include_router(products.router, prefix="/api", tags=["Products"])

    @app.get("/")
    async def root():
        """Endpoint raíz - Verificación de estado de la API"""
        return {
            "message": settings.API_TITLE,
            "status": "online",
            "version": settings.API_VERSION,
        }

    @app.get("/health")
    async def health(request: Request):
        """Health check endpoint - tests database connectivity"""
        db_status = "not_configured"
        db_latency_ms = None
        db_error = None

        database = getattr(request.app.state, "database", None)
        if database is not None:
            try:
                db_latency_ms = database.ping()
                db_status = "connected"
            except CatalogError as e:
                db_status = "disconnected"
                db_error = e.error or e.message
            except Exception as e:
                db_status = "disconnected"
                db_error = str(e)

        return {
            "status": "healthy" if db_status == "connected" else "degraded",
            "service": "product-catalog-api",
            "version": settings.API_VERSION,
            "database": {
                "status": db_status,
                "latency_ms": db_latency_ms,
                "error": db_error,
            },
            "image_host": {
                "configured": getattr(request.app.state, "image_host", None) is not None,
            },
        }

    return app


app = create_app()
