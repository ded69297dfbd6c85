"""
FastAPI dependencies

Process-wide collaborators (database pool, HTTP client, image host) are
created in the application lifespan and stored on app.state; these
functions hand them to the routes. Tests replace them through
app.dependency_overrides.
"""
import httpx
from fastapi import Depends, Request

from catalog_api.core.config import Settings, get_settings
from catalog_api.core.database import Database
from catalog_api.core.exceptions import CatalogError, StoreUnavailableError
from catalog_api.repositories.product_repository import ProductRepository
from catalog_api.services.image_ingestion_service import ImageHost, ImageIngestionService
from catalog_api.services.product_service import ProductService


def get_database(request: Request) -> Database:
    database = getattr(request.app.state, "database", None)
    if database is None:
        raise StoreUnavailableError("Database not configured", error="DATABASE_URL is not set")
    return database


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_image_host(request: Request) -> ImageHost:
    image_host = getattr(request.app.state, "image_host", None)
    if image_host is None:
        raise CatalogError("Image host not configured", error="IMAGEKIT_PRIVATE_KEY is not set")
    return image_host


def get_product_repository(db: Database = Depends(get_database)) -> ProductRepository:
    return ProductRepository(db)


def get_ingestion_service(
    image_host: ImageHost = Depends(get_image_host),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> ImageIngestionService:
    return ImageIngestionService.from_settings(image_host, http_client, settings)


def get_catalog_service(repository: ProductRepository = Depends(get_product_repository)) -> ProductService:
    """Read-only service; does not need the image host"""
    return ProductService(repository)


def get_product_service(
    repository: ProductRepository = Depends(get_product_repository),
    ingestion: ImageIngestionService = Depends(get_ingestion_service),
) -> ProductService:
    return ProductService(repository, ingestion)
