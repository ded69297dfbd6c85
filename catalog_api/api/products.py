"""
Products API Endpoints
Product catalog listing, detail and creation with image upload

Mounted under /api:
    GET  /api/products
    GET  /api/products/{product_id}
    POST /api/products/create-new-product
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from catalog_api.api.dependencies import get_catalog_service, get_product_service
from catalog_api.core.auth import TokenUser, get_current_user_optional
from catalog_api.core.exceptions import CatalogError, ValidationError
from catalog_api.services.product_service import ProductService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/products")
async def get_products(service: ProductService = Depends(get_catalog_service)):
    """
    Get all products, newest first

    An empty catalog returns an empty list; an unreachable database is a 503.
    """
    try:
        return await service.list_products()

    except CatalogError:
        raise
    except Exception as e:
        logger.exception("Error fetching products")
        raise CatalogError("Error fetching products", error=str(e)) from e


@router.get("/products/{product_id}")
async def get_product(product_id: str, service: ProductService = Depends(get_catalog_service)):
    """Get a single product by ID with its images in display order"""
    try:
        return await service.get_product(product_id)

    except CatalogError:
        raise
    except Exception as e:
        logger.exception(f"Error fetching product {product_id}")
        raise CatalogError("Error fetching product", error=str(e)) from e


@router.post("/products/create-new-product", status_code=201)
async def create_product(
    request: Request,
    service: ProductService = Depends(get_product_service),
    user: Optional[TokenUser] = Depends(get_current_user_optional),
):
    """
    Create a product and upload its images to ImageKit

    Body:
        name, description, price (required), stock, category, images

    images accepts base64 data URLs, http(s) URLs and file:// references from
    the mobile app. An empty list gets a placeholder image.
    """
    logger.info(f"Session status: {'Authenticated' if user else 'Anonymous'}")

    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError("Request body must be valid JSON")

    try:
        return await service.create_product(payload, user)

    except CatalogError:
        raise
    except Exception as e:
        logger.exception("Error creating product")
        raise CatalogError("Failed to create product", error=str(e)) from e
