"""
Product Service
Sequences product creation and the catalog read paths

create_product:
    validate body -> upload images -> insert product + images -> response dict

Validation always happens before the first upload, and the database write
starts only after every upload succeeded.
"""
import logging
from typing import Any, List, Optional

from starlette.concurrency import run_in_threadpool

from catalog_api.core.auth import TokenUser
from catalog_api.core.exceptions import CatalogError, ProductNotFoundError
from catalog_api.domain.product import Product, ProductDraft
from catalog_api.repositories.product_repository import ProductRepository
from catalog_api.services.image_ingestion_service import ImageIngestionService

logger = logging.getLogger(__name__)

PLACEHOLDER_NOTE = "Some images were replaced with placeholders. Use base64 format for proper image upload."


class ProductService:
    """Application service behind the /products endpoints"""

    def __init__(self, repository: ProductRepository, ingestion: Optional[ImageIngestionService] = None):
        self.repository = repository
        self.ingestion = ingestion

    async def create_product(self, payload: Any, user: Optional[TokenUser] = None) -> dict:
        """
        Create a product from a raw request body

        Returns:
            Response body for HTTP 201

        Raises:
            ValidationError: Before any upload when the body is invalid
            ImageNormalizationError / ImageUploadError: When an image fails
            PersistenceError: When the database write fails after uploads
        """
        if self.ingestion is None:
            raise CatalogError("Image host not configured")

        draft = ProductDraft.from_payload(payload)
        actor_id = user.id if user else None

        logger.info(
            f"Creating product '{draft.name}' with {len(draft.images)} image(s), "
            f"{'user ' + actor_id if actor_id else 'anonymous'}"
        )

        records = await self.ingestion.ingest(draft.name, draft.images)

        try:
            product = await run_in_threadpool(self.repository.create, draft, records, actor_id)
        except CatalogError:
            await self.ingestion.discard(records)
            raise

        placeholders = sum(1 for record in records if record.is_placeholder)
        uploaded = len(records) - placeholders

        response = {
            "success": True,
            "message": "Product created successfully",
            "product": product.to_dict(anonymous_fallback=True),
            "uploadedImages": uploaded,
            "placeholderImages": placeholders,
            "authStatus": "authenticated" if user else "anonymous",
        }
        if placeholders > 0:
            response["note"] = PLACEHOLDER_NOTE

        return response

    async def list_products(self) -> dict:
        products: List[Product] = await run_in_threadpool(self.repository.find_all)
        return {
            "success": True,
            "products": [product.to_dict() for product in products],
            "total": len(products),
            "source": "database",
        }

    async def get_product(self, product_id: str) -> dict:
        product = await run_in_threadpool(self.repository.find_by_id, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)

        return {
            "success": True,
            "product": product.to_dict(),
            "source": "database",
        }
