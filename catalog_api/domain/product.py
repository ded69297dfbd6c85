"""
Product Domain Model

Represents a product entity in the catalog together with its ordered images
and the user who created it. This is the single source of truth for product
data structure, and Product.to_dict() is the outward-facing representation.
"""
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError
from typing import Any, List, Optional
from datetime import datetime
from decimal import Decimal

from catalog_api.core.exceptions import ValidationError

ANONYMOUS_CREATOR = {
    "id": "anonymous",
    "name": "Anonymous User",
    "email": None,
}

REQUIRED_FIELDS_MESSAGE = "Name, description, and price are required"

MAX_STOCK = 2147483647


class ProductImage(BaseModel):
    """One stored image of a product, in display order"""
    url: str
    file_id: str
    file_name: str
    order: int = Field(..., ge=0)

    model_config = ConfigDict(from_attributes=True)


class Creator(BaseModel):
    """Minimal projection of the user that created a product"""
    id: str
    name: Optional[str] = None
    email: Optional[str] = None


class Product(BaseModel):
    """
    Product domain model - represents a product in our catalog

    Fields:
        id: Product ID (UUID string)
        name: Product name
        description: Product description
        price: Selling price
        stock: Units available
        category: Product category (optional)
        created_by: ID of the creating user, None for anonymous products
        creator: Projection of the creating user when known
        images: Stored images, sorted by order
        created_at: When product was created
        updated_at: When product was last updated
    """

    id: str = Field(..., description="Product ID")
    name: str = Field(..., description="Product name")
    description: str = Field(..., description="Product description")
    price: Decimal = Field(..., description="Sale price", gt=0)
    stock: int = Field(0, description="Units in stock", ge=0)
    category: Optional[str] = Field(None, description="Product category")

    created_by: Optional[str] = Field(None, description="Creating user ID")
    creator: Optional[Creator] = None
    images: List[ProductImage] = Field(default_factory=list)

    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    model_config = ConfigDict(from_attributes=True)

    @property
    def image_urls(self) -> List[str]:
        return [image.url for image in sorted(self.images, key=lambda image: image.order)]

    def to_dict(self, anonymous_fallback: bool = False) -> dict:
        """
        Convert to the API representation

        Args:
            anonymous_fallback: Replace a missing creator with the anonymous
                placeholder instead of null (used by the create endpoint)
        """
        if self.creator:
            created_by = self.creator.model_dump()
        elif anonymous_fallback:
            created_by = dict(ANONYMOUS_CREATOR)
        else:
            created_by = None

        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": float(self.price),
            "stock": self.stock,
            "category": self.category,
            "images": self.image_urls,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "createdBy": created_by,
        }


class ProductDraft(BaseModel):
    """
    Schema for creating a new product

    Built from the raw request body. Numeric strings are accepted for price
    and stock ("19.99", "5"). images holds the raw client strings; they are
    classified later by the image normalizer.
    """
    name: str
    description: str
    # Bounds of the products table: NUMERIC(12, 2) and INTEGER
    price: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    stock: int = Field(0, ge=0, le=MAX_STOCK)
    category: Optional[str] = None
    images: List[str] = Field(default_factory=list)

    @field_validator("name", "description")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("stock", mode="before")
    @classmethod
    def default_stock(cls, value: Any) -> Any:
        if value is None or value == "":
            return 0
        return value

    @field_validator("category", mode="before")
    @classmethod
    def empty_category_is_none(cls, value: Any) -> Any:
        if value == "":
            return None
        return value

    @field_validator("images", mode="before")
    @classmethod
    def default_images(cls, value: Any) -> Any:
        if value is None:
            return []
        return value

    @classmethod
    def from_payload(cls, payload: Any) -> "ProductDraft":
        """
        Validate a raw JSON body

        Raises:
            ValidationError: With a client-facing message for the first problem
        """
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")

        if not payload.get("name") or not payload.get("description") or payload.get("price") in (None, ""):
            raise ValidationError(REQUIRED_FIELDS_MESSAGE)

        images = payload.get("images")
        if images is not None and not isinstance(images, list):
            raise ValidationError("Images must be an array")

        try:
            return cls.model_validate(payload)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"])
            raise ValidationError(f"Invalid {field}: {first['msg']}") from e
