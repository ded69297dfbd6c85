"""
Exception hierarchy for the catalog API

Every error raised by services and repositories derives from CatalogError and
carries the HTTP status it maps to. main.py renders them as
{"success": false, "message": ..., "error": ...}.
"""
from enum import Enum
from typing import Optional


class CatalogError(Exception):
    """Base class for catalog API errors."""

    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error

    def to_dict(self) -> dict:
        body = {"success": False, "message": self.message}
        if self.error is not None:
            body["error"] = self.error
        return body


class ValidationError(CatalogError):
    """Raised when required product fields are missing or malformed."""

    status_code = 400


class NormalizationReason(str, Enum):
    MALFORMED_DATA = "malformed_data"
    UNKNOWN_FORMAT = "unknown_format"
    LOCAL_REFERENCE = "local_reference"


class ImageNormalizationError(CatalogError):
    """Raised when an image string cannot be turned into an uploadable payload."""

    status_code = 400

    def __init__(self, reason: NormalizationReason, message: str, index: Optional[int] = None):
        super().__init__(message, error=reason.value)
        self.reason = reason
        self.index = index


class ImageHostError(CatalogError):
    """Raised by the image host connector when a remote call fails."""

    status_code = 502


class ImageUploadError(CatalogError):
    """Raised when one image of a request could not be fetched or uploaded."""

    status_code = 400

    def __init__(self, index: Optional[int], message: str, error: Optional[str] = None):
        super().__init__(message, error=error or "Unknown error")
        self.index = index


class PersistenceError(CatalogError):
    """Raised when the relational store rejects a write."""

    status_code = 500


class StoreUnavailableError(CatalogError):
    """Raised when the relational store cannot be reached."""

    status_code = 503


class ProductNotFoundError(CatalogError):
    status_code = 404

    def __init__(self, product_id: str):
        super().__init__("Product not found")
        self.product_id = product_id
