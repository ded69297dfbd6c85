"""
Domain Layer - Business Entities

This layer contains the models representing catalog entities and the value
objects passed through the image ingestion pipeline.
"""
from catalog_api.domain.product import Product, ProductDraft, ProductImage, Creator
from catalog_api.domain.image import (
    EmbeddedData,
    ExternalUrl,
    UnsupportedLocalReference,
    ImageSource,
    UploadedFile,
    UploadedImageRecord,
)

__all__ = [
    'Product',
    'ProductDraft',
    'ProductImage',
    'Creator',
    'EmbeddedData',
    'ExternalUrl',
    'UnsupportedLocalReference',
    'ImageSource',
    'UploadedFile',
    'UploadedImageRecord',
]
