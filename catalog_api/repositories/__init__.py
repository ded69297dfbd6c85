"""
Repository Layer - Data Access

This layer handles all database queries and returns domain models.
Repositories abstract away SQL details from business logic.
"""
from catalog_api.repositories.product_repository import ProductRepository

__all__ = [
    'ProductRepository',
]
