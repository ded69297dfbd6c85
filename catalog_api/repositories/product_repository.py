"""
Product Repository - Data Access Layer for Products

Handles all database queries for products and their images and returns
Product domain models.
"""
import logging
import uuid
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

import psycopg2
from psycopg2.extras import RealDictCursor

from catalog_api.core.database import Database
from catalog_api.core.exceptions import PersistenceError, StoreUnavailableError
from catalog_api.domain.image import UploadedImageRecord
from catalog_api.domain.product import Creator, Product, ProductDraft, ProductImage

logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = """
    p.id, p.name, p.description, p.price, p.stock, p.category,
    p.created_by, p.created_at, p.updated_at,
    u.id AS creator_id, u.name AS creator_name, u.email AS creator_email
"""


class ProductRepository:
    """
    Repository for Product data access

    All SQL queries for products are centralized here.
    A product and its images are always written in one transaction.
    """

    def __init__(self, db: Database):
        self.db = db

    @staticmethod
    def _map_row_to_product(row: dict, images: List[dict]) -> Product:
        """Map a products/users join row plus its image rows to a Product"""
        creator = None
        if row.get('creator_id'):
            creator = Creator(
                id=str(row['creator_id']),
                name=row.get('creator_name'),
                email=row.get('creator_email'),
            )

        return Product(
            id=str(row['id']),
            name=row['name'],
            description=row['description'],
            price=row['price'],
            stock=row['stock'],
            category=row['category'],
            created_by=str(row['created_by']) if row.get('created_by') else None,
            creator=creator,
            images=[
                ProductImage(
                    url=image['url'],
                    file_id=image['file_id'],
                    file_name=image['file_name'],
                    order=image['order'],
                )
                for image in images
            ],
            created_at=row['created_at'],
            updated_at=row['updated_at'],
        )

    def _select_products(self, cursor, where_clause: str = "1=1", params: Sequence = ()) -> List[Product]:
        cursor.execute(f"""
            SELECT {PRODUCT_COLUMNS}
            FROM products p
            LEFT JOIN users u ON u.id = p.created_by
            WHERE {where_clause}
            ORDER BY p.created_at DESC
        """, tuple(params))
        rows = cursor.fetchall()
        if not rows:
            return []

        product_ids = [row['id'] for row in rows]
        cursor.execute("""
            SELECT product_id, url, file_id, file_name, "order"
            FROM product_images
            WHERE product_id = ANY(%s)
            ORDER BY product_id, "order" ASC
        """, (product_ids,))

        images_by_product: Dict[str, List[dict]] = defaultdict(list)
        for image in cursor.fetchall():
            images_by_product[str(image['product_id'])].append(image)

        return [self._map_row_to_product(row, images_by_product[str(row['id'])]) for row in rows]

    def create(
        self,
        draft: ProductDraft,
        images: Sequence[UploadedImageRecord],
        actor_id: Optional[str] = None
    ) -> Product:
        """
        Insert a product and its images as one unit

        Args:
            draft: Validated product fields
            images: Records of images already stored at the image host
            actor_id: ID of the creating user, None for anonymous

        Returns:
            The stored Product with images and creator

        Raises:
            PersistenceError: If the transaction fails (nothing is written)
        """
        if not images:
            raise PersistenceError("A product needs at least one image")

        product_id = str(uuid.uuid4())

        try:
            with self.db.connection() as conn:
                product = self._insert_product(conn, product_id, draft, images, actor_id)
        except StoreUnavailableError as e:
            # Uploads already happened, so an unreachable store fails the write
            logger.error(f"Database unavailable while creating product '{draft.name}': {e.error}")
            raise PersistenceError("Failed to create product", error=e.error) from e

        logger.info(f"Product created: {product_id} with {len(images)} image(s)")
        return product

    def _insert_product(
        self,
        conn,
        product_id: str,
        draft: ProductDraft,
        images: Sequence[UploadedImageRecord],
        actor_id: Optional[str]
    ) -> Product:
        """Insert and read back inside one transaction; commit is the last step"""
        cursor = conn.cursor(cursor_factory=RealDictCursor)

        try:
            cursor.execute("""
                INSERT INTO products (
                    id, name, description, price, stock, category,
                    created_by, created_at, updated_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, NOW(), NOW())
            """, (
                product_id, draft.name, draft.description, draft.price,
                draft.stock, draft.category, actor_id
            ))

            cursor.executemany("""
                INSERT INTO product_images (product_id, url, file_id, file_name, "order")
                VALUES (%s, %s, %s, %s, %s)
            """, [
                (product_id, image.url, image.file_id, image.file_name, image.order)
                for image in sorted(images, key=lambda image: image.order)
            ])

            products = self._select_products(cursor, "p.id = %s", (product_id,))
            if not products:
                raise PersistenceError("Product was not found after insert", error=product_id)

            conn.commit()
            return products[0]

        except PersistenceError:
            conn.rollback()
            raise
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Error creating product '{draft.name}': {e}")
            raise PersistenceError("Failed to create product", error=str(e)) from e

        finally:
            cursor.close()

    def find_by_id(self, product_id: str) -> Optional[Product]:
        """
        Find product by ID

        Returns:
            Product or None if not found
        """
        products = self._read("p.id = %s", (product_id,))
        return products[0] if products else None

    def find_all(self) -> List[Product]:
        """All products, newest first, each with images in display order"""
        return self._read()

    def _read(self, where_clause: str = "1=1", params: Sequence = ()) -> List[Product]:
        with self.db.connection() as conn:
            cursor = conn.cursor(cursor_factory=RealDictCursor)

            try:
                return self._select_products(cursor, where_clause, params)

            except psycopg2.OperationalError as e:
                logger.error(f"Database unavailable while reading products: {e}")
                raise StoreUnavailableError("Database unavailable", error=str(e)) from e
            except psycopg2.Error as e:
                logger.error(f"Error reading products: {e}")
                raise PersistenceError("Error fetching products", error=str(e)) from e

            finally:
                cursor.close()
