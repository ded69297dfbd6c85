"""
Unit tests for ProductRepository

These tests validate repository logic without requiring a database connection.
"""
import pytest
import psycopg2
from unittest.mock import MagicMock
from datetime import datetime
from decimal import Decimal

from catalog_api.repositories.product_repository import ProductRepository
from catalog_api.domain.image import UploadedImageRecord
from catalog_api.domain.product import Product, ProductDraft
from catalog_api.core.exceptions import PersistenceError, StoreUnavailableError


def mock_database():
    """Database double whose connection() context yields a mock connection"""
    db = MagicMock()
    conn = MagicMock()
    cursor = MagicMock()
    db.connection.return_value.__enter__.return_value = conn
    conn.cursor.return_value = cursor
    return db, conn, cursor


def product_row(product_id='p-1', name='Ceramic Mug', created_by=None, creator=None):
    row = {
        'id': product_id,
        'name': name,
        'description': 'Hand-glazed mug',
        'price': Decimal('19.99'),
        'stock': 5,
        'category': 'kitchen',
        'created_by': created_by,
        'created_at': datetime(2025, 1, 1, 12, 0),
        'updated_at': datetime(2025, 1, 1, 12, 0),
        'creator_id': None,
        'creator_name': None,
        'creator_email': None,
    }
    if creator:
        row.update(creator_id=creator['id'], creator_name=creator['name'], creator_email=creator['email'])
    return row


def image_row(product_id, order):
    return {
        'product_id': product_id,
        'url': f'https://ik.imagekit.io/demo/products/img_{order}.png',
        'file_id': f'file_{order}',
        'file_name': f'img_{order}.png',
        'order': order,
    }


def records(count):
    return [
        UploadedImageRecord(
            file_id=f'file_{i}',
            url=f'https://ik.imagekit.io/demo/products/img_{i}.png',
            file_name=f'img_{i}.png',
            order=i,
        )
        for i in range(count)
    ]


@pytest.fixture
def draft():
    return ProductDraft(name='Ceramic Mug', description='Hand-glazed mug', price='19.99', stock='5', category='kitchen')


class TestProductRepositoryCreate:
    """Test ProductRepository.create"""

    def test_create_inserts_product_and_images_in_one_transaction(self, draft):
        # Arrange
        db, conn, cursor = mock_database()
        cursor.fetchall.side_effect = lambda: []
        created = {}

        def execute(sql, params=None):
            if 'INSERT INTO products' in sql:
                created['id'] = params[0]
                cursor.fetchall.side_effect = [
                    [product_row(product_id=params[0], created_by='user-1',
                                 creator={'id': 'user-1', 'name': 'Ana', 'email': 'ana@example.com'})],
                    [image_row(params[0], 0), image_row(params[0], 1)],
                ]

        cursor.execute.side_effect = execute

        # Act
        repo = ProductRepository(db)
        product = repo.create(draft, list(reversed(records(2))), actor_id='user-1')

        # Assert
        assert isinstance(product, Product)
        assert product.id == created['id']
        assert product.created_by == 'user-1'
        assert product.creator.email == 'ana@example.com'
        assert [image.order for image in product.images] == [0, 1]

        insert_sql, insert_params = cursor.execute.call_args_list[0].args
        assert 'INSERT INTO products' in insert_sql
        assert insert_params[1:] == ('Ceramic Mug', 'Hand-glazed mug', Decimal('19.99'), 5, 'kitchen', 'user-1')

        images_sql, image_params = cursor.executemany.call_args.args
        assert 'INSERT INTO product_images' in images_sql
        # Rows are written sorted by order, all for the same product
        assert [row[4] for row in image_params] == [0, 1]
        assert {row[0] for row in image_params} == {created['id']}

        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()
        cursor.close.assert_called_once()

    def test_create_anonymous_product(self, draft):
        db, conn, cursor = mock_database()

        def execute(sql, params=None):
            if 'INSERT INTO products' in sql:
                cursor.fetchall.side_effect = [[product_row(product_id=params[0])], [image_row(params[0], 0)]]

        cursor.execute.side_effect = execute

        product = ProductRepository(db).create(draft, records(1))

        assert product.created_by is None
        assert product.creator is None
        assert cursor.execute.call_args_list[0].args[1][-1] is None

    def test_create_rolls_back_on_database_error(self, draft):
        # Arrange
        db, conn, cursor = mock_database()
        cursor.executemany.side_effect = psycopg2.IntegrityError('duplicate key value violates unique constraint')

        # Act / Assert
        with pytest.raises(PersistenceError) as exc_info:
            ProductRepository(db).create(draft, records(2))

        assert 'duplicate key' in exc_info.value.error
        assert exc_info.value.status_code == 500
        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        cursor.close.assert_called_once()

    def test_create_commits_after_read_back(self, draft):
        db, conn, cursor = mock_database()
        steps = []

        def execute(sql, params=None):
            if 'INSERT INTO products' in sql:
                steps.append('insert')
                cursor.fetchall.side_effect = [[product_row(product_id=params[0])], [image_row(params[0], 0)]]
            elif 'FROM products' in sql:
                steps.append('select')

        cursor.execute.side_effect = execute
        conn.commit.side_effect = lambda: steps.append('commit')

        ProductRepository(db).create(draft, records(1))

        assert steps[0] == 'insert'
        assert steps[-1] == 'commit'
        assert 'select' in steps

    def test_create_read_back_failure_commits_nothing(self, draft):
        db, conn, cursor = mock_database()

        def execute(sql, params=None):
            if 'FROM products' in sql:
                raise psycopg2.OperationalError('server closed the connection unexpectedly')

        cursor.execute.side_effect = execute

        with pytest.raises(PersistenceError) as exc_info:
            ProductRepository(db).create(draft, records(1))

        assert exc_info.value.status_code == 500
        conn.commit.assert_not_called()
        conn.rollback.assert_called_once()
        cursor.close.assert_called_once()

    def test_create_missing_after_insert_rolls_back(self, draft):
        db, conn, cursor = mock_database()
        cursor.fetchall.return_value = []

        with pytest.raises(PersistenceError):
            ProductRepository(db).create(draft, records(1))

        conn.commit.assert_not_called()
        conn.rollback.assert_called_once()

    def test_create_store_unreachable_is_persistence_error(self, draft):
        db = MagicMock()
        db.connection.side_effect = StoreUnavailableError('Database unavailable', error='could not connect to server')

        with pytest.raises(PersistenceError) as exc_info:
            ProductRepository(db).create(draft, records(1))

        assert exc_info.value.status_code == 500
        assert exc_info.value.error == 'could not connect to server'

    def test_create_requires_images(self, draft):
        db, conn, cursor = mock_database()

        with pytest.raises(PersistenceError):
            ProductRepository(db).create(draft, [])

        db.connection.assert_not_called()


class TestProductRepositoryRead:
    """Test ProductRepository.find_by_id and find_all"""

    def test_find_by_id_returns_product_with_ordered_images(self):
        db, conn, cursor = mock_database()
        cursor.fetchall.side_effect = [
            [product_row('p-1')],
            [image_row('p-1', 0), image_row('p-1', 1), image_row('p-1', 2)],
        ]

        product = ProductRepository(db).find_by_id('p-1')

        assert product is not None
        assert product.image_urls == [
            'https://ik.imagekit.io/demo/products/img_0.png',
            'https://ik.imagekit.io/demo/products/img_1.png',
            'https://ik.imagekit.io/demo/products/img_2.png',
        ]
        assert cursor.execute.call_args_list[0].args[1] == ('p-1',)

    def test_find_by_id_returns_none_when_not_found(self):
        db, conn, cursor = mock_database()
        cursor.fetchall.return_value = []

        assert ProductRepository(db).find_by_id('missing') is None
        # No image query when there is no product
        assert cursor.execute.call_count == 1

    def test_find_all_groups_images_by_product(self):
        db, conn, cursor = mock_database()
        cursor.fetchall.side_effect = [
            [product_row('p-2', name='Newer'), product_row('p-1', name='Older')],
            [image_row('p-1', 0), image_row('p-2', 0), image_row('p-2', 1)],
        ]

        products = ProductRepository(db).find_all()

        assert [product.id for product in products] == ['p-2', 'p-1']
        assert len(products[0].images) == 2
        assert len(products[1].images) == 1
        image_query_params = cursor.execute.call_args_list[1].args[1]
        assert image_query_params == (['p-2', 'p-1'],)

    def test_find_all_empty_catalog(self):
        db, conn, cursor = mock_database()
        cursor.fetchall.return_value = []

        assert ProductRepository(db).find_all() == []

    def test_read_operational_error_means_store_unavailable(self):
        db, conn, cursor = mock_database()
        cursor.execute.side_effect = psycopg2.OperationalError('server closed the connection unexpectedly')

        with pytest.raises(StoreUnavailableError) as exc_info:
            ProductRepository(db).find_all()

        assert exc_info.value.status_code == 503
        cursor.close.assert_called_once()

    def test_read_other_database_error_is_persistence_error(self):
        db, conn, cursor = mock_database()
        cursor.execute.side_effect = psycopg2.ProgrammingError('relation "products" does not exist')

        with pytest.raises(PersistenceError):
            ProductRepository(db).find_by_id('p-1')
