"""
Pytest fixtures and configuration for the catalog API tests

Provides in-memory stand-ins for the image host and the product repository,
an httpx mock transport for externally hosted images, and a TestClient wired
to all of them through dependency overrides.
"""
import base64
import itertools
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from catalog_api.api.dependencies import get_http_client, get_image_host, get_product_repository
from catalog_api.core.config import Settings, get_settings
from catalog_api.core.exceptions import ImageHostError
from catalog_api.domain.image import UploadedFile
from catalog_api.domain.product import Creator, Product, ProductImage
from catalog_api.main import create_app

AUTH_SECRET = "test-secret"

PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


def data_url(data: bytes, subtype: str = "png") -> str:
    return f"data:image/{subtype};base64,{base64.b64encode(data).decode()}"


class FakeImageHost:
    """
    In-memory image host

    Records every upload attempt. fail_on_call makes the Nth upload
    (1-based) raise ImageHostError.
    """

    def __init__(self, fail_on_call: Optional[int] = None):
        self.fail_on_call = fail_on_call
        self.calls: List[dict] = []
        self.deleted: List[str] = []
        self._counter = itertools.count(1)

    async def upload_file(self, data: bytes, file_name: str, folder: str = "products") -> UploadedFile:
        call_number = next(self._counter)
        self.calls.append({"data": data, "file_name": file_name, "folder": folder})

        if call_number == self.fail_on_call:
            raise ImageHostError("ImageKit returned 500", error="upstream failure")

        return UploadedFile(
            file_id=f"file_{uuid.uuid4().hex}",
            url=f"https://ik.imagekit.io/demo/{folder}/{file_name}",
            file_name=file_name,
            file_path=f"/{folder}/{file_name}",
        )

    async def delete_files(self, file_ids: List[str]) -> None:
        self.deleted.extend(file_ids)


class InMemoryProductRepository:
    """Stores products in a dict; mirrors ProductRepository's interface"""

    def __init__(self, users: Optional[Dict[str, dict]] = None):
        self.products: Dict[str, Product] = {}
        self.users = users or {}
        self.fail_with: Optional[Exception] = None
        self._clock = itertools.count()

    def create(self, draft, images, actor_id=None) -> Product:
        if self.fail_with is not None:
            raise self.fail_with

        now = datetime(2025, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=next(self._clock))
        creator = Creator(**self.users[actor_id]) if actor_id in self.users else None

        product = Product(
            id=str(uuid.uuid4()),
            name=draft.name,
            description=draft.description,
            price=draft.price,
            stock=draft.stock,
            category=draft.category,
            created_by=actor_id,
            creator=creator,
            images=[
                ProductImage(url=image.url, file_id=image.file_id, file_name=image.file_name, order=image.order)
                for image in images
            ],
            created_at=now,
            updated_at=now,
        )
        self.products[product.id] = product
        return product

    def find_by_id(self, product_id: str) -> Optional[Product]:
        if self.fail_with is not None:
            raise self.fail_with
        return self.products.get(product_id)

    def find_all(self) -> List[Product]:
        if self.fail_with is not None:
            raise self.fail_with
        return sorted(self.products.values(), key=lambda product: product.created_at, reverse=True)


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        AUTH_SECRET=AUTH_SECRET,
        DATABASE_URL="",
        IMAGEKIT_PRIVATE_KEY="",
        LOCAL_REFERENCE_POLICY="placeholder",
        CLEANUP_ORPHANED_UPLOADS=False,
    )


@pytest.fixture
def image_host():
    return FakeImageHost()


@pytest.fixture
def sample_user():
    return {"id": "user-1", "name": "Ana Tester", "email": "ana@example.com"}


@pytest.fixture
def repository(sample_user):
    return InMemoryProductRepository(users={sample_user["id"]: sample_user})


@pytest.fixture
def remote_images():
    """URL -> httpx.Response served to the ingestion service; unknown URLs get 404"""
    return {}


@pytest.fixture
def http_client(remote_images):
    def handler(request: httpx.Request) -> httpx.Response:
        return remote_images.get(str(request.url), httpx.Response(404))

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def app(test_settings, image_host, repository, http_client):
    application = create_app(test_settings)
    application.dependency_overrides[get_settings] = lambda: test_settings
    application.dependency_overrides[get_image_host] = lambda: image_host
    application.dependency_overrides[get_product_repository] = lambda: repository
    application.dependency_overrides[get_http_client] = lambda: http_client
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def sample_product_data():
    return {
        "name": "Ceramic Mug",
        "description": "Hand-glazed 350ml mug",
        "price": 19.99,
        "stock": 12,
        "category": "kitchen",
        "images": [],
    }
