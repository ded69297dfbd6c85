"""
Image Ingestion Service
Turns the raw image list of a create-product request into images stored at
the image host

Policy:
- Every image string is classified before anything is uploaded, so a bad
  entry fails the request without touching the image host.
- Images are then fetched/uploaded one by one in request order. The first
  failure aborts the whole request; no product may reference a partial set.
- The built-in placeholder is uploaded only where no image could be
  supplied: an empty list, or a file:// reference under the "placeholder"
  local-reference policy. It never replaces a failed upload.
"""
import logging
from typing import List, Protocol, Sequence, Tuple

import httpx

from catalog_api.core.config import Settings
from catalog_api.core.exceptions import (
    ImageHostError,
    ImageNormalizationError,
    ImageUploadError,
    NormalizationReason,
)
from catalog_api.domain.image import (
    PLACEHOLDER_EXTENSION,
    PLACEHOLDER_IMAGE_DATA_URL,
    EmbeddedData,
    ExternalUrl,
    ImageSource,
    UnsupportedLocalReference,
    UploadedFile,
    UploadedImageRecord,
)
from catalog_api.services.image_normalizer import (
    build_file_name,
    decode_data_url,
    extension_from_content_type,
    normalize,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE_BYTES = decode_data_url(PLACEHOLDER_IMAGE_DATA_URL)

LOCAL_REFERENCE_PLACEHOLDER = "placeholder"
LOCAL_REFERENCE_REJECT = "reject"


class ImageHost(Protocol):
    async def upload_file(self, data: bytes, file_name: str, folder: str = "products") -> UploadedFile:
        ...

    async def delete_files(self, file_ids: List[str]) -> None:
        ...


class ImageIngestionService:
    """
    Uploads product images to the image host

    Usage:
        service = ImageIngestionService(connector, http_client)
        records = await service.ingest("Red Mug", ["data:image/png;base64,..."])
    """

    def __init__(
        self,
        image_host: ImageHost,
        http_client: httpx.AsyncClient,
        folder: str = "products",
        fetch_timeout: float = 15.0,
        local_reference_policy: str = LOCAL_REFERENCE_PLACEHOLDER,
        cleanup_orphans: bool = False,
    ):
        if local_reference_policy not in (LOCAL_REFERENCE_PLACEHOLDER, LOCAL_REFERENCE_REJECT):
            raise ValueError(f"Unknown local reference policy: {local_reference_policy}")

        self.image_host = image_host
        self.http_client = http_client
        self.folder = folder
        self.fetch_timeout = fetch_timeout
        self.local_reference_policy = local_reference_policy
        self.cleanup_orphans = cleanup_orphans

    @classmethod
    def from_settings(cls, image_host: ImageHost, http_client: httpx.AsyncClient, settings: Settings) -> "ImageIngestionService":
        return cls(
            image_host,
            http_client,
            folder=settings.IMAGEKIT_FOLDER,
            fetch_timeout=settings.IMAGE_FETCH_TIMEOUT_SECONDS,
            local_reference_policy=settings.LOCAL_REFERENCE_POLICY,
            cleanup_orphans=settings.CLEANUP_ORPHANED_UPLOADS,
        )

    async def ingest(self, name: str, images: Sequence[str]) -> List[UploadedImageRecord]:
        """
        Upload every image of a product, in order

        Args:
            name: Product name, used to derive file names
            images: Raw image strings from the request

        Returns:
            One record per image with order = original index, or a single
            placeholder record (order 0) when images is empty

        Raises:
            ImageNormalizationError: An image string could not be classified
            ImageUploadError: An image could not be fetched or uploaded
        """
        if not images:
            return [await self._upload_no_images_placeholder(name)]

        sources = self.classify(images)

        records: List[UploadedImageRecord] = []
        try:
            for index, source in sources:
                records.append(await self._ingest_one(name, index, source))
        except ImageUploadError:
            await self.discard(records)
            raise

        logger.info(f"Uploaded {len(records)} image(s) for product '{name}'")
        return records

    def classify(self, images: Sequence[str]) -> List[Tuple[int, ImageSource]]:
        sources = []
        for index, raw in enumerate(images):
            try:
                source = normalize(raw)
            except ImageNormalizationError as e:
                logger.error(f"Unusable image {index}: {e.message}")
                raise ImageNormalizationError(e.reason, f"Image {index + 1}: {e.message}", index=index) from e

            if isinstance(source, UnsupportedLocalReference) and self.local_reference_policy == LOCAL_REFERENCE_REJECT:
                raise ImageNormalizationError(
                    NormalizationReason.LOCAL_REFERENCE,
                    f"Image {index + 1} is a local device file. Please send it as a base64 data URL.",
                    index=index,
                )

            sources.append((index, source))
        return sources

    async def _ingest_one(self, name: str, index: int, source: ImageSource) -> UploadedImageRecord:
        is_placeholder = False

        if isinstance(source, EmbeddedData):
            data = source.data
            file_name = build_file_name(name, source.extension, index=index)
        elif isinstance(source, ExternalUrl):
            data, extension = await self._fetch(index, source.url)
            file_name = build_file_name(name, extension, index=index)
        else:
            # The server cannot read files on the client device
            logger.info(f"Image {index} is a local file reference, uploading placeholder: {source.token}")
            data = PLACEHOLDER_IMAGE_BYTES
            file_name = build_file_name(name, PLACEHOLDER_EXTENSION, index=index, tag="mobile")
            is_placeholder = True

        try:
            uploaded = await self.image_host.upload_file(data, file_name, self.folder)
        except ImageHostError as e:
            logger.error(f"ImageKit upload failed for image {index}: {e.message} ({e.error})")
            raise ImageUploadError(
                index,
                f"Failed to upload image {index + 1} to ImageKit. Please try again.",
                error=e.error or e.message,
            ) from e

        logger.debug(f"Image {index} processed successfully: {uploaded.url}")
        return UploadedImageRecord.from_upload(uploaded, order=index, is_placeholder=is_placeholder)

    async def _fetch(self, index: int, url: str) -> Tuple[bytes, str]:
        """Download an externally hosted image; any failure is fatal for the request"""
        try:
            response = await self.http_client.get(url, timeout=self.fetch_timeout, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ImageUploadError(
                index,
                f"Failed to fetch image {index + 1} from its URL",
                error=f"HTTP {e.response.status_code} for {url}",
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ImageUploadError(
                index,
                f"Failed to fetch image {index + 1} from its URL",
                error=f"{type(e).__name__}: {e}",
            ) from e

        if not response.content:
            raise ImageUploadError(index, f"Image {index + 1} URL returned an empty body", error=url)

        return response.content, extension_from_content_type(response.headers.get("content-type"))

    async def _upload_no_images_placeholder(self, name: str) -> UploadedImageRecord:
        file_name = build_file_name(name, PLACEHOLDER_EXTENSION, tag="no_images")
        try:
            uploaded = await self.image_host.upload_file(PLACEHOLDER_IMAGE_BYTES, file_name, self.folder)
        except ImageHostError as e:
            logger.error(f"Failed to upload no-image placeholder to ImageKit: {e.message}")
            raise ImageUploadError(
                None,
                "Failed to upload image to ImageKit. Please check your ImageKit configuration and try again.",
                error=e.error or e.message,
            ) from e

        logger.info(f"No images provided, uploaded placeholder to ImageKit: {uploaded.url}")
        return UploadedImageRecord.from_upload(uploaded, order=0, is_placeholder=True)

    async def discard(self, records: Sequence[UploadedImageRecord]) -> None:
        """
        Delete uploads of a request that will not produce a product.
        No-op unless orphan cleanup is enabled; failures are only logged.
        """
        if not self.cleanup_orphans or not records:
            return

        file_ids = [record.file_id for record in records]
        try:
            await self.image_host.delete_files(file_ids)
            logger.info(f"Deleted {len(file_ids)} orphaned upload(s)")
        except ImageHostError as e:
            logger.warning(f"Could not delete orphaned uploads {file_ids}: {e.message} ({e.error})")
