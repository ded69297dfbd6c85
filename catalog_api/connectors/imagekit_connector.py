"""
ImageKit Connector
Handles all interactions with the ImageKit media API

The connector owns no client of its own: an httpx.AsyncClient is created
once in the application lifespan and passed in, so connections are pooled
across requests and tests can plug in an httpx.MockTransport.
"""
import asyncio
import logging
from typing import Dict, List, Optional

import httpx

from catalog_api.core.config import Settings
from catalog_api.core.exceptions import ImageHostError
from catalog_api.domain.image import UploadedFile

logger = logging.getLogger(__name__)

UPLOAD_URL = "https://upload.imagekit.io/api/v1/files/upload"
API_URL = "https://api.imagekit.io/v1/files"


class ImageKitConnector:
    """
    Connector for the ImageKit REST API

    Handles:
    - File upload (returns fileId + public URL)
    - File deletion (single and batch)
    - File details lookup
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        private_key: str,
        public_key: str = "",
        url_endpoint: str = "",
        timeout: float = 30.0,
    ):
        """
        Initialize ImageKit connector

        Args:
            client: Shared async HTTP client
            private_key: ImageKit private API key (used for basic auth)
            public_key: ImageKit public API key
            url_endpoint: Public URL endpoint of the media library
            timeout: Seconds allowed for each call
        """
        if not private_key:
            raise ValueError("ImageKit credentials not configured. Set IMAGEKIT_PRIVATE_KEY")

        self.client = client
        self.public_key = public_key
        self.url_endpoint = url_endpoint
        self.timeout = timeout
        # ImageKit uses the private key as basic-auth username with an empty password
        self.auth = httpx.BasicAuth(private_key, "")

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: Settings) -> "ImageKitConnector":
        return cls(
            client,
            private_key=settings.IMAGEKIT_PRIVATE_KEY,
            public_key=settings.IMAGEKIT_PUBLIC_KEY,
            url_endpoint=settings.IMAGEKIT_URL_ENDPOINT,
            timeout=settings.IMAGEKIT_TIMEOUT_SECONDS,
        )

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send a request, turning every transport or HTTP failure into ImageHostError"""
        try:
            response = await self.client.request(
                method,
                url,
                auth=self.auth,
                timeout=self.timeout,
                **kwargs
            )
            response.raise_for_status()
            return response

        except httpx.TimeoutException as e:
            raise ImageHostError(f"ImageKit request timed out after {self.timeout}s", error=str(e)) from e
        except httpx.HTTPStatusError as e:
            detail = e.response.text[:200]
            raise ImageHostError(
                f"ImageKit returned {e.response.status_code}",
                error=detail or str(e)
            ) from e
        except httpx.HTTPError as e:
            raise ImageHostError("ImageKit request failed", error=str(e)) from e

    @staticmethod
    def _json(response: httpx.Response) -> Dict:
        try:
            return response.json()
        except ValueError as e:
            raise ImageHostError("ImageKit response is not JSON", error=response.text[:200]) from e

    async def upload_file(self, data: bytes, file_name: str, folder: str = "products") -> UploadedFile:
        """
        Upload a single file

        Args:
            data: Raw file bytes
            file_name: Requested file name (ImageKit appends a unique suffix)
            folder: Destination folder in the media library

        Returns:
            UploadedFile with fileId and public URL
        """
        response = await self._request(
            "POST",
            UPLOAD_URL,
            files={"file": (file_name, data)},
            data={
                "fileName": file_name,
                "folder": folder,
                "useUniqueFileName": "true",
            },
        )

        result = self._json(response)

        file_id = result.get("fileId")
        url = result.get("url")
        if not url and result.get("filePath"):
            url = self.build_url(result["filePath"])

        if not file_id or not url:
            raise ImageHostError("ImageKit upload response is missing fileId or url", error=str(result)[:200])

        logger.debug(f"Uploaded {file_name} to ImageKit as {file_id}")

        return UploadedFile(
            file_id=file_id,
            url=url,
            file_name=result.get("name") or file_name,
            file_path=result.get("filePath") or "",
        )

    async def delete_file(self, file_id: str) -> None:
        """Delete a file by its ImageKit fileId"""
        await self._request("DELETE", f"{API_URL}/{file_id}")
        logger.debug(f"Deleted ImageKit file {file_id}")

    async def delete_files(self, file_ids: List[str]) -> None:
        """Delete several files concurrently; fails if any single delete fails"""
        await asyncio.gather(*(self.delete_file(file_id) for file_id in file_ids))

    async def get_file_details(self, file_id: str) -> Dict:
        response = await self._request("GET", f"{API_URL}/{file_id}/details")
        return self._json(response)

    def build_url(self, file_path: str) -> Optional[str]:
        """Public URL for a stored file path, when an endpoint is configured"""
        if not self.url_endpoint:
            return None
        return f"{self.url_endpoint.rstrip('/')}/{file_path.lstrip('/')}"
