"""Blob storage for execution attachments over an object-storage HTTP API."""

import logging
import mimetypes
from typing import Protocol

import httpx

from src.core.config import constants, settings
from src.core.errors import RepositoryError


logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    """Stores file bytes and returns a public URL for them."""

    async def upload(self, content: bytes, path: str) -> str: ...


class HttpBlobStore:
    """Blob store backed by a storage bucket reachable over HTTP."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        bucket: str | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.blob_store_url).rstrip("/")
        self.bucket = bucket or settings.blob_store_bucket
        self.api_key = api_key if api_key is not None else settings.blob_store_api_key
        self._transport = transport

    def _headers(self, path: str) -> dict[str, str]:
        content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        headers = {"Content-Type": content_type}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
            headers["apikey"] = self.api_key
        return headers

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"

    async def upload(self, content: bytes, path: str) -> str:
        """Upload bytes to ``path`` inside the bucket.

        Returns:
            Public URL of the stored object

        Raises:
            RepositoryError: If the storage API rejects the upload or is unreachable
        """
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{path}"
        try:
            async with httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS, transport=self._transport) as client:
                response = await client.post(url, content=content, headers=self._headers(path))
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("Blob upload rejected", extra={"path": path, "status": e.response.status_code})
            msg = f"Upload of {path} failed with status {e.response.status_code}"
            raise RepositoryError(msg) from e
        except httpx.RequestError as e:
            logger.error("Blob store connection error", extra={"path": path, "error": str(e)})
            msg = f"Upload of {path} failed: {e}"
            raise RepositoryError(msg) from e

        logger.info("Uploaded blob", extra={"path": path, "size": len(content)})
        return self.public_url(path)
