"""Storage service HTTP client for thesis PDFs and digital copies"""

from typing import Optional

import httpx

from biblioteca_gateway.config import settings
from biblioteca_gateway.domain.exceptions import BlobStoreError


class HttpBlobStore:
    """Client for the external file storage API, addressed by path"""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = (base_url or settings.blob_store_base).rstrip("/")
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self.transport)

    def upload(self, path: str, content: bytes, content_type: str) -> str:
        """
        Store `content` under `path` and return the stored path.

        Raises:
            BlobStoreError: On timeout, HTTP errors, or network failure
        """
        with self._client() as client:
            try:
                response = client.put(
                    f"{self.base_url}/{path}",
                    content=content,
                    headers={"Content-Type": content_type},
                )
                response.raise_for_status()
                return path

            except httpx.TimeoutException as e:
                raise BlobStoreError(f"Storage timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise BlobStoreError(f"Storage error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise BlobStoreError(f"Storage unavailable: {e}") from e

    def delete(self, path: str) -> None:
        """
        Remove the blob at `path`. A missing blob counts as deleted.

        Raises:
            BlobStoreError: On timeout, HTTP errors other than 404, or network failure
        """
        with self._client() as client:
            try:
                response = client.delete(f"{self.base_url}/{path}")
                if response.status_code == 404:
                    return
                response.raise_for_status()

            except httpx.TimeoutException as e:
                raise BlobStoreError(f"Storage timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise BlobStoreError(f"Storage error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise BlobStoreError(f"Storage unavailable: {e}") from e
