"""Object storage client for template binaries and generated protocols.

Talks to a Supabase-style storage REST API:
``{base_url}/storage/v1/object/{bucket}/{path}``. The object key is sent
as given; callers choose the encoding of the key (see filename_repair).
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from liftcheck.config import StorageConfig

logger = logging.getLogger(__name__)


class ObjectStorageError(Exception):
    code = "STORAGE_ERROR"


class ObjectStorageClient:
    def __init__(
        self,
        config: StorageConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.config.base_url)

    def _client(self) -> httpx.AsyncClient:
        if not self.config.base_url:
            raise ObjectStorageError("object storage is not configured (storage.base_url)")
        headers = {}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
            headers["apikey"] = self.config.api_key
        return httpx.AsyncClient(
            base_url=self.config.base_url.rstrip("/"),
            headers=headers,
            timeout=self.config.timeout_seconds,
            transport=self._transport,
        )

    def _object_url(self, path: str) -> str:
        return f"/storage/v1/object/{self.config.bucket}/{path.lstrip('/')}"

    async def download(self, path: str) -> bytes:
        async with self._client() as client:
            response = await client.get(self._object_url(path))
        if response.status_code != 200:
            raise ObjectStorageError(f"download failed status={response.status_code} path={path}")
        if not response.content:
            raise ObjectStorageError(f"download returned an empty body path={path}")
        logger.info("storage.download.ok path=%s bytes=%d", path, len(response.content))
        return response.content

    async def upload(self, path: str, content: bytes, content_type: str) -> str:
        async with self._client() as client:
            response = await client.post(
                self._object_url(path),
                content=content,
                headers={"Content-Type": content_type, "x-upsert": "true"},
            )
        if response.status_code not in (200, 201):
            raise ObjectStorageError(f"upload failed status={response.status_code} path={path}")
        logger.info("storage.upload.ok path=%s bytes=%d", path, len(content))
        return path


__all__ = ["ObjectStorageClient", "ObjectStorageError"]
