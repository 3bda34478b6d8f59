"""Coroutine facade over ``ObjectStorageGateway``.

boto3 is blocking, so every call runs in the default thread pool through
``asyncio.to_thread``. The wrapped gateway and its boto3 client are shared by
all calls.
"""

from __future__ import annotations

import asyncio
from typing import BinaryIO

from blobgate.app.services.storage_gateway import ObjectStorageGateway, ProbeResult
from blobgate.common.config import StorageConfig
from blobgate.infra.storage.client import CompletedPart


class AsyncObjectStorageGateway:
    """Non-blocking variant of the gateway for use on an event loop."""

    def __init__(self, gateway: ObjectStorageGateway) -> None:
        self._gateway = gateway

    @classmethod
    def from_config(cls, config: StorageConfig | None = None) -> "AsyncObjectStorageGateway":
        return cls(ObjectStorageGateway(config))

    @property
    def gateway(self) -> ObjectStorageGateway:
        return self._gateway

    async def upload(
        self,
        container: str | None,
        key: str | None,
        content: bytes | None,
        content_type: str | None = None,
        overwrite: bool = False,
    ) -> None:
        await asyncio.to_thread(
            self._gateway.upload, container, key, content, content_type, overwrite
        )

    async def upload_base64(
        self,
        container: str | None,
        key: str | None,
        base64_content: str | None,
        content_type: str | None = None,
        overwrite: bool = False,
    ) -> None:
        await asyncio.to_thread(
            self._gateway.upload_base64,
            container,
            key,
            base64_content,
            content_type,
            overwrite,
        )

    async def upload_from_file_path(
        self,
        container: str | None,
        key: str | None,
        source_file_path: str,
        overwrite: bool = False,
    ) -> None:
        await asyncio.to_thread(
            self._gateway.upload_from_file_path,
            container,
            key,
            source_file_path,
            overwrite,
        )

    async def upload_large(
        self,
        container: str | None,
        key: str | None,
        stream: BinaryIO,
        content_type: str | None = None,
        overwrite: bool = False,
        part_size: int | None = None,
    ) -> list[CompletedPart]:
        return await asyncio.to_thread(
            self._gateway.upload_large,
            container,
            key,
            stream,
            content_type,
            overwrite,
            part_size,
        )

    async def upload_large_from_file_path(
        self,
        container: str | None,
        key: str | None,
        source_file_path: str,
        overwrite: bool = False,
        part_size: int | None = None,
    ) -> list[CompletedPart]:
        return await asyncio.to_thread(
            self._gateway.upload_large_from_file_path,
            container,
            key,
            source_file_path,
            overwrite,
            part_size,
        )

    async def download(self, container: str | None, key: str | None) -> bytes | None:
        return await asyncio.to_thread(self._gateway.download, container, key)

    async def get_url(
        self,
        container: str | None,
        key: str | None,
        secure: bool = True,
        expiry_in_seconds: int = 0,
    ) -> str:
        return await asyncio.to_thread(
            self._gateway.get_url, container, key, secure, expiry_in_seconds
        )

    async def exists(self, container: str | None, key: str | None) -> bool:
        return await asyncio.to_thread(self._gateway.exists, container, key)

    async def probe(self, container: str | None, key: str | None) -> ProbeResult:
        return await asyncio.to_thread(self._gateway.probe, container, key)

    async def delete(self, container: str | None, key: str | None) -> None:
        await asyncio.to_thread(self._gateway.delete, container, key)

    async def list_files(
        self,
        container: str | None,
        prefix: str | None = None,
        max_results: int | None = None,
    ) -> list[str]:
        return await asyncio.to_thread(
            self._gateway.list_files, container, prefix, max_results
        )
