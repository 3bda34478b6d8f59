from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from blobgate.common.config import StorageConfig
from blobgate.infra.observability.metrics import OperationTracker, track_operation
from blobgate.infra.storage.client import StorageClient


class ServiceError(Exception):
    """Base class for gateway level exceptions."""


class BucketUnavailableError(ServiceError):
    """Raised when the target bucket is unnamed or could not be provisioned."""


class InvalidEncodingError(ServiceError, ValueError):
    """Raised when base64 content cannot be decoded."""


class SourceFileUnreadableError(ServiceError):
    """Raised when a local source file cannot be opened or read."""


class MultipartSessionError(ServiceError):
    """Raised when a multipart session is used in a way its state forbids."""


class BaseService:
    """Provides guard rails and helpers shared by storage services."""

    def __init__(self, storage: StorageClient, *, config: StorageConfig):
        self._storage = storage
        self._config = config

    @property
    def storage(self) -> StorageClient:
        return self._storage

    @property
    def config(self) -> StorageConfig:
        return self._config

    def resolve_bucket(self, container: str | None) -> str:
        """Map a caller-supplied container name to the effective bucket.

        Blank names fall back to the configured default bucket, which may
        itself be empty.
        """
        if container is None or not container.strip():
            return self._config.default_bucket or ""
        return container

    def _require_bucket(self, container: str | None) -> str:
        bucket = self.resolve_bucket(container)
        if not bucket:
            raise BucketUnavailableError(
                "No bucket given and no default bucket configured"
            )
        return bucket

    @contextmanager
    def _track(
        self, operation: str, bucket: str, key: str | None = None
    ) -> Iterator[OperationTracker]:
        with track_operation(
            operation,
            bucket=bucket,
            key=key,
            enabled=self._config.enable_metrics,
        ) as tracker:
            yield tracker
