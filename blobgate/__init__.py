"""S3-compatible object storage gateway."""

from blobgate.app.services import (
    AsyncObjectStorageGateway,
    BucketUnavailableError,
    InvalidEncodingError,
    ObjectStorageGateway,
    SourceFileUnreadableError,
)
from blobgate.common.config import StorageConfig, get_config
from blobgate.infra.storage.client import StorageError

__version__ = "0.1.0"

__all__ = [
    "ObjectStorageGateway",
    "AsyncObjectStorageGateway",
    "StorageConfig",
    "get_config",
    "StorageError",
    "BucketUnavailableError",
    "InvalidEncodingError",
    "SourceFileUnreadableError",
]
