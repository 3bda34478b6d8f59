from .async_gateway import AsyncObjectStorageGateway
from .base import (
    BaseService,
    BucketUnavailableError,
    InvalidEncodingError,
    MultipartSessionError,
    ServiceError,
    SourceFileUnreadableError,
)
from .buckets import BucketProvisioner
from .content_types import DEFAULT_CONTENT_TYPE, guess_content_type
from .multipart import MultipartSession, MultipartUploader, SessionState
from .storage_gateway import ObjectStorageGateway, ProbeResult

__all__ = [
    "ObjectStorageGateway",
    "AsyncObjectStorageGateway",
    "ProbeResult",
    "BaseService",
    "ServiceError",
    "BucketUnavailableError",
    "InvalidEncodingError",
    "SourceFileUnreadableError",
    "MultipartSessionError",
    "BucketProvisioner",
    "MultipartSession",
    "MultipartUploader",
    "SessionState",
    "DEFAULT_CONTENT_TYPE",
    "guess_content_type",
]
