"""Storage client contract and the boto3 implementation behind it.

Everything above this package talks to ``StorageClient``; only
``s3_client`` imports boto3.
"""

from .client import (
    CompletedPart,
    MultipartUpload,
    ObjectHead,
    ObjectListing,
    ObjectNotFoundError,
    PendingUpload,
    PreconditionFailedError,
    StorageClient,
    StorageError,
)

__all__ = [
    "CompletedPart",
    "MultipartUpload",
    "ObjectHead",
    "ObjectListing",
    "ObjectNotFoundError",
    "PendingUpload",
    "PreconditionFailedError",
    "StorageClient",
    "StorageError",
]
