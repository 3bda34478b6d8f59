"""Storage client protocol and data types.

This module defines the abstract interface for object storage operations,
supporting single-shot object transfer, paginated listing, multipart uploads,
presigned URLs and bucket provisioning.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, Sequence


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""


class ObjectNotFoundError(StorageError):
    """Raised when the requested object or bucket does not exist."""


class PreconditionFailedError(StorageError):
    """Raised when a conditional write is rejected by the service."""


@dataclass(frozen=True, slots=True)
class CompletedPart:
    """Represents a completed part in a multipart upload."""

    part_number: int
    etag: str


@dataclass(frozen=True, slots=True)
class MultipartUpload:
    """Result of initiating a multipart upload."""

    upload_id: str
    bucket: str
    object_key: str


@dataclass(frozen=True, slots=True)
class PendingUpload:
    """A multipart upload that was initiated but never completed or aborted."""

    object_key: str
    upload_id: str
    initiated: datetime | None


@dataclass(frozen=True, slots=True)
class ObjectHead:
    """Metadata from a HEAD object request."""

    size_bytes: int
    etag: str | None
    content_type: str | None


@dataclass(frozen=True, slots=True)
class ObjectListing:
    """One page of a ListObjectsV2 response."""

    keys: tuple[str, ...]
    next_token: str | None
    is_truncated: bool


class StorageClient(Protocol):
    """Protocol defining the interface for object storage backends.

    Implementations must provide all methods defined here.
    Currently supports S3-compatible storage services.
    """

    def bucket_exists(self, *, bucket: str) -> bool:
        """Return whether the bucket exists.

        Raises:
            StorageError: If the probe fails for any reason other than 404.
        """
        ...

    def create_bucket(self, *, bucket: str) -> None:
        """Create a bucket. Creating a bucket already owned by the caller succeeds.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: bytes,
        content_type: str | None = None,
        if_none_match: bool = False,
    ) -> None:
        """Store an object in a single request.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            body: Full object content.
            content_type: MIME type of the object.
            if_none_match: Only write when no object exists at the key.

        Raises:
            PreconditionFailedError: If ``if_none_match`` is set and the key exists.
            StorageError: If the operation fails.
        """
        ...

    def get_object(self, *, bucket: str, object_key: str) -> bytes:
        """Download the full object body.

        Raises:
            ObjectNotFoundError: If the object doesn't exist.
            StorageError: If the operation fails.
        """
        ...

    def head_object(self, *, bucket: str, object_key: str) -> ObjectHead:
        """Get object metadata without downloading the content.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.

        Returns:
            ObjectHead with size, ETag, and content type.

        Raises:
            ObjectNotFoundError: If the object doesn't exist.
            StorageError: If the operation fails.
        """
        ...

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage. Missing objects are not an error.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) to delete.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def list_objects(
        self,
        *,
        bucket: str,
        prefix: str = "",
        max_keys: int = 1000,
        continuation_token: str | None = None,
    ) -> ObjectListing:
        """Fetch one page of keys under ``prefix``.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def presign_download(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
        secure: bool = True,
    ) -> str:
        """Generate a presigned URL for downloading an object.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            expires_in: URL expiration time in seconds.
            secure: Use https for the returned URL, http otherwise.

        Returns:
            Presigned URL for GET request.

        Raises:
            StorageError: If URL generation fails.
        """
        ...

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session.

        Returns:
            MultipartUpload containing the upload_id for subsequent operations.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> CompletedPart:
        """Upload one part of a multipart upload.

        Args:
            part_number: Part number (1-based, max 10000).
            body: Part content.

        Returns:
            CompletedPart carrying the ETag needed for completion.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
        if_none_match: bool = False,
    ) -> None:
        """Complete a multipart upload by combining all parts.

        With ``if_none_match`` the object is only created if the key does not
        exist yet (``If-None-Match: *``).

        Raises:
            PreconditionFailedError: If ``if_none_match`` is set and the key exists.
            StorageError: If the operation fails.
        """
        ...

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Abort a multipart upload and clean up uploaded parts.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def list_multipart_uploads(
        self, *, bucket: str, prefix: str = ""
    ) -> list[PendingUpload]:
        """List multipart uploads that are still in progress.

        Raises:
            StorageError: If the operation fails.
        """
        ...
