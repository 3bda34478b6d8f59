"""Object storage gateway.

This module provides the application-facing API for storing, retrieving,
enumerating and deleting objects in an S3-compatible bucket, including bucket
provisioning, non-destructive uploads, direct and presigned URLs, paginated
listing and multipart transfer of large objects.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import BinaryIO

from blobgate.app.services.base import (
    BaseService,
    BucketUnavailableError,
    InvalidEncodingError,
    SourceFileUnreadableError,
)
from blobgate.app.services.buckets import BucketProvisioner
from blobgate.app.services.content_types import guess_content_type
from blobgate.app.services.multipart import MultipartUploader
from blobgate.common.config import StorageConfig, get_config
from blobgate.infra.storage.client import (
    CompletedPart,
    ObjectNotFoundError,
    PreconditionFailedError,
    StorageClient,
    StorageError,
)
from blobgate.infra.storage.s3_client import S3StorageClient

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000


@dataclass(frozen=True, slots=True)
class ProbeResult:
    """Outcome of an existence probe that keeps probe failures visible."""

    exists: bool
    error: Exception | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class ObjectStorageGateway(BaseService):
    """Application service for object lifecycle operations on S3 storage.

    One gateway is bound to one immutable ``StorageConfig``; the wrapped
    storage client is shared by all calls and holds no per-call state.
    """

    def __init__(
        self,
        config: StorageConfig | None = None,
        *,
        storage_client: StorageClient | None = None,
    ) -> None:
        config = config or get_config()
        storage = storage_client or self._build_storage_client(config)
        super().__init__(storage, config=config)
        self._provisioner = BucketProvisioner(storage)
        self._multipart = MultipartUploader(
            storage, config=config, provisioner=self._provisioner
        )

    @staticmethod
    def _build_storage_client(config: StorageConfig) -> StorageClient:
        return S3StorageClient(config=config)

    @property
    def multipart(self) -> MultipartUploader:
        return self._multipart

    def ensure_bucket(self, bucket: str) -> bool:
        """Idempotently make sure ``bucket`` exists; False if it cannot."""
        return self._provisioner.ensure_exists(bucket)

    def upload(
        self,
        container: str | None,
        key: str | None,
        content: bytes | None,
        content_type: str | None = None,
        overwrite: bool = False,
    ) -> None:
        """Store ``content`` at ``key`` in a single request.

        With ``overwrite=False`` an existing object is left untouched and the
        call returns normally; the skip is only visible in the logs.

        Raises:
            BucketUnavailableError: If the bucket cannot be resolved or created.
            StorageError: If the put fails.
        """
        bucket = self.resolve_bucket(container)
        key = key or ""
        with self._track("upload", bucket, key) as tracker:
            self._provision(bucket)
            body = bytes(content or b"")

            if not overwrite and self._config.conditional_writes:
                try:
                    self._storage.put_object(
                        bucket=bucket,
                        object_key=key,
                        body=body,
                        content_type=content_type,
                        if_none_match=True,
                    )
                except PreconditionFailedError:
                    self._log_skipped(bucket, key)
                    tracker.outcome = "skipped"
                return

            if not overwrite and self.exists(bucket, key):
                self._log_skipped(bucket, key)
                tracker.outcome = "skipped"
                return

            self._storage.put_object(
                bucket=bucket,
                object_key=key,
                body=body,
                content_type=content_type,
            )

    def upload_base64(
        self,
        container: str | None,
        key: str | None,
        base64_content: str | None,
        content_type: str | None = None,
        overwrite: bool = False,
    ) -> None:
        """Decode ``base64_content`` and upload the resulting bytes.

        Whitespace and line breaks (MIME-wrapped input) are ignored; any other
        character outside the base64 alphabet is rejected.

        Raises:
            InvalidEncodingError: If the input is not valid base64.
        """
        compact = "".join((base64_content or "").split())
        try:
            content = base64.b64decode(compact, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidEncodingError("Content is not valid base64") from exc
        self.upload(container, key, content, content_type, overwrite)

    def upload_from_file_path(
        self,
        container: str | None,
        key: str | None,
        source_file_path: str,
        overwrite: bool = False,
    ) -> None:
        """Read a local file into memory and upload it.

        The content type is inferred from the file extension.

        Raises:
            SourceFileUnreadableError: If the file cannot be read.
        """
        try:
            with open(source_file_path, "rb") as handle:
                content = handle.read()
        except OSError as exc:
            raise SourceFileUnreadableError(
                f"Cannot read source file: {source_file_path}"
            ) from exc
        self.upload(
            container,
            key,
            content,
            guess_content_type(source_file_path),
            overwrite,
        )

    def upload_large(
        self,
        container: str | None,
        key: str | None,
        stream: BinaryIO,
        content_type: str | None = None,
        overwrite: bool = False,
        part_size: int | None = None,
    ) -> list[CompletedPart]:
        """Upload ``stream`` with the multipart protocol.

        Returns the completed parts, or an empty list when the upload was
        skipped or the stream was empty. With ``conditional_writes`` the
        completion carries ``If-None-Match: *`` instead of a prior existence
        check; a rejected completion is a skip and the session is aborted.
        """
        bucket = self.resolve_bucket(container)
        key = key or ""
        with self._track("upload_large", bucket, key) as tracker:
            # the uploader provisions the bucket before opening a session
            if not overwrite and self._config.conditional_writes:
                try:
                    return self._multipart.upload_stream(
                        bucket,
                        key,
                        stream,
                        content_type=content_type,
                        part_size=part_size,
                        if_none_match=True,
                    )
                except PreconditionFailedError:
                    self._log_skipped(bucket, key)
                    tracker.outcome = "skipped"
                    return []

            if not overwrite and self.exists(bucket, key):
                self._log_skipped(bucket, key)
                tracker.outcome = "skipped"
                return []
            return self._multipart.upload_stream(
                bucket,
                key,
                stream,
                content_type=content_type,
                part_size=part_size,
            )

    def upload_large_from_file_path(
        self,
        container: str | None,
        key: str | None,
        source_file_path: str,
        overwrite: bool = False,
        part_size: int | None = None,
    ) -> list[CompletedPart]:
        """Multipart-upload a local file without buffering it whole."""
        try:
            stream = open(source_file_path, "rb")
        except OSError as exc:
            raise SourceFileUnreadableError(
                f"Cannot read source file: {source_file_path}"
            ) from exc
        with stream:
            return self.upload_large(
                container,
                key,
                stream,
                guess_content_type(source_file_path),
                overwrite,
                part_size,
            )

    def download(self, container: str | None, key: str | None) -> bytes | None:
        """Return the object body, or None if the object does not exist."""
        bucket = self._require_bucket(container)
        key = key or ""
        with self._track("download", bucket, key) as tracker:
            try:
                return self._storage.get_object(bucket=bucket, object_key=key)
            except ObjectNotFoundError:
                tracker.outcome = "absent"
                return None

    def get_url(
        self,
        container: str | None,
        key: str | None,
        secure: bool = True,
        expiry_in_seconds: int = 0,
    ) -> str:
        """Build an access URL for the object.

        A positive ``expiry_in_seconds`` yields a presigned URL valid for that
        long. Otherwise a direct path-style URL is returned; it is not checked
        and only works for publicly readable objects.
        """
        bucket = self._require_bucket(container)
        key = key or ""
        if expiry_in_seconds > 0:
            with self._track("presign", bucket, key):
                return self._storage.presign_download(
                    bucket=bucket,
                    object_key=key,
                    expires_in=expiry_in_seconds,
                    secure=secure,
                )

        scheme = "https" if secure else "http"
        return f"{scheme}://{self._config.endpoint_host}/{bucket}/{key}"

    def exists(self, container: str | None, key: str | None) -> bool:
        """Return whether the object exists. Never raises.

        A failed probe is logged and reported as False, exactly like a missing
        object; use ``probe`` to tell the two apart.
        """
        return self.probe(container, key).exists

    def probe(self, container: str | None, key: str | None) -> ProbeResult:
        """Check for an object, keeping probe failures in the result."""
        bucket = self.resolve_bucket(container)
        key = key or ""
        if not bucket:
            error = BucketUnavailableError(
                "No bucket given and no default bucket configured"
            )
            logger.error("Error checking existence for %s/%s: %s", bucket, key, error)
            return ProbeResult(exists=False, error=error)

        try:
            self._storage.head_object(bucket=bucket, object_key=key)
        except ObjectNotFoundError:
            return ProbeResult(exists=False)
        except Exception as exc:
            logger.error(
                "Error checking existence for %s/%s",
                bucket,
                key,
                exc_info=True,
                extra={"extra": {"bucket": bucket, "key": key}},
            )
            return ProbeResult(exists=False, error=exc)
        return ProbeResult(exists=True)

    def delete(self, container: str | None, key: str | None) -> None:
        """Delete the object; a missing object is not an error.

        Raises:
            StorageError: If the delete request fails.
        """
        bucket = self._require_bucket(container)
        key = key or ""
        with self._track("delete", bucket, key) as tracker:
            try:
                self._storage.delete_object(bucket=bucket, object_key=key)
            except ObjectNotFoundError:
                tracker.outcome = "absent"
            except StorageError:
                logger.error(
                    "Failed to delete object %s/%s",
                    bucket,
                    key,
                    exc_info=True,
                    extra={"extra": {"bucket": bucket, "key": key}},
                )
                raise

    def list_files(
        self,
        container: str | None,
        prefix: str | None = None,
        max_results: int | None = None,
    ) -> list[str]:
        """List every key under ``prefix``, following continuation tokens.

        ``max_results`` is the page size requested from the service, not a cap
        on the total; all matching keys are returned in service order.
        """
        if max_results is not None and max_results <= 0:
            raise ValueError("max_results must be positive")

        bucket = self._require_bucket(container)
        page_size = max_results or DEFAULT_PAGE_SIZE
        keys: list[str] = []
        token: str | None = None

        with self._track("list", bucket, prefix):
            while True:
                page = self._storage.list_objects(
                    bucket=bucket,
                    prefix=prefix or "",
                    max_keys=page_size,
                    continuation_token=token,
                )
                keys.extend(page.keys)
                if not page.is_truncated:
                    break
                if not page.next_token:
                    logger.warning(
                        "Truncated listing without continuation token for %s/%s",
                        bucket,
                        prefix or "",
                    )
                    break
                token = page.next_token
        return keys

    def _provision(self, bucket: str) -> None:
        if not self._provisioner.ensure_exists(bucket):
            logger.error(
                "Bucket does not exist and could not be created: %s",
                bucket,
                extra={"extra": {"bucket": bucket}},
            )
            raise BucketUnavailableError(f"Bucket unavailable: {bucket or '<empty>'}")

    @staticmethod
    def _log_skipped(bucket: str, key: str) -> None:
        logger.warning(
            "Upload skipped because target exists and overwrite=false. "
            "Bucket: %s, Key: %s",
            bucket,
            key,
            extra={"extra": {"bucket": bucket, "key": key, "skipped": True}},
        )
