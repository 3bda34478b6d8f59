"""S3-compatible storage client implementation.

This module provides an S3-compatible storage client that works with
AWS S3, MinIO, Magalu Cloud and other S3-compatible object storage services.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Sequence
from urllib.parse import urlsplit, urlunsplit

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from blobgate.infra.storage.client import (
    CompletedPart,
    MultipartUpload,
    ObjectHead,
    ObjectListing,
    ObjectNotFoundError,
    PendingUpload,
    PreconditionFailedError,
    StorageError,
)

if TYPE_CHECKING:
    from blobgate.common.config import StorageConfig

DEFAULT_REGION = "us-east-1"

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NoSuchBucket", "NotFound"})
_PRECONDITION_CODES = frozenset(
    {"412", "PreconditionFailed", "ConditionalRequestConflict"}
)


def _error_code(exc: BaseException) -> str | None:
    if not isinstance(exc, ClientError):
        return None
    error = exc.response.get("Error") or {}
    code = error.get("Code")
    if code:
        return str(code)
    status = (exc.response.get("ResponseMetadata") or {}).get("HTTPStatusCode")
    return str(status) if status is not None else None


def _is_not_found(exc: BaseException) -> bool:
    return _error_code(exc) in _NOT_FOUND_CODES


class S3StorageClient:
    """S3-compatible object storage client.

    Supports AWS S3, MinIO, and other S3-compatible services.
    Uses boto3 for all storage operations; a single boto3 client is shared
    by every call and is safe to use from several threads.
    """

    def __init__(self, *, config: "StorageConfig") -> None:
        """Initialize the S3 client from an immutable storage configuration.

        Args:
            config: Endpoint, credentials, addressing and timeout settings.
        """
        self._config = config
        self._client = self._build_client(config)

    @staticmethod
    def _build_client(config: "StorageConfig") -> Any:
        """Create a boto3 S3 client from configuration."""
        addressing_style = "path" if config.force_path_style else "auto"
        botocore_config = Config(
            signature_version="s3v4",
            connect_timeout=config.timeout_seconds,
            read_timeout=config.timeout_seconds,
            # Some S3-compatible backends reject aws-chunked payloads,
            # so every body is signed and sent with a plain Content-Length.
            request_checksum_calculation="when_required",
            response_checksum_validation="when_required",
            s3={
                "addressing_style": addressing_style,
                "payload_signing_enabled": True,
            },
        )

        return boto3.client(
            "s3",
            endpoint_url=config.endpoint_url,
            region_name=config.region or DEFAULT_REGION,
            aws_access_key_id=config.access_key_id or None,
            aws_secret_access_key=config.secret_access_key or None,
            use_ssl=bool(config.use_https),
            config=botocore_config,
        )

    def bucket_exists(self, *, bucket: str) -> bool:
        """Return whether the bucket exists."""
        try:
            self._client.head_bucket(Bucket=bucket)
        except Exception as exc:
            if _is_not_found(exc):
                return False
            raise StorageError(f"Failed to check bucket: {exc}") from exc
        return True

    def create_bucket(self, *, bucket: str) -> None:
        """Create a bucket, tolerating one already owned by the caller."""
        params: dict[str, Any] = {"Bucket": bucket}
        region = self._config.region
        if region and region != DEFAULT_REGION:
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}

        try:
            self._client.create_bucket(**params)
        except Exception as exc:
            if _error_code(exc) == "BucketAlreadyOwnedByYou":
                return
            raise StorageError(f"Failed to create bucket: {exc}") from exc

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: bytes,
        content_type: str | None = None,
        if_none_match: bool = False,
    ) -> None:
        """Store an object in a single request."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key, "Body": body}
        if content_type:
            params["ContentType"] = content_type
        if if_none_match:
            params["IfNoneMatch"] = "*"

        try:
            self._client.put_object(**params)
        except Exception as exc:
            if if_none_match and _error_code(exc) in _PRECONDITION_CODES:
                raise PreconditionFailedError(
                    f"Object already exists: {bucket}/{object_key}"
                ) from exc
            raise StorageError(f"Failed to put object: {exc}") from exc

    def get_object(self, *, bucket: str, object_key: str) -> bytes:
        """Download the full object body."""
        try:
            response = self._client.get_object(Bucket=bucket, Key=object_key)
            body = response["Body"]
            try:
                return body.read()
            finally:
                body.close()
        except Exception as exc:
            if _is_not_found(exc):
                raise ObjectNotFoundError(
                    f"Object not found: {bucket}/{object_key}"
                ) from exc
            raise StorageError(f"Failed to get object: {exc}") from exc

    def head_object(self, *, bucket: str, object_key: str) -> ObjectHead:
        """Get object metadata without downloading the content."""
        try:
            response = self._client.head_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            if _is_not_found(exc):
                raise ObjectNotFoundError(
                    f"Object not found: {bucket}/{object_key}"
                ) from exc
            raise StorageError(f"Failed to get object metadata: {exc}") from exc

        size = response.get("ContentLength")
        return ObjectHead(
            size_bytes=int(size) if size is not None else 0,
            etag=response.get("ETag"),
            content_type=response.get("ContentType"),
        )

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage."""
        try:
            self._client.delete_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            # AWS answers 204 for missing keys; some compatible services 404
            if _error_code(exc) == "NoSuchKey":
                return
            raise StorageError(f"Failed to delete object: {exc}") from exc

    def list_objects(
        self,
        *,
        bucket: str,
        prefix: str = "",
        max_keys: int = 1000,
        continuation_token: str | None = None,
    ) -> ObjectListing:
        """Fetch one page of keys under ``prefix``."""
        params: dict[str, Any] = {
            "Bucket": bucket,
            "Prefix": prefix,
            "MaxKeys": int(max_keys),
        }
        if continuation_token:
            params["ContinuationToken"] = continuation_token

        try:
            response = self._client.list_objects_v2(**params)
        except Exception as exc:
            raise StorageError(f"Failed to list objects: {exc}") from exc

        return ObjectListing(
            keys=tuple(item["Key"] for item in response.get("Contents") or []),
            next_token=response.get("NextContinuationToken"),
            is_truncated=bool(response.get("IsTruncated")),
        )

    def presign_download(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
        secure: bool = True,
    ) -> str:
        """Generate a presigned URL for downloading an object."""
        try:
            url = self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": object_key},
                ExpiresIn=int(expires_in),
            )
        except Exception as exc:
            raise StorageError(f"Failed to generate download URL: {exc}") from exc

        if not url:
            raise StorageError("Generated presigned URL is empty")

        # The scheme is not part of the SigV4 canonical request.
        parts = urlsplit(str(url))
        return urlunsplit(parts._replace(scheme="https" if secure else "http"))

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if content_type:
            params["ContentType"] = content_type

        try:
            response = self._client.create_multipart_upload(**params)
        except Exception as exc:
            raise StorageError(f"Failed to create multipart upload: {exc}") from exc

        upload_id = response.get("UploadId")
        if not upload_id:
            raise StorageError("S3 response missing UploadId")

        return MultipartUpload(
            upload_id=str(upload_id),
            bucket=bucket,
            object_key=object_key,
        )

    def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> CompletedPart:
        """Upload one part of a multipart upload."""
        try:
            response = self._client.upload_part(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
                PartNumber=int(part_number),
                Body=body,
                ContentLength=len(body),
            )
        except Exception as exc:
            raise StorageError(
                f"Failed to upload part {part_number}: {exc}"
            ) from exc

        etag = response.get("ETag")
        if not etag:
            raise StorageError(f"S3 response missing ETag for part {part_number}")

        return CompletedPart(part_number=int(part_number), etag=str(etag))

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
        if_none_match: bool = False,
    ) -> None:
        """Complete a multipart upload by combining all parts."""
        params: dict[str, Any] = {
            "Bucket": bucket,
            "Key": object_key,
            "UploadId": upload_id,
            "MultipartUpload": {
                "Parts": [
                    {"ETag": part.etag, "PartNumber": int(part.part_number)}
                    for part in sorted(parts, key=lambda p: p.part_number)
                ]
            },
        }
        if if_none_match:
            params["IfNoneMatch"] = "*"

        try:
            self._client.complete_multipart_upload(**params)
        except Exception as exc:
            if if_none_match and _error_code(exc) in _PRECONDITION_CODES:
                raise PreconditionFailedError(
                    f"Object already exists: {bucket}/{object_key}"
                ) from exc
            raise StorageError(f"Failed to complete multipart upload: {exc}") from exc

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Abort a multipart upload and clean up uploaded parts."""
        try:
            self._client.abort_multipart_upload(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
            )
        except Exception as exc:
            raise StorageError(f"Failed to abort multipart upload: {exc}") from exc

    def list_multipart_uploads(
        self, *, bucket: str, prefix: str = ""
    ) -> list[PendingUpload]:
        """List multipart uploads that are still in progress."""
        params: dict[str, Any] = {"Bucket": bucket, "Prefix": prefix}
        pending: list[PendingUpload] = []

        while True:
            try:
                response = self._client.list_multipart_uploads(**params)
            except Exception as exc:
                raise StorageError(
                    f"Failed to list multipart uploads: {exc}"
                ) from exc

            for item in response.get("Uploads") or []:
                pending.append(
                    PendingUpload(
                        object_key=item["Key"],
                        upload_id=item["UploadId"],
                        initiated=item.get("Initiated"),
                    )
                )

            if not response.get("IsTruncated"):
                return pending
            key_marker = response.get("NextKeyMarker")
            if not key_marker:
                return pending
            params["KeyMarker"] = key_marker
            upload_id_marker = response.get("NextUploadIdMarker")
            if upload_id_marker:
                params["UploadIdMarker"] = upload_id_marker
            else:
                params.pop("UploadIdMarker", None)
