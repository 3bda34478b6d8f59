"""Multipart upload orchestration for large objects.

A ``MultipartSession`` tracks one upload from initiation to completion or
abort. Parts may be uploaded in any order or from several threads; completion
always submits the contiguous ``1..n`` part list sorted by part number.

Sessions left neither completed nor aborted keep their parts billed by the
storage service until a lifecycle rule or ``scripts/abort_stale_uploads.py``
removes them. With ``abort_on_failure`` enabled the uploader aborts the
session itself when a part upload or the completion fails.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO

from blobgate.app.services.base import (
    BaseService,
    BucketUnavailableError,
    MultipartSessionError,
    SourceFileUnreadableError,
)
from blobgate.app.services.buckets import BucketProvisioner
from blobgate.app.services.content_types import guess_content_type
from blobgate.common.config import StorageConfig
from blobgate.infra.storage.client import CompletedPart, StorageClient, StorageError

logger = logging.getLogger(__name__)

# Maximum part number allowed by S3
MAX_PART_NUMBER = 10000


class SessionState(str, Enum):
    INITIATED = "INITIATED"
    PART_UPLOADED = "PART_UPLOADED"
    COMPLETING = "COMPLETING"
    COMPLETED = "COMPLETED"
    ABORTED = "ABORTED"


@dataclass
class MultipartSession:
    """State of one multipart upload: target, upload id and recorded parts."""

    bucket: str
    key: str
    upload_id: str
    state: SessionState = SessionState.INITIATED
    _etags: dict[int, str] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    @property
    def is_open(self) -> bool:
        return self.state in (SessionState.INITIATED, SessionState.PART_UPLOADED)

    @property
    def parts(self) -> list[CompletedPart]:
        with self._lock:
            return self._sorted_parts()

    def _sorted_parts(self) -> list[CompletedPart]:
        return [
            CompletedPart(part_number=number, etag=self._etags[number])
            for number in sorted(self._etags)
        ]

    def ensure_open(self) -> None:
        if not self.is_open:
            raise MultipartSessionError(
                f"Multipart session {self.upload_id} is {self.state.value.lower()}"
            )

    def record_part(self, part: CompletedPart) -> None:
        with self._lock:
            self.ensure_open()
            self._etags[part.part_number] = part.etag
            self.state = SessionState.PART_UPLOADED

    def begin_completion(self) -> list[CompletedPart]:
        """Freeze the part list for completion, rejecting gaps.

        Once frozen the session is COMPLETING and ``record_part`` raises, so
        no part can be recorded after the list was taken.
        """
        with self._lock:
            self.ensure_open()
            parts = self._sorted_parts()
            if not parts:
                raise MultipartSessionError("parts list cannot be empty")
            numbers = [part.part_number for part in parts]
            if numbers != list(range(1, len(parts) + 1)):
                missing = sorted(set(range(1, numbers[-1] + 1)) - set(numbers))
                raise MultipartSessionError(
                    f"Missing parts before completion: {missing}"
                )
            self.state = SessionState.COMPLETING
        return parts

    def end_completion(self, *, succeeded: bool) -> None:
        with self._lock:
            self.state = (
                SessionState.COMPLETED if succeeded else SessionState.PART_UPLOADED
            )


def _read_chunk(stream: BinaryIO, size: int) -> bytes:
    """Read up to ``size`` bytes, looping over short reads until EOF."""
    buffer = bytearray()
    while len(buffer) < size:
        chunk = stream.read(size - len(buffer))
        if not chunk:
            break
        buffer.extend(chunk)
    return bytes(buffer)


class MultipartUploader(BaseService):
    """Drives the initiate / upload part / complete protocol."""

    def __init__(
        self,
        storage: StorageClient,
        *,
        config: StorageConfig,
        provisioner: BucketProvisioner | None = None,
    ) -> None:
        super().__init__(storage, config=config)
        self._provisioner = provisioner or BucketProvisioner(storage)

    def initiate(
        self,
        container: str | None,
        key: str | None,
        *,
        content_type: str | None = None,
    ) -> MultipartSession:
        """Open an upload session for ``key``, provisioning the bucket first.

        Raises:
            BucketUnavailableError: If the bucket is unnamed or cannot be created.
            StorageError: If the service refuses to open the session.
        """
        bucket = self._require_bucket(container)
        if not self._provisioner.ensure_exists(bucket):
            raise BucketUnavailableError(f"Bucket unavailable: {bucket}")

        upload = self._storage.init_multipart_upload(
            bucket=bucket,
            object_key=key or "",
            content_type=content_type,
        )
        logger.info(
            "Initiated multipart upload %s for %s/%s",
            upload.upload_id,
            bucket,
            upload.object_key,
            extra={
                "extra": {
                    "bucket": bucket,
                    "key": upload.object_key,
                    "upload_id": upload.upload_id,
                }
            },
        )
        return MultipartSession(
            bucket=bucket, key=upload.object_key, upload_id=upload.upload_id
        )

    def upload_part(
        self, session: MultipartSession, part_number: int, data: bytes
    ) -> CompletedPart:
        """Upload one part and record its ETag on the session."""
        session.ensure_open()
        if part_number <= 0 or part_number > MAX_PART_NUMBER:
            raise MultipartSessionError(
                f"part_number must be between 1 and {MAX_PART_NUMBER}"
            )

        part = self._storage.upload_part(
            bucket=session.bucket,
            object_key=session.key,
            upload_id=session.upload_id,
            part_number=part_number,
            body=bytes(data),
        )
        session.record_part(part)
        logger.debug(
            "Uploaded part %s (%s bytes) of %s", part_number, len(data), session.upload_id
        )
        return part

    def complete(
        self, session: MultipartSession, *, if_none_match: bool = False
    ) -> None:
        """Submit the ordered part list; the session cannot be used afterwards.

        With ``if_none_match`` the service only creates the object if the key
        is still free, otherwise ``PreconditionFailedError`` is raised and the
        session stays open for an abort.
        """
        parts = session.begin_completion()
        try:
            self._storage.complete_multipart_upload(
                bucket=session.bucket,
                object_key=session.key,
                upload_id=session.upload_id,
                parts=parts,
                if_none_match=if_none_match,
            )
        except Exception:
            session.end_completion(succeeded=False)
            raise
        session.end_completion(succeeded=True)
        logger.info(
            "Completed multipart upload %s for %s/%s with %s parts",
            session.upload_id,
            session.bucket,
            session.key,
            len(parts),
            extra={
                "extra": {
                    "bucket": session.bucket,
                    "key": session.key,
                    "upload_id": session.upload_id,
                    "parts": len(parts),
                }
            },
        )

    def abort(self, session: MultipartSession) -> None:
        """Abort the session and discard any uploaded parts."""
        session.ensure_open()
        self._storage.abort_multipart_upload(
            bucket=session.bucket,
            object_key=session.key,
            upload_id=session.upload_id,
        )
        session.state = SessionState.ABORTED
        logger.info("Aborted multipart upload %s", session.upload_id)

    def upload_stream(
        self,
        container: str | None,
        key: str | None,
        stream: BinaryIO,
        *,
        content_type: str | None = None,
        part_size: int | None = None,
        if_none_match: bool = False,
    ) -> list[CompletedPart]:
        """Upload ``stream`` in fixed-size parts and complete the object.

        Returns the completed parts in order; an empty stream is stored with a
        plain zero-length put and yields no parts. ``if_none_match`` makes the
        final write conditional on the key not existing yet.
        """
        size = int(part_size or self._config.part_size_bytes)
        if size <= 0:
            raise ValueError("part_size must be positive")

        chunk = _read_chunk(stream, size)
        if not chunk:
            bucket = self._require_bucket(container)
            if not self._provisioner.ensure_exists(bucket):
                raise BucketUnavailableError(f"Bucket unavailable: {bucket}")
            self._storage.put_object(
                bucket=bucket,
                object_key=key or "",
                body=b"",
                content_type=content_type,
                if_none_match=if_none_match,
            )
            return []

        session = self.initiate(container, key, content_type=content_type)
        try:
            part_number = 1
            while chunk:
                self.upload_part(session, part_number, chunk)
                part_number += 1
                chunk = _read_chunk(stream, size)
            self.complete(session, if_none_match=if_none_match)
        except Exception:
            if self._config.abort_on_failure:
                self._abort_quietly(session)
            raise
        return session.parts

    def upload_file(
        self,
        container: str | None,
        key: str | None,
        source_file_path: str,
        *,
        part_size: int | None = None,
    ) -> list[CompletedPart]:
        """Multipart-upload a local file, inferring its content type."""
        try:
            stream = open(source_file_path, "rb")
        except OSError as exc:
            raise SourceFileUnreadableError(
                f"Cannot read source file: {source_file_path}"
            ) from exc

        with stream:
            try:
                return self.upload_stream(
                    container,
                    key,
                    stream,
                    content_type=guess_content_type(source_file_path),
                    part_size=part_size,
                )
            except OSError as exc:
                raise SourceFileUnreadableError(
                    f"Cannot read source file: {source_file_path}"
                ) from exc

    def _abort_quietly(self, session: MultipartSession) -> None:
        if not session.is_open:
            return
        try:
            self.abort(session)
        except StorageError:
            logger.error(
                "Failed to abort multipart upload %s for %s/%s",
                session.upload_id,
                session.bucket,
                session.key,
                exc_info=True,
                extra={
                    "extra": {
                        "bucket": session.bucket,
                        "key": session.key,
                        "upload_id": session.upload_id,
                    }
                },
            )
