"""Bucket provisioning: make sure a target bucket exists before writing."""

from __future__ import annotations

import logging

from blobgate.infra.storage.client import StorageClient, StorageError

logger = logging.getLogger(__name__)


class BucketProvisioner:
    """Idempotently ensures buckets exist, creating them on first use."""

    def __init__(self, storage: StorageClient) -> None:
        self._storage = storage

    def ensure_exists(self, bucket: str) -> bool:
        """Return True once ``bucket`` exists, False if that cannot be achieved.

        Failures of the existence probe or of the create request are logged and
        reported as False; nothing is raised. A concurrent creator winning the
        race is not a failure.
        """
        if not bucket or not bucket.strip():
            return False

        try:
            if self._storage.bucket_exists(bucket=bucket):
                logger.debug("Bucket exists: %s", bucket)
                return True
            self._storage.create_bucket(bucket=bucket)
        except StorageError:
            logger.error(
                "Error ensuring bucket exists: %s",
                bucket,
                exc_info=True,
                extra={"extra": {"bucket": bucket}},
            )
            return False

        logger.info("Created bucket: %s", bucket, extra={"extra": {"bucket": bucket}})
        return True
