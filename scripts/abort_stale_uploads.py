#!/usr/bin/env python3
"""Abort multipart uploads that were started but never completed.

Usage:
  .venv/bin/python scripts/abort_stale_uploads.py --bucket media --dry-run
  .venv/bin/python scripts/abort_stale_uploads.py --bucket media --hours 48

By default aborts uploads initiated more than 24 hours ago. Connection
settings come from the S3_* environment variables (or .env).
"""

from __future__ import annotations

import argparse
import logging
from datetime import datetime, timedelta, timezone

from blobgate.common.config import get_config
from blobgate.common.logging import setup_logging
from blobgate.infra.storage.client import StorageClient, StorageError
from blobgate.infra.storage.s3_client import S3StorageClient

logger = logging.getLogger("blobgate.scripts.abort_stale_uploads")


def abort_stale_uploads(
    storage: StorageClient,
    *,
    bucket: str,
    prefix: str = "",
    older_than: timedelta = timedelta(hours=24),
    dry_run: bool = False,
    now: datetime | None = None,
) -> int:
    now = now or datetime.now(timezone.utc)
    threshold = now - older_than
    stale = [
        upload
        for upload in storage.list_multipart_uploads(bucket=bucket, prefix=prefix)
        if upload.initiated is None or upload.initiated <= threshold
    ]
    if dry_run:
        return len(stale)

    aborted = 0
    for upload in stale:
        try:
            storage.abort_multipart_upload(
                bucket=bucket,
                object_key=upload.object_key,
                upload_id=upload.upload_id,
            )
        except StorageError as exc:
            # an upload completed or aborted concurrently is not fatal
            logger.warning("Could not abort %s (%s): %s", upload.object_key, upload.upload_id, exc)
            continue
        aborted += 1
    return aborted


def main() -> None:
    parser = argparse.ArgumentParser(description="Abort stale multipart uploads")
    parser.add_argument(
        "--bucket",
        default=None,
        help="Bucket to clean (default: S3_DEFAULT_BUCKET)",
    )
    parser.add_argument("--prefix", default="", help="Only consider keys under this prefix")
    parser.add_argument(
        "--hours",
        type=int,
        default=24,
        help="Abort uploads initiated more than N hours ago (default: 24)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only print how many uploads would be aborted",
    )
    args = parser.parse_args()

    config = get_config()
    setup_logging(config.log_level)
    bucket = args.bucket or config.default_bucket
    if not bucket:
        parser.error("--bucket is required when S3_DEFAULT_BUCKET is not set")

    count = abort_stale_uploads(
        S3StorageClient(config=config),
        bucket=bucket,
        prefix=args.prefix,
        older_than=timedelta(hours=args.hours),
        dry_run=args.dry_run,
    )
    if args.dry_run:
        print(f"[DRY-RUN] {count} uploads would be aborted")
    else:
        print(f"Aborted {count} uploads")


if __name__ == "__main__":
    main()
