from __future__ import annotations

import pytest

from blobgate.app.services.storage_gateway import ObjectStorageGateway
from blobgate.common.config import StorageConfig, get_config
from tests.services.mock_storage import MockStorageClient

DEFAULT_BUCKET = "default-bucket"


@pytest.fixture(autouse=True)
def clear_config_cache(monkeypatch):
    for name in (
        "S3_ENDPOINT_URL",
        "S3_ACCESS_KEY_ID",
        "S3_SECRET_ACCESS_KEY",
        "S3_REGION",
        "S3_DEFAULT_BUCKET",
        "S3_USE_SSL",
        "S3_FORCE_PATH_STYLE",
        "S3_TIMEOUT_SECONDS",
        "STORAGE_PART_SIZE_BYTES",
        "STORAGE_ABORT_ON_FAILURE",
        "STORAGE_CONDITIONAL_WRITES",
        "ENABLE_METRICS",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    get_config.cache_clear()  # type: ignore[attr-defined]
    yield
    get_config.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture()
def config() -> StorageConfig:
    return StorageConfig(
        service_url="https://storage.example.com/",
        access_key_id="test-key",
        secret_access_key="test-secret",
        region="br-se1",
        default_bucket=DEFAULT_BUCKET,
        part_size_bytes=8,
    )


@pytest.fixture()
def mock_storage() -> MockStorageClient:
    return MockStorageClient()


@pytest.fixture()
def gateway(config, mock_storage) -> ObjectStorageGateway:
    return ObjectStorageGateway(config, storage_client=mock_storage)
