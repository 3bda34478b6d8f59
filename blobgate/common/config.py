from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

ENV_FILE = Path(".env")

DEFAULT_PART_SIZE_BYTES = 5 * 1024 * 1024
DEFAULT_TIMEOUT_SECONDS = 100.0


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_optional(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass(frozen=True)
class StorageConfig:
    """Connection parameters for one S3-compatible endpoint.

    Built once per process (see ``get_config``) or passed explicitly to a
    gateway; never mutated afterwards.
    """

    service_url: str = ""
    access_key_id: str = ""
    secret_access_key: str = ""
    region: str | None = None
    default_bucket: str | None = None
    use_https: bool = True
    force_path_style: bool = True
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    part_size_bytes: int = DEFAULT_PART_SIZE_BYTES
    abort_on_failure: bool = True
    # If-None-Match: * on puts and multipart completions instead of a head probe
    conditional_writes: bool = False
    enable_metrics: bool = True
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.part_size_bytes <= 0:
            raise ValueError("part_size_bytes must be positive")

    @property
    def endpoint_url(self) -> str | None:
        """Endpoint with an explicit scheme, as botocore expects it."""
        url = self.service_url.strip().rstrip("/")
        if not url:
            return None
        if "://" in url:
            return url
        scheme = "https" if self.use_https else "http"
        return f"{scheme}://{url}"

    @property
    def endpoint_host(self) -> str:
        """Endpoint host (and port) without scheme or trailing slash."""
        return self.service_url.strip().split("://", 1)[-1].rstrip("/")

    @classmethod
    def from_environment(cls) -> "StorageConfig":
        _load_env_file()
        return cls(
            service_url=os.environ.get("S3_ENDPOINT_URL", cls.service_url),
            access_key_id=os.environ.get("S3_ACCESS_KEY_ID", cls.access_key_id),
            secret_access_key=os.environ.get(
                "S3_SECRET_ACCESS_KEY", cls.secret_access_key
            ),
            region=_as_optional(os.environ.get("S3_REGION")),
            default_bucket=_as_optional(os.environ.get("S3_DEFAULT_BUCKET")),
            use_https=_as_bool(os.environ.get("S3_USE_SSL"), cls.use_https),
            force_path_style=_as_bool(
                os.environ.get("S3_FORCE_PATH_STYLE"), cls.force_path_style
            ),
            timeout_seconds=float(
                os.environ.get("S3_TIMEOUT_SECONDS", cls.timeout_seconds)
            ),
            part_size_bytes=int(
                os.environ.get("STORAGE_PART_SIZE_BYTES", cls.part_size_bytes)
            ),
            abort_on_failure=_as_bool(
                os.environ.get("STORAGE_ABORT_ON_FAILURE"), cls.abort_on_failure
            ),
            conditional_writes=_as_bool(
                os.environ.get("STORAGE_CONDITIONAL_WRITES"), cls.conditional_writes
            ),
            enable_metrics=_as_bool(
                os.environ.get("ENABLE_METRICS"), cls.enable_metrics
            ),
            log_level=os.environ.get("LOG_LEVEL", cls.log_level).upper(),
        )


@lru_cache(maxsize=1)
def get_config() -> StorageConfig:
    return StorageConfig.from_environment()
