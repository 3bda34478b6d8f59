"""Tests for ObjectStorageGateway."""

from __future__ import annotations

import base64
import io
import logging

import pytest

from blobgate.app.services.base import (
    BucketUnavailableError,
    InvalidEncodingError,
    SourceFileUnreadableError,
)
from blobgate.app.services.storage_gateway import ObjectStorageGateway
from blobgate.common.config import StorageConfig
from blobgate.infra.storage.client import StorageError

DEFAULT_BUCKET = "default-bucket"


class TestResolveBucket:
    @pytest.mark.parametrize("container", [None, "", "   ", "\t"])
    def test_blank_container_uses_default(self, gateway, container):
        assert gateway.resolve_bucket(container) == DEFAULT_BUCKET

    @pytest.mark.parametrize("container", ["photos", " spaced ", "a.b-c"])
    def test_named_container_is_unchanged(self, gateway, container):
        assert gateway.resolve_bucket(container) == container

    def test_blank_container_without_default(self, mock_storage):
        gateway = ObjectStorageGateway(StorageConfig(), storage_client=mock_storage)

        assert gateway.resolve_bucket(None) == ""


class TestUpload:
    def test_creates_missing_bucket_then_writes(self, gateway, mock_storage):
        gateway.upload("photos", "a/b.png", b"png", "image/png")

        assert "photos" in mock_storage.buckets
        stored = mock_storage.objects[("photos", "a/b.png")]
        assert stored["body"] == b"png"
        assert stored["content_type"] == "image/png"
        assert mock_storage.calls[:2] == ["bucket_exists", "create_bucket"]

    def test_existing_bucket_is_not_recreated(self, gateway, mock_storage):
        mock_storage.buckets.add("photos")

        gateway.upload("photos", "k", b"x")

        assert "create_bucket" not in mock_storage.calls

    def test_uses_default_bucket(self, gateway, mock_storage):
        gateway.upload(None, "k", b"x")

        assert (DEFAULT_BUCKET, "k") in mock_storage.objects

    def test_skips_existing_without_overwrite(self, gateway, mock_storage, caplog):
        gateway.upload("b", "k", b"original")

        with caplog.at_level(logging.WARNING):
            result = gateway.upload("b", "k", b"replacement")

        assert result is None
        assert mock_storage.objects[("b", "k")]["body"] == b"original"
        assert "Upload skipped" in caplog.text

    def test_overwrite_replaces_content(self, gateway, mock_storage):
        gateway.upload("b", "k", b"original")
        gateway.upload("b", "k", b"replacement", overwrite=True)

        assert mock_storage.objects[("b", "k")]["body"] == b"replacement"

    def test_overwrite_does_not_probe(self, gateway, mock_storage):
        gateway.upload("b", "k", b"x", overwrite=True)

        assert "head_object" not in mock_storage.calls

    def test_overwrite_on_new_key(self, gateway, mock_storage):
        gateway.upload("b", "new", b"x", overwrite=True)

        assert mock_storage.objects[("b", "new")]["body"] == b"x"

    def test_bucket_unavailable_is_fatal(self, gateway, mock_storage):
        mock_storage.failures["create_bucket"] = StorageError("denied")

        with pytest.raises(BucketUnavailableError):
            gateway.upload("b", "k", b"x")
        assert "put_object" not in mock_storage.calls

    def test_empty_bucket_is_unavailable(self, mock_storage):
        gateway = ObjectStorageGateway(StorageConfig(), storage_client=mock_storage)

        with pytest.raises(BucketUnavailableError):
            gateway.upload(None, "k", b"x")
        assert mock_storage.calls == []

    def test_put_failure_propagates(self, gateway, mock_storage):
        mock_storage.failures["put_object"] = StorageError("boom")

        with pytest.raises(StorageError, match="boom"):
            gateway.upload("b", "k", b"x")

    def test_failed_probe_still_writes(self, gateway, mock_storage):
        mock_storage.failures["head_object"] = StorageError("timeout")

        gateway.upload("b", "k", b"x")

        assert mock_storage.objects[("b", "k")]["body"] == b"x"

    def test_none_key_and_content(self, gateway, mock_storage):
        gateway.upload("b", None, None)

        assert mock_storage.objects[("b", "")]["body"] == b""


class TestConditionalWrites:
    @pytest.fixture()
    def gateway(self, config, mock_storage):
        config = StorageConfig(
            service_url=config.service_url,
            default_bucket=config.default_bucket,
            conditional_writes=True,
        )
        return ObjectStorageGateway(config, storage_client=mock_storage)

    def test_writes_new_key_without_probe(self, gateway, mock_storage):
        gateway.upload("b", "k", b"x")

        assert mock_storage.objects[("b", "k")]["body"] == b"x"
        assert "head_object" not in mock_storage.calls

    def test_precondition_failure_is_a_skip(self, gateway, mock_storage, caplog):
        gateway.upload("b", "k", b"original")

        with caplog.at_level(logging.WARNING):
            gateway.upload("b", "k", b"replacement")

        assert mock_storage.objects[("b", "k")]["body"] == b"original"
        assert "Upload skipped" in caplog.text

    def test_overwrite_ignores_precondition(self, gateway, mock_storage):
        gateway.upload("b", "k", b"original")
        gateway.upload("b", "k", b"replacement", overwrite=True)

        assert mock_storage.objects[("b", "k")]["body"] == b"replacement"

    def test_upload_large_new_key_without_head(self, gateway, mock_storage):
        parts = gateway.upload_large("b", "big", io.BytesIO(b"y" * 20), part_size=8)

        assert len(parts) == 3
        assert mock_storage.objects[("b", "big")]["body"] == b"y" * 20
        assert "head_object" not in mock_storage.calls

    def test_upload_large_existing_key_is_a_skip(self, gateway, mock_storage, caplog):
        gateway.upload("b", "big", b"original")

        with caplog.at_level(logging.WARNING):
            parts = gateway.upload_large("b", "big", io.BytesIO(b"new content"))

        assert parts == []
        assert gateway.download("b", "big") == b"original"
        assert "head_object" not in mock_storage.calls
        assert "Upload skipped" in caplog.text
        # the rejected session is not left behind
        assert next(iter(mock_storage.uploads.values()))["aborted"] is True

    def test_upload_large_overwrite_replaces(self, gateway, mock_storage):
        gateway.upload("b", "big", b"original")

        gateway.upload_large("b", "big", io.BytesIO(b"new content"), overwrite=True)

        assert gateway.download("b", "big") == b"new content"


class TestUploadVariants:
    def test_upload_base64(self, gateway, mock_storage):
        encoded = base64.b64encode(b"\x00\x01binary").decode("ascii")

        gateway.upload_base64("b", "k", encoded, "application/octet-stream")

        assert mock_storage.objects[("b", "k")]["body"] == b"\x00\x01binary"

    @pytest.mark.parametrize("bad", ["not base64!", "abc", "@@@@"])
    def test_upload_base64_rejects_malformed(self, gateway, mock_storage, bad):
        with pytest.raises(InvalidEncodingError):
            gateway.upload_base64("b", "k", bad)
        assert mock_storage.calls == []

    def test_upload_base64_accepts_line_wrapped_input(self, gateway, mock_storage):
        payload = bytes(range(256)) * 2
        wrapped = base64.encodebytes(payload).decode("ascii")
        assert "\n" in wrapped

        gateway.upload_base64("b", "k", wrapped)
        gateway.upload_base64("b", "spaced", " AAEC\r\n\tAwQF ", overwrite=True)

        assert mock_storage.objects[("b", "k")]["body"] == payload
        assert mock_storage.objects[("b", "spaced")]["body"] == b"\x00\x01\x02\x03\x04\x05"

    def test_invalid_encoding_is_value_error(self, gateway):
        with pytest.raises(ValueError):
            gateway.upload_base64("b", "k", "%%%")

    def test_upload_base64_none_is_empty(self, gateway, mock_storage):
        gateway.upload_base64("b", "k", None)

        assert mock_storage.objects[("b", "k")]["body"] == b""

    def test_upload_from_file_path_infers_type(self, gateway, mock_storage, tmp_path):
        source = tmp_path / "logo.PNG"
        source.write_bytes(b"\x89PNG")

        gateway.upload_from_file_path("b", "img/logo", str(source))

        stored = mock_storage.objects[("b", "img/logo")]
        assert stored["body"] == b"\x89PNG"
        assert stored["content_type"] == "image/png"

    def test_upload_from_file_path_unknown_extension(
        self, gateway, mock_storage, tmp_path
    ):
        source = tmp_path / "data.xyz"
        source.write_bytes(b"?")

        gateway.upload_from_file_path("b", "k", str(source))

        assert mock_storage.objects[("b", "k")]["content_type"] == "application/octet-stream"

    def test_upload_from_missing_file(self, gateway, mock_storage, tmp_path):
        with pytest.raises(SourceFileUnreadableError):
            gateway.upload_from_file_path("b", "k", str(tmp_path / "missing.txt"))
        assert mock_storage.calls == []

    def test_upload_from_directory_path(self, gateway, tmp_path):
        with pytest.raises(SourceFileUnreadableError):
            gateway.upload_from_file_path("b", "k", str(tmp_path))


class TestDownload:
    @pytest.mark.parametrize("content", [b"", b"hello", bytes(range(256)) * 4])
    def test_round_trip(self, gateway, content):
        gateway.upload("b", "k", content)

        assert gateway.download("b", "k") == content

    def test_missing_returns_none(self, gateway):
        assert gateway.download("b", "nope") is None

    def test_other_failures_propagate(self, gateway, mock_storage):
        mock_storage.failures["get_object"] = StorageError("denied")

        with pytest.raises(StorageError):
            gateway.download("b", "k")

    def test_empty_bucket_is_unavailable(self, mock_storage):
        gateway = ObjectStorageGateway(StorageConfig(), storage_client=mock_storage)

        with pytest.raises(BucketUnavailableError):
            gateway.download("", "k")


class TestExists:
    def test_false_before_and_true_after_upload(self, gateway):
        assert gateway.exists("b", "k") is False

        gateway.upload("b", "k", b"x")

        assert gateway.exists("b", "k") is True

    def test_probe_failure_is_false_and_logged(self, gateway, mock_storage, caplog):
        mock_storage.failures["head_object"] = StorageError("network down")

        with caplog.at_level(logging.ERROR):
            assert gateway.exists("b", "k") is False
        assert "Error checking existence for b/k" in caplog.text

    def test_unexpected_exception_does_not_escape(self, gateway, mock_storage):
        mock_storage.failures["head_object"] = ConnectionError("reset")

        assert gateway.exists("b", "k") is False

    def test_probe_distinguishes_absent_from_failed(self, gateway, mock_storage):
        absent = gateway.probe("b", "k")
        assert absent.exists is False
        assert absent.failed is False

        mock_storage.failures["head_object"] = StorageError("auth")
        failed = gateway.probe("b", "k")
        assert failed.exists is False
        assert failed.failed is True
        assert isinstance(failed.error, StorageError)

    def test_empty_bucket_probe_makes_no_call(self, mock_storage):
        gateway = ObjectStorageGateway(StorageConfig(), storage_client=mock_storage)

        result = gateway.probe(None, "k")

        assert result.exists is False
        assert isinstance(result.error, BucketUnavailableError)
        assert mock_storage.calls == []


class TestDelete:
    def test_delete_removes_object(self, gateway):
        gateway.upload("b", "k", b"x")

        gateway.delete("b", "k")

        assert gateway.exists("b", "k") is False

    def test_delete_missing_is_noop(self, gateway):
        gateway.delete("b", "never-uploaded")

    def test_delete_failure_is_logged_and_raised(self, gateway, mock_storage, caplog):
        mock_storage.failures["delete_object"] = StorageError("denied")

        with caplog.at_level(logging.ERROR):
            with pytest.raises(StorageError, match="denied"):
                gateway.delete("b", "k")
        assert "Failed to delete object b/k" in caplog.text


class TestGetUrl:
    def test_direct_url_strips_scheme_and_slash(self, gateway):
        assert gateway.get_url("b", "dir/file.txt") == (
            "https://storage.example.com/b/dir/file.txt"
        )

    def test_direct_url_insecure(self, gateway):
        assert gateway.get_url("b", "k", secure=False) == "http://storage.example.com/b/k"

    def test_direct_url_uses_default_bucket(self, gateway):
        assert gateway.get_url(None, "k") == (
            f"https://storage.example.com/{DEFAULT_BUCKET}/k"
        )

    def test_direct_url_without_scheme_in_endpoint(self, mock_storage):
        gateway = ObjectStorageGateway(
            StorageConfig(service_url="minio.local:9000"), storage_client=mock_storage
        )

        assert gateway.get_url("b", "k", secure=False) == "http://minio.local:9000/b/k"

    def test_direct_url_makes_no_remote_call(self, gateway, mock_storage):
        gateway.get_url("b", "missing")

        assert mock_storage.calls == []

    def test_presigned_url(self, gateway, mock_storage):
        url = gateway.get_url("b", "k", expiry_in_seconds=60)

        assert url == "https://mock-s3/b/k?X-Amz-Expires=60"
        assert mock_storage.calls == ["presign_download"]

    def test_presigned_url_insecure(self, gateway):
        assert gateway.get_url("b", "k", secure=False, expiry_in_seconds=5).startswith(
            "http://"
        )

    def test_non_positive_expiry_is_direct(self, gateway, mock_storage):
        gateway.get_url("b", "k", expiry_in_seconds=-1)

        assert "presign_download" not in mock_storage.calls


class TestListFiles:
    def test_empty_prefix_match(self, gateway):
        gateway.upload("b", "other/1", b"x")

        assert gateway.list_files("b", "nothing/") == []

    def test_empty_bucket_listing(self, gateway):
        assert gateway.list_files("b") == []

    def test_pagination_returns_every_key_once(self, gateway, mock_storage):
        keys = [f"logs/{i:03d}" for i in range(7)]
        for key in keys:
            gateway.upload("b", key, b"x")
        gateway.upload("b", "other/x", b"x")

        result = gateway.list_files("b", "logs/", max_results=3)

        assert result == keys
        assert len(set(result)) == len(result)
        assert mock_storage.calls.count("list_objects") == 3

    def test_default_page_size(self, gateway, mock_storage):
        gateway.upload("b", "k", b"x")

        gateway.list_files("b")

        assert mock_storage.calls.count("list_objects") == 1

    def test_truncated_page_without_token_stops(self, gateway, mock_storage):
        from blobgate.infra.storage.client import ObjectListing

        pages = iter(
            [ObjectListing(keys=("a",), next_token=None, is_truncated=True)]
        )
        mock_storage.list_objects = lambda **_: next(pages)

        assert gateway.list_files("b") == ["a"]

    def test_rejects_non_positive_max_results(self, gateway):
        with pytest.raises(ValueError):
            gateway.list_files("b", max_results=0)

    def test_list_failure_propagates(self, gateway, mock_storage):
        mock_storage.failures["list_objects"] = StorageError("boom")

        with pytest.raises(StorageError):
            gateway.list_files("b")


class TestUploadLarge:
    def test_multipart_parts_and_length(self, gateway, mock_storage):
        data = bytes(range(20))

        parts = gateway.upload_large("b", "big", io.BytesIO(data), part_size=8)

        assert [p.part_number for p in parts] == [1, 2, 3]
        assert gateway.download("b", "big") == data

    def test_skips_existing_without_overwrite(self, gateway, mock_storage):
        gateway.upload("b", "big", b"original")

        parts = gateway.upload_large("b", "big", io.BytesIO(b"new content"))

        assert parts == []
        assert gateway.download("b", "big") == b"original"
        assert "init_multipart_upload" not in mock_storage.calls

    def test_overwrite_replaces(self, gateway):
        gateway.upload("b", "big", b"original")

        gateway.upload_large("b", "big", io.BytesIO(b"new content"), overwrite=True)

        assert gateway.download("b", "big") == b"new content"

    def test_from_file_path(self, gateway, mock_storage, tmp_path):
        source = tmp_path / "report.pdf"
        source.write_bytes(b"%PDF" * 5)

        parts = gateway.upload_large_from_file_path("b", "r.pdf", str(source))

        assert len(parts) == 3
        assert mock_storage.objects[("b", "r.pdf")]["content_type"] == "application/pdf"

    def test_from_missing_file(self, gateway, tmp_path):
        with pytest.raises(SourceFileUnreadableError):
            gateway.upload_large_from_file_path("b", "k", str(tmp_path / "gone.bin"))
