"""
Unit tests for the object store gateway.

The R2 client runs against a real boto3 S3 client with a botocore
Stubber attached, so request parameters and pagination are checked
without any network access. The mock client is held to the same
contract because the API tests rely on it.
"""

from datetime import datetime, timedelta, timezone

import boto3
import pytest
from botocore.stub import ANY, Stubber

from filedrop.core.files.models import FileListItem
from filedrop.infrastructure.storage.client import (
    MockStorageClient,
    R2StorageClient,
    StorageConfig,
    StorageError,
    build_embed_url,
    build_public_url,
    create_storage_client,
    sort_newest_first,
)

BUCKET = "test-bucket"


def make_config(page_size: int = 1000) -> StorageConfig:
    return StorageConfig(
        access_key_id="test-key",
        secret_access_key="test-secret",
        bucket_name=BUCKET,
        endpoint_url="https://account.r2.cloudflarestorage.com",
        public_url="https://files.example.com/",
        app_url="https://dash.example.com",
        page_size=page_size,
    )


def ts(minutes: int) -> datetime:
    return datetime(2025, 3, 1, tzinfo=timezone.utc) + timedelta(minutes=minutes)


@pytest.fixture
def s3():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        endpoint_url="https://account.r2.cloudflarestorage.com",
        aws_access_key_id="test-key",
        aws_secret_access_key="test-secret",
    )


@pytest.fixture
def stubber(s3):
    with Stubber(s3) as stub:
        yield stub
        stub.assert_no_pending_responses()


# ---------------------------------------------------------------------------
# URL Derivation
# ---------------------------------------------------------------------------

class TestUrls:

    def test_public_url_joins_base_and_key(self):
        assert build_public_url("https://files.example.com/", "abc_photo.png") == \
            "https://files.example.com/abc_photo.png"

    def test_embed_url_encodes_key(self):
        assert build_embed_url("https://dash.example.com", "dir/a b.png") == \
            "https://dash.example.com/view/dir%2Fa%20b.png"

    def test_client_urls_need_no_io(self, s3):
        client = R2StorageClient(make_config(), s3_client=s3)

        assert client.get_public_url("k.png") == "https://files.example.com/k.png"
        assert client.get_embed_url("k.png") == "https://dash.example.com/view/k.png"


class TestSortNewestFirst:

    def test_missing_timestamps_sort_last(self):
        items = [
            FileListItem("old", 1, ts(0), "u", "e"),
            FileListItem("none", 1, None, "u", "e"),
            FileListItem("new", 1, ts(10), "u", "e"),
        ]

        assert [i.key for i in sort_newest_first(items)] == ["new", "old", "none"]


# ---------------------------------------------------------------------------
# R2 Client
# ---------------------------------------------------------------------------

class TestR2StorageClient:

    @pytest.mark.asyncio
    async def test_upload_writes_metadata_and_reports_payload_size(self, s3, stubber):
        stubber.add_response(
            "put_object",
            {"ETag": '"abc"'},
            {
                "Bucket": BUCKET,
                "Key": "abcd1234_photo.png",
                "Body": b"\x89PNG....",
                "ContentType": "image/png",
                "Metadata": {
                    "uploaded-at": ANY,
                    "original-content-type": "image/png",
                },
            },
        )
        client = R2StorageClient(make_config(), s3_client=s3)

        result = await client.upload_file("abcd1234_photo.png", b"\x89PNG....", "image/png")

        assert result.size == 8
        assert result.content_type == "image/png"
        assert result.url == "https://files.example.com/abcd1234_photo.png"
        assert result.embed_url == "https://dash.example.com/view/abcd1234_photo.png"
        assert datetime.fromisoformat(result.uploaded_at).tzinfo is not None

    @pytest.mark.asyncio
    async def test_upload_failure_raises_storage_error(self, s3, stubber):
        stubber.add_client_error("put_object", service_error_code="InternalError", http_status_code=500)
        client = R2StorageClient(make_config(), s3_client=s3)

        with pytest.raises(StorageError):
            await client.upload_file("k", b"data", "text/plain")

    @pytest.mark.asyncio
    async def test_list_walks_every_page_and_sorts_newest_first(self, s3, stubber):
        stubber.add_response(
            "list_objects_v2",
            {
                "IsTruncated": True,
                "NextContinuationToken": "page-2",
                "Contents": [
                    {"Key": "a.png", "Size": 10, "LastModified": ts(1)},
                    {"Key": "b.mp4", "Size": 20, "LastModified": ts(5)},
                ],
            },
            {"Bucket": BUCKET, "MaxKeys": 2},
        )
        stubber.add_response(
            "list_objects_v2",
            {
                "IsTruncated": False,
                "Contents": [
                    {"Key": "c.mp3", "Size": 30, "LastModified": ts(3)},
                ],
            },
            {"Bucket": BUCKET, "MaxKeys": 2, "ContinuationToken": "page-2"},
        )
        client = R2StorageClient(make_config(page_size=2), s3_client=s3)

        files = await client.list_files()

        assert [f.key for f in files] == ["b.mp4", "c.mp3", "a.png"]
        assert [f.size for f in files] == [20, 30, 10]
        assert files[0].url == "https://files.example.com/b.mp4"

    @pytest.mark.asyncio
    async def test_list_passes_prefix(self, s3, stubber):
        stubber.add_response(
            "list_objects_v2",
            {"IsTruncated": False},
            {"Bucket": BUCKET, "MaxKeys": 1000, "Prefix": "albums/"},
        )
        client = R2StorageClient(make_config(), s3_client=s3)

        assert await client.list_files("albums/") == []

    @pytest.mark.asyncio
    async def test_list_failure_raises_storage_error(self, s3, stubber):
        stubber.add_client_error("list_objects_v2", service_error_code="AccessDenied", http_status_code=403)
        client = R2StorageClient(make_config(), s3_client=s3)

        with pytest.raises(StorageError):
            await client.list_files()

    @pytest.mark.asyncio
    async def test_metadata_for_existing_key(self, s3, stubber):
        stubber.add_response(
            "head_object",
            {"ContentType": "video/mp4", "ContentLength": 2048, "LastModified": ts(0)},
            {"Bucket": BUCKET, "Key": "clip.mp4"},
        )
        client = R2StorageClient(make_config(), s3_client=s3)

        metadata = await client.get_file_metadata("clip.mp4")

        assert metadata.content_type == "video/mp4"
        assert metadata.size == 2048
        assert metadata.last_modified == ts(0)

    @pytest.mark.asyncio
    async def test_metadata_defaults_content_type(self, s3, stubber):
        stubber.add_response(
            "head_object",
            {"ContentLength": 5},
            {"Bucket": BUCKET, "Key": "blob"},
        )
        client = R2StorageClient(make_config(), s3_client=s3)

        metadata = await client.get_file_metadata("blob")

        assert metadata.content_type == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_missing_key_returns_none(self, s3, stubber):
        stubber.add_client_error(
            "head_object",
            service_error_code="404",
            service_message="Not Found",
            http_status_code=404,
        )
        client = R2StorageClient(make_config(), s3_client=s3)

        assert await client.get_file_metadata("gone.png") is None

    @pytest.mark.asyncio
    async def test_store_outage_is_not_reported_as_missing(self, s3, stubber):
        stubber.add_client_error(
            "head_object",
            service_error_code="InternalError",
            http_status_code=500,
        )
        client = R2StorageClient(make_config(), s3_client=s3)

        with pytest.raises(StorageError):
            await client.get_file_metadata("photo.png")

    @pytest.mark.asyncio
    async def test_delete_twice_does_not_error(self, s3, stubber):
        for _ in range(2):
            stubber.add_response(
                "delete_object",
                {},
                {"Bucket": BUCKET, "Key": "photo.png"},
            )
        client = R2StorageClient(make_config(), s3_client=s3)

        await client.delete_file("photo.png")
        await client.delete_file("photo.png")


# ---------------------------------------------------------------------------
# Mock Client
# ---------------------------------------------------------------------------

class TestMockStorageClient:

    @pytest.fixture
    def clock(self):
        times = iter(ts(i) for i in range(1000))
        return lambda: next(times)

    @pytest.mark.asyncio
    async def test_upload_then_metadata_round_trip(self, clock):
        client = MockStorageClient(make_config(), clock=clock)

        result = await client.upload_file("k.wav", b"RIFF1234", "audio/wav")
        metadata = await client.get_file_metadata(result.key)

        assert metadata.size == len(b"RIFF1234")
        assert metadata.content_type == "audio/wav"

    @pytest.mark.asyncio
    async def test_upload_with_same_key_overwrites(self, clock):
        client = MockStorageClient(make_config(), clock=clock)

        await client.upload_file("k", b"first", "text/plain")
        await client.upload_file("k", b"second!", "text/plain")

        files = await client.list_files()
        assert len(files) == 1
        assert files[0].size == 7

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, clock):
        client = MockStorageClient(make_config(), clock=clock)
        await client.upload_file("k", b"data", "text/plain")

        await client.delete_file("k")
        await client.delete_file("k")

        assert await client.get_file_metadata("k") is None

    @pytest.mark.asyncio
    async def test_listing_spans_pages_and_sorts_newest_first(self, clock):
        client = MockStorageClient(make_config(page_size=2), clock=clock)
        for key in ["c", "a", "e", "b", "d"]:
            await client.upload_file(key, b"x", "text/plain")

        files = await client.list_files()

        assert [f.key for f in files] == ["d", "b", "e", "a", "c"]

    @pytest.mark.asyncio
    async def test_listing_filters_by_prefix(self, clock):
        client = MockStorageClient(make_config(), clock=clock)
        await client.upload_file("albums/one.png", b"x", "image/png")
        await client.upload_file("other.png", b"x", "image/png")

        files = await client.list_files("albums/")

        assert [f.key for f in files] == ["albums/one.png"]


class TestFactory:

    def test_mock_mode_needs_no_config(self):
        assert isinstance(create_storage_client(mock_mode=True), MockStorageClient)

    def test_real_mode_requires_config(self):
        with pytest.raises(ValueError):
            create_storage_client()

    def test_real_mode_builds_r2_client(self):
        assert isinstance(create_storage_client(make_config()), R2StorageClient)


class TestUnusableEndpoint:

    def test_construction_does_not_build_boto3_client(self):
        config = StorageConfig(
            access_key_id="",
            secret_access_key="",
            bucket_name=BUCKET,
            endpoint_url="https://.r2.cloudflarestorage.com",
        )

        client = R2StorageClient(config)

        assert client.get_public_url("k") == "/k"

    @pytest.mark.asyncio
    async def test_calls_raise_storage_error(self):
        config = StorageConfig(
            access_key_id="",
            secret_access_key="",
            bucket_name=BUCKET,
            endpoint_url="https://.r2.cloudflarestorage.com",
        )
        client = R2StorageClient(config)

        with pytest.raises(StorageError):
            await client.list_files()
        with pytest.raises(StorageError):
            await client.get_file_metadata("k")
