import io
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError
from botocore.response import StreamingBody

from app.core.errors import BlobNotFound, StorageFault
from app.services.blob_service import BlobService


def _client_error(code, operation):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def _body(data):
    return StreamingBody(io.BytesIO(data), len(data))


@pytest.fixture()
def s3():
    return MagicMock()


@pytest.fixture()
def blobs(s3):
    return BlobService(client=s3, bucket="photos-test")


def test_store_puts_object_with_type_and_owner(blobs, s3):
    stream = io.BytesIO(b"jpeg bytes")

    key = blobs.store(stream, "abc.jpg", "image/jpeg", "user-1")

    assert key == "abc.jpg"
    s3.put_object.assert_called_once_with(
        Bucket="photos-test",
        Key="abc.jpg",
        Body=stream,
        ContentType="image/jpeg",
        Metadata={"owner-id": "user-1"},
    )


def test_store_failure_is_storage_fault(blobs, s3):
    s3.put_object.side_effect = _client_error("InternalError", "PutObject")

    with pytest.raises(StorageFault):
        blobs.store(io.BytesIO(b"x"), "abc.jpg", "image/jpeg", "user-1")


def test_open_read_returns_fresh_seekable_stream(blobs, s3):
    s3.get_object.side_effect = lambda **kwargs: {
        "Body": _body(b"image data"),
        "ContentType": "image/png",
    }

    first = blobs.open_read("abc.png")
    second = blobs.open_read("abc.png")

    assert first.body.read() == b"image data"
    assert first.body.seekable()
    assert second.body.read() == b"image data"
    assert first.content_type == "image/png"
    s3.get_object.assert_called_with(Bucket="photos-test", Key="abc.png")
    first.close()
    second.close()


@pytest.mark.parametrize("code", ["NoSuchKey", "404"])
def test_open_read_missing_key(blobs, s3, code):
    s3.get_object.side_effect = _client_error(code, "GetObject")

    with pytest.raises(BlobNotFound):
        blobs.open_read("missing.jpg")


def test_open_read_other_errors_are_storage_faults(blobs, s3):
    s3.get_object.side_effect = _client_error("AccessDenied", "GetObject")

    with pytest.raises(StorageFault):
        blobs.open_read("abc.jpg")


def test_open_read_connection_error_is_storage_fault(blobs, s3):
    s3.get_object.side_effect = EndpointConnectionError(endpoint_url="http://minio:9000")

    with pytest.raises(StorageFault):
        blobs.open_read("abc.jpg")


def test_delete(blobs, s3):
    blobs.delete("abc.jpg")

    s3.delete_object.assert_called_once_with(Bucket="photos-test", Key="abc.jpg")


def test_ensure_bucket_creates_missing_bucket(blobs, s3):
    s3.head_bucket.side_effect = _client_error("404", "HeadBucket")

    blobs.ensure_bucket()

    s3.create_bucket.assert_called_once_with(Bucket="photos-test")


def test_ensure_bucket_leaves_existing_bucket(blobs, s3):
    blobs.ensure_bucket()

    s3.create_bucket.assert_not_called()
