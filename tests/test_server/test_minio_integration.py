"""Integration tests against a running MinIO server.

These tests verify that the object storage backend works with a real
S3-compatible server. They are skipped unless selected with
``-m integration``.
"""
import os
import uuid
from typing import Final

import boto3
import pytest
from botocore.client import BaseClient
from botocore.exceptions import ClientError

from server.apps.files.exceptions import ObjectNotFoundError
from server.apps.files.infrastructure.storage import EPOCH, ObjectStorage

_TEST_BUCKET: Final = 'elfinder-integration'
_TEST_FILE_CONTENT: Final = b'Hello from MinIO integration test!'


@pytest.fixture
def minio_settings() -> dict[str, str]:
    """Connection settings for MinIO.

    Returns:
        Endpoint and credentials.
    """
    return {
        'endpoint_url': os.getenv('MINIO_ENDPOINT', 'http://minio:9000'),
        'access_key': os.getenv('MINIO_ROOT_USER', 'minioadmin'),
        'secret_key': os.getenv('MINIO_ROOT_PASSWORD', 'minioadmin'),
    }


@pytest.fixture
def s3_client(minio_settings: dict[str, str]) -> BaseClient:
    """Create S3 client for MinIO.

    Args:
        minio_settings: Connection settings.

    Returns:
        Configured boto3 S3 client for MinIO.
    """
    return boto3.client(
        's3',
        endpoint_url=minio_settings['endpoint_url'],
        aws_access_key_id=minio_settings['access_key'],
        aws_secret_access_key=minio_settings['secret_key'],
        region_name='us-east-1',
    )


@pytest.fixture
def minio_storage(
    s3_client: BaseClient,
    minio_settings: dict[str, str],
) -> ObjectStorage:
    """Ensure test bucket exists and create a storage backend for it.

    Args:
        s3_client: boto3 S3 client.
        minio_settings: Connection settings.

    Returns:
        ObjectStorage talking to MinIO.
    """
    try:
        s3_client.head_bucket(Bucket=_TEST_BUCKET)
    except ClientError:
        s3_client.create_bucket(Bucket=_TEST_BUCKET)

    return ObjectStorage(
        bucket_name=_TEST_BUCKET,
        region_name='us-east-1',
        **minio_settings,
    )


@pytest.fixture
def prefix() -> str:
    """Unique directory key so runs do not see each other.

    Returns:
        Prefix with trailing delimiter.
    """
    return f'run-{uuid.uuid4().hex}/'


@pytest.mark.integration
def test_s3_client_connection(s3_client: BaseClient) -> None:
    """Test that S3 client can connect to MinIO."""
    response = s3_client.list_buckets()
    assert 'Buckets' in response


@pytest.mark.integration
def test_write_and_read(minio_storage: ObjectStorage, prefix: str) -> None:
    """Test objects are written, probed and read back.

    Args:
        minio_storage: MinIO storage backend.
        prefix: Unique prefix.
    """
    key = f'{prefix}test-file.txt'

    assert minio_storage.write(key, _TEST_FILE_CONTENT) is True

    assert minio_storage.object_exists(key) is True
    assert minio_storage.object_size(key) == len(_TEST_FILE_CONTENT)
    assert minio_storage.modified_time(key) > EPOCH
    assert minio_storage.read(key) == _TEST_FILE_CONTENT


@pytest.mark.integration
def test_listing(minio_storage: ObjectStorage, prefix: str) -> None:
    """Test delimited listings of markers and nested objects.

    Args:
        minio_storage: MinIO storage backend.
        prefix: Unique prefix.
    """
    minio_storage.create_marker(prefix)
    minio_storage.create_marker(f'{prefix}folder/')
    minio_storage.write(f'{prefix}implicit/deep.txt', b'deep')
    minio_storage.write(f'{prefix}file.txt', b'file')

    listing = minio_storage.list_prefix(prefix)

    assert sorted(listing.folders) == ['folder', 'implicit']
    assert listing.files == ['file.txt']
    assert minio_storage.prefix_exists(f'{prefix}implicit/') is True


@pytest.mark.integration
def test_copy_then_delete(minio_storage: ObjectStorage, prefix: str) -> None:
    """Test renaming objects with server-side copy.

    Args:
        minio_storage: MinIO storage backend.
        prefix: Unique prefix.
    """
    source = f'{prefix}source.txt'
    destination = f'{prefix}destination.txt'
    minio_storage.write(source, _TEST_FILE_CONTENT)

    assert minio_storage.copy_then_delete(source, destination) is True

    assert minio_storage.object_exists(source) is False
    assert minio_storage.read(destination) == _TEST_FILE_CONTENT


@pytest.mark.integration
def test_delete_object(minio_storage: ObjectStorage, prefix: str) -> None:
    """Test deleted objects are reported missing.

    Args:
        minio_storage: MinIO storage backend.
        prefix: Unique prefix.
    """
    key = f'{prefix}gone.txt'
    minio_storage.write(key, _TEST_FILE_CONTENT)

    assert minio_storage.delete_object(key) is True

    assert minio_storage.object_exists(key) is False
    with pytest.raises(ObjectNotFoundError):
        minio_storage.read(key)
