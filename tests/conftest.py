"""Shared fixtures for all tests."""

from typing import Final

import boto3
import pytest
from moto import mock_aws

from server.apps.files.infrastructure.storage import ObjectStorage

BUCKET: Final = 'elfinder'


@pytest.fixture
def mock_s3():
    """Mock S3 service with elfinder bucket.

    Yields:
        boto3 S3 resource with elfinder bucket created.
    """
    with mock_aws():
        # Create S3 resource
        conn = boto3.resource('s3', region_name='us-east-1')

        # Create bucket
        conn.create_bucket(Bucket=BUCKET)

        yield conn


@pytest.fixture
def bucket(mock_s3):
    """Mocked elfinder bucket.

    Args:
        mock_s3: Mock S3 fixture.

    Returns:
        boto3 Bucket resource.
    """
    return mock_s3.Bucket(BUCKET)


@pytest.fixture
def storage(mock_s3):
    """Create storage backend talking to the mocked bucket.

    Args:
        mock_s3: Mock S3 fixture.

    Returns:
        ObjectStorage instance.
    """
    return ObjectStorage(
        bucket_name=BUCKET,
        access_key='testing',
        secret_key='testing',
        region_name='us-east-1',
    )
