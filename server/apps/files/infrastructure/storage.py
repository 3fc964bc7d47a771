"""Custom storage backend for S3-compatible storage.

The bucket is a flat key space. Keys ending with ``/`` are directory
markers (zero-length objects), every other key is a file.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import IO, Final, final

from botocore.exceptions import BotoCoreError, ClientError
from storages.backends.s3 import S3Storage

from server.apps.files.exceptions import ObjectNotFoundError

logger = logging.getLogger(__name__)

DELIMITER: Final = '/'

# Returned by `modified_time` for keys that do not exist
EPOCH: Final = datetime.fromtimestamp(0, tz=UTC)

_NOT_FOUND_CODES: Final = frozenset(('404', 'NoSuchKey', 'NotFound'))

_STORE_ERRORS: Final = (ClientError, BotoCoreError)


@final
@dataclass(frozen=True)
class Listing:
    """Single level listing of a prefix.

    Both lists hold bare names relative to the listed prefix.
    """

    folders: list[str] = field(default_factory=list)
    files: list[str] = field(default_factory=list)


def _is_not_found(error: ClientError) -> bool:
    return error.response.get('Error', {}).get('Code') in _NOT_FOUND_CODES


@final
class ObjectStorage(S3Storage):
    """S3 storage backend exposing key level operations.

    Extends django-storages S3Storage with:
    - Delimited single level listings
    - Existence, size and mtime probes that never raise for missing keys
    - Marker creation, overwrite, copy and copy-then-delete primitives
    - Enhanced error logging

    Mutating calls return ``False`` on store errors instead of raising.
    """

    @property
    def client(self):
        """Low level boto3 client sharing the resource connection."""
        return self.connection.meta.client

    def list_prefix(self, prefix: str) -> Listing:
        """List direct children of a prefix.

        Deeper descendants collapse into folder names. The prefix marker
        itself and root pseudo prefixes are excluded.

        Args:
            prefix: Directory key, with trailing delimiter (or empty).

        Returns:
            Listing with folder and file names.
        """
        listing = Listing()
        paginator = self.client.get_paginator('list_objects_v2')
        pages = paginator.paginate(
            Bucket=self.bucket_name,
            Prefix=prefix,
            Delimiter=DELIMITER,
        )
        for page in pages:
            for common_prefix in page.get('CommonPrefixes', []):
                folder = common_prefix['Prefix']
                if folder in {'', prefix, DELIMITER}:
                    continue
                listing.folders.append(
                    folder[len(prefix):].rstrip(DELIMITER),
                )
            for obj in page.get('Contents', []):
                if obj['Key'] == prefix:
                    continue
                listing.files.append(obj['Key'][len(prefix):])

        logger.debug(
            'Listed prefix %r: %d folders, %d files',
            prefix,
            len(listing.folders),
            len(listing.files),
        )
        return listing

    def object_exists(self, key: str) -> bool:
        """Check whether an object exists at exactly this key.

        Args:
            key: Store key.

        Returns:
            True if the object exists, False for a "not found" answer.
        """
        return self._head(key) is not None

    def prefix_exists(self, prefix: str) -> bool:
        """Check whether any object lives under a prefix.

        Directories created by uploading nested keys have no marker,
        they only exist through their descendants.

        Args:
            prefix: Directory key with trailing delimiter.

        Returns:
            True if at least one key starts with the prefix.
        """
        response = self.client.list_objects_v2(
            Bucket=self.bucket_name,
            Prefix=prefix,
            MaxKeys=1,
        )
        return response.get('KeyCount', 0) > 0

    def object_size(self, key: str) -> int:
        """Get object size in bytes, 0 when the key does not exist."""
        head = self._head(key)
        if head is None:
            return 0
        return head['ContentLength']

    def modified_time(self, key: str) -> datetime:
        """Get object modification time, `EPOCH` when it does not exist."""
        head = self._head(key)
        if head is None:
            return EPOCH
        return head['LastModified']

    def create_marker(self, key: str) -> bool:
        """Write a zero-length object.

        Used both for directory markers and for empty files.

        Args:
            key: Store key to create.

        Returns:
            True if the object was written.
        """
        return self.write(key, b'')

    def write(self, key: str, content: bytes | IO[bytes]) -> bool:
        """Overwrite the full content of an object.

        Args:
            key: Store key to write.
            content: Bytes or a readable binary file-like object.

        Returns:
            True if the object was written, False on store errors.
        """
        extra_args = {}
        if self.default_acl:
            extra_args['ACL'] = self.default_acl
        try:
            logger.info('Writing object to storage: %s', key)
            self.client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=content,
                **extra_args,
            )
        except _STORE_ERRORS:
            logger.exception('Failed to write object to storage: %s', key)
            return False
        return True

    def read(self, key: str) -> bytes:
        """Read the full content of an object.

        Args:
            key: Store key to read.

        Returns:
            Object content.

        Raises:
            ObjectNotFoundError: If the key does not exist.
        """
        try:
            response = self.client.get_object(
                Bucket=self.bucket_name,
                Key=key,
            )
        except ClientError as error:
            if _is_not_found(error):
                raise ObjectNotFoundError(key) from error
            raise
        return response['Body'].read()

    def copy_object(self, source: str, destination: str) -> bool:
        """Server-side copy of an object.

        Args:
            source: Source store key.
            destination: Destination store key.

        Returns:
            True if the copy succeeded.
        """
        copy_source = {
            'Bucket': self.bucket_name,
            'Key': source,
        }
        extra_args = {}
        if self.default_acl:
            extra_args['ACL'] = self.default_acl
        try:
            logger.info('Copying object: %s -> %s', source, destination)
            self.bucket.copy(copy_source, destination, ExtraArgs=extra_args)
        except _STORE_ERRORS:
            logger.exception('Copy failed: %s -> %s', source, destination)
            return False
        return True

    def copy_then_delete(self, source: str, destination: str) -> bool:
        """Move/rename an object in S3 storage.

        S3 doesn't support native rename, so this performs a server-side
        copy followed by deletion of the source.

        Note: This operation is not atomic. If copy succeeds but delete
        fails, both objects will exist (source becomes orphaned). The move
        is still reported as successful since no data is lost.

        Args:
            source: Source store key.
            destination: Destination store key.

        Returns:
            True if the copy succeeded.
        """
        if not self.copy_object(source, destination):
            return False
        if not self.delete_object(source):
            logger.warning(
                'Moved %s -> %s but the source was left behind',
                source,
                destination,
            )
        return True

    def delete_object(self, key: str) -> bool:
        """Delete an object.

        Args:
            key: Store key to delete.

        Returns:
            True if the delete request succeeded.
        """
        try:
            logger.info('Deleting object from storage: %s', key)
            self.client.delete_object(Bucket=self.bucket_name, Key=key)
        except _STORE_ERRORS:
            logger.exception('Failed to delete object from storage: %s', key)
            return False
        return True

    def _head(self, key: str) -> dict | None:
        if not key:
            return None
        try:
            return self.client.head_object(Bucket=self.bucket_name, Key=key)
        except ClientError as error:
            if _is_not_found(error):
                return None
            raise
