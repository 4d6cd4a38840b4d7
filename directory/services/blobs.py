"""
Integration with the S3-compatible object store for uploaded files.

Avatars and resumes are written to the store under collision-resistant keys,
and are served to browsers directly from the store's public URL.
"""

from functools import wraps
from typing import Any, Dict, Iterable, Optional
from urllib.parse import urlparse
import re
import secrets
import time

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app
from werkzeug.local import LocalProxy

from directory import logging
from directory.domain import StoredFile

logger = logging.getLogger(__name__)

IMAGE_AND_DOCUMENT_EXTENSIONS = (
    'jpg', 'jpeg', 'png', 'gif', 'webp', 'svg',
    'pdf', 'doc', 'docx'
)
"""Extensions accepted for profile avatars and resumes."""

GENERIC_EXTENSIONS = IMAGE_AND_DOCUMENT_EXTENSIONS + (
    'xls', 'xlsx', 'ppt', 'pptx', 'txt', 'csv', 'zip', 'rar'
)
"""Extensions accepted by the generic file upload endpoint."""

MIME_TYPES = {
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'png': 'image/png',
    'gif': 'image/gif',
    'webp': 'image/webp',
    'svg': 'image/svg+xml',
    'pdf': 'application/pdf',
    'doc': 'application/msword',
    'docx': 'application/vnd.openxmlformats-officedocument'
            '.wordprocessingml.document',
    'xls': 'application/vnd.ms-excel',
    'xlsx': 'application/vnd.openxmlformats-officedocument'
            '.spreadsheetml.sheet',
    'ppt': 'application/vnd.ms-powerpoint',
    'pptx': 'application/vnd.openxmlformats-officedocument'
            '.presentationml.presentation',
    'txt': 'text/plain',
    'csv': 'text/csv',
    'zip': 'application/zip',
    'rar': 'application/vnd.rar'
}
DEFAULT_CONTENT_TYPE = 'application/octet-stream'

_UNSAFE = re.compile(r'[^a-zA-Z0-9\-_]')


class InvalidFileType(ValueError):
    """The file's extension is not one we accept."""


class UploadFailed(RuntimeError):
    """The object store refused or failed to write a file."""


class DeleteFailed(RuntimeError):
    """The object store failed to delete a file."""


class ExistenceCheckFailed(RuntimeError):
    """Could not determine whether a file exists."""


class ConnectionFailed(RuntimeError):
    """The object store is unreachable or misconfigured."""


def extension_of(filename: str) -> str:
    """Get the lower-cased extension of ``filename``, or ``''``."""
    _, dot, extension = filename.rpartition('.')
    return extension.lower() if dot else ''


def sanitize(name: str) -> str:
    """Replace anything but letters, digits, dashes and underscores."""
    return _UNSAFE.sub('_', name)


def generate_key(original_name: str, folder: Optional[str] = None) -> str:
    """
    Generate a storage key for an uploaded file.

    The key is made from the sanitized base name, the current time in
    milliseconds, and 64 random bits, so that two uploads of the same file in
    the same millisecond still get different keys.
    """
    base, dot, extension = original_name.rpartition('.')
    if not dot:
        base, extension = original_name, ''
    timestamp = int(time.time() * 1000)
    key = f'{sanitize(base)}_{timestamp}_{secrets.token_hex(8)}'
    if extension:
        key = f'{key}.{extension}'
    return f'{folder}/{key}' if folder else key


def content_type_for(filename: str) -> str:
    """Look up the MIME type for a filename by its extension."""
    return MIME_TYPES.get(extension_of(filename), DEFAULT_CONTENT_TYPE)


class BlobStore(object):
    """
    Manages a connection to the object store.

    The boto3 client is thread safe and pools its own connections; this class
    holds it together with the bucket and public URL configuration.
    """

    def __init__(self, bucket: str, public_url: str,
                 endpoint_url: Optional[str] = None,
                 access_key_id: Optional[str] = None,
                 secret_access_key: Optional[str] = None,
                 region: str = 'auto', client: Any = None) -> None:
        """Create the object store client."""
        self.bucket = bucket
        self.public_url = public_url.rstrip('/')
        if client is None:
            client = boto3.client(
                's3',
                endpoint_url=endpoint_url,
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                region_name=region,
                config=Config(signature_version='s3v4')
            )
        self.client = client
        logger.debug('New BlobStore for bucket %s at %s', bucket,
                     endpoint_url)

    def put(self, content: bytes, original_name: str,
            folder: Optional[str] = None, filename: Optional[str] = None,
            content_type: Optional[str] = None,
            metadata: Optional[Dict[str, str]] = None,
            allowed_extensions: Iterable[str] = IMAGE_AND_DOCUMENT_EXTENSIONS
            ) -> StoredFile:
        """
        Write a file to the object store.

        Parameters
        ----------
        content : bytes
        original_name : str
            Name of the file as uploaded; used to build the key and to infer
            the content type.
        folder : str or None
            Prefix for the generated key, e.g. ``avatars``.
        filename : str or None
            Use this key instead of generating one.
        content_type : str or None
            Overrides the content type inferred from the extension.
        metadata : dict or None
        allowed_extensions : iterable
            Extensions that may be stored.

        Returns
        -------
        :class:`.StoredFile`

        Raises
        ------
        :class:`.InvalidFileType`
            If the file extension is not allowed.
        :class:`.UploadFailed`
            If the object store could not store the file.

        """
        allowed = tuple(allowed_extensions)
        if extension_of(original_name) not in allowed:
            raise InvalidFileType(
                f'Invalid file type. Allowed: {", ".join(allowed)}'
            )
        key = filename or generate_key(original_name, folder)
        content_type = content_type or content_type_for(original_name)
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=content_type,
                Metadata=metadata or {}
            )
        except (ClientError, BotoCoreError) as e:
            raise UploadFailed(f'Upload failed: {e}') from e
        logger.debug('Stored %i bytes at %s', len(content), key)
        return StoredFile(key=key, url=self.url_for(key), bucket=self.bucket,
                          size=len(content), content_type=content_type)

    def delete(self, key: str) -> None:
        """
        Delete a file from the object store.

        Raises
        ------
        :class:`.DeleteFailed`

        """
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise DeleteFailed(f'Delete failed: {e}') from e
        logger.debug('Deleted %s', key)

    def exists(self, key: str) -> bool:
        """
        Check whether a file exists in the object store.

        Raises
        ------
        :class:`.ExistenceCheckFailed`
            If the store answers with anything other than found or not found.

        """
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            code = str(e.response.get('Error', {}).get('Code', ''))
            if code in ('404', 'NoSuchKey', 'NotFound'):
                return False
            raise ExistenceCheckFailed(f'Could not check {key}: {e}') from e
        except BotoCoreError as e:
            raise ExistenceCheckFailed(f'Could not check {key}: {e}') from e
        return True

    def url_for(self, key: str) -> str:
        """Get the public URL for a key."""
        return f'{self.public_url}/{key}'

    def key_for_url(self, url: str) -> str:
        """
        Get the key of a file from its public URL.

        Raises
        ------
        ValueError
            If no key can be derived from ``url``.

        """
        if self.public_url and url.startswith(f'{self.public_url}/'):
            key = url[len(self.public_url) + 1:]
        else:
            key = urlparse(url).path.lstrip('/')
        if not key:
            raise ValueError(f'No file key in {url}')
        return key

    def validate_connection(self) -> None:
        """
        Make sure that the bucket can be reached with our credentials.

        Raises
        ------
        :class:`.ConnectionFailed`

        """
        try:
            self.client.list_objects_v2(Bucket=self.bucket, MaxKeys=1)
        except (ClientError, BotoCoreError) as e:
            raise ConnectionFailed(
                f'Failed to connect to object store: {e}'
            ) from e
        logger.info('Object store connection validated')


def init_app(app: LocalProxy) -> None:
    """Create the object store client, once, for this application."""
    config = app.config
    config.setdefault('S3_BUCKET_NAME', 'directory')
    config.setdefault('S3_PUBLIC_URL', '')
    config.setdefault('S3_REGION', 'auto')
    app.extensions['blob_store'] = BlobStore(
        bucket=config['S3_BUCKET_NAME'],
        public_url=config['S3_PUBLIC_URL'],
        endpoint_url=config.get('S3_ENDPOINT_URL'),
        access_key_id=config.get('S3_ACCESS_KEY_ID'),
        secret_access_key=config.get('S3_SECRET_ACCESS_KEY'),
        region=config['S3_REGION']
    )


def current_store() -> BlobStore:
    """Get the :class:`.BlobStore` for the current application."""
    store: BlobStore = current_app.extensions['blob_store']
    return store


@wraps(BlobStore.put)
def put_file(content: bytes, original_name: str, **kwargs: Any) -> StoredFile:
    """Wrapper for :meth:`BlobStore.put`."""
    return current_store().put(content, original_name, **kwargs)


@wraps(BlobStore.delete)
def delete_file(key: str) -> None:
    """Wrapper for :meth:`BlobStore.delete`."""
    return current_store().delete(key)


@wraps(BlobStore.exists)
def file_exists(key: str) -> bool:
    """Wrapper for :meth:`BlobStore.exists`."""
    return current_store().exists(key)


@wraps(BlobStore.url_for)
def get_file_url(key: str) -> str:
    """Wrapper for :meth:`BlobStore.url_for`."""
    return current_store().url_for(key)


@wraps(BlobStore.key_for_url)
def key_for_url(url: str) -> str:
    """Wrapper for :meth:`BlobStore.key_for_url`."""
    return current_store().key_for_url(url)


@wraps(BlobStore.validate_connection)
def validate_connection() -> None:
    """Wrapper for :meth:`BlobStore.validate_connection`."""
    return current_store().validate_connection()
