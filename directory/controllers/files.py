"""Controllers for storing arbitrary files in the object store."""

from typing import Optional

from flask import current_app
from werkzeug.datastructures import FileStorage

from directory import logging, status
from directory.services import blobs

from .util import ResponseData, error, INTERNAL_ERROR, INVALID_FILE_TYPE, \
    NOT_FOUND, UPSTREAM_ERROR, VALIDATION_ERROR

logger = logging.getLogger(__name__)


def upload_file(upload: Optional[FileStorage]) -> ResponseData:
    """
    Store an uploaded file.

    Parameters
    ----------
    upload : :class:`werkzeug.datastructures.FileStorage` or None
        The ``file`` part of a multipart request.

    Returns
    -------
    dict
        Response data, describing the stored file.
    int
        Status code. 201 if all goes well.
    dict
        Headers to add to the response.

    """
    if upload is None or not upload.filename:
        return error(status.HTTP_400_BAD_REQUEST, VALIDATION_ERROR,
                     'Please select a file to upload')
    content = upload.read()
    max_size = current_app.config['MAX_FILE_SIZE']
    if len(content) > max_size:
        return error(status.HTTP_400_BAD_REQUEST, VALIDATION_ERROR,
                     f'The file exceeds the size limit of '
                     f'{max_size // (1024 * 1024)} MB')
    try:
        stored = blobs.put_file(content, upload.filename,
                                allowed_extensions=blobs.GENERIC_EXTENSIONS)
    except blobs.InvalidFileType as e:
        return error(status.HTTP_400_BAD_REQUEST, INVALID_FILE_TYPE, str(e))
    except blobs.UploadFailed as e:
        logger.error('Could not store %s: %s', upload.filename, e)
        return error(status.HTTP_500_INTERNAL_SERVER_ERROR, UPSTREAM_ERROR,
                     str(e))
    logger.info('Stored file %s', stored.key)
    data = {
        'success': True,
        'message': 'File uploaded successfully',
        'file': dict(stored.to_dict(), originalName=upload.filename)
    }
    return data, status.HTTP_201_CREATED, {}


def delete_file(key: str) -> ResponseData:
    """Delete a stored file by its key."""
    if not key:
        return error(status.HTTP_400_BAD_REQUEST, VALIDATION_ERROR,
                     'Please provide a file key to delete')
    try:
        if not blobs.file_exists(key):
            return error(status.HTTP_404_NOT_FOUND, NOT_FOUND,
                         'The specified file does not exist')
        blobs.delete_file(key)
    except (blobs.ExistenceCheckFailed, blobs.DeleteFailed) as e:
        logger.error('Could not delete %s: %s', key, e)
        return error(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR,
                     str(e))
    logger.info('Deleted file %s', key)
    return ({'success': True, 'message': 'File deleted successfully',
             'key': key}, status.HTTP_200_OK, {})


def get_file_url(key: str) -> ResponseData:
    """Get the public URL of a stored file."""
    if not key:
        return error(status.HTTP_400_BAD_REQUEST, VALIDATION_ERROR,
                     'Please provide a file key')
    return ({'success': True, 'key': key, 'url': blobs.get_file_url(key)},
            status.HTTP_200_OK, {})
