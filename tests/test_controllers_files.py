"""Tests for :mod:`directory.controllers.files`."""

from unittest import TestCase, mock
from io import BytesIO

from botocore.exceptions import ClientError
from werkzeug.datastructures import FileStorage

from directory import status
from directory.controllers import files as controllers

from .util import create_test_app


class TestFileControllers(TestCase):
    """Files can be stored, deleted, and located."""

    def setUp(self):
        self.app = create_test_app()
        self.client = mock.MagicMock()
        self.app.extensions['blob_store'].client = self.client
        self.context = self.app.app_context()
        self.context.push()
        self.addCleanup(self.context.pop)

    def test_upload(self):
        """An uploaded file is stored, and described in the response."""
        upload = FileStorage(stream=BytesIO(b'a,b\n1,2\n'),
                             filename='data.csv', content_type='text/csv')
        data, code, _ = controllers.upload_file(upload)
        self.assertEqual(code, status.HTTP_201_CREATED)
        described = data['file']
        self.assertEqual(described['originalName'], 'data.csv')
        self.assertEqual(described['size'], 8)
        self.assertEqual(described['contentType'], 'text/csv')
        self.assertTrue(described['key'].startswith('data_'))
        self.assertEqual(described['url'],
                         f'https://files.example.com/{described["key"]}')
        self.client.put_object.assert_called_once()

    def test_upload_nothing(self):
        """A file is required."""
        _, code, _ = controllers.upload_file(None)
        self.assertEqual(code, status.HTTP_400_BAD_REQUEST)

    def test_upload_invalid_type(self):
        """Only known file types are accepted."""
        upload = FileStorage(stream=BytesIO(b'MZ'), filename='setup.exe')
        data, code, _ = controllers.upload_file(upload)
        self.assertEqual(code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(data['error'], 'InvalidFileType')
        self.client.put_object.assert_not_called()

    def test_upload_too_large(self):
        """Files over the size limit are rejected before they are stored."""
        self.app.config['MAX_FILE_SIZE'] = 16
        upload = FileStorage(stream=BytesIO(b'x' * 17), filename='big.txt',
                             content_type='text/plain')
        data, code, _ = controllers.upload_file(upload)
        self.assertEqual(code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(data['error'], 'ValidationError')
        self.client.put_object.assert_not_called()

        upload = FileStorage(stream=BytesIO(b'x' * 16), filename='ok.txt',
                             content_type='text/plain')
        _, code, _ = controllers.upload_file(upload)
        self.assertEqual(code, status.HTTP_201_CREATED)

    def test_upload_fails(self):
        """A failure in the object store is a server error."""
        self.client.put_object.side_effect = ClientError(
            {'Error': {'Code': 'InternalError', 'Message': 'oops'}},
            'PutObject'
        )
        upload = FileStorage(stream=BytesIO(b'%PDF'), filename='cv.pdf')
        _, code, _ = controllers.upload_file(upload)
        self.assertEqual(code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    def test_delete(self):
        """An existing file is deleted."""
        data, code, _ = controllers.delete_file('resumes/cv.pdf')
        self.assertEqual(code, status.HTTP_200_OK)
        self.assertEqual(data['key'], 'resumes/cv.pdf')
        self.client.delete_object.assert_called_once_with(
            Bucket='test-bucket', Key='resumes/cv.pdf'
        )

    def test_delete_missing(self):
        """Deleting a file that does not exist is a 404."""
        self.client.head_object.side_effect = ClientError(
            {'Error': {'Code': '404', 'Message': 'Not Found'}}, 'HeadObject'
        )
        _, code, _ = controllers.delete_file('resumes/cv.pdf')
        self.assertEqual(code, status.HTTP_404_NOT_FOUND)
        self.client.delete_object.assert_not_called()

    def test_delete_without_key(self):
        """A key is required."""
        _, code, _ = controllers.delete_file('')
        self.assertEqual(code, status.HTTP_400_BAD_REQUEST)

    def test_get_file_url(self):
        """The public URL of a file is derived from its key."""
        data, code, _ = controllers.get_file_url('avatars/me.png')
        self.assertEqual(code, status.HTTP_200_OK)
        self.assertEqual(data['url'],
                         'https://files.example.com/avatars/me.png')
        _, code, _ = controllers.get_file_url('')
        self.assertEqual(code, status.HTTP_400_BAD_REQUEST)
