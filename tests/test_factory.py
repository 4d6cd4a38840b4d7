"""Tests for :mod:`directory.factory` and the WSGI entry-point."""

import os
import tempfile
from unittest import TestCase, mock

from botocore.exceptions import ClientError

import wsgi
from directory.services import blobs
from directory.services.exceptions import Unavailable

from .util import create_test_app


class TestStartupValidation(TestCase):
    """The app refuses to start when its backends cannot be reached."""

    @mock.patch('directory.services.blobs.boto3.client')
    def test_valid_connections(self, mock_client):
        """When the database and the bucket are reachable, the app starts."""
        app = create_test_app(VALIDATE_CONNECTIONS=True)
        self.assertIn('api', app.blueprints)
        mock_client.return_value.list_objects_v2.assert_called_once_with(
            Bucket='test-bucket', MaxKeys=1
        )

    @mock.patch('directory.services.blobs.boto3.client')
    def test_object_store_unreachable(self, mock_client):
        """A bucket that cannot be listed stops the app from starting."""
        mock_client.return_value.list_objects_v2.side_effect = ClientError(
            {'Error': {'Code': 'AccessDenied', 'Message': 'Access Denied'}},
            'ListObjectsV2'
        )
        with self.assertRaises(blobs.ConnectionFailed):
            create_test_app(VALIDATE_CONNECTIONS=True)

    @mock.patch('directory.services.blobs.boto3.client')
    def test_database_unreachable(self, mock_client):
        """A database that cannot be opened stops the app from starting."""
        with tempfile.TemporaryDirectory() as tmpdir:
            missing = os.path.join(tmpdir, 'missing', 'directory.db')
            with self.assertRaises(Unavailable):
                create_test_app(VALIDATE_CONNECTIONS=True, CREATE_DB=False,
                                SQLALCHEMY_DATABASE_URI=f'sqlite:///{missing}')
        mock_client.return_value.list_objects_v2.assert_not_called()

    def test_no_validation(self):
        """Connections are not checked when validation is turned off."""
        with mock.patch.object(blobs.BlobStore, 'validate_connection') as check:
            create_test_app(VALIDATE_CONNECTIONS=False)
        check.assert_not_called()


class TestWSGIApplication(TestCase):
    """The WSGI entry-point exits when the app cannot start."""

    @mock.patch.object(wsgi, '__flask_app__', None)
    @mock.patch.object(wsgi, 'create_web_app')
    def test_startup_failure_exits(self, mock_create):
        """A failed startup check ends the process with status 1."""
        mock_create.side_effect = blobs.ConnectionFailed('no bucket')
        start_response = mock.MagicMock()
        with self.assertRaises(SystemExit) as context:
            wsgi.application({}, start_response)
        self.assertEqual(context.exception.code, 1)
        start_response.assert_not_called()

    @mock.patch.object(wsgi, '__flask_app__', None)
    @mock.patch.object(wsgi, 'create_web_app')
    def test_app_is_created_once(self, mock_create):
        """The app is created on the first request, and then reused."""
        start_response = mock.MagicMock()
        wsgi.application({}, start_response)
        wsgi.application({}, start_response)
        mock_create.assert_called_once_with()
        self.assertEqual(mock_create.return_value.call_count, 2)
