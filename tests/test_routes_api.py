"""Tests for :mod:`directory.routes.api`."""

from unittest import TestCase, mock
from io import BytesIO
import json

from directory.controllers.profiles import INVALID_DATA_FORMAT
from directory.domain import MagicLinkRequest, MagicLinkVerification
from directory.services import magic_links

from .util import create_test_app

EDUCATION = [{'university': 'State U', 'degreeName': 'Maths',
              'degreeType': 'BA', 'startMonth': 'September',
              'startYear': '2011'}]
EXPERIENCES = [{'company': 'Acme', 'location': 'Remote',
                'position': 'Engineer', 'startMonth': 'May',
                'startYear': '2019'}]


class TestAPIRoutes(TestCase):
    """Exercise the API through the test client."""

    def setUp(self):
        """Create an app with stand-ins for the remote services."""
        self.app = create_test_app()
        self.store = mock.MagicMock()
        self.app.extensions['blob_store'].client = self.store
        self.client = self.app.test_client()

        send = mock.patch.object(magic_links, 'send_magic_link',
                                 return_value=MagicLinkRequest('request-1',
                                                               'user-1'))
        authenticate = mock.patch.object(magic_links, 'authenticate')
        self.mock_send = send.start()
        self.mock_authenticate = authenticate.start()
        self.addCleanup(send.stop)
        self.addCleanup(authenticate.stop)

    def sign_up_and_verify(self, name: str, email: str):
        """Sign up, follow the magic link, and get the response."""
        response = self.client.post('/api/users/sign-up',
                                    json={'name': name, 'email': email})
        self.assertEqual(response.status_code, 201)
        self.mock_authenticate.return_value = \
            MagicLinkVerification(email=email, issuer_user_id='user-1')
        return self.client.post('/api/users/verify-magic-link',
                                json={'token': 'link-token'},
                                headers={'User-Agent': 'tests'})

    def test_health(self):
        """The service reports that it is up."""
        response = self.client.get('/api/health')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['status'], 'ok')

    def test_session_cookie(self):
        """Verifying a magic link sets a long-lived, HTTP-only cookie."""
        response = self.sign_up_and_verify('Ada Lovelace', 'ada@x.com')
        self.assertEqual(response.status_code, 200)
        self.assertNotIn('cookies', response.get_json())
        cookie = response.headers.getlist('Set-Cookie')[0]
        self.assertTrue(cookie.startswith('session='))
        self.assertIn('HttpOnly', cookie)
        self.assertIn('SameSite=Lax', cookie)
        self.assertIn('Path=/', cookie)
        self.assertIn(f'Max-Age={30 * 24 * 60 * 60}', cookie)
        self.assertNotIn('Secure', cookie)

        response = self.client.get('/api/users/get-user')
        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertEqual(data['user']['email'], 'ada@x.com')
        self.assertEqual(data['session']['userAgent'], 'tests')

    def test_sign_up_form_encoded(self):
        """Form-encoded requests are accepted too."""
        response = self.client.post('/api/users/sign-up', data={
            'name': 'Grace Hopper', 'email': 'grace@example.com'
        })
        self.assertEqual(response.status_code, 201)
        response = self.client.post('/api/users/sign-up', data={
            'name': 'Grace Hopper', 'email': 'GRACE@example.com'
        })
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.get_json()['error'], 'Conflict')

    def test_profile_lifecycle(self):
        """A user creates, reads, updates, and deletes their profile."""
        self.sign_up_and_verify('Ada Lovelace', 'ada@x.com')

        response = self.client.post('/api/profiles', data={
            'name': 'Ada Lovelace',
            'email': 'ada@x.com',
            'class': '2015',
            'education': json.dumps(EDUCATION),
            'experiences': json.dumps(EXPERIENCES),
            'avatar': (BytesIO(b'png bytes'), 'me.png', 'image/png')
        }, content_type='multipart/form-data')
        self.assertEqual(response.status_code, 201, response.get_json())
        profile = response.get_json()['profile']
        self.assertTrue(profile['avatar'].startswith(
            'https://files.example.com/avatars/me_'
        ))
        self.assertEqual(profile['education'][0]['degreeName'], 'Maths')
        self.store.put_object.assert_called_once()

        response = self.client.get('/api/profiles/me')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['profile']['id'], profile['id'])

        response = self.client.get(f'/api/profiles/{profile["userId"]}')
        self.assertEqual(response.status_code, 200)

        response = self.client.get('/api/profiles')
        self.assertEqual(len(response.get_json()['profiles']), 1)

        response = self.client.put('/api/profiles',
                                   json={'house': 'Ravenclaw',
                                         'class': 2016})
        self.assertEqual(response.status_code, 200)
        updated = response.get_json()['profile']
        self.assertEqual(updated['house'], 'Ravenclaw')
        self.assertEqual(updated['class'], '2016')
        self.assertEqual(updated['experiences'], profile['experiences'])

        response = self.client.post('/api/profiles', json={
            'name': 'Ada Lovelace', 'email': 'ada@x.com', 'class': '2015',
            'education': EDUCATION
        })
        self.assertEqual(response.status_code, 409)

        response = self.client.delete('/api/profiles')
        self.assertEqual(response.status_code, 200)
        self.store.delete_object.assert_called_once()
        response = self.client.get('/api/profiles/me')
        self.assertEqual(response.status_code, 404)

    def test_undecodable_records(self):
        """Records that are not valid JSON are rejected."""
        self.sign_up_and_verify('Ada Lovelace', 'ada@x.com')
        response = self.client.post('/api/profiles', data={
            'name': 'Ada Lovelace', 'email': 'ada@x.com', 'class': '2015',
            'education': '[{"university": '
        })
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['message'], INVALID_DATA_FORMAT)

    def test_sign_out(self):
        """After signing out, the session no longer works."""
        self.sign_up_and_verify('Ada Lovelace', 'ada@x.com')
        response = self.client.post('/api/users/sign-out')
        self.assertEqual(response.status_code, 200)
        cookie = response.headers.getlist('Set-Cookie')[0]
        self.assertTrue(cookie.startswith('session=;'))
        self.assertIn('Max-Age=0', cookie)

        response = self.client.get('/api/profiles/me')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json()['error'], 'Unauthorized')
        response = self.client.post('/api/users/sign-out')
        self.assertEqual(response.status_code, 401)

    def test_anonymous(self):
        """Only the listing and lookups are open to anonymous callers."""
        self.assertEqual(self.client.get('/api/profiles').status_code, 200)
        self.assertEqual(self.client.get('/api/profiles/me').status_code,
                         401)
        self.assertEqual(self.client.delete('/api/profiles').status_code,
                         401)
        self.assertEqual(self.client.get('/api/profiles/nope').status_code,
                         400)

    def test_files(self):
        """Files can be uploaded, located, and deleted."""
        response = self.client.post('/api/files/upload-file', data={
            'file': (BytesIO(b'%PDF'), 'My CV.pdf', 'application/pdf')
        }, content_type='multipart/form-data')
        self.assertEqual(response.status_code, 201)
        key = response.get_json()['file']['key']
        self.assertTrue(key.startswith('My_CV_'))

        response = self.client.get('/api/files/get-file-url/resumes/cv.pdf')
        self.assertEqual(response.get_json()['url'],
                         'https://files.example.com/resumes/cv.pdf')

        response = self.client.delete('/api/files/delete-file/resumes/cv.pdf')
        self.assertEqual(response.status_code, 200)
        self.store.delete_object.assert_called_once_with(
            Bucket='test-bucket', Key='resumes/cv.pdf'
        )

    def test_errors_are_json(self):
        """Unknown routes and methods get JSON errors."""
        response = self.client.get('/api/nowhere')
        self.assertEqual(response.status_code, 404)
        self.assertIn('error', response.get_json())
        response = self.client.patch('/api/profiles')
        self.assertEqual(response.status_code, 405)
        self.assertIn('message', response.get_json())

    def test_request_too_large(self):
        """Requests over the size limit get a JSON 413."""
        self.app.config['MAX_CONTENT_LENGTH'] = 16
        response = self.client.post('/api/files/upload-file', data={
            'file': (BytesIO(b'x' * 1024), 'big.txt', 'text/plain')
        }, content_type='multipart/form-data')
        self.assertEqual(response.status_code, 413)
        self.assertIn('error', response.get_json())
