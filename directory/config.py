"""Flask configuration."""

import os
import secrets

VERSION = '0.1.0'
"""The application version."""

APP_ENV = os.environ.get('APP_ENV', os.environ.get('FLASK_ENV', 'development'))
"""Deployment environment. Cookies are only marked secure in ``production``."""

SECRET_KEY = os.environ.get('SECRET_KEY', secrets.token_urlsafe(16))
"""Sets the `Flask` secret key. Not directly used by the directory."""

LOGLEVEL = int(os.environ.get('LOGLEVEL', 20))


#################### Datastore ####################

SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URI',
                                         'sqlite:///directory.db')
"""Where users, sessions, and profiles are kept."""

SQLALCHEMY_TRACK_MODIFICATIONS = False

CREATE_DB = bool(int(os.environ.get('CREATE_DB', 0)))
"""If set, all tables are created when the application starts."""

VALIDATE_CONNECTIONS = bool(int(os.environ.get('VALIDATE_CONNECTIONS', 1)))
"""
Check the datastore and object store when the application starts.

If either is unreachable the application refuses to start, rather than
serving requests in a degraded state.
"""


#################### Magic links ####################

FRONTEND_URL = os.environ.get('FRONTEND_URL', 'http://localhost:3000')
"""Base URL of the front-end application."""

MAGIC_LINK_REDIRECT_URL = os.environ.get(
    'MAGIC_LINK_REDIRECT_URL',
    f'{FRONTEND_URL}/verify-magic-link'
)
"""Page that the emailed magic link points to, for both sign-up and sign-in."""

STYTCH_PROJECT_ID = os.environ.get('STYTCH_PROJECT_ID', '')
STYTCH_SECRET = os.environ.get('STYTCH_SECRET_TOKEN', '')

STYTCH_API_URL = os.environ.get(
    'STYTCH_API_URL',
    'https://api.stytch.com/v1/'
    if STYTCH_PROJECT_ID.startswith('project-live-')
    else 'https://test.stytch.com/v1/'
)
"""Live projects talk to the live API; anything else goes to the test API."""

STYTCH_TIMEOUT = float(os.environ.get('STYTCH_TIMEOUT', 10))
"""Seconds to wait for the magic-link service to respond."""


#################### Object store ####################

R2_ACCOUNT_ID = os.environ.get('R2_ACCOUNT_ID', '')

S3_ENDPOINT_URL = os.environ.get(
    'S3_ENDPOINT_URL',
    f'https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com'
    if R2_ACCOUNT_ID else None
)
"""
Endpoint of the S3-compatible object store.

Derived from ``R2_ACCOUNT_ID`` when that is set. If neither is set, boto3
talks to AWS S3.
"""

S3_ACCESS_KEY_ID = os.environ.get('S3_ACCESS_KEY_ID',
                                  os.environ.get('R2_ACCESS_KEY_ID'))
S3_SECRET_ACCESS_KEY = os.environ.get('S3_SECRET_ACCESS_KEY',
                                      os.environ.get('R2_SECRET_ACCESS_KEY'))
S3_BUCKET_NAME = os.environ.get('S3_BUCKET_NAME',
                                os.environ.get('R2_BUCKET_NAME', 'directory'))
S3_REGION = os.environ.get('S3_REGION', 'auto')

S3_PUBLIC_URL = os.environ.get('S3_PUBLIC_URL',
                               os.environ.get('R2_PUBLIC_URL', ''))
"""Public base URL for stored files, e.g. ``https://pub-xxx.r2.dev``."""


#################### Sessions ####################

AUTH_SESSION_COOKIE_NAME = os.environ.get('AUTH_SESSION_COOKIE_NAME',
                                          'session')
AUTH_SESSION_COOKIE_SECURE = bool(int(os.environ.get(
    'AUTH_SESSION_COOKIE_SECURE',
    int(APP_ENV == 'production')
)))

SESSION_DURATION_DAYS = int(os.environ.get('SESSION_DURATION_DAYS', 30))
"""How long a session stays valid after a magic link is verified."""


#################### Uploads ####################

MAX_FILE_SIZE = int(os.environ.get('MAX_FILE_SIZE', 10 * 1024 * 1024))
"""Largest single file that may be uploaded, in bytes."""

MAX_CONTENT_LENGTH = int(os.environ.get('MAX_CONTENT_LENGTH',
                                        25 * 1024 * 1024))
"""Largest request body Flask will accept; larger requests get a 413."""
