"""Helpers for the directory test suite."""

from typing import Any

from flask import Flask

from directory.factory import create_web_app

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'CREATE_DB': True,
    'VALIDATE_CONNECTIONS': False,
    'S3_ENDPOINT_URL': 'https://storage.example.com',
    'S3_ACCESS_KEY_ID': 'test-key',
    'S3_SECRET_ACCESS_KEY': 'test-secret',
    'S3_BUCKET_NAME': 'test-bucket',
    'S3_PUBLIC_URL': 'https://files.example.com',
    'STYTCH_PROJECT_ID': 'project-test-00000000',
    'STYTCH_SECRET': 'secret-test-00000000',
    'STYTCH_API_URL': 'https://test.stytch.com/v1/',
    'AUTH_SESSION_COOKIE_SECURE': False
}


def create_test_app(**overrides: Any) -> Flask:
    """Create an app with an in-memory database and no remote checks."""
    return create_web_app(dict(TEST_CONFIG, **overrides))
