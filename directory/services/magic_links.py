"""
Integration with the Stytch magic-link service.

Stytch emails a single-use link to the user. When the user follows the link,
the front-end hands the token from the link back to us, and we ask Stytch
whether it is genuine and which email address it was sent to.
"""

import json
from functools import wraps
from typing import Any, Dict, Optional
from urllib.parse import urljoin

import requests
from flask import current_app
from werkzeug.local import LocalProxy

from directory import logging
from directory.domain import MagicLinkRequest, MagicLinkVerification

logger = logging.getLogger(__name__)


class RequestRejected(ValueError):
    """The magic-link service refused the request, e.g. a bad token."""

    def __init__(self, message: str, error_type: Optional[str] = None,
                 status_code: Optional[int] = None) -> None:
        super(RequestRejected, self).__init__(message)
        self.error_type = error_type
        self.status_code = status_code


class Unavailable(IOError):
    """The magic-link service could not be reached, or failed."""


class MagicLinkSession(object):
    """An HTTP session with the magic-link service."""

    def __init__(self, project_id: str, secret: str, api_url: str,
                 redirect_url: str, timeout: float = 10.) -> None:
        """Create a new HTTP session."""
        self.api_url = api_url if api_url.endswith('/') else f'{api_url}/'
        self.redirect_url = redirect_url
        self.timeout = timeout
        self._session = requests.Session()
        self._session.auth = (project_id, secret)
        self._adapter = requests.adapters.HTTPAdapter(max_retries=2)
        self._session.mount('https://', self._adapter)
        logger.debug('New MagicLinkSession with api_url = %s', self.api_url)

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self._session.post(urljoin(self.api_url, path),
                                          json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise Unavailable(f'Could not reach magic-link service: {e}') \
                from e
        try:
            data: Dict[str, Any] = response.json()
        except (json.decoder.JSONDecodeError, ValueError):
            data = {}
        if response.status_code >= 500:
            logger.error('Magic-link service responded with %i',
                         response.status_code)
            raise Unavailable(
                f'Magic-link service failed: {response.status_code}'
            )
        if not response.ok:
            logger.debug('Magic-link service rejected request: %i %s',
                         response.status_code, data.get('error_type'))
            raise RequestRejected(
                data.get('error_message', 'Request was rejected'),
                error_type=data.get('error_type'),
                status_code=response.status_code
            )
        return data

    def send(self, email: str) -> MagicLinkRequest:
        """
        Email a sign-in or sign-up link to ``email``.

        Returns
        -------
        :class:`.MagicLinkRequest`

        Raises
        ------
        :class:`.RequestRejected`
            If the service refused to send a link to this address.
        :class:`.Unavailable`
            If the service could not be reached.

        """
        logger.debug('Request magic link for %s', email)
        data = self._post('magic_links/email/login_or_create', {
            'email': email,
            'login_magic_link_url': self.redirect_url,
            'signup_magic_link_url': self.redirect_url
        })
        return MagicLinkRequest(request_id=data.get('request_id', ''),
                                issuer_user_id=data.get('user_id'))

    def authenticate(self, token: str) -> MagicLinkVerification:
        """
        Verify a magic-link token.

        Returns
        -------
        :class:`.MagicLinkVerification`
            The email is ``None`` if the service did not tell us which
            address the link was sent to.

        Raises
        ------
        :class:`.RequestRejected`
            If the token is invalid, expired, or already used.
        :class:`.Unavailable`

        """
        data = self._post('magic_links/authenticate', {'token': token})
        emails = (data.get('user') or {}).get('emails') or []
        email = emails[0].get('email') if emails else None
        return MagicLinkVerification(
            email=email,
            issuer_user_id=data.get('user_id'),
            session_token=data.get('session_token'),
            session_jwt=data.get('session_jwt')
        )


def init_app(app: LocalProxy) -> None:
    """Create the magic-link session, once, for this application."""
    config = app.config
    config.setdefault('STYTCH_PROJECT_ID', '')
    config.setdefault('STYTCH_SECRET', '')
    config.setdefault('STYTCH_API_URL', 'https://test.stytch.com/v1/')
    config.setdefault('MAGIC_LINK_REDIRECT_URL',
                      'http://localhost:3000/verify-magic-link')
    config.setdefault('STYTCH_TIMEOUT', 10.)
    if not config['STYTCH_PROJECT_ID'] or not config['STYTCH_SECRET']:
        logger.warning('Magic-link service credentials are not configured')
    app.extensions['magic_links'] = MagicLinkSession(
        project_id=config['STYTCH_PROJECT_ID'],
        secret=config['STYTCH_SECRET'],
        api_url=config['STYTCH_API_URL'],
        redirect_url=config['MAGIC_LINK_REDIRECT_URL'],
        timeout=config['STYTCH_TIMEOUT']
    )


def current_session() -> MagicLinkSession:
    """Get the :class:`.MagicLinkSession` for the current application."""
    session: MagicLinkSession = current_app.extensions['magic_links']
    return session


@wraps(MagicLinkSession.send)
def send_magic_link(email: str) -> MagicLinkRequest:
    """Wrapper for :meth:`MagicLinkSession.send`."""
    return current_session().send(email)


@wraps(MagicLinkSession.authenticate)
def authenticate(token: str) -> MagicLinkVerification:
    """Wrapper for :meth:`MagicLinkSession.authenticate`."""
    return current_session().authenticate(token)
