"""
Controllers for signing up, signing in, and signing out.

Nobody has a password. A user signs up with a name and an email address, and
is sent a magic link. Following the link brings them to the front-end, which
hands us the token from the link; if the magic-link service vouches for it,
we open a session and the route sets a cookie with the session token. Later
requests are authenticated by resolving that token with
:func:`resolve_session`, usually via the :func:`session_required` decorator.
"""

from datetime import datetime, timedelta
from functools import wraps
from typing import Any, Callable, Optional, Tuple

from flask import current_app
from pytz import UTC
from retry import retry
from werkzeug.datastructures import MultiDict
from wtforms import Form, StringField
from wtforms.validators import DataRequired, Length, Regexp

from directory import logging, status
from directory.domain import EMAIL_PATTERN, Session, User
from directory.services import magic_links, sessions, users
from directory.services.exceptions import NoSuchUser, SessionExpired, \
    SessionUnknown, Unavailable, UserExists

from .util import ResponseData, error, first_error, strip, \
    CONFLICT, INTERNAL_ERROR, INVALID_TOKEN, NOT_FOUND, UNAUTHORIZED, \
    UPSTREAM_ERROR, VALIDATION_ERROR

logger = logging.getLogger(__name__)

SESSION_COOKIE = 'auth_session_cookie'
"""Key of the session cookie in the ``cookies`` entry of response data."""


class SignUpForm(Form):
    """Sign-up form."""

    name = StringField('Name', filters=[strip],
                       validators=[DataRequired(), Length(min=2, max=100)])
    email = StringField('Email', filters=[strip], validators=[
        DataRequired(),
        Regexp(EMAIL_PATTERN, message='Please provide a valid email')
    ])


class SignInForm(Form):
    """Sign-in form."""

    email = StringField('Email', filters=[strip], validators=[
        DataRequired(),
        Regexp(EMAIL_PATTERN, message='Please provide a valid email')
    ])


def sign_up(form_data: MultiDict) -> ResponseData:
    """
    Create a new user, and send them a magic link.

    The user is created before the link is requested. If the magic-link
    service then fails, the user still exists and can simply sign in.

    Parameters
    ----------
    form_data : MultiDict
        Should include ``name`` and ``email``.

    Returns
    -------
    dict
        Response data.
    int
        Status code. 201 if all goes well.
    dict
        Headers to add to the response.

    """
    form = SignUpForm(form_data)
    if not form.validate():
        logger.debug('Sign-up form is not valid')
        return error(status.HTTP_400_BAD_REQUEST, VALIDATION_ERROR,
                     first_error(form))

    try:
        user = _create_user(form.name.data, form.email.data)
    except UserExists:
        logger.debug('Sign-up for existing email %s', form.email.data)
        return error(status.HTTP_409_CONFLICT, CONFLICT,
                     'An account with this email already exists')
    except Unavailable:
        logger.exception('Could not create user')
        return error(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR,
                     'An unexpected error occurred while signing up')
    logger.info('Signed up user %s', user.user_id)

    try:
        link = magic_links.send_magic_link(user.email)
    except magic_links.RequestRejected as e:
        logger.info('Magic link for new user %s was rejected: %s',
                    user.user_id, e)
        return error(status.HTTP_400_BAD_REQUEST, UPSTREAM_ERROR,
                     'Your account was created, but we could not send a '
                     'magic link. Please sign in to get a new one.')
    except magic_links.Unavailable as e:
        logger.error('Could not send magic link to new user %s: %s',
                     user.user_id, e)
        return error(status.HTTP_500_INTERNAL_SERVER_ERROR, UPSTREAM_ERROR,
                     'Your account was created, but we could not send a '
                     'magic link. Please sign in to get a new one.')

    data = {
        'success': True,
        'message': 'Magic link sent to your email',
        'user': user.to_summary(),
        'stytch': {
            'user_id': link.issuer_user_id,
            'request_id': link.request_id
        }
    }
    return data, status.HTTP_201_CREATED, {}


def sign_in(form_data: MultiDict) -> ResponseData:
    """
    Send a magic link to an existing user.

    Parameters
    ----------
    form_data : MultiDict
        Should include ``email``.

    """
    form = SignInForm(form_data)
    if not form.validate():
        logger.debug('Sign-in form is not valid')
        return error(status.HTTP_400_BAD_REQUEST, VALIDATION_ERROR,
                     first_error(form))

    try:
        user = _get_user_by_email(form.email.data)
    except NoSuchUser:
        logger.debug('Sign-in for unknown email %s', form.email.data)
        return error(status.HTTP_404_NOT_FOUND, NOT_FOUND,
                     'No account found with this email')
    except Unavailable:
        logger.exception('Could not look up user')
        return error(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR,
                     'An unexpected error occurred while signing in')

    try:
        link = magic_links.send_magic_link(user.email)
    except magic_links.RequestRejected as e:
        logger.info('Magic link for %s was rejected: %s', user.user_id, e)
        return error(status.HTTP_400_BAD_REQUEST, UPSTREAM_ERROR,
                     str(e) or 'Failed to send magic link')
    except magic_links.Unavailable as e:
        logger.error('Could not send magic link: %s', e)
        return error(status.HTTP_500_INTERNAL_SERVER_ERROR, UPSTREAM_ERROR,
                     'Failed to send magic link')

    data = {
        'success': True,
        'message': 'Magic link sent successfully',
        'user_id': link.issuer_user_id,
        'request_id': link.request_id
    }
    return data, status.HTTP_200_OK, {}


def verify_magic_link(form_data: MultiDict, ip_address: Optional[str] = None,
                      user_agent: Optional[str] = None) -> ResponseData:
    """
    Open a session for the user to whom a magic link was sent.

    Parameters
    ----------
    form_data : MultiDict
        Should include the ``token`` from the magic link.
    ip_address : str or None
        Address of the client, kept with the session.
    user_agent : str or None

    Returns
    -------
    dict
        Response data. Includes a ``cookies`` entry, which the route should
        use to set the session cookie.
    int
        Status code. 200 if all goes well.
    dict
        Headers to add to the response.

    """
    token = (form_data.get('token') or '').strip()
    if not token:
        return error(status.HTTP_400_BAD_REQUEST, VALIDATION_ERROR,
                     'Magic link token is missing')

    try:
        verification = magic_links.authenticate(token)
    except magic_links.RequestRejected as e:
        logger.debug('Magic link token was rejected: %s', e.error_type)
        return error(status.HTTP_400_BAD_REQUEST, INVALID_TOKEN,
                     'The magic link is invalid or has expired')
    except magic_links.Unavailable as e:
        logger.error('Could not verify magic link: %s', e)
        return error(status.HTTP_500_INTERNAL_SERVER_ERROR, UPSTREAM_ERROR,
                     'An unexpected error occurred during verification')

    if not verification.email:
        return error(status.HTTP_400_BAD_REQUEST, VALIDATION_ERROR,
                     'Unable to retrieve user from magic link')

    duration = timedelta(days=current_app.config['SESSION_DURATION_DAYS'])
    try:
        user = _get_user_by_email(verification.email)
        session = _create_session(user.user_id, duration, ip_address,
                                  user_agent)
    except NoSuchUser:
        logger.debug('Magic link verified for unknown email')
        return error(status.HTTP_404_NOT_FOUND, NOT_FOUND,
                     'No account found with this email')
    except Unavailable:
        logger.exception('Could not open session')
        return error(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR,
                     'An unexpected error occurred during verification')
    logger.info('Opened session %s for user %s', session.session_id,
                user.user_id)

    data = {
        'success': True,
        'message': 'Magic link verified successfully',
        'user': user.to_summary(),
        'stytch': {
            'user_id': verification.issuer_user_id,
            'session_token': verification.session_token,
            'session_jwt': verification.session_jwt
        },
        # The route should use this to set the session cookie.
        'cookies': {
            SESSION_COOKIE: (session.token, int(duration.total_seconds()))
        }
    }
    return data, status.HTTP_200_OK, {}


def sign_out(session_token: Optional[str]) -> ResponseData:
    """
    Invalidate the current session.

    The session record is kept. The response data tells the route to clear
    the session cookie.
    """
    if not session_token:
        return error(status.HTTP_401_UNAUTHORIZED, UNAUTHORIZED,
                     'Session token is required')
    try:
        session = _invalidate_session(session_token)
    except SessionUnknown:
        return error(status.HTTP_401_UNAUTHORIZED, UNAUTHORIZED,
                     'Invalid session token')
    except Unavailable:
        logger.exception('Could not invalidate session')
        return error(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR,
                     'An unexpected error occurred while signing out')
    logger.info('Signed out of session %s', session.session_id)
    data = {
        'success': True,
        'message': 'Successfully signed out',
        'cookies': {SESSION_COOKIE: ('', 0)}
    }
    return data, status.HTTP_200_OK, {}


def get_user(session_token: Optional[str]) -> ResponseData:
    """Get the user and session identified by a session token."""
    try:
        user, session = _authenticate(session_token)
    except (SessionUnknown, SessionExpired) as e:
        return error(status.HTTP_401_UNAUTHORIZED, UNAUTHORIZED, str(e))
    except Unavailable:
        logger.exception('Could not get user')
        return error(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR,
                     'An unexpected error occurred while getting user')
    data = {
        'success': True,
        'user': user.to_dict(),
        'session': session.to_dict()
    }
    return data, status.HTTP_200_OK, {}


def resolve_session(session_token: Optional[str]) -> User:
    """
    Get the user to whom a session token belongs.

    Raises
    ------
    :class:`.SessionUnknown`
        If the token is missing, or does not identify an active session.
    :class:`.SessionExpired`
        If the session is past its expiry.
    :class:`.Unavailable`

    """
    user, _ = _authenticate(session_token)
    return user


def session_required(func: Callable) -> Callable:
    """
    Require an active session for a controller.

    The decorated controller is called with a session token as its first
    argument; it receives the authenticated :class:`.User` in its place. If
    the session cannot be resolved, the response is a 401.
    """
    @wraps(func)
    def wrapper(session_token: Optional[str], *args: Any,
                **kwargs: Any) -> ResponseData:
        try:
            user = resolve_session(session_token)
        except (SessionUnknown, SessionExpired) as e:
            logger.debug('Unauthorized: %s', e)
            return error(status.HTTP_401_UNAUTHORIZED, UNAUTHORIZED, str(e))
        except Unavailable:
            logger.exception('Could not resolve session')
            return error(status.HTTP_500_INTERNAL_SERVER_ERROR,
                         INTERNAL_ERROR, 'An unexpected error occurred')
        result: ResponseData = func(user, *args, **kwargs)
        return result
    return wrapper


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _authenticate(session_token: Optional[str]) -> Tuple[User, Session]:
    if not session_token:
        raise SessionUnknown('Session token is required')
    session = _load_session(session_token)
    if not session.is_usable(_now()):
        raise SessionExpired('Session has expired')
    try:
        user = _get_user_by_id(session.user_id)
    except NoSuchUser as e:
        raise SessionUnknown('Invalid session token') from e
    return user, session


# These are broken out to add retry logic.
@retry(Unavailable, tries=3, delay=0.5, backoff=2)
def _create_user(name: str, email: str) -> User:
    return users.create_user(name, email)


@retry(Unavailable, tries=3, delay=0.5, backoff=2)
def _get_user_by_email(email: str) -> User:
    return users.get_user_by_email(email)


@retry(Unavailable, tries=3, delay=0.5, backoff=2)
def _get_user_by_id(user_id: str) -> User:
    return users.get_user_by_id(user_id)


@retry(Unavailable, tries=3, delay=0.5, backoff=2)
def _create_session(user_id: str, duration: timedelta,
                    ip_address: Optional[str],
                    user_agent: Optional[str]) -> Session:
    return sessions.create_session(user_id, duration, ip_address=ip_address,
                                   user_agent=user_agent)


@retry(Unavailable, tries=3, delay=0.5, backoff=2)
def _load_session(session_token: str) -> Session:
    return sessions.load_session(session_token)


@retry(Unavailable, tries=3, delay=0.5, backoff=2)
def _invalidate_session(session_token: str) -> Session:
    return sessions.invalidate_session(session_token)
