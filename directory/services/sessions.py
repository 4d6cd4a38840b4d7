"""
Session store.

Sessions are opened when a user verifies a magic link, and are identified by
an opaque random token that the browser carries in a cookie. Signing out
invalidates the session but keeps the record, so that there is a history of
where and when each user has signed in.

Expired sessions are invisible to :func:`load_session`, and are removed from
the datastore altogether by :func:`purge_expired` (``flask purge-sessions``).
"""

from datetime import timedelta
from typing import Optional
import secrets

from sqlalchemy.exc import OperationalError

from directory import logging
from directory.domain import Session, SessionState, new_id

from .datastore import transaction, now, as_utc, db, DBSession
from .exceptions import SessionUnknown, Unavailable

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
"""Session tokens carry 256 bits of entropy."""


def generate_token() -> str:
    """Generate a new opaque session token."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def create_session(user_id: str, duration: timedelta,
                   ip_address: Optional[str] = None,
                   user_agent: Optional[str] = None) -> Session:
    """
    Open a new session for a user.

    Parameters
    ----------
    user_id : str
    duration : :class:`datetime.timedelta`
        How long the session remains valid.
    ip_address : str or None
    user_agent : str or None

    Returns
    -------
    :class:`.Session`

    """
    start = now()
    db_session = DBSession(
        session_id=new_id(),
        user_id=user_id,
        token=generate_token(),
        expires=start + duration,
        state=SessionState.ACTIVE,
        ip_address=ip_address,
        user_agent=user_agent,
        created=start,
        last_accessed=start
    )
    with transaction() as session:
        session.add(db_session)
    logger.debug('Created session %s for user %s', db_session.session_id,
                 user_id)
    return _to_domain(db_session)


def load_session(token: str) -> Session:
    """
    Get the active session identified by ``token``.

    Raises
    ------
    :class:`.SessionUnknown`
        If there is no active, unexpired session with that token.
    :class:`.Unavailable`

    """
    try:
        db_session = _query_active(token) \
            .filter(DBSession.expires > now()) \
            .first()
    except OperationalError as e:
        raise Unavailable(f'Could not query database: {e}') from e
    if db_session is None:
        raise SessionUnknown('Invalid session token')
    return _to_domain(db_session)


def invalidate_session(token: str) -> Session:
    """
    Invalidate the active session identified by ``token``.

    Raises
    ------
    :class:`.SessionUnknown`
        If there is no active session with that token.

    """
    with transaction() as session:
        db_session = _query_active(token).first()
        if db_session is None:
            raise SessionUnknown('Invalid session token')
        db_session.state = SessionState.INVALIDATED
        db_session.last_accessed = now()
        session.add(db_session)
    logger.debug('Invalidated session %s', db_session.session_id)
    return _to_domain(db_session)


def purge_expired() -> int:
    """Delete all expired sessions. Returns the number removed."""
    with transaction() as session:
        removed: int = session.query(DBSession) \
            .filter(DBSession.expires <= now()) \
            .delete(synchronize_session=False)
        session.commit()
    logger.info('Purged %i expired sessions', removed)
    return removed


def _query_active(token: str):    # type: ignore
    return db.session.query(DBSession) \
        .filter(DBSession.token == token) \
        .filter(DBSession.state == SessionState.ACTIVE)


def _to_domain(db_session: DBSession) -> Session:
    return Session(
        session_id=db_session.session_id,
        user_id=db_session.user_id,
        token=db_session.token,
        expires=as_utc(db_session.expires),
        state=db_session.state,
        ip_address=db_session.ip_address,
        user_agent=db_session.user_agent,
        created=as_utc(db_session.created),
        last_accessed=as_utc(db_session.last_accessed)
    )
