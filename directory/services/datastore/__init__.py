"""Database integration for users, sessions, and profiles."""

from typing import Generator, Optional
from contextlib import contextmanager
from datetime import datetime

from pytz import UTC
from werkzeug.local import LocalProxy
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.session import Session

from directory import logging

from ..exceptions import Unavailable
from .models import db, DBUser, DBSession, DBProfile

logger = logging.getLogger(__name__)


def now() -> datetime:
    """Get the current time, in UTC."""
    return datetime.now(tz=UTC)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops the timezone)."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@contextmanager
def transaction() -> Generator[Session, None, None]:
    """Context manager for database transaction."""
    try:
        yield db.session
        # The caller may have committed already; only commit if anything is
        # left unflushed.
        if db.session.new or db.session.dirty or db.session.deleted:
            db.session.commit()
    except OperationalError as e:
        logger.error('Database unavailable, rolling back: %s', str(e))
        db.session.rollback()
        raise Unavailable(f'Could not reach the database: {e}') from e
    except Exception as e:
        logger.debug('Commit failed, rolling back: %s', str(e))
        db.session.rollback()
        raise


def init_app(app: Optional[LocalProxy]) -> None:
    """Set configuration defaults and attach session to the application."""
    db.init_app(app)


def create_all() -> None:
    """Create all tables in the database."""
    db.create_all()


def drop_all() -> None:
    """Drop all tables in the database."""
    db.drop_all()


def check_connection() -> None:
    """
    Make sure that the database is reachable.

    Raises
    ------
    :class:`.Unavailable`
        If the database cannot be queried.

    """
    try:
        db.session.execute(text('SELECT 1'))
    except OperationalError as e:
        raise Unavailable(f'Could not reach the database: {e}') from e
    finally:
        db.session.rollback()
