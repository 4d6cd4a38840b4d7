"""Integration with the users datastore."""

from sqlalchemy.exc import IntegrityError, OperationalError

from directory import logging
from directory.domain import User, new_id

from .datastore import transaction, now, as_utc, db, DBUser
from .exceptions import UserExists, NoSuchUser, Unavailable

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """Email addresses are compared without regard to case or whitespace."""
    return email.strip().lower()


def create_user(name: str, email: str) -> User:
    """
    Add a new user to the database.

    Parameters
    ----------
    name : str
    email : str

    Returns
    -------
    :class:`.User`

    Raises
    ------
    :class:`.UserExists`
        If a user with the same (case-insensitive) email address exists.

    """
    created = now()
    db_user = DBUser(
        user_id=new_id(),
        name=name.strip(),
        email=normalize_email(email),
        created=created,
        updated=created
    )
    try:
        with transaction() as session:
            session.add(db_user)
    except IntegrityError as e:
        raise UserExists(f'A user with email {email} already exists') from e
    logger.debug('Created user %s', db_user.user_id)
    return _to_domain(db_user)


def get_user_by_email(email: str) -> User:
    """
    Find a user by email address.

    Raises
    ------
    :class:`.NoSuchUser`
        If there is no user with that address.
    :class:`.Unavailable`
        If the database cannot be reached.

    """
    try:
        db_user = db.session.query(DBUser) \
            .filter(DBUser.email == normalize_email(email)) \
            .first()
    except OperationalError as e:
        raise Unavailable(f'Could not query database: {e}') from e
    if db_user is None:
        raise NoSuchUser(f'No user with email {email}')
    return _to_domain(db_user)


def get_user_by_id(user_id: str) -> User:
    """
    Get a user by their ID.

    Raises
    ------
    :class:`.NoSuchUser`
    :class:`.Unavailable`

    """
    try:
        db_user = db.session.get(DBUser, user_id)
    except OperationalError as e:
        raise Unavailable(f'Could not query database: {e}') from e
    if db_user is None:
        raise NoSuchUser(f'No user with id {user_id}')
    return _to_domain(db_user)


def _to_domain(db_user: DBUser) -> User:
    return User(
        user_id=db_user.user_id,
        name=db_user.name,
        email=db_user.email,
        created=as_utc(db_user.created),
        updated=as_utc(db_user.updated)
    )
