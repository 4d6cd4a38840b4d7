"""Provides access to directory profiles."""

from typing import List

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import joinedload

from directory import logging
from directory.domain import Profile, Education, Experience, Organization, \
    User, record_from_dict, record_to_dict, new_id

from .datastore import transaction, now, as_utc, db, DBProfile
from .exceptions import ProfileExists, NoSuchProfile, Unavailable

logger = logging.getLogger(__name__)


def create_profile(profile: Profile) -> Profile:
    """
    Create a new profile.

    Parameters
    ----------
    profile : :class:`.Profile`

    Returns
    -------
    :class:`.Profile`
        With its ID and timestamps set.

    Raises
    ------
    :class:`.ProfileExists`
        If the user already has a profile. This is enforced by a unique
        constraint, so it holds even when two requests race.

    """
    created = now()
    db_profile = DBProfile(profile_id=new_id(), user_id=profile.user_id,
                           created=created, updated=created)
    _update_dbprofile(db_profile, profile)
    try:
        with transaction() as session:
            session.add(db_profile)
    except IntegrityError as e:
        raise ProfileExists(f'User {profile.user_id} has a profile') from e
    logger.debug('Created profile %s for user %s', db_profile.profile_id,
                 profile.user_id)
    return _to_domain(db_profile)


def get_profile(user_id: str) -> Profile:
    """
    Get the profile belonging to a user.

    Raises
    ------
    :class:`.NoSuchProfile`
    :class:`.Unavailable`

    """
    return _to_domain(_load_dbprofile(user_id))


def update_profile(profile: Profile) -> Profile:
    """
    Store changes to an existing profile.

    Raises
    ------
    :class:`.NoSuchProfile`

    """
    with transaction() as session:
        db_profile = _load_dbprofile(profile.user_id)
        _update_dbprofile(db_profile, profile)
        db_profile.updated = now()
        session.add(db_profile)
    return _to_domain(db_profile)


def delete_profile(user_id: str) -> Profile:
    """
    Delete the profile belonging to a user.

    Returns
    -------
    :class:`.Profile`
        The profile as it was before deletion.

    Raises
    ------
    :class:`.NoSuchProfile`

    """
    with transaction() as session:
        db_profile = _load_dbprofile(user_id)
        profile = _to_domain(db_profile)
        session.delete(db_profile)
    logger.debug('Deleted profile %s', profile.profile_id)
    return profile


def list_profiles() -> List[Profile]:
    """Get all profiles with their owners, most recently created first."""
    try:
        db_profiles = db.session.query(DBProfile) \
            .options(joinedload(DBProfile.user)) \
            .order_by(DBProfile.created.desc()) \
            .all()
    except OperationalError as e:
        raise Unavailable(f'Could not query database: {e}') from e
    return [_to_domain(db_profile)._replace(owner=_owner(db_profile))
            for db_profile in db_profiles]


def _load_dbprofile(user_id: str) -> DBProfile:
    try:
        db_profile = db.session.query(DBProfile) \
            .filter(DBProfile.user_id == user_id) \
            .first()
    except OperationalError as e:
        raise Unavailable(f'Could not query database: {e}') from e
    if db_profile is None:
        raise NoSuchProfile(f'No profile for user {user_id}')
    return db_profile


def _update_dbprofile(db_profile: DBProfile, profile: Profile) -> None:
    db_profile.name = profile.name
    db_profile.email = profile.email
    db_profile.class_name = profile.class_name
    db_profile.house = profile.house
    db_profile.avatar_url = profile.avatar_url
    db_profile.resume_url = profile.resume_url
    db_profile.education = [record_to_dict(e) for e in profile.education]
    db_profile.experiences = [record_to_dict(e) for e in profile.experiences]
    db_profile.organizations = [record_to_dict(o)
                                for o in profile.organizations]


def _owner(db_profile: DBProfile) -> User:
    db_user = db_profile.user
    return User(user_id=db_user.user_id, name=db_user.name,
                email=db_user.email, created=as_utc(db_user.created),
                updated=as_utc(db_user.updated))


def _to_domain(db_profile: DBProfile) -> Profile:
    return Profile(
        profile_id=db_profile.profile_id,
        user_id=db_profile.user_id,
        name=db_profile.name,
        email=db_profile.email,
        class_name=db_profile.class_name,
        house=db_profile.house,
        avatar_url=db_profile.avatar_url,
        resume_url=db_profile.resume_url,
        education=[record_from_dict(Education, data)
                   for data in db_profile.education or []],
        experiences=[record_from_dict(Experience, data)
                     for data in db_profile.experiences or []],
        organizations=[record_from_dict(Organization, data)
                       for data in db_profile.organizations or []],
        created=as_utc(db_profile.created),
        updated=as_utc(db_profile.updated)
    )
