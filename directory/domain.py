"""Defines the core data structures for the alumni directory."""

from typing import Any, Dict, List, NamedTuple, Optional, Type, TypeVar
from datetime import datetime
from enum import Enum
import re
import uuid

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
"""Deliberately loose; the magic link itself proves the address works."""


def is_valid_email(value: Any) -> bool:
    """Check that ``value`` looks like an email address."""
    return isinstance(value, str) and bool(EMAIL_PATTERN.match(value))


def is_valid_id(value: Any) -> bool:
    """Check that ``value`` is a well-formed user or profile identifier."""
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def new_id() -> str:
    """Generate a new identifier for a user, session, or profile."""
    return str(uuid.uuid4())


class User(NamedTuple):
    """A person who has signed up for the directory."""

    user_id: str
    name: str
    email: str
    """Always lower-case; email addresses are unique without regard to case."""

    created: Optional[datetime] = None
    updated: Optional[datetime] = None

    def to_summary(self) -> dict:
        """The short form of the user, as returned from auth endpoints."""
        return {'id': self.user_id, 'name': self.name, 'email': self.email}

    def to_dict(self) -> dict:
        """Render the user for an API response."""
        data = self.to_summary()
        data.update({'createdAt': self.created, 'updatedAt': self.updated})
        return data


class SessionState(Enum):
    """States of an authenticated session."""

    ACTIVE = 'active'
    INVALIDATED = 'invalidated'
    """The user signed out. The record is retained for auditing."""


class Session(NamedTuple):
    """An authenticated session, opened by verifying a magic link."""

    session_id: str
    user_id: str
    token: str
    """Opaque random value, carried in the session cookie."""

    expires: datetime
    state: SessionState = SessionState.ACTIVE
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created: Optional[datetime] = None
    last_accessed: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        """Whether the session has not been invalidated."""
        return self.state is SessionState.ACTIVE

    def is_usable(self, now: datetime) -> bool:
        """Whether the session may be used to authenticate at ``now``."""
        return self.is_active and now < self.expires

    def to_dict(self) -> dict:
        """Render the session for an API response."""
        return {
            'id': self.session_id,
            'token': self.token,
            'expiresAt': self.expires,
            'createdAt': self.created,
            'ipAddress': self.ip_address,
            'userAgent': self.user_agent
        }


class Education(NamedTuple):
    """A degree program, completed or in progress."""

    university: str
    degree_name: str
    degree_type: str
    start_month: str
    start_year: str
    end_month: Optional[str] = None
    end_year: Optional[str] = None
    is_current: bool = False
    description: Optional[str] = None


class Experience(NamedTuple):
    """A position held at a company."""

    company: str
    location: str
    position: str
    start_month: str
    start_year: str
    end_month: Optional[str] = None
    end_year: Optional[str] = None
    is_current: bool = False
    description: Optional[str] = None


class Organization(NamedTuple):
    """A position held in a club, society, or other organization."""

    name: str
    position: str
    start_month: str
    start_year: str
    end_month: Optional[str] = None
    end_year: Optional[str] = None
    is_current: bool = False
    description: Optional[str] = None


Record = TypeVar('Record', Education, Experience, Organization)


def _camel(field: str) -> str:
    head, *tail = field.split('_')
    return head + ''.join(part.title() for part in tail)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('true', '1', 'yes', 'on')
    return bool(value)


def record_from_dict(cls: Type[Record], data: Any) -> Record:
    """
    Build an education, experience, or organization record from API data.

    Keys may be given in camelCase (as the front-end sends them) or in
    snake_case. String values are trimmed.

    Raises
    ------
    ValueError
        If ``data`` is not a mapping, or a required value is missing.

    """
    label = cls.__name__.lower()
    if not isinstance(data, dict):
        raise ValueError(f'Each {label} entry must be an object')
    values: Dict[str, Any] = {}
    for field in cls._fields:
        value = data.get(_camel(field), data.get(field))
        if field == 'is_current':
            values[field] = _as_bool(value) if value is not None else False
            continue
        if value is not None:
            value = str(value).strip()
        if field not in cls._field_defaults and not value:
            raise ValueError(f'{_camel(field)} is required for each {label}')
        values[field] = value or None
    return cls(**values)


def record_to_dict(record: Record) -> dict:
    """Render an education, experience, or organization record for the API."""
    return {_camel(field): value for field, value
            in zip(record._fields, record)}


def records_from_list(cls: Type[Record], data: Any) -> List[Record]:
    """Build a list of records from API data. See :func:`record_from_dict`."""
    if not isinstance(data, list):
        raise ValueError(f'{cls.__name__} data must be a list')
    return [record_from_dict(cls, item) for item in data]


class Profile(NamedTuple):
    """A directory profile. Each user has at most one."""

    user_id: str
    name: str
    email: str
    class_name: str
    """Graduating class, e.g. ``2015``."""

    education: List[Education]
    """In the order given by the user. Must not be empty."""

    experiences: List[Experience] = []
    organizations: List[Organization] = []
    house: Optional[str] = None
    avatar_url: Optional[str] = None
    resume_url: Optional[str] = None
    profile_id: Optional[str] = None
    created: Optional[datetime] = None
    updated: Optional[datetime] = None
    owner: Optional[User] = None
    """The user the profile belongs to, when loaded with it."""

    @property
    def file_urls(self) -> List[str]:
        """URLs of the stored files attached to this profile."""
        return [url for url in (self.avatar_url, self.resume_url) if url]

    def to_dict(self) -> dict:
        """
        Render the profile for an API response.

        If the profile was loaded with its owner, the owner's summary is
        included as ``user``.
        """
        data = {
            'id': self.profile_id,
            'userId': self.user_id,
            'name': self.name,
            'email': self.email,
            'class': self.class_name,
            'house': self.house,
            'avatar': self.avatar_url,
            'resume': self.resume_url,
            'education': [record_to_dict(e) for e in self.education],
            'experiences': [record_to_dict(e) for e in self.experiences],
            'organizations': [record_to_dict(o) for o in self.organizations],
            'createdAt': self.created,
            'updatedAt': self.updated
        }
        if self.owner is not None:
            data['user'] = self.owner.to_summary()
        return data


class StoredFile(NamedTuple):
    """A file that has been written to the object store."""

    key: str
    url: str
    bucket: str
    size: int
    content_type: str

    def to_dict(self) -> dict:
        """Render the file for an API response."""
        return {'key': self.key, 'url': self.url, 'size': self.size,
                'contentType': self.content_type}


class MagicLinkRequest(NamedTuple):
    """Acknowledgement from the magic-link service that a link was sent."""

    request_id: str
    issuer_user_id: Optional[str] = None


class MagicLinkVerification(NamedTuple):
    """The outcome of verifying a magic-link token."""

    email: Optional[str]
    issuer_user_id: Optional[str] = None
    session_token: Optional[str] = None
    session_jwt: Optional[str] = None
