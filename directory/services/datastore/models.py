"""SQLAlchemy models for users, sessions, and profiles."""

from sqlalchemy import Column, DateTime, Enum, ForeignKey, JSON, String, \
    Text
from sqlalchemy.orm import relationship
from flask_sqlalchemy import SQLAlchemy

from ...domain import SessionState

db: SQLAlchemy = SQLAlchemy()


class DBUser(db.Model):
    """A person who has signed up."""

    __tablename__ = 'users'

    user_id = Column(String(36), primary_key=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    """Stored lower-case, so that the unique index ignores case."""

    created = Column(DateTime(timezone=True), nullable=False)
    updated = Column(DateTime(timezone=True), nullable=False)


class DBSession(db.Model):
    """An authenticated session."""

    __tablename__ = 'sessions'

    session_id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey('users.user_id'), nullable=False,
                     index=True)
    token = Column(String(64), nullable=False, unique=True)
    expires = Column(DateTime(timezone=True), nullable=False, index=True)
    state = Column(Enum(SessionState), nullable=False,
                   default=SessionState.ACTIVE, index=True)
    ip_address = Column(String(45))
    user_agent = Column(Text)
    created = Column(DateTime(timezone=True), nullable=False)
    last_accessed = Column(DateTime(timezone=True), nullable=False)

    user = relationship(DBUser)


class DBProfile(db.Model):
    """A directory profile. The unique ``user_id`` allows one per user."""

    __tablename__ = 'profiles'

    profile_id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey('users.user_id'), nullable=False,
                     unique=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    class_name = Column('class', String(100), nullable=False, index=True)
    house = Column(String(100), index=True)
    avatar_url = Column(Text)
    resume_url = Column(Text)

    education = Column(JSON, nullable=False, default=list)
    experiences = Column(JSON, nullable=False, default=list)
    organizations = Column(JSON, nullable=False, default=list)
    """Sub-records are kept as lists of objects, with camelCase keys."""

    created = Column(DateTime(timezone=True), nullable=False, index=True)
    updated = Column(DateTime(timezone=True), nullable=False)

    user = relationship(DBUser)
