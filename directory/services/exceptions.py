"""Provides exceptions occurring with the datastore."""


class Unavailable(RuntimeError):
    """The datastore could not be reached."""


class UserExists(RuntimeError):
    """A user with the same email address already exists."""


class NoSuchUser(RuntimeError):
    """User does not exist."""


class ProfileExists(RuntimeError):
    """The user already has a profile."""


class NoSuchProfile(RuntimeError):
    """The user has no profile."""


class SessionUnknown(RuntimeError):
    """Failed to locate an active session in the session store."""


class SessionExpired(RuntimeError):
    """User's session has expired."""
