"""
Controllers for directory profiles.

Each user may have one profile, with their education, work experience, and
organizations, and optionally an avatar and a resume. The files themselves
live in the object store; the profile only keeps their public URLs.

The routes decode the request before calling these controllers: scalar
fields arrive as strings, and ``education``, ``experiences``, and
``organizations`` arrive as lists (or ``None`` if they were not sent).
"""

from typing import Any, Dict, Iterable, List, Mapping, Tuple

from flask import current_app
from retry import retry
from werkzeug.datastructures import FileStorage, MultiDict
from wtforms import Form, StringField
from wtforms.validators import DataRequired, Length, Regexp, optional

from directory import logging, status
from directory.domain import EMAIL_PATTERN, Education, Experience, \
    Organization, Profile, User, is_valid_id, records_from_list
from directory.services import blobs, profiles
from directory.services.exceptions import NoSuchProfile, ProfileExists, \
    Unavailable

from .users import session_required
from .util import ResponseData, error, first_error, strip, CONFLICT, \
    INTERNAL_ERROR, INVALID_FILE_TYPE, NOT_FOUND, UPSTREAM_ERROR, \
    VALIDATION_ERROR

logger = logging.getLogger(__name__)

AVATAR_TYPES = ('image/jpeg', 'image/jpg', 'image/png', 'image/gif',
                'image/webp')
RESUME_TYPES = (
    'application/pdf',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document'
)

FILE_FIELDS = (
    ('avatar', AVATAR_TYPES, 'avatars'),
    ('resume', RESUME_TYPES, 'resumes')
)
"""Form field, accepted MIME types, and storage folder for each file."""

LIST_FIELDS = ('education', 'experiences', 'organizations')

INVALID_DATA_FORMAT = \
    'Failed to parse education, experiences, or organizations data'


class ProfileForm(Form):
    """Fields required to create a profile."""

    name = StringField('Name', filters=[strip],
                       validators=[DataRequired(), Length(min=2, max=100)])
    email = StringField('Email', filters=[strip], validators=[
        DataRequired(),
        Regexp(EMAIL_PATTERN, message='Please provide a valid email')
    ])
    class_name = StringField('Class', name='class', filters=[strip],
                             validators=[DataRequired()])
    house = StringField('House', filters=[strip], validators=[optional()])


class ProfileUpdateForm(Form):
    """Profile fields that may be changed. All are optional."""

    name = StringField('Name', filters=[strip],
                       validators=[optional(), Length(min=2, max=100)])
    email = StringField('Email', filters=[strip], validators=[
        optional(),
        Regexp(EMAIL_PATTERN, message='Please provide a valid email')
    ])
    class_name = StringField('Class', name='class', filters=[strip],
                             validators=[optional()])
    house = StringField('House', filters=[strip], validators=[optional()])


@session_required
def create_profile(user: User, fields: Mapping[str, Any],
                   files: Mapping[str, FileStorage]) -> ResponseData:
    """
    Create a profile for the authenticated user.

    Parameters
    ----------
    user : :class:`.User`
        Provided by :func:`.session_required`; callers pass the session
        token instead.
    fields : mapping
        Decoded request fields.
    files : mapping
        Uploaded files, keyed by form field (``avatar`` and ``resume``).

    Returns
    -------
    dict
        Response data.
    int
        Status code. 201 if all goes well.
    dict
        Headers to add to the response.

    """
    try:
        _get_profile(user.user_id)
    except NoSuchProfile:
        pass
    except Unavailable:
        logger.exception('Could not check for existing profile')
        return _internal_error('creating')
    else:
        return error(status.HTTP_409_CONFLICT, CONFLICT,
                     'A profile already exists for this user. '
                     'Use PUT to update.')

    form = ProfileForm(_scalar_fields(fields))
    if not form.validate():
        logger.debug('Profile form is not valid')
        return error(status.HTTP_400_BAD_REQUEST, VALIDATION_ERROR,
                     first_error(form))
    if not fields.get('education'):
        return error(status.HTTP_400_BAD_REQUEST, VALIDATION_ERROR,
                     'At least one education entry is required')
    try:
        education = records_from_list(Education, fields['education'])
        experiences = records_from_list(Experience,
                                        fields.get('experiences') or [])
        organizations = records_from_list(Organization,
                                          fields.get('organizations') or [])
        uploads = _read_files(files)
    except blobs.InvalidFileType as e:
        return error(status.HTTP_400_BAD_REQUEST, INVALID_FILE_TYPE, str(e))
    except ValueError as e:
        return error(status.HTTP_400_BAD_REQUEST, VALIDATION_ERROR, str(e))

    try:
        urls = _store_files(uploads)
    except blobs.InvalidFileType as e:
        return error(status.HTTP_400_BAD_REQUEST, INVALID_FILE_TYPE, str(e))
    except blobs.UploadFailed as e:
        logger.error('Could not store profile files: %s', e)
        return error(status.HTTP_500_INTERNAL_SERVER_ERROR, UPSTREAM_ERROR,
                     'Failed to upload files')

    profile = Profile(
        user_id=user.user_id,
        name=form.name.data,
        email=form.email.data.lower(),
        class_name=form.class_name.data,
        house=form.house.data or None,
        avatar_url=urls.get('avatar'),
        resume_url=urls.get('resume'),
        education=education,
        experiences=experiences,
        organizations=organizations
    )
    try:
        profile = _create_profile(profile)
    except ProfileExists:
        _release_files(urls.values())
        return error(status.HTTP_409_CONFLICT, CONFLICT,
                     'A profile already exists for this user. '
                     'Use PUT to update.')
    except Unavailable:
        logger.exception('Could not create profile')
        _release_files(urls.values())
        return _internal_error('creating')
    logger.info('Created profile %s for user %s', profile.profile_id,
                user.user_id)

    data = {
        'success': True,
        'message': 'Profile created successfully',
        'profile': profile.to_dict()
    }
    return data, status.HTTP_201_CREATED, {}


@session_required
def get_my_profile(user: User) -> ResponseData:
    """Get the authenticated user's profile."""
    return _profile_response(user.user_id)


def get_profile_by_user_id(user_id: str) -> ResponseData:
    """Get the profile of any user. Does not require authentication."""
    if not user_id or not is_valid_id(user_id):
        return error(status.HTTP_400_BAD_REQUEST, VALIDATION_ERROR,
                     'Please provide a valid user ID')
    return _profile_response(user_id)


@session_required
def update_profile(user: User, fields: Mapping[str, Any],
                   files: Mapping[str, FileStorage]) -> ResponseData:
    """
    Update the authenticated user's profile.

    Only the fields that are sent are changed. ``name``, ``email`` and
    ``class`` are only replaced by non-empty values. ``education`` is
    replaced whenever it is sent, and must not be empty. ``house``,
    ``experiences`` and ``organizations`` are replaced whenever they are
    sent, so that they can be cleared.

    A new avatar or resume is stored before the old one is deleted, so the
    profile never points at a missing file.
    """
    try:
        profile = _get_profile(user.user_id)
    except NoSuchProfile:
        return error(status.HTTP_404_NOT_FOUND, NOT_FOUND,
                     'No profile found for this user. Use POST to create.')
    except Unavailable:
        logger.exception('Could not load profile')
        return _internal_error('updating')

    form = ProfileUpdateForm(_scalar_fields(fields))
    if not form.validate():
        logger.debug('Profile update form is not valid')
        return error(status.HTTP_400_BAD_REQUEST, VALIDATION_ERROR,
                     first_error(form))

    changes: Dict[str, Any] = {}
    if form.name.data:
        changes['name'] = form.name.data
    if form.email.data:
        changes['email'] = form.email.data.lower()
    if form.class_name.data:
        changes['class_name'] = form.class_name.data
    if fields.get('house') is not None:
        changes['house'] = form.house.data or None
    if fields.get('education') is not None and not fields['education']:
        return error(status.HTTP_400_BAD_REQUEST, VALIDATION_ERROR,
                     'At least one education entry is required')
    try:
        if fields.get('education') is not None:
            changes['education'] = records_from_list(Education,
                                                     fields['education'])
        if fields.get('experiences') is not None:
            changes['experiences'] = records_from_list(Experience,
                                                       fields['experiences'])
        if fields.get('organizations') is not None:
            changes['organizations'] = \
                records_from_list(Organization, fields['organizations'])
        uploads = _read_files(files)
    except blobs.InvalidFileType as e:
        return error(status.HTTP_400_BAD_REQUEST, INVALID_FILE_TYPE, str(e))
    except ValueError as e:
        return error(status.HTTP_400_BAD_REQUEST, VALIDATION_ERROR, str(e))

    try:
        urls = _store_files(uploads)
    except blobs.InvalidFileType as e:
        return error(status.HTTP_400_BAD_REQUEST, INVALID_FILE_TYPE, str(e))
    except blobs.UploadFailed as e:
        logger.error('Could not store profile files: %s', e)
        return error(status.HTTP_500_INTERNAL_SERVER_ERROR, UPSTREAM_ERROR,
                     'Failed to upload files')
    replaced = []
    if 'avatar' in urls:
        changes['avatar_url'] = urls['avatar']
        replaced.append(profile.avatar_url)
    if 'resume' in urls:
        changes['resume_url'] = urls['resume']
        replaced.append(profile.resume_url)

    try:
        profile = _update_profile(profile._replace(**changes))
    except NoSuchProfile:
        _release_files(urls.values())
        return error(status.HTTP_404_NOT_FOUND, NOT_FOUND,
                     'No profile found for this user. Use POST to create.')
    except Unavailable:
        logger.exception('Could not update profile')
        _release_files(urls.values())
        return _internal_error('updating')
    _release_files(url for url in replaced if url)
    logger.info('Updated profile %s', profile.profile_id)

    data = {
        'success': True,
        'message': 'Profile updated successfully',
        'profile': profile.to_dict()
    }
    return data, status.HTTP_200_OK, {}


@session_required
def delete_profile(user: User) -> ResponseData:
    """Delete the authenticated user's profile, and its files."""
    try:
        profile = _delete_profile(user.user_id)
    except NoSuchProfile:
        return error(status.HTTP_404_NOT_FOUND, NOT_FOUND,
                     'No profile found for this user')
    except Unavailable:
        logger.exception('Could not delete profile')
        return _internal_error('deleting')
    _release_files(profile.file_urls)
    logger.info('Deleted profile %s', profile.profile_id)
    return ({'success': True, 'message': 'Profile deleted successfully'},
            status.HTTP_200_OK, {})


def list_profiles() -> ResponseData:
    """Get all profiles, most recent first."""
    try:
        all_profiles = _list_profiles()
    except Unavailable:
        logger.exception('Could not list profiles')
        return _internal_error('fetching')
    data = {
        'success': True,
        'profiles': [profile.to_dict() for profile in all_profiles]
    }
    return data, status.HTTP_200_OK, {}


def _profile_response(user_id: str) -> ResponseData:
    try:
        profile = _get_profile(user_id)
    except NoSuchProfile:
        return error(status.HTTP_404_NOT_FOUND, NOT_FOUND,
                     'No profile found for this user')
    except Unavailable:
        logger.exception('Could not load profile')
        return _internal_error('fetching')
    return ({'success': True, 'profile': profile.to_dict()},
            status.HTTP_200_OK, {})


def _internal_error(action: str) -> ResponseData:
    return error(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR,
                 f'An unexpected error occurred while {action} profile')


def _scalar_fields(fields: Mapping[str, Any]) -> MultiDict:
    return MultiDict([(key, value) for key, value in fields.items()
                      if key not in LIST_FIELDS and isinstance(value, str)])


def _read_files(files: Mapping[str, FileStorage]) \
        -> Dict[str, Tuple[bytes, str]]:
    """
    Read and check the uploaded avatar and resume, if any.

    Raises
    ------
    :class:`.blobs.InvalidFileType`
        If a file's declared MIME type is not allowed for its field.
    ValueError
        If a file is too large.

    """
    max_size = current_app.config['MAX_FILE_SIZE']
    uploads: Dict[str, Tuple[bytes, str]] = {}
    for field, allowed_types, _ in FILE_FIELDS:
        upload = files.get(field)
        if upload is None or not upload.filename:
            continue
        if upload.mimetype not in allowed_types:
            raise blobs.InvalidFileType(f'Invalid file type for {field}')
        content = upload.read()
        if len(content) > max_size:
            raise ValueError(f'The {field} file exceeds the size limit of '
                             f'{max_size // (1024 * 1024)} MB')
        uploads[field] = (content, upload.filename)
    return uploads


def _store_files(uploads: Dict[str, Tuple[bytes, str]]) -> Dict[str, str]:
    """Store checked uploads, and get their URLs by field."""
    urls: Dict[str, str] = {}
    for field, _, folder in FILE_FIELDS:
        if field not in uploads:
            continue
        content, filename = uploads[field]
        try:
            stored = blobs.put_file(content, filename, folder=folder)
        except (blobs.InvalidFileType, blobs.UploadFailed):
            _release_files(urls.values())
            raise
        urls[field] = stored.url
    return urls


def _release_files(urls: Iterable[str]) -> None:
    """Delete stored files by URL. Failures are logged, not raised."""
    for url in list(urls):
        try:
            blobs.delete_file(blobs.key_for_url(url))
        except (ValueError, blobs.DeleteFailed) as e:
            logger.warning('Failed to delete file %s: %s', url, e)


# These are broken out to add retry logic.
@retry(Unavailable, tries=3, delay=0.5, backoff=2)
def _get_profile(user_id: str) -> Profile:
    return profiles.get_profile(user_id)


@retry(Unavailable, tries=3, delay=0.5, backoff=2)
def _create_profile(profile: Profile) -> Profile:
    return profiles.create_profile(profile)


@retry(Unavailable, tries=3, delay=0.5, backoff=2)
def _update_profile(profile: Profile) -> Profile:
    return profiles.update_profile(profile)


@retry(Unavailable, tries=3, delay=0.5, backoff=2)
def _delete_profile(user_id: str) -> Profile:
    return profiles.delete_profile(user_id)


@retry(Unavailable, tries=3, delay=0.5, backoff=2)
def _list_profiles() -> List[Profile]:
    return profiles.list_profiles()
