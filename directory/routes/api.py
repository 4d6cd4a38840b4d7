"""Provides Flask integration for the directory API."""

import json
from typing import Any, Dict, Optional

from flask import Blueprint, current_app, jsonify, make_response, request, \
    Response
from werkzeug.datastructures import MultiDict

from directory import logging, status
from directory.controllers import files, profiles, users
from directory.controllers.util import ResponseData, error, \
    VALIDATION_ERROR

logger = logging.getLogger(__name__)
blueprint = Blueprint('api', __name__, url_prefix='/api')


def set_cookies(response: Response, data: dict) -> None:
    """
    Update a :class:`.Response` with cookies in controller data.

    Controllers seeking to update cookies must include a 'cookies' key in
    their response data, mapping a cookie key to a value and a max age in
    seconds. The cookie name is configured as ``<KEY>_NAME``.
    """
    cookies = data.pop('cookies', None)
    if cookies is None:
        return None
    for cookie_key, (cookie_value, max_age) in cookies.items():
        cookie_name = current_app.config[f'{cookie_key.upper()}_NAME']
        logger.debug('Set cookie %s, max_age %s', cookie_name, max_age)
        # Lax allows plain links into authenticated views.
        response.set_cookie(
            cookie_name, cookie_value, max_age=max_age, path='/',
            httponly=True, samesite='Lax',
            secure=current_app.config['AUTH_SESSION_COOKIE_SECURE']
        )


def _respond(result: ResponseData) -> Response:
    data, code, headers = result
    body = {key: value for key, value in data.items() if key != 'cookies'}
    response: Response = make_response(jsonify(body), code, headers)
    set_cookies(response, data)
    return response


def _session_token() -> Optional[str]:
    token: Optional[str] = request.cookies.get(
        current_app.config['AUTH_SESSION_COOKIE_NAME']
    )
    return token


def _form_data() -> MultiDict:
    """Get request fields as strings, whether sent as JSON or as a form."""
    if request.is_json:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return MultiDict()
        return MultiDict([(key, value) for key, value in payload.items()
                          if isinstance(value, str)])
    return request.form


def _profile_fields() -> Dict[str, Any]:
    """
    Get the fields of a profile request.

    In a multipart request the list fields are JSON-encoded strings; in a
    JSON request they may be either strings or lists. Either way, the
    controller gets lists.

    Raises
    ------
    ValueError
        If a list field cannot be decoded.

    """
    if request.is_json:
        payload = request.get_json(silent=True)
        source = payload if isinstance(payload, dict) else {}
    else:
        source = request.form.to_dict()
    fields: Dict[str, Any] = {}
    for key, value in source.items():
        if key in profiles.LIST_FIELDS:
            if isinstance(value, str):
                value = json.loads(value) if value.strip() else None
            fields[key] = value
        elif isinstance(value, (str, int, float)) \
                and not isinstance(value, bool):
            fields[key] = str(value)
    return fields


@blueprint.after_request
def apply_response_headers(response: Response) -> Response:
    """Apply response headers to all responses."""
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['X-Frame-Options'] = 'DENY'
    return response


@blueprint.route('/health', methods=['GET'])
def health() -> Response:
    """Report that the service is up."""
    return _respond(({'status': 'ok',
                      'version': current_app.config['VERSION']},
                     status.HTTP_200_OK, {}))


@blueprint.route('/users/sign-up', methods=['POST'])
def sign_up() -> Response:
    """Create an account, and send a magic link."""
    return _respond(users.sign_up(_form_data()))


@blueprint.route('/users/sign-in', methods=['POST'])
def sign_in() -> Response:
    """Send a magic link to an existing account."""
    return _respond(users.sign_in(_form_data()))


@blueprint.route('/users/verify-magic-link', methods=['POST'])
def verify_magic_link() -> Response:
    """Verify a magic-link token, and set the session cookie."""
    return _respond(users.verify_magic_link(
        _form_data(),
        ip_address=request.remote_addr,
        user_agent=request.headers.get('User-Agent')
    ))


@blueprint.route('/users/sign-out', methods=['POST'])
def sign_out() -> Response:
    """Invalidate the session, and clear the session cookie."""
    return _respond(users.sign_out(_session_token()))


@blueprint.route('/users/get-user', methods=['GET'])
def get_user() -> Response:
    """Get the authenticated user."""
    return _respond(users.get_user(_session_token()))


@blueprint.route('/profiles', methods=['POST'])
def create_profile() -> Response:
    """Create a profile for the authenticated user."""
    try:
        fields = _profile_fields()
    except ValueError:
        return _respond(error(status.HTTP_400_BAD_REQUEST, VALIDATION_ERROR,
                              profiles.INVALID_DATA_FORMAT))
    return _respond(profiles.create_profile(_session_token(), fields,
                                            request.files))


@blueprint.route('/profiles', methods=['GET'])
def list_profiles() -> Response:
    """List all profiles."""
    return _respond(profiles.list_profiles())


@blueprint.route('/profiles/me', methods=['GET'])
def get_my_profile() -> Response:
    """Get the authenticated user's profile."""
    return _respond(profiles.get_my_profile(_session_token()))


@blueprint.route('/profiles/<string:user_id>', methods=['GET'])
def get_profile(user_id: str) -> Response:
    """Get the profile of a user."""
    return _respond(profiles.get_profile_by_user_id(user_id))


@blueprint.route('/profiles', methods=['PUT'])
def update_profile() -> Response:
    """Update the authenticated user's profile."""
    try:
        fields = _profile_fields()
    except ValueError:
        return _respond(error(status.HTTP_400_BAD_REQUEST, VALIDATION_ERROR,
                              profiles.INVALID_DATA_FORMAT))
    return _respond(profiles.update_profile(_session_token(), fields,
                                            request.files))


@blueprint.route('/profiles', methods=['DELETE'])
def delete_profile() -> Response:
    """Delete the authenticated user's profile."""
    return _respond(profiles.delete_profile(_session_token()))


@blueprint.route('/files/upload-file', methods=['POST'])
def upload_file() -> Response:
    """Store an uploaded file."""
    return _respond(files.upload_file(request.files.get('file')))


@blueprint.route('/files/delete-file/<path:key>', methods=['DELETE'])
def delete_file(key: str) -> Response:
    """Delete a stored file."""
    return _respond(files.delete_file(key))


@blueprint.route('/files/get-file-url/<path:key>', methods=['GET'])
def get_file_url(key: str) -> Response:
    """Get the public URL of a stored file."""
    return _respond(files.get_file_url(key))
