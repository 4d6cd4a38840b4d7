"""Helpers for :mod:`directory.controllers`."""

from typing import Dict, Optional, Tuple

from wtforms import Form

ResponseData = Tuple[dict, int, dict]

VALIDATION_ERROR = 'ValidationError'
UNAUTHORIZED = 'Unauthorized'
NOT_FOUND = 'NotFound'
CONFLICT = 'Conflict'
INVALID_TOKEN = 'InvalidToken'
INVALID_FILE_TYPE = 'InvalidFileType'
UPSTREAM_ERROR = 'UpstreamError'
INTERNAL_ERROR = 'InternalError'


def error(code: int, title: str, message: str,
          headers: Optional[Dict[str, str]] = None) -> ResponseData:
    """Build the response for a failed request."""
    return {'error': title, 'message': message}, code, headers or {}


def first_error(form: Form) -> str:
    """Get the first validation message from ``form``, for the response."""
    for field in form:
        if field.errors:
            return f'{field.label.text}: {field.errors[0]}'
    return 'Invalid request'


def strip(value: Optional[str]) -> Optional[str]:
    """Form filter that trims surrounding whitespace."""
    return value.strip() if isinstance(value, str) else value
