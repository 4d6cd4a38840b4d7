"""Web Server Gateway Interface entry-point."""

import os

from directory import logging
from directory.factory import create_web_app

logger = logging.getLogger(__name__)

__flask_app__ = None


def application(environ, start_response):    # type: ignore
    """WSGI application."""
    for key, value in environ.items():
        # Only server-provided config; request headers and the server's file
        # handles are not configuration.
        if key == 'SERVER_NAME' or key.startswith('HTTP_') \
                or not isinstance(value, str):
            continue
        os.environ[key] = value

    global __flask_app__
    if __flask_app__ is None:
        try:
            __flask_app__ = create_web_app()
        except Exception as e:
            logger.critical('Could not start the directory: %s', e)
            raise SystemExit(1) from e
    return __flask_app__(environ, start_response)
