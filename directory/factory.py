"""Application factory for the directory app."""

from typing import Any, Mapping, Optional

import click
from flask import Flask, Response, jsonify
from werkzeug.exceptions import HTTPException, BadRequest, NotFound, \
    MethodNotAllowed, RequestEntityTooLarge, InternalServerError

from directory import logging
from directory.encode import ISO8601JSONProvider
from directory.routes import api
from directory.services import blobs, datastore, magic_links, sessions

logger = logging.getLogger(__name__)


def create_web_app(config_overrides: Optional[Mapping[str, Any]] = None) \
        -> Flask:
    """
    Initialize and configure the directory application.

    Parameters
    ----------
    config_overrides : mapping or None
        Applied on top of :mod:`directory.config`, before any service is
        initialized. Mostly useful for testing.

    """
    app = Flask('directory')
    app.config.from_pyfile('config.py')
    if config_overrides:
        app.config.update(config_overrides)
    app.json = ISO8601JSONProvider(app)

    datastore.init_app(app)
    blobs.init_app(app)
    magic_links.init_app(app)

    app.register_blueprint(api.blueprint)
    register_error_handlers(app)
    register_commands(app)

    with app.app_context():
        if app.config['CREATE_DB']:
            datastore.create_all()
        if app.config['VALIDATE_CONNECTIONS']:
            datastore.check_connection()
            blobs.validate_connection()
    return app


def register_error_handlers(app: Flask) -> None:
    """Register error handlers for the Flask app."""
    app.errorhandler(BadRequest)(jsonify_exception)
    app.errorhandler(NotFound)(jsonify_exception)
    app.errorhandler(MethodNotAllowed)(jsonify_exception)
    app.errorhandler(RequestEntityTooLarge)(jsonify_exception)
    app.errorhandler(InternalServerError)(handle_internal_error)


def jsonify_exception(error: HTTPException) -> Response:
    """Render exceptions as JSON."""
    exc_resp = error.get_response()
    response: Response = jsonify(error=error.name, message=error.description)
    response.status_code = exc_resp.status_code
    return response


def handle_internal_error(error: InternalServerError) -> Response:
    """Log unexpected exceptions, and render them as JSON."""
    original = getattr(error, 'original_exception', None)
    if original is not None:
        logger.error('Unhandled exception: %s', original,
                     exc_info=original)
    response: Response = jsonify(error='InternalError',
                                 message='An unexpected error occurred')
    response.status_code = 500
    return response


def register_commands(app: Flask) -> None:
    """Register management commands with the Flask CLI."""
    @app.cli.command('create-db')
    def create_db() -> None:
        """Create all database tables."""
        datastore.create_all()
        click.echo('Created tables')

    @app.cli.command('purge-sessions')
    def purge_sessions() -> None:
        """Delete expired sessions."""
        removed = sessions.purge_expired()
        click.echo(f'Removed {removed} expired sessions')
