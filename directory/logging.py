"""
Structured logging for the directory service.

Every module gets its logger from :func:`getLogger`, so that log records are
emitted as one JSON object per line regardless of where they originate.
"""

import logging
import os
import sys

from pythonjsonlogger.json import JsonFormatter

LOGLEVEL = int(os.environ.get('LOGLEVEL', 20))
FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s'


def getLogger(name: str, stream=sys.stderr) -> logging.Logger:
    """
    Get a logger with a JSON formatter.

    Parameters
    ----------
    name : str
        Usually ``__name__`` of the calling module.
    stream : file-like
        Where log records are written.

    Returns
    -------
    :class:`logging.Logger`

    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(stream)
        formatter = JsonFormatter(
            FORMAT,
            rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(LOGLEVEL)
    logger.propagate = False
    return logger
