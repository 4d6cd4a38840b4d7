"""JSON encoding for API responses."""

from datetime import date, datetime
from enum import Enum
from typing import Any

from flask.json.provider import DefaultJSONProvider


class ISO8601JSONProvider(DefaultJSONProvider):
    """Renders datetimes as ISO-8601 strings, and enums by value."""

    @staticmethod
    def default(obj: Any) -> Any:
        """Serialize objects that the stdlib encoder does not know about."""
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        return DefaultJSONProvider.default(obj)
