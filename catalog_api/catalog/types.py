"""Column types for JSON values stored in text columns."""

import json
from typing import Any

import structlog
from sqlalchemy import Text
from sqlalchemy.types import TypeDecorator

logger = structlog.get_logger()


class JSONText(TypeDecorator):
    """JSON value serialized into a TEXT column.

    Array columns (the default) always load as a list: NULL, malformed JSON
    and non-array payloads all degrade to ``[]``. Object columns load as the
    decoded value, or None when unreadable.
    """

    impl = Text
    cache_ok = True

    def __init__(self, array: bool = True, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.array = array

    def process_bind_param(self, value: Any, dialect: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, str):
            # Already serialized upstream
            return value
        return json.dumps(value, default=str)

    def process_result_value(self, value: str | None, dialect: Any) -> Any:
        return decode_json_text(value, array=self.array)


def decode_json_text(value: Any, array: bool = True) -> Any:
    """Decode a stored JSON text value without ever raising.

    Args:
        value: Raw stored value (text, already-decoded value or None).
        array: Whether the column holds an array.

    Returns:
        The decoded value; ``[]`` (array) or None (object) when unreadable.
    """
    empty: Any = [] if array else None
    if value is None or value == "":
        return empty

    decoded = value
    if isinstance(value, (str, bytes)):
        try:
            decoded = json.loads(value)
        except (TypeError, ValueError):
            logger.warning("Malformed JSON column value", value=str(value)[:200])
            return empty

    if array:
        if decoded is None:
            return []
        if not isinstance(decoded, list):
            logger.warning("JSON column value is not an array", value=str(value)[:200])
            return []
    return decoded
