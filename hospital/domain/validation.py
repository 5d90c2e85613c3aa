import datetime as dt
import re
from collections.abc import Iterable, Mapping
from typing import Any

from hospital.domain.exceptions import InvalidFormatError, ValidationError

MAX_STRING_LENGTH = 1000

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^[\d\s\-()+]+$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")
# Control characters except tab (\x09), newline (\x0a) and carriage return (\x0d).
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not sanitize_string(value))


def require_fields(entity_type: str, data: Mapping[str, Any], fields: Iterable[str]) -> None:
    """Raise one ``ValidationError`` naming every missing, null or blank field."""
    missing = [field for field in fields if _is_blank(data.get(field))]
    if missing:
        raise ValidationError(entity_type, missing)


def is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and bool(_EMAIL_RE.match(value.strip()))


def is_valid_date(value: Any) -> bool:
    """True for ``YYYY-MM-DD`` (optionally followed by a time) naming a real day.

    ``2023-02-30`` is rejected even though it has the right shape.
    """
    if not isinstance(value, str):
        return False
    text = value.strip()
    if not _DATE_RE.match(text):
        return False
    try:
        if len(text) == 10:
            dt.date.fromisoformat(text)
        else:
            dt.datetime.fromisoformat(text)
    except ValueError:
        return False
    return True


def is_valid_date_time(value: Any) -> bool:
    """True for an ISO-8601 date-time (or bare date) string."""
    if not isinstance(value, str) or not _DATE_RE.match(value.strip()):
        return False
    try:
        dt.datetime.fromisoformat(value.strip())
    except ValueError:
        return False
    return True


def is_valid_phone_number(value: Any) -> bool:
    """Lenient check: digits, spaces, hyphens, parentheses and ``+``, at least 4 long."""
    if not isinstance(value, str):
        return False
    text = value.strip()
    return len(text) >= 4 and bool(_PHONE_RE.match(text))


def sanitize_string(value: Any) -> str:
    """Trim, drop control characters and cap the length of a user-supplied string."""
    if not isinstance(value, str):
        return ""
    return _CONTROL_CHARS_RE.sub("", value.strip())[:MAX_STRING_LENGTH]


def require_id(value: Any, entity_type: str) -> str:
    entity_id = sanitize_string(value)
    if not entity_id:
        raise InvalidFormatError(
            f"{entity_type} ID must be a non-empty string",
            {"entityType": entity_type, "id": value},
        )
    return entity_id
