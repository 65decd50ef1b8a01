"""Reusable input validators for request schemas and path parameters.

Used from Pydantic models:

    @field_validator("images", mode="before")
    @classmethod
    def _images(cls, v):
        return normalize_images(v)
"""

import re
import uuid
from urllib.parse import urlparse

from goagri.middleware.exceptions import ValidationFailedError
from goagri.models.delivery import DELIVERY_STATUSES, DELIVERY_TYPES

STATUS_SEPARATORS = re.compile(r"[\s_]+")


def sanitize_string(value: str, max_length: int = 1000) -> str:
    """Trim and length-check a free-text value."""
    if not isinstance(value, str):
        raise ValueError("Must be a string")

    value = value.strip()
    if not value:
        raise ValueError("Value must not be blank")
    if len(value) > max_length:
        raise ValueError(f"String too long (max {max_length} characters)")
    return value


def is_valid_id(value: str) -> bool:
    """True if `value` is a well-formed record identifier (UUID)."""
    try:
        uuid.UUID(str(value))
    except (ValueError, AttributeError, TypeError):
        return False
    return True


def is_http_url(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def normalize_images(value) -> list[str]:
    """Accept a list of URLs or a comma/newline separated string.

    Returns the trimmed non-empty URLs; every entry must be http(s).
    """
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        items = [str(v).strip() for v in value]
    else:
        items = [s.strip() for s in re.split(r"[\n,]", str(value))]
    items = [s for s in items if s]

    for url in items:
        if not is_http_url(url):
            raise ValueError("images must be valid http(s) URLs")
    return items


def normalize_delivery_status(value: str) -> str:
    """'In Transit', 'in_transit' and 'IN-TRANSIT' all become 'in-transit'."""
    norm = STATUS_SEPARATORS.sub("-", str(value).strip().lower())
    if norm not in DELIVERY_STATUSES:
        raise ValueError(
            f"Invalid status. Must be one of: {', '.join(DELIVERY_STATUSES)}"
        )
    return norm


def validate_delivery_type(value: str) -> str:
    norm = str(value).strip().lower()
    if norm not in DELIVERY_TYPES:
        raise ValueError(
            f"Invalid delivery type. Must be one of: {', '.join(DELIVERY_TYPES)}"
        )
    return norm


def require_valid_id(value: str, label: str = "id") -> str:
    """Path-parameter guard: malformed identifiers are a 400, not a 404."""
    if not is_valid_id(value):
        raise ValidationFailedError(f"Invalid {label} format: {value}")
    return value
