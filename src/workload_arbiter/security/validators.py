"""
Boundary validation for action parameters, API payloads and CLI arguments.

Typed actions call these from validate() before the Arbiter accepts them;
the API and CLI call them before anything reaches the engine. Each function
returns the cleaned value or raises ValidationError with a message that can
be shown to the user as-is.
"""

import ipaddress
import logging
import re
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

URL_SCHEMES = ("http", "https")
# Cloud metadata endpoints stay blocked even for the local actuator.
METADATA_HOSTS = {"metadata.google.internal", "169.254.169.254"}

MAX_KEY_PATH = 512
MAX_PROCESS_NAME = 260

# HKLM\SOFTWARE\...\ValueName: a root plus at least one more segment
KEY_PATH_RE = re.compile(r"[\w .\-]+(?:\\[\w .\-{}]+)+")
PROCESS_NAME_RE = re.compile(r"[\w .\-]+")
IDENTIFIER_RE = re.compile(r"[A-Za-z][\w\-]*")


class ValidationError(ValueError):
    """Bad input. str(error) is safe to return to the caller."""


def validate_not_empty(value: str, field_name: str = "input") -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{field_name} is required")
    return cleaned


def validate_length(
    value: str,
    field_name: str = "input",
    min_length: int = 0,
    max_length: int = 1_024,
) -> str:
    size = len(value)
    if not min_length <= size <= max_length:
        raise ValidationError(
            f"{field_name} must be {min_length}-{max_length} characters long (got {size})"
        )
    return value


def validate_identifier(value: str, field_name: str = "identifier") -> str:
    """Agent types and similar names: a letter, then letters, digits, _ or -."""
    if not IDENTIFIER_RE.fullmatch(value or ""):
        raise ValidationError(
            f"{field_name} {value!r} must start with a letter and use only "
            f"letters, digits, underscores and hyphens"
        )
    return value


def validate_key_path(value: str, field_name: str = "key_path") -> str:
    path = validate_length(validate_not_empty(value, field_name), field_name, 1, MAX_KEY_PATH)
    if not KEY_PATH_RE.fullmatch(path):
        raise ValidationError(
            f"{field_name} {path!r} is not a backslash-separated key path"
        )
    return path


def validate_process_name(value: str, field_name: str = "process") -> str:
    """Executable, service or companion names. No path separators."""
    name = validate_length(validate_not_empty(value, field_name), field_name, 1, MAX_PROCESS_NAME)
    if not PROCESS_NAME_RE.fullmatch(name):
        raise ValidationError(
            f"{field_name} {name!r} may only contain letters, digits, spaces, "
            f"dots, underscores and hyphens"
        )
    return name


def validate_fraction(value: float | int, field_name: str = "fraction") -> float:
    # bool is an int subclass; True must not pass as 1.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field_name} must be a number (got {value!r})")
    if value < 0.0 or value > 1.0:
        raise ValidationError(f"{field_name} must be between 0.0 and 1.0 (got {value})")
    return float(value)


def _is_internal(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return address.is_private or address.is_loopback or address.is_link_local


def validate_url(
    url: str,
    field_name: str = "url",
    allow_private: bool = False,
) -> str:
    """
    Check an outbound URL before any request is made.

    The actuator helper normally listens on loopback, so its callers pass
    allow_private=True. Metadata hosts are refused either way.
    """
    cleaned = validate_not_empty(url, field_name)
    parsed = urlparse(cleaned)
    if parsed.scheme not in URL_SCHEMES:
        raise ValidationError(
            f"{field_name} must be an http(s) URL (got scheme {parsed.scheme!r})"
        )
    host = (parsed.hostname or "").lower()
    if not host:
        raise ValidationError(f"{field_name} has no host")
    if host in METADATA_HOSTS:
        raise ValidationError(f"{field_name} may not target {host}")
    if not allow_private and _is_internal(host):
        raise ValidationError(f"{field_name} may not target an internal address ({host})")

    logger.debug(f"[Validators] Accepted {field_name} {parsed.scheme}://{host}")
    return cleaned


def validate_list_size(
    items: list,
    field_name: str = "list",
    max_items: int = 100,
) -> list:
    if len(items) > max_items:
        raise ValidationError(
            f"{field_name} has {len(items)} items; at most {max_items} are allowed"
        )
    return items
