"""Validators for interactive input.

Each validator takes the raw string typed by the user and returns the
converted value, or raises ``ValueError`` with a message for the user.
"""

from __future__ import annotations

import mimetypes
import re
from collections.abc import Callable
from urllib.parse import urlsplit

from twaforge.twa_manifest import DISPLAY_MODES, ORIENTATIONS
from twaforge.util import parse_color
from twaforge.util import validate_package_id as _package_id_error

_SHA256_FINGERPRINT = re.compile(r"^([0-9A-F]{2}:){31}[0-9A-F]{2}$")

MIN_KEY_PASSWORD_LENGTH = 6


def validate_color(value: str) -> str:
    try:
        return parse_color(value)
    except ValueError:
        raise ValueError(f'Invalid Color "{value}". Try using hex, e.g. #FFFFFF') from None


def validate_url(value: str) -> str:
    url = value.strip()
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise ValueError(f"Invalid URL: {value}")
    return url


def validate_image_url(value: str) -> str:
    """A URL whose extension, when known, is a raster image type."""
    url = validate_url(value)
    mime_type, _ = mimetypes.guess_type(urlsplit(url).path)
    if mime_type:
        if not mime_type.startswith("image/"):
            raise ValueError(
                f'URL must resolve to an image/* mime-type, but resolved to "{mime_type}".'
            )
        if mime_type.startswith("image/svg"):
            raise ValueError("SVG images are not supported yet.")
    return url


def validate_optional_url(value: str) -> str | None:
    if not value.strip():
        return None
    return validate_url(value)


def validate_optional_image_url(value: str) -> str | None:
    if not value.strip():
        return None
    return validate_image_url(value)


def create_validate_string(
    min_length: int | None = None, max_length: int | None = None
) -> Callable[[str], str]:
    def _validate(value: str) -> str:
        value = value.strip()
        if min_length and len(value) < min_length:
            raise ValueError(
                f"Minimum length is {min_length} but input is {len(value)}."
            )
        if max_length and len(value) > max_length:
            raise ValueError(
                f"Maximum length is {max_length} but input is {len(value)}."
            )
        return value

    return _validate


validate_key_password = create_validate_string(MIN_KEY_PASSWORD_LENGTH)


def validate_host(value: str) -> str:
    """A bare hostname. An ``https://`` prefix is accepted and stripped."""
    host = value.strip()
    if not host:
        raise ValueError("Minimum length is 1 but input is 0.")

    parts = host.split("://")
    if len(parts) > 2:
        raise ValueError(f"Invalid URL: {value}")
    if len(parts) == 2:
        if parts[0] != "https":
            raise ValueError("Url must be https.")
        host = parts[1]

    try:
        host.encode("idna")
    except UnicodeError:
        raise ValueError(f"Invalid URL: {value}") from None
    if not urlsplit(f"https://{host}").hostname or "/" in host:
        raise ValueError(f"Invalid URL: {value}")
    return host


def validate_display_mode(value: str) -> str:
    if value not in DISPLAY_MODES:
        raise ValueError(f'Invalid display mode "{value}". Use one of {", ".join(DISPLAY_MODES)}')
    return value


def validate_orientation(value: str) -> str:
    if value not in ORIENTATIONS:
        raise ValueError(f'Invalid orientation "{value}". Use one of {", ".join(ORIENTATIONS)}')
    return value


def validate_integer(value: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        raise ValueError(f"Invalid integer provided: {value}") from None


def validate_package_id(value: str) -> str:
    error = _package_id_error(value)
    if error is not None:
        raise ValueError(error)
    return value


def validate_sha256_fingerprint(value: str) -> str:
    fingerprint = value.strip().upper()
    if not _SHA256_FINGERPRINT.match(fingerprint):
        raise ValueError(f"{value} is not a valid SHA-256 fingerprint.")
    return fingerprint


__all__ = [
    "create_validate_string",
    "validate_color",
    "validate_display_mode",
    "validate_host",
    "validate_image_url",
    "validate_integer",
    "validate_key_password",
    "validate_optional_image_url",
    "validate_optional_url",
    "validate_orientation",
    "validate_package_id",
    "validate_sha256_fingerprint",
    "validate_url",
]
