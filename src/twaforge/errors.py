"""Exceptions raised by twaforge.

Validators that filter input (icon selection, URL and protocol
normalization) return ``None`` instead of raising. These exceptions are
reserved for conditions that abort the current operation.
"""

from __future__ import annotations


class TwaforgeError(Exception):
    """Base class for every error raised on purpose by twaforge."""


class ManifestValidationError(TwaforgeError):
    """A manifest is missing mandatory data or holds an invalid value."""


class FetchError(TwaforgeError):
    """A remote resource answered with an unexpected status."""

    def __init__(self, message: str, url: str = "", status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class InvalidImageError(TwaforgeError):
    """An icon is not a raster image we can decode."""


class ProcessError(TwaforgeError):
    """An external tool exited with a non-zero status."""

    def __init__(self, message: str, returncode: int, stdout: str = "", stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


__all__ = [
    "FetchError",
    "InvalidImageError",
    "ManifestValidationError",
    "ProcessError",
    "TwaforgeError",
]
