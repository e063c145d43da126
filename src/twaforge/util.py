"""Small helpers shared by the manifest, generator and CLI layers."""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable
from typing import Any

from PIL import ImageColor

JAVA_KEYWORDS = frozenset(
    {
        "abstract", "assert", "boolean", "break", "byte", "case", "catch", "char", "class",
        "const", "continue", "default", "do", "double", "else", "enum", "extends", "final",
        "finally", "float", "for", "goto", "if", "implements", "import", "instanceof", "int",
        "interface", "long", "native", "new", "package", "private", "protected", "public",
        "return", "short", "static", "strictfp", "super", "switch", "synchronized", "this",
        "throw", "throws", "transient", "try", "void", "volatile", "while",
    }
)  # fmt: skip

_DISALLOWED_PACKAGE_CHARS = re.compile(r"[^a-zA-Z0-9_.]")
_VALID_PACKAGE_SEGMENT = re.compile(r"^[a-zA-Z][A-Za-z0-9_]*$")

# Web orientation -> android.content.pm.ActivityInfo constant used by LauncherActivity.
_SCREEN_ORIENTATIONS = {
    "portrait": "ActivityInfo.SCREEN_ORIENTATION_USER_PORTRAIT",
    "portrait-primary": "ActivityInfo.SCREEN_ORIENTATION_PORTRAIT",
    "portrait-secondary": "ActivityInfo.SCREEN_ORIENTATION_REVERSE_PORTRAIT",
    "landscape": "ActivityInfo.SCREEN_ORIENTATION_USER_LANDSCAPE",
    "landscape-primary": "ActivityInfo.SCREEN_ORIENTATION_LANDSCAPE",
    "landscape-secondary": "ActivityInfo.SCREEN_ORIENTATION_REVERSE_LANDSCAPE",
}


def generate_package_id(host: str) -> str | None:
    """Build an Android package id from a host name.

    ``pwa-directory-test.appspot.com`` becomes
    ``com.appspot.pwa_directory_test.twa``. Labels that are Java keywords get
    a leading ``_``. Leading digits are left alone; ``validate_package_id``
    rejects them later.
    """
    host = host.strip()
    if not host:
        return None

    parts: list[str] = []
    for label in reversed(host.split(".")):
        if not label.strip():
            continue
        parts.append(f"_{label}" if label in JAVA_KEYWORDS else label)

    if not parts:
        return None

    parts.append("twa")
    return _DISALLOWED_PACKAGE_CHARS.sub("_", ".".join(parts))


def validate_not_empty(value: str | None, field_name: str) -> str | None:
    """Return an error message when ``value`` is missing or blank."""
    if value is None or not value.strip():
        return f"{field_name} cannot be empty"
    return None


def validate_package_id(package_id: str | None) -> str | None:
    """Return a description of what is wrong with ``package_id``, or None if valid."""
    error = validate_not_empty(package_id, "packageId")
    if error is not None:
        return error

    parts = package_id.split(".")
    if len(parts) < 2:
        return 'packageId must have at least 2 sections separated by "."'

    for part in parts:
        if part in JAVA_KEYWORDS:
            return (
                f'Invalid packageId section: "{part}". {part} is a Java keyword and cannot be '
                'used as a package section. Consider adding an "_" before the section name.'
            )
        if not _VALID_PACKAGE_SEGMENT.match(part):
            return (
                f'Invalid packageId section: "{part}". Only alphanumeric characters and '
                "underscore [a-zA-Z0-9_] are allowed in packageId sections. Each section "
                "must start with a letter [a-zA-Z]"
            )
    return None


def parse_color(value: str) -> str:
    """Normalize any CSS color into ``#RRGGBB`` (or ``#RRGGBBAA`` when translucent).

    Raises ``ValueError`` for strings Pillow cannot parse.
    """
    rgba = ImageColor.getrgb(value.strip())
    if len(rgba) == 4 and rgba[3] != 255:
        return "#{:02X}{:02X}{:02X}{:02X}".format(*rgba)
    return "#{:02X}{:02X}{:02X}".format(*rgba[:3])


def to_android_color(value: str) -> str:
    """Android resources put alpha first: ``#RRGGBBAA`` -> ``#AARRGGBB``."""
    color = parse_color(value)
    if len(color) == 9:
        return f"#{color[7:9]}{color[1:7]}"
    return color


def color_to_rgba(value: str) -> tuple[int, int, int, int]:
    rgba = ImageColor.getrgb(value.strip())
    if len(rgba) == 3:
        return (*rgba, 255)
    return rgba


def to_android_screen_orientation(orientation: str) -> str:
    return _SCREEN_ORIENTATIONS.get(orientation, "ActivityInfo.SCREEN_ORIENTATION_UNSPECIFIED")


def escape_json_string(value: str) -> str:
    """Escape double quotes for a JSON string embedded in a Gradle ``resValue``."""
    return value.replace('"', '\\\\"')


def escape_gradle_string(value: str) -> str:
    r"""Escape ``\`` and ``'`` twice: once for Gradle and once for AAPT.

    ``Andre's Code`` is written as ``Andre\\\'s Code``.
    """
    return re.sub(r"([\\'])", r"\\\\\\\1", value)


def escape_double_quoted_shell_string(value: str) -> str:
    return re.sub(r'([$"`\\])', r"\\\1", value)


def escape_java_string(value: str) -> str:
    """Escape a value for a double-quoted Java string literal."""
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )


def escape_groovy_double_quoted(value: str) -> str:
    """Escape a value for a double-quoted Groovy string, where ``$`` interpolates."""
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("$", "\\$")


async def gather_or_cancel(*aws: Awaitable[Any]) -> list[Any]:
    """Like ``asyncio.gather``, but when one awaitable fails the others are cancelled.

    The unfinished siblings are awaited before the error is re-raised, so no
    task keeps writing files after its caller has given up.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def escape_xml(value: str) -> str:
    return (
        value.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


__all__ = [
    "JAVA_KEYWORDS",
    "color_to_rgba",
    "escape_double_quoted_shell_string",
    "escape_gradle_string",
    "escape_groovy_double_quoted",
    "escape_java_string",
    "escape_json_string",
    "escape_xml",
    "gather_or_cancel",
    "generate_package_id",
    "parse_color",
    "to_android_color",
    "to_android_screen_orientation",
    "validate_not_empty",
    "validate_package_id",
]
