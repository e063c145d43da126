"""Choosing the best icon from a Web Manifest icon list."""

from __future__ import annotations

from collections.abc import Iterable

from twaforge.web_manifest import WebManifestIcon


def find_suitable_icon(
    icons: Iterable[WebManifestIcon] | None, purpose: str, min_size: int = 0
) -> WebManifestIcon | None:
    """Return the largest icon declaring ``purpose``.

    Icons without a ``purpose`` count as ``any``. On equal sizes the first
    icon in manifest order wins. Returns None when no icon matches or when
    the best match is smaller than ``min_size``.
    """
    largest: WebManifestIcon | None = None
    largest_size = 0
    for icon in icons or ():
        if purpose not in icon.purposes:
            continue
        size = icon.size
        if largest is None or size > largest_size:
            largest = icon
            largest_size = size

    if largest is None:
        return None
    if min_size > 0 and largest_size < min_size:
        return None
    return largest
