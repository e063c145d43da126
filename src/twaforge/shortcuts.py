"""App shortcuts derived from the Web Manifest ``shortcuts`` member."""

from __future__ import annotations

import logging
from urllib.parse import urljoin

from pydantic import BaseModel, ConfigDict, Field

from twaforge.errors import ManifestValidationError
from twaforge.icons import find_suitable_icon
from twaforge.util import escape_gradle_string
from twaforge.web_manifest import WebManifestIcon, WebManifestShortcut

logger = logging.getLogger(__name__)

SHORT_NAME_MAX_SIZE = 12
MIN_SHORTCUT_ICON_SIZE = 96
MAX_SHORTCUTS = 4


class ShortcutInfo(BaseModel):
    """A launcher shortcut with every URL already resolved."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    short_name: str = Field(alias="shortName")
    url: str
    chosen_icon_url: str = Field(alias="chosenIconUrl")
    chosen_maskable_icon_url: str | None = Field(default=None, alias="chosenMaskableIconUrl")
    chosen_monochrome_icon_url: str | None = Field(default=None, alias="chosenMonochromeIconUrl")

    @staticmethod
    def asset_name(index: int) -> str:
        return f"shortcut_{index}"

    def to_android_string(self, index: int) -> str:
        """Entry of the ``shortcuts`` list in the generated build.gradle."""
        name = escape_gradle_string(self.name)
        short_name = escape_gradle_string(self.short_name)
        url = escape_gradle_string(self.url)
        return (
            f"[name:'{name}', short_name:'{short_name}', "
            f"url:'{url}', icon:'{self.asset_name(index)}']"
        )

    @classmethod
    def from_shortcut_json(
        cls, web_manifest_url: str, shortcut: WebManifestShortcut
    ) -> ShortcutInfo:
        """Build a shortcut, raising ManifestValidationError when it cannot be used."""
        name = shortcut.name or shortcut.short_name
        if not shortcut.icons or not shortcut.url or not name:
            raise ManifestValidationError("missing metadata")

        icon = find_suitable_icon(shortcut.icons, "any", MIN_SHORTCUT_ICON_SIZE)
        if icon is None:
            raise ManifestValidationError("not finding a suitable icon")
        maskable = find_suitable_icon(shortcut.icons, "maskable", MIN_SHORTCUT_ICON_SIZE)
        monochrome = find_suitable_icon(shortcut.icons, "monochrome", MIN_SHORTCUT_ICON_SIZE)

        def resolve(icon: WebManifestIcon | None) -> str | None:
            return urljoin(web_manifest_url, icon.src) if icon else None

        return cls(
            name=name,
            short_name=shortcut.short_name or name[:SHORT_NAME_MAX_SIZE],
            url=urljoin(web_manifest_url, shortcut.url),
            chosen_icon_url=resolve(icon),
            chosen_maskable_icon_url=resolve(maskable),
            chosen_monochrome_icon_url=resolve(monochrome),
        )


def generate_shortcuts(
    web_manifest_url: str,
    shortcuts: list[WebManifestShortcut] | None,
    log: logging.Logger | None = None,
) -> list[ShortcutInfo]:
    """Keep the first ``MAX_SHORTCUTS`` usable shortcuts, in manifest order."""
    log = log or logger
    result: list[ShortcutInfo] = []
    for index, shortcut in enumerate(shortcuts or ()):
        if len(result) >= MAX_SHORTCUTS:
            break
        try:
            result.append(ShortcutInfo.from_shortcut_json(web_manifest_url, shortcut))
        except ManifestValidationError as exc:
            log.warning("Skipping shortcut[%d] for %s.", index, exc)
    return result


__all__ = ["MAX_SHORTCUTS", "ShortcutInfo", "generate_shortcuts"]
