"""The TWA manifest: everything needed to generate the Android project.

It is created from a Web Manifest, edited by the user, and persisted as
``twa-manifest.json``. Instances are immutable; ``updated()`` returns a
validated copy with some fields replaced.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Literal
from urllib.parse import urljoin, urlsplit

import httpx
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from twaforge.errors import ManifestValidationError
from twaforge.features.config import Features
from twaforge.handlers import (
    FileHandler,
    ProtocolHandler,
    log_rejections,
    process_file_handlers,
    process_protocol_handlers,
)
from twaforge.icons import find_suitable_icon
from twaforge.shortcuts import ShortcutInfo, generate_shortcuts
from twaforge.util import generate_package_id, parse_color, validate_not_empty
from twaforge.web_manifest import (
    ShareTarget,
    WebManifest,
    WebManifestIcon,
    fetch_web_manifest,
    parse_web_manifest,
)

logger = logging.getLogger(__name__)

MIN_ICON_SIZE = 512
MIN_NOTIFICATION_ICON_SIZE = 48
SHORT_NAME_MAX_SIZE = 12

DISPLAY_MODES = ("standalone", "fullscreen", "fullscreen-sticky")
ORIENTATIONS = (
    "default",
    "any",
    "natural",
    "landscape",
    "portrait",
    "portrait-primary",
    "portrait-secondary",
    "landscape-primary",
    "landscape-secondary",
)

DEFAULT_SPLASHSCREEN_FADEOUT_DURATION = 300
DEFAULT_APP_NAME = "My TWA"
DEFAULT_DISPLAY_MODE = "standalone"
DEFAULT_ORIENTATION = "default"
DEFAULT_THEME_COLOR = "#FFFFFF"
DEFAULT_NAVIGATION_COLOR = "#000000"
DEFAULT_NAVIGATION_DIVIDER_COLOR = "#00000000"
DEFAULT_BACKGROUND_COLOR = "#FFFFFF"
DEFAULT_APP_VERSION_CODE = 1
DEFAULT_APP_VERSION_NAME = str(DEFAULT_APP_VERSION_CODE)
DEFAULT_SIGNING_KEY_PATH = "./android.keystore"
DEFAULT_SIGNING_KEY_ALIAS = "android"
DEFAULT_ENABLE_NOTIFICATIONS = False
DEFAULT_GENERATOR_APP_NAME = "unknown"

# Field names accepted by TwaManifest.merge(fields_to_ignore=...).
MERGEABLE_FIELDS = (
    "name",
    "short_name",
    "display",
    "themeColor",
    "backgroundColor",
    "startUrl",
    "icons",
    "maskableIcons",
    "monochromeIcons",
    "shortcuts",
)

_COLOR_FIELDS = (
    "theme_color",
    "navigation_color",
    "navigation_color_dark",
    "navigation_divider_color",
    "navigation_divider_color_dark",
    "background_color",
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore"
    )


class SigningKeyInfo(_CamelModel):
    path: str = DEFAULT_SIGNING_KEY_PATH
    alias: str = DEFAULT_SIGNING_KEY_ALIAS


class Fingerprint(_CamelModel):
    name: str | None = None
    value: str


class AlphaDependencies(_CamelModel):
    enabled: bool = False


class TwaManifest(_CamelModel):
    package_id: str
    # Missing required values are reported by validate(), not at parse time.
    host: str = ""
    name: str = ""
    launcher_name: str = ""
    display: str = DEFAULT_DISPLAY_MODE
    orientation: str = DEFAULT_ORIENTATION
    theme_color: str = DEFAULT_THEME_COLOR
    navigation_color: str = DEFAULT_NAVIGATION_COLOR
    navigation_color_dark: str = DEFAULT_NAVIGATION_COLOR
    navigation_divider_color: str = DEFAULT_NAVIGATION_DIVIDER_COLOR
    navigation_divider_color_dark: str = DEFAULT_NAVIGATION_DIVIDER_COLOR
    background_color: str = DEFAULT_BACKGROUND_COLOR
    enable_notifications: bool = DEFAULT_ENABLE_NOTIFICATIONS
    start_url: str = ""
    icon_url: str | None = None
    maskable_icon_url: str | None = None
    monochrome_icon_url: str | None = None
    splash_screen_fade_out_duration: int = DEFAULT_SPLASHSCREEN_FADEOUT_DURATION
    signing_key: SigningKeyInfo = Field(default_factory=SigningKeyInfo)
    app_version_code: int = DEFAULT_APP_VERSION_CODE
    # "appVersion" is the legacy key; it is read but never written.
    app_version_name: str = Field(
        default=DEFAULT_APP_VERSION_NAME,
        validation_alias=AliasChoices("appVersionName", "appVersion", "app_version_name"),
        serialization_alias="appVersionName",
    )
    shortcuts: list[ShortcutInfo] = Field(default_factory=list)
    generator_app: str = DEFAULT_GENERATOR_APP_NAME
    web_manifest_url: str | None = None
    fallback_type: Literal["customtabs", "webview"] = "customtabs"
    features: Features = Field(default_factory=Features)
    alpha_dependencies: AlphaDependencies = Field(default_factory=AlphaDependencies)
    enable_site_settings_shortcut: bool = True
    is_chrome_os_only: bool = Field(default=False, alias="isChromeOSOnly")
    share_target: ShareTarget | None = None
    protocol_handlers: list[ProtocolHandler] = Field(default_factory=list)
    file_handlers: list[FileHandler] = Field(default_factory=list)
    fingerprints: list[Fingerprint] = Field(default_factory=list)
    service_account_json_file: str | None = None
    retained_bundles: list[int] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _fill_launcher_name(cls, data: Any) -> Any:
        # Older manifests have no launcherName.
        if isinstance(data, dict) and not (data.get("launcherName") or data.get("launcher_name")):
            data = {**data, "launcherName": data.get("name", "")}
        return data

    @field_validator("display", mode="before")
    @classmethod
    def _coerce_display(cls, value: Any) -> Any:
        return value if value in DISPLAY_MODES else DEFAULT_DISPLAY_MODE

    @field_validator("orientation", mode="before")
    @classmethod
    def _coerce_orientation(cls, value: Any) -> Any:
        return value if value in ORIENTATIONS else DEFAULT_ORIENTATION

    @field_validator(*_COLOR_FIELDS)
    @classmethod
    def _normalize_color(cls, value: str) -> str:
        return parse_color(value)

    @field_validator("fallback_type", mode="before")
    @classmethod
    def _default_fallback(cls, value: Any) -> Any:
        return value or "customtabs"

    # -- Validation ----------------------------------------------------------

    def validate(self) -> str | None:  # type: ignore[override]
        """Return why this manifest cannot generate a project, or None.

        This instance method replaces pydantic's deprecated ``BaseModel.validate``
        classmethod; parse raw data with ``model_validate`` or ``from_json``.
        """
        for field_name, value in (
            ("host", self.host),
            ("name", self.name),
            ("startUrl", self.start_url),
            ("iconUrl", self.icon_url),
        ):
            error = validate_not_empty(value, field_name)
            if error is not None:
                return error
        return None

    def ensure_valid(self) -> None:
        error = self.validate()
        if error is not None:
            raise ManifestValidationError(f"Invalid TWA Manifest: {error}")

    # -- Derived values ------------------------------------------------------

    def generate_shortcuts(self) -> str:
        """The shortcuts list in the form read by the generated build.gradle."""
        return "[" + ",".join(s.to_android_string(i) for i, s in enumerate(self.shortcuts)) + "]"

    @property
    def has_maskable_icon(self) -> bool:
        return bool(self.maskable_icon_url)

    # -- Copying and persistence ---------------------------------------------

    def updated(self, **changes: Any) -> TwaManifest:
        """Return a validated copy with ``changes`` (by field name) applied."""
        data = self.model_dump(exclude_none=True)
        data.update(changes)
        return type(self).model_validate(data)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json_string(self) -> str:
        return json.dumps(self.to_json(), indent=2)

    def save_to_file(self, filename: str | Path) -> None:
        Path(filename).write_text(self.to_json_string(), encoding="utf-8")

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> TwaManifest:
        if not isinstance(data, dict):
            raise ManifestValidationError("TWA Manifest must be a JSON object")
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ManifestValidationError(f"Invalid TWA Manifest: {exc}") from exc

    @classmethod
    def from_file(cls, filename: str | Path) -> TwaManifest:
        path = Path(filename)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ManifestValidationError(f"{path} is not valid JSON: {exc}") from exc
        return cls.from_json(data)

    # -- Creation from a Web Manifest ----------------------------------------

    @classmethod
    def from_web_manifest_json(
        cls,
        web_manifest_url: str,
        web_manifest: WebManifest | dict[str, Any],
        log: logging.Logger | None = None,
    ) -> TwaManifest:
        """Build a TWA manifest from a Web Manifest served at ``web_manifest_url``."""
        log = log or logger
        if isinstance(web_manifest, dict):
            web_manifest = parse_web_manifest(web_manifest)

        full_start_url = urljoin(web_manifest_url, web_manifest.start_url or "/")
        scope_url = _scope_url(web_manifest_url, web_manifest, full_start_url)
        host = _host(web_manifest_url)

        protocol_result = process_protocol_handlers(
            web_manifest.protocol_handlers, full_start_url, scope_url
        )
        log_rejections("protocol handler", protocol_result.rejections, log)
        file_result = process_file_handlers(web_manifest.file_handlers, full_start_url, scope_url)
        log_rejections("file handler", file_result.rejections, log)

        short_name = web_manifest.short_name
        name = web_manifest.name
        return cls(
            package_id=generate_package_id(urlsplit(web_manifest_url).hostname or "") or "",
            host=host,
            name=name or short_name or DEFAULT_APP_NAME,
            launcher_name=short_name or (name or "")[:SHORT_NAME_MAX_SIZE] or DEFAULT_APP_NAME,
            display=web_manifest.display or DEFAULT_DISPLAY_MODE,
            orientation=web_manifest.orientation or DEFAULT_ORIENTATION,
            theme_color=_color_or_default(web_manifest.theme_color, DEFAULT_THEME_COLOR, log),
            background_color=_color_or_default(
                web_manifest.background_color, DEFAULT_BACKGROUND_COLOR, log
            ),
            start_url=_path_and_query(full_start_url),
            icon_url=_icon_url(web_manifest.icons, "any", MIN_ICON_SIZE, web_manifest_url),
            maskable_icon_url=_icon_url(
                web_manifest.icons, "maskable", MIN_ICON_SIZE, web_manifest_url
            ),
            monochrome_icon_url=_icon_url(
                web_manifest.icons, "monochrome", MIN_NOTIFICATION_ICON_SIZE, web_manifest_url
            ),
            shortcuts=generate_shortcuts(web_manifest_url, web_manifest.shortcuts, log),
            web_manifest_url=web_manifest_url,
            share_target=verify_share_target(web_manifest_url, web_manifest.share_target),
            protocol_handlers=protocol_result.accepted,
            file_handlers=file_result.accepted,
        )

    @classmethod
    async def from_web_manifest(
        cls, url: str, client: httpx.AsyncClient | None = None
    ) -> TwaManifest:
        """Download the Web Manifest at ``url`` and build a TWA manifest from it."""
        web_manifest = await fetch_web_manifest(url, client)
        return cls.from_web_manifest_json(url, web_manifest)

    @classmethod
    def merge(
        cls,
        fields_to_ignore: Iterable[str],
        web_manifest_url: str,
        web_manifest: WebManifest | dict[str, Any],
        old: TwaManifest,
        log: logging.Logger | None = None,
    ) -> TwaManifest:
        """Refresh ``old`` from a newer Web Manifest, keeping ``fields_to_ignore`` untouched."""
        log = log or logger
        ignored = set(fields_to_ignore)
        if isinstance(web_manifest, dict):
            web_manifest = parse_web_manifest(web_manifest)

        def pick(field_name: str, old_value: Any, new_value: Any) -> Any:
            if field_name in ignored:
                return old_value
            return new_value or old_value

        def pick_icon(field_name: str, old_value: str | None, purpose: str, size: int):
            if field_name in ignored:
                return old_value
            return _icon_url(web_manifest.icons, purpose, size, web_manifest_url) or old_value

        shortcuts = old.shortcuts
        if "shortcuts" not in ignored:
            shortcuts = generate_shortcuts(web_manifest_url, web_manifest.shortcuts, log)

        full_start_url = urljoin(web_manifest_url, web_manifest.start_url or "/")
        name = web_manifest.name
        display = web_manifest.display if web_manifest.display in DISPLAY_MODES else None

        return old.updated(
            name=pick("name", old.name, name or web_manifest.short_name),
            launcher_name=pick(
                "short_name",
                old.launcher_name,
                web_manifest.short_name or (name or "")[:SHORT_NAME_MAX_SIZE],
            ),
            display=pick("display", old.display, display),
            theme_color=pick(
                "themeColor", old.theme_color, _color_or_none(web_manifest.theme_color, log)
            ),
            background_color=pick(
                "backgroundColor",
                old.background_color,
                _color_or_none(web_manifest.background_color, log),
            ),
            start_url=pick("startUrl", old.start_url, _path_and_query(full_start_url)),
            icon_url=pick_icon("icons", old.icon_url, "any", MIN_ICON_SIZE),
            maskable_icon_url=pick_icon(
                "maskableIcons", old.maskable_icon_url, "maskable", MIN_ICON_SIZE
            ),
            monochrome_icon_url=pick_icon(
                "monochromeIcons",
                old.monochrome_icon_url,
                "monochrome",
                MIN_NOTIFICATION_ICON_SIZE,
            ),
            shortcuts=shortcuts,
            web_manifest_url=web_manifest_url,
        )


def verify_share_target(
    web_manifest_url: str, share_target: ShareTarget | None
) -> ShareTarget | None:
    """Drop unusable share targets and make the action absolute."""
    if share_target is None or not share_target.action:
        return None
    if share_target.params and share_target.params.files:
        if any(not file.accept for file in share_target.params.files):
            return None
    try:
        action = urljoin(web_manifest_url, share_target.action)
    except ValueError:
        logger.warning("Ignoring share_target with invalid action: %s", share_target.action)
        return None
    return share_target.model_copy(update={"action": action})


def _icon_url(
    icons: list[WebManifestIcon], purpose: str, min_size: int, web_manifest_url: str
) -> str | None:
    icon = find_suitable_icon(icons, purpose, min_size)
    return urljoin(web_manifest_url, icon.src) if icon else None


def _path_and_query(url: str) -> str:
    parts = urlsplit(url)
    path = parts.path or "/"
    return f"{path}?{parts.query}" if parts.query else path


def _host(url: str) -> str:
    return urlsplit(url).netloc.rsplit("@", 1)[-1]


def _scope_url(web_manifest_url: str, web_manifest: WebManifest, full_start_url: str) -> str:
    if web_manifest.scope:
        return urljoin(web_manifest_url, web_manifest.scope)
    return urljoin(full_start_url, ".")


def _color_or_none(value: str | None, log: logging.Logger) -> str | None:
    if not value:
        return None
    try:
        return parse_color(value)
    except ValueError:
        log.warning("Ignoring invalid color %r", value)
        return None


def _color_or_default(value: str | None, default: str, log: logging.Logger) -> str:
    return _color_or_none(value, log) or default


__all__ = [
    "DISPLAY_MODES",
    "Fingerprint",
    "MERGEABLE_FIELDS",
    "ORIENTATIONS",
    "SigningKeyInfo",
    "TwaManifest",
    "verify_share_target",
]
