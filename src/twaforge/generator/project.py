"""Generates the Android project for a TWA manifest.

The project is built from ``template_project``: a fixed list of files is
copied as-is, a few are rendered with ``string.Template`` (``${name}``
placeholders), and the icons are fetched once each and resized into every
density bucket Android expects.
"""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
from collections.abc import Callable, Iterable
from pathlib import Path
from string import Template
from urllib.parse import urljoin

import httpx

from twaforge.errors import ManifestValidationError
from twaforge.features.manager import FeatureManager
from twaforge.generator.images import Icon, IconDefinition, ImageHelper
from twaforge.twa_manifest import TwaManifest
from twaforge.util import (
    escape_gradle_string,
    escape_groovy_double_quoted,
    escape_json_string,
    escape_xml,
    gather_or_cancel,
    to_android_color,
    to_android_screen_orientation,
)
from twaforge.web_manifest import create_http_client, fetch_web_manifest_bytes

logger = logging.getLogger(__name__)

TEMPLATE_DIRECTORY = Path(__file__).resolve().parent.parent / "template_project"

COPY_FILE_LIST = (
    "settings.gradle",
    "gradle.properties",
    "build.gradle",
    "gradlew",
    "gradlew.bat",
    "gradle/wrapper/gradle-wrapper.properties",
    "app/src/main/res/values/colors.xml",
    "app/src/main/res/xml/filepaths.xml",
    "app/src/main/res/mipmap-anydpi-v26/ic_launcher.xml",
    "app/src/main/res/drawable-anydpi/shortcut_legacy_background.xml",
)

# Only copied when the manifest has a maskable icon.
MASKABLE_ONLY_FILE_LIST = ("app/src/main/res/mipmap-anydpi-v26/ic_launcher.xml",)

TEMPLATE_FILE_LIST = (
    "app/build.gradle",
    "app/src/main/AndroidManifest.xml",
    "app/src/main/res/xml/shortcuts.xml",
)

JAVA_DIR = "app/src/main/java"
JAVA_FILE_LIST = ("LauncherActivity.java", "Application.java", "DelegationService.java")

DELETE_PROJECT_FILE_LIST = (
    "settings.gradle",
    "gradle.properties",
    "build.gradle",
    "gradlew",
    "gradlew.bat",
    "store_icon.png",
    "gradle/",
    "app/",
)

IMAGES = [
    IconDefinition("app/src/main/res/mipmap-mdpi/ic_launcher.png", 48),
    IconDefinition("app/src/main/res/mipmap-hdpi/ic_launcher.png", 72),
    IconDefinition("app/src/main/res/mipmap-xhdpi/ic_launcher.png", 96),
    IconDefinition("app/src/main/res/mipmap-xxhdpi/ic_launcher.png", 144),
    IconDefinition("app/src/main/res/mipmap-xxxhdpi/ic_launcher.png", 192),
    IconDefinition("store_icon.png", 512),
]

SPLASH_IMAGES = [
    IconDefinition("app/src/main/res/drawable-mdpi/splash.png", 300),
    IconDefinition("app/src/main/res/drawable-hdpi/splash.png", 450),
    IconDefinition("app/src/main/res/drawable-xhdpi/splash.png", 600),
    IconDefinition("app/src/main/res/drawable-xxhdpi/splash.png", 900),
    IconDefinition("app/src/main/res/drawable-xxxhdpi/splash.png", 1200),
]

ADAPTIVE_IMAGES = [
    IconDefinition("app/src/main/res/mipmap-mdpi/ic_maskable.png", 82),
    IconDefinition("app/src/main/res/mipmap-hdpi/ic_maskable.png", 123),
    IconDefinition("app/src/main/res/mipmap-xhdpi/ic_maskable.png", 164),
    IconDefinition("app/src/main/res/mipmap-xxhdpi/ic_maskable.png", 246),
    IconDefinition("app/src/main/res/mipmap-xxxhdpi/ic_maskable.png", 328),
]

NOTIFICATION_IMAGES = [
    IconDefinition("app/src/main/res/drawable-mdpi/ic_notification_icon.png", 24),
    IconDefinition("app/src/main/res/drawable-hdpi/ic_notification_icon.png", 36),
    IconDefinition("app/src/main/res/drawable-xhdpi/ic_notification_icon.png", 48),
    IconDefinition("app/src/main/res/drawable-xxhdpi/ic_notification_icon.png", 72),
    IconDefinition("app/src/main/res/drawable-xxxhdpi/ic_notification_icon.png", 96),
]

WEB_MANIFEST_LOCATION = "app/src/main/res/raw/web_app_manifest.json"

_DISPLAY_MODE_METADATA = {
    "fullscreen": "immersive",
    "fullscreen-sticky": "sticky-immersive",
}

ProgressCallback = Callable[[int, int], None]


def shortcut_images(asset_name: str) -> list[IconDefinition]:
    return [
        IconDefinition(f"app/src/main/res/drawable-mdpi/{asset_name}.png", 48),
        IconDefinition(f"app/src/main/res/drawable-hdpi/{asset_name}.png", 72),
        IconDefinition(f"app/src/main/res/drawable-xhdpi/{asset_name}.png", 96),
        IconDefinition(f"app/src/main/res/drawable-xxhdpi/{asset_name}.png", 144),
        IconDefinition(f"app/src/main/res/drawable-xxxhdpi/{asset_name}.png", 192),
    ]


def _shortcut_maskable_templates(asset_name: str) -> dict[str, str]:
    return {
        "app/src/main/res/drawable-anydpi-v26/shortcut_maskable.xml": (
            f"app/src/main/res/drawable-anydpi-v26/{asset_name}.xml"
        ),
    }


def _shortcut_monochrome_templates(asset_name: str) -> dict[str, str]:
    return {
        "app/src/main/res/drawable-anydpi/shortcut_monochrome.xml": (
            f"app/src/main/res/drawable-anydpi/{asset_name}.xml"
        ),
        "app/src/main/res/drawable-anydpi-v26/shortcut_monochrome.xml": (
            f"app/src/main/res/drawable-anydpi-v26/{asset_name}.xml"
        ),
    }


class Progress:
    """Counts generation steps and reports them to a callback."""

    def __init__(self, total: int, callback: ProgressCallback | None = None):
        self.total = total
        self.current = 0
        self._callback = callback or (lambda current, total: None)
        self._callback(self.current, self.total)

    def update(self) -> None:
        if self.current == self.total:
            raise RuntimeError(
                f"Progress already reached total. current: {self.current}, total: {self.total}"
            )
        self.current += 1
        self._callback(self.current, self.total)

    def done(self) -> None:
        self.update()
        if self.current != self.total:
            raise RuntimeError(
                f"Invoked done before current equals total. "
                f"current: {self.current}, total: {self.total}"
            )


# -- Template arguments ---------------------------------------------------------


def _lines(items: Iterable[str], indent: str = "") -> str:
    return "\n".join(f"{indent}{item}" for item in items)


def _share_target_intent_filter(twa_manifest: TwaManifest) -> dict[str, list[str]] | None:
    share_target = twa_manifest.share_target
    if share_target is None:
        return None

    actions = ["android.intent.action.SEND"]
    mime_types: list[str] = []
    params = share_target.params
    if params and (params.url or params.title or params.text):
        mime_types.append("text/plain")
    if params and params.files:
        actions.append("android.intent.action.SEND_MULTIPLE")
        for file in params.files:
            accept = [file.accept] if isinstance(file.accept, str) else file.accept or []
            mime_types.extend(accept)
    return {"actions": actions, "mime_types": mime_types}


def _render_share_target(twa_manifest: TwaManifest) -> dict[str, str]:
    intent_filter = _share_target_intent_filter(twa_manifest)
    if intent_filter is None:
        return {"shareTargetResValue": "", "shareTargetMetadata": "", "shareTargetIntentFilter": ""}

    share_target_json = json.dumps(
        twa_manifest.share_target.model_dump(mode="json", exclude_none=True),
        separators=(",", ":"),
    )
    res_value = (
        "\n        // The data for the Web Share Target.\n"
        '        resValue "string", "shareTarget", '
        f"'{escape_json_string(escape_gradle_string(share_target_json))}'\n"
    )
    metadata = (
        "\n            <meta-data\n"
        '                android:name="android.support.customtabs.trusted.METADATA_SHARE_TARGET"\n'
        '                android:resource="@string/shareTarget"/>\n'
    )
    body = [f'<action android:name="{action}" />' for action in intent_filter["actions"]]
    body.append('<category android:name="android.intent.category.DEFAULT" />')
    body.extend(
        f'<data android:mimeType="{escape_xml(mime_type)}" />'
        for mime_type in intent_filter["mime_types"]
    )
    filter_xml = (
        "\n            <intent-filter>\n"
        + _lines(body, "                ")
        + "\n            </intent-filter>\n"
    )
    return {
        "shareTargetResValue": res_value,
        "shareTargetMetadata": metadata,
        "shareTargetIntentFilter": filter_xml,
    }


def _render_shortcut_entries(twa_manifest: TwaManifest) -> str:
    entries = []
    for index, shortcut in enumerate(twa_manifest.shortcuts):
        asset_name = shortcut.asset_name(index)
        entries.append(
            f"""    <shortcut
        android:shortcutId="shortcut{index}"
        android:enabled="true"
        android:icon="@drawable/{asset_name}"
        android:shortcutShortLabel="@string/shortcut_short_name_{index}"
        android:shortcutLongLabel="@string/shortcut_name_{index}">
        <intent
            android:action="android.intent.action.MAIN"
            android:targetPackage="{twa_manifest.package_id}"
            android:targetClass="{twa_manifest.package_id}.LauncherActivity"
            android:data="{escape_xml(shortcut.url)}" />
        <categories android:name="android.intent.category.LAUNCHER" />
    </shortcut>"""
        )
    return "\n".join(entries)


def template_args(twa_manifest: TwaManifest, features: FeatureManager) -> dict[str, str]:
    """Every ``${placeholder}`` value used by the project templates."""
    launch_url = f"https://{twa_manifest.host}{twa_manifest.start_url}"
    manifest = features.android_manifest
    launcher = features.launcher_activity
    application = features.application_class
    delegation = features.delegation_service

    display_mode = _DISPLAY_MODE_METADATA.get(twa_manifest.display)
    display_metadata = (
        "\n            <meta-data\n"
        '                android:name="android.support.customtabs.trusted.DISPLAY_MODE"\n'
        f'                android:value="{display_mode}"/>\n'
        if display_mode
        else ""
    )
    notification_metadata = (
        "            <meta-data\n"
        '                android:name="android.support.customtabs.trusted.SMALL_ICON"\n'
        '                android:resource="@drawable/ic_notification_icon" />\n'
        if twa_manifest.monochrome_icon_url
        else ""
    )
    chrome_os_only = (
        '    <uses-feature android:name="org.chromium.arc" android:required="true" />\n'
        if twa_manifest.is_chrome_os_only
        else ""
    )

    args = {
        "packageId": twa_manifest.package_id,
        "host": escape_gradle_string(twa_manifest.host),
        "startUrl": escape_gradle_string(twa_manifest.start_url),
        "name": escape_gradle_string(twa_manifest.name),
        "launcherName": escape_gradle_string(twa_manifest.launcher_name),
        "themeColor": to_android_color(twa_manifest.theme_color),
        "navigationColor": to_android_color(twa_manifest.navigation_color),
        "navigationColorDark": to_android_color(twa_manifest.navigation_color_dark),
        "navigationDividerColor": to_android_color(twa_manifest.navigation_divider_color),
        "navigationDividerColorDark": to_android_color(
            twa_manifest.navigation_divider_color_dark
        ),
        "backgroundColor": to_android_color(twa_manifest.background_color),
        "enableNotifications": "true" if twa_manifest.enable_notifications else "false",
        "shortcuts": twa_manifest.generate_shortcuts(),
        "splashScreenFadeOutDuration": str(twa_manifest.splash_screen_fade_out_duration),
        "generatorApp": escape_gradle_string(twa_manifest.generator_app),
        "fallbackType": twa_manifest.fallback_type,
        "enableSiteSettingsShortcut": (
            "true" if twa_manifest.enable_site_settings_shortcut else "false"
        ),
        "orientation": twa_manifest.orientation,
        "screenOrientation": to_android_screen_orientation(twa_manifest.orientation),
        "appVersionCode": str(twa_manifest.app_version_code),
        "appVersionName": escape_groovy_double_quoted(twa_manifest.app_version_name),
        "webManifestUrl": escape_gradle_string(twa_manifest.web_manifest_url or ""),
        "fullScopeUrl": escape_gradle_string(urljoin(launch_url, ".")),
        "resValueConfigs": _lines(features.build_gradle.configs, "        "),
        "repositories": _lines(features.build_gradle.repositories, "    "),
        "dependencies": _lines(
            (f"implementation '{dep}'" for dep in features.build_gradle.dependencies), "    "
        ),
        "permissions": "".join(
            f'    <uses-permission android:name="{p}"/>\n' for p in manifest.permissions
        ),
        "chromeOsOnlyFeature": chrome_os_only,
        "applicationMetadata": _lines(
            (
                f'<meta-data android:name="{escape_xml(m.name)}" '
                f'android:value="{escape_xml(m.value)}" />'
                for m in manifest.application_metadata
            ),
            "        ",
        ),
        "displayModeMetadata": display_metadata,
        "launcherActivityEntries": _lines(manifest.launcher_activity_entries, "            "),
        "notificationIconMetadata": notification_metadata,
        "components": _lines(manifest.components, "        "),
        "shortcutEntries": _render_shortcut_entries(twa_manifest),
        "launcherImports": _lines(f"import {i};" for i in launcher.imports),
        "launcherVariables": _lines(launcher.variables, "    "),
        "launcherMethods": _lines(launcher.methods, "    "),
        "launchUrlSnippets": _lines(launcher.launch_url, "        "),
        "applicationImports": _lines(f"import {i};" for i in application.imports),
        "applicationVariables": _lines(application.variables, "    "),
        "applicationOnCreate": _lines(application.on_create, "        "),
        "delegationImports": _lines(f"import {i};" for i in delegation.imports),
        "delegationOnCreate": _lines(delegation.on_create, "        "),
    }
    args.update(_render_share_target(twa_manifest))
    return args


# -- Generator --------------------------------------------------------------------


class TwaGenerator:
    """Creates and removes the Android project of a TWA manifest."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        template_directory: Path = TEMPLATE_DIRECTORY,
        log: logging.Logger | None = None,
    ):
        self.client = client
        self.template_directory = Path(template_directory)
        self.log = log or logger

    # File helpers

    async def _copy_static_file(self, target_dir: Path, filename: str) -> None:
        source = self.template_directory / filename
        dest = target_dir / filename

        def _copy() -> None:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, dest)

        await asyncio.to_thread(_copy)

    async def _apply_template(self, source: Path, dest: Path, args: dict[str, str]) -> None:
        def _render() -> None:
            content = Template(source.read_text(encoding="utf-8")).substitute(args)
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_text(content, encoding="utf-8")

        await asyncio.to_thread(_render)

    async def _apply_template_map(
        self, target_dir: Path, file_map: dict[str, str], args: dict[str, str]
    ) -> None:
        await gather_or_cancel(
            *(
                self._apply_template(self.template_directory / src, target_dir / dest, args)
                for src, dest in file_map.items()
            )
        )

    # Icons

    async def _generate_shortcuts(
        self,
        target_dir: Path,
        twa_manifest: TwaManifest,
        images: ImageHelper,
        fetch: Callable[[str], asyncio.Future],
    ) -> None:
        async def _one(index: int) -> None:
            shortcut = twa_manifest.shortcuts[index]
            asset_name = shortcut.asset_name(index)
            monochrome_asset_name = f"{asset_name}_monochrome"
            maskable_asset_name = f"{asset_name}_maskable"
            args = {
                "assetName": asset_name,
                "monochromeAssetName": monochrome_asset_name,
                "maskableAssetName": maskable_asset_name,
            }

            icon = await fetch(shortcut.chosen_icon_url)
            await images.generate_icons(icon, target_dir, shortcut_images(asset_name))

            if shortcut.chosen_monochrome_icon_url:
                await self._apply_template_map(
                    target_dir, _shortcut_monochrome_templates(asset_name), args
                )
                base = await fetch(shortcut.chosen_monochrome_icon_url)
                monochrome = images.monochrome_filter(base, twa_manifest.theme_color)
                await images.generate_icons(
                    monochrome, target_dir, shortcut_images(monochrome_asset_name)
                )
            elif shortcut.chosen_maskable_icon_url:
                await self._apply_template_map(
                    target_dir, _shortcut_maskable_templates(asset_name), args
                )
                maskable = await fetch(shortcut.chosen_maskable_icon_url)
                await images.generate_icons(
                    maskable, target_dir, shortcut_images(maskable_asset_name)
                )

        await gather_or_cancel(*(_one(i) for i in range(len(twa_manifest.shortcuts))))

    async def _write_web_manifest(
        self, twa_manifest: TwaManifest, target_dir: Path, client: httpx.AsyncClient
    ) -> None:
        body = await fetch_web_manifest_bytes(twa_manifest.web_manifest_url, client)
        try:
            json.loads(body)
        except ValueError as exc:
            raise ManifestValidationError(
                f"Web Manifest {twa_manifest.web_manifest_url} is not valid JSON: {exc}"
            ) from exc

        dest = target_dir / WEB_MANIFEST_LOCATION

        def _write() -> None:
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_bytes(body)

        await asyncio.to_thread(_write)

    # Public API

    async def create_twa_project(
        self,
        target_directory: str | Path,
        twa_manifest: TwaManifest,
        report_progress: ProgressCallback | None = None,
    ) -> None:
        """Generate (or regenerate) the Android project in ``target_directory``."""
        error = twa_manifest.validate()
        if error is not None:
            raise ManifestValidationError(f"Invalid TWA Manifest: {error}")

        target_dir = Path(target_directory)
        progress = Progress(9, report_progress)
        features = FeatureManager(twa_manifest, self.log)

        copy_files = [
            name
            for name in COPY_FILE_LIST
            if twa_manifest.maskable_icon_url or name not in MASKABLE_ONLY_FILE_LIST
        ]
        progress.update()

        await gather_or_cancel(*(self._copy_static_file(target_dir, name) for name in copy_files))
        _chmod_executable(target_dir / "gradlew")
        progress.update()

        args = template_args(twa_manifest, features)
        await gather_or_cancel(
            *(
                self._apply_template(
                    self.template_directory / name, target_dir / name, args
                )
                for name in TEMPLATE_FILE_LIST
            )
        )
        progress.update()

        java_dir = target_dir / JAVA_DIR / twa_manifest.package_id.replace(".", "/")
        await gather_or_cancel(
            *(
                self._apply_template(
                    self.template_directory / JAVA_DIR / name, java_dir / name, args
                )
                for name in JAVA_FILE_LIST
            )
        )
        progress.update()

        if self.client is None:
            async with create_http_client() as client:
                await self._generate_assets(target_dir, twa_manifest, client, progress)
        else:
            await self._generate_assets(target_dir, twa_manifest, self.client, progress)
        progress.done()
        self.log.info("Generated Android project in %s", target_dir)

    async def _generate_assets(
        self,
        target_dir: Path,
        twa_manifest: TwaManifest,
        client: httpx.AsyncClient,
        progress: Progress,
    ) -> None:
        images = ImageHelper(client, self.log)
        pending: dict[str, asyncio.Task[Icon]] = {}

        def fetch(url: str) -> asyncio.Task[Icon]:
            # Each URL is downloaded once per run; later callers share the task.
            if url not in pending:
                pending[url] = asyncio.ensure_future(images.fetch_icon(url))
            return pending[url]

        try:
            if twa_manifest.icon_url:
                icon = await fetch(twa_manifest.icon_url)
                await gather_or_cancel(
                    images.generate_icons(icon, target_dir, IMAGES),
                    images.generate_icons(
                        icon, target_dir, SPLASH_IMAGES, twa_manifest.background_color
                    ),
                )
            progress.update()

            await self._generate_shortcuts(target_dir, twa_manifest, images, fetch)
            progress.update()

            if twa_manifest.maskable_icon_url:
                maskable = await fetch(twa_manifest.maskable_icon_url)
                await images.generate_icons(maskable, target_dir, ADAPTIVE_IMAGES)
            progress.update()

            if twa_manifest.monochrome_icon_url:
                monochrome = await fetch(twa_manifest.monochrome_icon_url)
                await images.generate_icons(monochrome, target_dir, NOTIFICATION_IMAGES)
            progress.update()

            if twa_manifest.web_manifest_url:
                await self._write_web_manifest(twa_manifest, target_dir, client)
        finally:
            # A failed run leaves no download behind.
            for task in pending.values():
                task.cancel()
            await asyncio.gather(*pending.values(), return_exceptions=True)

    async def remove_twa_project(self, target_directory: str | Path) -> None:
        """Delete everything ``create_twa_project`` writes, leaving other files alone."""
        target_dir = Path(target_directory)

        def _remove(entry: str) -> None:
            path = target_dir / entry
            if path.is_dir():
                shutil.rmtree(path)
            elif path.exists():
                path.unlink()

        await gather_or_cancel(
            *(asyncio.to_thread(_remove, entry) for entry in DELETE_PROJECT_FILE_LIST)
        )


def _chmod_executable(path: Path) -> None:
    """rwxr-xr-x, ignoring errors on Windows."""
    try:
        path.chmod(0o755)
    except OSError:
        pass


__all__ = [
    "ADAPTIVE_IMAGES",
    "COPY_FILE_LIST",
    "DELETE_PROJECT_FILE_LIST",
    "IMAGES",
    "NOTIFICATION_IMAGES",
    "Progress",
    "SPLASH_IMAGES",
    "TEMPLATE_FILE_LIST",
    "TwaGenerator",
    "template_args",
]
