import json
import os
import stat

import pytest
from PIL import Image

from twaforge.errors import FetchError, ManifestValidationError
from twaforge.features import FeatureManager
from twaforge.generator.project import (
    ADAPTIVE_IMAGES,
    COPY_FILE_LIST,
    IMAGES,
    JAVA_DIR,
    JAVA_FILE_LIST,
    NOTIFICATION_IMAGES,
    SPLASH_IMAGES,
    TEMPLATE_FILE_LIST,
    WEB_MANIFEST_LOCATION,
    Progress,
    TwaGenerator,
    shortcut_images,
    template_args,
)
from twaforge.twa_manifest import TwaManifest

HOST = "pwa.example.com"
MANIFEST_URL = f"https://{HOST}/manifest.json"
ICON_URL = f"https://{HOST}/icon-512.png"
MASKABLE_URL = f"https://{HOST}/maskable-512.png"
MONOCHROME_URL = f"https://{HOST}/mono-96.png"
SHORTCUT_ICON_URL = f"https://{HOST}/shortcut-192.png"

WEB_MANIFEST = {
    "name": "Example PWA",
    "short_name": "Example",
    "start_url": "/app/?source=twa",
    "display": "fullscreen",
    "theme_color": "#3F51B5",
    "background_color": "#FFFFFF",
    "icons": [
        {"src": "/icon-512.png", "sizes": "512x512"},
        {"src": "/maskable-512.png", "sizes": "512x512", "purpose": "maskable"},
        {"src": "/mono-96.png", "sizes": "96x96", "purpose": "monochrome"},
    ],
    "shortcuts": [
        {
            "name": "Compose",
            "url": "/app/compose",
            "icons": [{"src": "/shortcut-192.png", "sizes": "192x192"}],
        },
        {
            "name": "Inbox",
            "url": "/app/inbox",
            "icons": [{"src": "/icon-512.png", "sizes": "512x512"}],
        },
    ],
}


@pytest.fixture
def web(fake_web):
    fake_web.add_json(MANIFEST_URL, WEB_MANIFEST)
    fake_web.add_png(ICON_URL, 512, (200, 30, 30, 255))
    fake_web.add_png(MASKABLE_URL, 512, (30, 200, 30, 255))
    fake_web.add_png(MONOCHROME_URL, 96, (0, 0, 0, 255))
    fake_web.add_png(SHORTCUT_ICON_URL, 192, (30, 30, 200, 255))
    return fake_web


@pytest.fixture
def twa_manifest():
    return TwaManifest.from_web_manifest_json(MANIFEST_URL, WEB_MANIFEST)


def _files(root):
    return sorted(
        os.path.relpath(os.path.join(path, name), root)
        for path, _, names in os.walk(root)
        for name in names
    )


async def _generate(web, target, twa_manifest, report_progress=None):
    async with web.client() as client:
        await TwaGenerator(client=client).create_twa_project(
            target, twa_manifest, report_progress
        )


@pytest.mark.asyncio
async def test_generates_the_full_project(web, twa_manifest, tmp_path):
    target = tmp_path / "project"

    await _generate(web, target, twa_manifest)

    for name in COPY_FILE_LIST + TEMPLATE_FILE_LIST:
        assert (target / name).is_file(), name
    java_dir = target / JAVA_DIR / "com/example/pwa/twa"
    for name in JAVA_FILE_LIST:
        assert (java_dir / name).is_file(), name
    for icon_def in IMAGES + SPLASH_IMAGES + ADAPTIVE_IMAGES + NOTIFICATION_IMAGES:
        with Image.open(target / icon_def.dest) as image:
            assert image.size == (icon_def.size, icon_def.size), icon_def.dest
    for index in range(2):
        for icon_def in shortcut_images(f"shortcut_{index}"):
            assert (target / icon_def.dest).is_file()

    build_gradle = (target / "app/build.gradle").read_text(encoding="utf-8")
    assert "applicationId: 'com.example.pwa.twa'" in build_gradle
    assert "launchUrl: '/app/?source=twa'" in build_gradle
    assert "themeColor: '#3F51B5'" in build_gradle
    assert "icon:'shortcut_1'" in build_gradle
    assert "${" not in build_gradle

    android_manifest = (target / "app/src/main/AndroidManifest.xml").read_text(encoding="utf-8")
    assert 'android:value="immersive"' in android_manifest
    assert "@drawable/ic_notification_icon" in android_manifest

    launcher = (java_dir / "LauncherActivity.java").read_text(encoding="utf-8")
    assert "package com.example.pwa.twa;" in launcher


@pytest.mark.asyncio
async def test_each_icon_is_fetched_once(web, twa_manifest, tmp_path):
    await _generate(web, tmp_path / "project", twa_manifest)

    assert web.requests.count(ICON_URL) == 1
    assert web.requests.count(SHORTCUT_ICON_URL) == 1
    assert web.requests.count(MASKABLE_URL) == 1
    assert web.requests.count(MONOCHROME_URL) == 1


@pytest.mark.asyncio
async def test_generation_is_repeatable(web, twa_manifest, tmp_path):
    first = tmp_path / "first"
    second = tmp_path / "second"

    await _generate(web, first, twa_manifest)
    await _generate(web, second, twa_manifest)
    # Regenerating over an existing project gives the same result as well.
    await _generate(web, second, twa_manifest)

    assert _files(first) == _files(second)
    for name in _files(first):
        if name.endswith(".png"):
            with Image.open(first / name) as a, Image.open(second / name) as b:
                assert a.size == b.size, name
        else:
            assert (first / name).read_bytes() == (second / name).read_bytes(), name


@pytest.mark.asyncio
async def test_web_manifest_is_copied_verbatim(web, twa_manifest, tmp_path):
    target = tmp_path / "project"
    await _generate(web, target, twa_manifest)

    written = (target / WEB_MANIFEST_LOCATION).read_bytes()
    assert written == web.routes[MANIFEST_URL][2]
    assert json.loads(written)["name"] == "Example PWA"


@pytest.mark.asyncio
async def test_maskable_launcher_xml_needs_maskable_icon(web, twa_manifest, tmp_path):
    target = tmp_path / "project"
    await _generate(web, target, twa_manifest.updated(maskable_icon_url=None))

    assert not (target / "app/src/main/res/mipmap-anydpi-v26/ic_launcher.xml").exists()
    assert not (target / ADAPTIVE_IMAGES[0].dest).exists()
    assert MASKABLE_URL not in web.requests


@pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
@pytest.mark.asyncio
async def test_gradlew_is_executable(web, twa_manifest, tmp_path):
    target = tmp_path / "project"
    await _generate(web, target, twa_manifest)

    mode = stat.S_IMODE((target / "gradlew").stat().st_mode)
    assert mode == 0o755


@pytest.mark.asyncio
async def test_invalid_manifest_fails_before_writing(web, twa_manifest, tmp_path):
    target = tmp_path / "project"

    with pytest.raises(ManifestValidationError, match="iconUrl"):
        await _generate(web, target, twa_manifest.updated(icon_url=None))

    assert not target.exists()
    assert web.requests == []


@pytest.mark.asyncio
async def test_icon_download_failure_aborts(web, twa_manifest, tmp_path):
    del web.routes[ICON_URL]

    with pytest.raises(FetchError, match="404"):
        await _generate(web, tmp_path / "project", twa_manifest)


@pytest.mark.asyncio
async def test_progress_is_reported(web, twa_manifest, tmp_path):
    calls = []

    await _generate(web, tmp_path / "project", twa_manifest, lambda c, t: calls.append((c, t)))

    assert calls[0] == (0, 9)
    assert calls[-1] == (9, 9)
    assert [c for c, _ in calls] == list(range(10))


@pytest.mark.asyncio
async def test_remove_twa_project_keeps_other_files(web, twa_manifest, tmp_path):
    target = tmp_path / "project"
    await _generate(web, target, twa_manifest)
    twa_manifest.save_to_file(target / "twa-manifest.json")
    (target / "android.keystore").write_bytes(b"key")

    await TwaGenerator().remove_twa_project(target)

    assert _files(target) == ["android.keystore", "twa-manifest.json"]


def test_progress_rejects_updates_past_total():
    progress = Progress(1)
    progress.update()
    with pytest.raises(RuntimeError):
        progress.update()


def test_progress_done_requires_last_step():
    progress = Progress(3)
    progress.update()
    with pytest.raises(RuntimeError):
        progress.done()


def test_template_args_for_plain_manifest(twa_manifest):
    manifest = twa_manifest.updated(
        display="standalone",
        monochrome_icon_url=None,
        navigation_color="#FF000080",
        name="Andre's App",
        fallback_type="webview",
    )

    args = template_args(manifest, FeatureManager(manifest))

    assert args["displayModeMetadata"] == ""
    assert args["notificationIconMetadata"] == ""
    assert args["navigationColor"] == "#80FF0000"
    assert args["name"] == r"Andre\\\'s App"
    assert args["fullScopeUrl"] == "https://pwa.example.com/app/"
    assert args["permissions"] == (
        '    <uses-permission android:name="android.permission.INTERNET"/>\n'
    )
    assert args["shareTargetIntentFilter"] == ""


def test_template_args_share_target(twa_manifest):
    manifest = twa_manifest.updated(
        share_target={
            "action": "https://pwa.example.com/share",
            "method": "POST",
            "enctype": "multipart/form-data",
            "params": {"title": "title", "files": [{"name": "f", "accept": ["image/*"]}]},
        }
    )

    args = template_args(manifest, FeatureManager(manifest))

    intent_filter = args["shareTargetIntentFilter"]
    assert "android.intent.action.SEND_MULTIPLE" in intent_filter
    assert '<data android:mimeType="text/plain" />' in intent_filter
    assert '<data android:mimeType="image/*" />' in intent_filter
    assert 'resValue "string", "shareTarget"' in args["shareTargetResValue"]
    assert "METADATA_SHARE_TARGET" in args["shareTargetMetadata"]
