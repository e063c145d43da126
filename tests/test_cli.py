import asyncio
import json

import pytest

from twaforge import __version__, web_manifest
from twaforge.cli.commands import get_passwords
from twaforge.cli.main import build_parser, main
from twaforge.cli.prompt import ScriptedPrompt
from twaforge.cli.shared import (
    CHECKSUM_FILE_NAME,
    generate_manifest_checksum_file,
    manifest_changed,
    update_versions,
)
from twaforge.config import Settings
from twaforge.generator import project
from twaforge.twa_manifest import TwaManifest

HOST = "pwa.example.com"
MANIFEST_URL = f"https://{HOST}/manifest.json"
ICON_URL = f"https://{HOST}/icon.png"
FINGERPRINT = ":".join(["AB"] * 32)
OTHER_FINGERPRINT = ":".join(["CD"] * 32)

WEB_MANIFEST = {
    "name": "Example PWA",
    "short_name": "Example",
    "start_url": "/",
    "icons": [{"src": "/icon.png", "sizes": "512x512"}],
}

KEYTOOL_OUTPUT = "Certificate fingerprints:\n\t SHA256: " + FINGERPRINT + "\n"

# host, startUrl, name, launcherName, packageId, versionCode, display, orientation,
# themeColor, backgroundColor, iconUrl, maskable, monochrome, fallback, billing,
# location, key path, key alias.
INIT_ANSWERS = ["", "", "My App"] + [""] * 15


def _write_manifest(directory, **overrides):
    data = {
        "packageId": "com.example.pwa.twa",
        "host": HOST,
        "name": "Example",
        "startUrl": "/",
        "iconUrl": ICON_URL,
        "webManifestUrl": MANIFEST_URL,
    }
    data.update(overrides)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "twa-manifest.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def served(fake_web, monkeypatch):
    fake_web.add_json(MANIFEST_URL, WEB_MANIFEST)
    fake_web.add_png(ICON_URL)
    monkeypatch.setattr(web_manifest, "create_http_client", lambda timeout=None: fake_web.client())
    monkeypatch.setattr(project, "create_http_client", lambda timeout=None: fake_web.client())
    return fake_web


def test_version():
    prompt = ScriptedPrompt()
    assert main(["version"], prompt) == 0
    assert prompt.messages == [__version__]


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_merge_ignore_choices():
    args = build_parser().parse_args(["merge", "--ignore", "name", "icons"])
    assert args.ignore == ["name", "icons"]
    with pytest.raises(SystemExit):
        build_parser().parse_args(["merge", "--ignore", "packageId"])


def test_init_generates_project(served, tmp_path):
    target = tmp_path / "app"
    prompt = ScriptedPrompt(INIT_ANSWERS)

    assert main(["init", "--manifest", MANIFEST_URL, "--directory", str(target)], prompt) == 0

    manifest = TwaManifest.from_file(target / "twa-manifest.json")
    assert manifest.name == "My App"
    assert manifest.launcher_name == "Example"
    assert manifest.package_id == "com.example.pwa.twa"
    assert manifest.generator_app == "twaforge-cli"
    assert manifest.fallback_type == "customtabs"
    assert (target / "app/build.gradle").is_file()
    assert (target / "store_icon.png").is_file()
    assert manifest_changed(target / "twa-manifest.json", target) is False
    assert prompt.answers == []


def test_init_then_update_bumps_version(served, tmp_path):
    target = tmp_path / "app"
    assert main(
        ["init", "--manifest", MANIFEST_URL, "--directory", str(target)],
        ScriptedPrompt(INIT_ANSWERS),
    ) == 0

    assert main(["update", "--directory", str(target)], ScriptedPrompt()) == 0

    manifest = TwaManifest.from_file(target / "twa-manifest.json")
    assert manifest.app_version_code == 2
    assert manifest.app_version_name == "2"
    build_gradle = (target / "app/build.gradle").read_text(encoding="utf-8")
    assert "versionCode 2" in build_gradle
    assert manifest_changed(target / "twa-manifest.json", target) is False


def test_update_skip_version_upgrade(served, tmp_path):
    target = tmp_path / "app"
    manifest_file = _write_manifest(target, appVersionCode=5, appVersionName="1.0")

    assert main(["update", "--directory", str(target), "--skip-version-upgrade"]) == 0

    manifest = TwaManifest.from_file(manifest_file)
    assert manifest.app_version_code == 5
    assert (target / CHECKSUM_FILE_NAME).is_file()


def test_merge_refreshes_from_web_manifest(served, tmp_path):
    target = tmp_path / "app"
    manifest_file = _write_manifest(target, name="Old name", themeColor="#000000")
    served.add_json(MANIFEST_URL, {**WEB_MANIFEST, "name": "Fresh", "theme_color": "#FF0000"})

    assert main(["merge", "--directory", str(target), "--ignore", "themeColor"]) == 0

    manifest = TwaManifest.from_file(manifest_file)
    assert manifest.name == "Fresh"
    assert manifest.theme_color == "#000000"
    assert manifest.app_version_code == 2


def test_validate(tmp_path):
    target = tmp_path / "app"
    _write_manifest(target)
    prompt = ScriptedPrompt()
    assert main(["validate", "--directory", str(target)], prompt) == 0
    assert prompt.messages[-1].endswith("is valid.")

    _write_manifest(target, iconUrl=None, packageId="twa")
    prompt = ScriptedPrompt()
    assert main(["validate", "--directory", str(target)], prompt) == 1
    assert "  - iconUrl cannot be empty" in prompt.messages
    assert any("at least 2 sections" in message for message in prompt.messages)


def test_missing_manifest_fails(tmp_path):
    assert main(["validate", "--directory", str(tmp_path / "nowhere")], ScriptedPrompt()) == 1


def test_fingerprint_commands(tmp_path):
    target = tmp_path / "app"
    manifest_file = _write_manifest(target)
    directory = ["--directory", str(target)]

    assert main(["fingerprint", *directory, "add", FINGERPRINT.lower(), "--name", "upload"]) == 0
    assert main(["fingerprint", *directory, "add", OTHER_FINGERPRINT]) == 0

    manifest = TwaManifest.from_file(manifest_file)
    assert [(f.name, f.value) for f in manifest.fingerprints] == [
        ("upload", FINGERPRINT),
        (None, OTHER_FINGERPRINT),
    ]
    asset_links = json.loads((target / "assetlinks.json").read_text(encoding="utf-8"))
    assert [s["target"]["sha256_cert_fingerprints"] for s in asset_links] == [
        [FINGERPRINT],
        [OTHER_FINGERPRINT],
    ]

    prompt = ScriptedPrompt()
    assert main(["fingerprint", *directory, "list"], prompt) == 0
    assert prompt.messages[-2:] == [f"\tupload: {FINGERPRINT}", f"\t<unnamed>: {OTHER_FINGERPRINT}"]

    assert main(["fingerprint", *directory, "remove", FINGERPRINT]) == 0
    manifest = TwaManifest.from_file(manifest_file)
    assert [f.value for f in manifest.fingerprints] == [OTHER_FINGERPRINT]

    output = tmp_path / "out.json"
    assert main(["fingerprint", *directory, "--output", str(output), "generateAssetLinks"]) == 0
    statements = json.loads(output.read_text(encoding="utf-8"))
    assert statements[0]["target"]["package_name"] == "com.example.pwa.twa"
    assert statements[0]["relation"] == ["delegate_permission/common.handle_all_urls"]


def test_fingerprint_add_rejects_invalid_value(tmp_path):
    target = tmp_path / "app"
    manifest_file = _write_manifest(target)

    assert main(["fingerprint", "--directory", str(target), "add", "AB:CD"]) == 1
    assert TwaManifest.from_file(manifest_file).fingerprints == []


def test_remove_deletes_generated_project(served, tmp_path):
    target = tmp_path / "app"
    assert main(
        ["init", "--manifest", MANIFEST_URL, "--directory", str(target)],
        ScriptedPrompt(INIT_ANSWERS),
    ) == 0

    assert main(["remove", "--directory", str(target)]) == 0

    remaining = sorted(p.name for p in target.iterdir())
    assert remaining == ["manifest-checksum.txt", "twa-manifest.json"]


def test_doctor_reports_missing_toolchain():
    prompt = ScriptedPrompt()
    assert main(["doctor"], prompt) == 1
    assert any("jdk_path is not set" in message for message in prompt.messages)
    assert any("android_sdk_path is not set" in message for message in prompt.messages)


def test_doctor_accepts_configured_toolchain(tmp_path, monkeypatch):
    jdk = tmp_path / "jdk"
    (jdk / "bin").mkdir(parents=True)
    (jdk / "bin" / "java").write_text("", encoding="utf-8")
    sdk = tmp_path / "sdk"
    sdk.mkdir()
    monkeypatch.setenv("TWAFORGE_JDK_PATH", str(jdk))
    monkeypatch.setenv("TWAFORGE_ANDROID_SDK_PATH", str(sdk))

    prompt = ScriptedPrompt()
    assert main(["doctor"], prompt) == 0
    assert prompt.messages[-1] == "Your jdk_path and android_sdk_path are valid."


class _FakeProc:
    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = ""):
        self.returncode = returncode
        self._stdout = stdout.encode("utf-8")
        self._stderr = stderr.encode("utf-8")

    async def communicate(self):
        return self._stdout, self._stderr


def test_build_runs_the_toolchain(tmp_path, monkeypatch):
    target = tmp_path / "app"
    manifest_file = _write_manifest(target)
    generate_manifest_checksum_file(manifest_file, target)
    (target / "android.keystore").write_bytes(b"key")
    jdk = tmp_path / "jdk"
    jdk.mkdir()
    sdk = tmp_path / "sdk"
    (sdk / "build-tools" / "29.0.2").mkdir(parents=True)
    monkeypatch.setenv("TWAFORGE_JDK_PATH", str(jdk))
    monkeypatch.setenv("TWAFORGE_ANDROID_SDK_PATH", str(sdk))
    monkeypatch.setenv("TWAFORGE_KEYSTORE_PASSWORD", "storepass")
    monkeypatch.setenv("TWAFORGE_KEY_PASSWORD", "keypass")

    commands: list[list[str]] = []

    async def _fake_exec(*cmd, **kwargs):
        commands.append(list(cmd))
        return _FakeProc(0, stdout=KEYTOOL_OUTPUT)

    monkeypatch.setattr(asyncio, "create_subprocess_exec", _fake_exec)

    assert main(["build", "--directory", str(target)], ScriptedPrompt()) == 0

    tools = [cmd[0].rsplit("/", 1)[-1] for cmd in commands]
    assert tools == ["gradlew", "zipalign", "apksigner", "gradlew", "jarsigner", "keytool"]
    assert commands[0][1] == "assembleRelease"
    assert commands[3][1] == "bundleRelease"
    assert "pass:storepass" in commands[2]
    asset_links = json.loads((target / "assetlinks.json").read_text(encoding="utf-8"))
    assert asset_links[0]["target"]["sha256_cert_fingerprints"] == [FINGERPRINT]


def test_build_skip_apk_only_bundles(tmp_path, monkeypatch):
    target = tmp_path / "app"
    _write_manifest(target)
    jdk = tmp_path / "jdk"
    jdk.mkdir()
    sdk = tmp_path / "sdk"
    (sdk / "build-tools" / "29.0.2").mkdir(parents=True)
    monkeypatch.setenv("TWAFORGE_JDK_PATH", str(jdk))
    monkeypatch.setenv("TWAFORGE_ANDROID_SDK_PATH", str(sdk))

    commands: list[list[str]] = []

    async def _fake_exec(*cmd, **kwargs):
        commands.append(list(cmd))
        return _FakeProc(0)

    monkeypatch.setattr(asyncio, "create_subprocess_exec", _fake_exec)
    prompt = ScriptedPrompt(["storepass", "keypass"])

    assert main(["build", "--directory", str(target), "--skip-apk"], prompt) == 0

    tools = [cmd[0].rsplit("/", 1)[-1] for cmd in commands]
    assert tools == ["gradlew", "jarsigner"]
    assert any("No checksum file" in message for message in prompt.messages)
    # keytool is not run without a keystore.
    assert any('Error generating "assetlinks.json"' in m for m in prompt.messages)


def test_get_passwords_prefers_environment():
    manifest = TwaManifest.from_json(
        {"packageId": "a.b", "host": HOST, "name": "n", "iconUrl": ICON_URL}
    )
    settings = Settings(keystore_password="envstore", key_password="envkey")

    key = get_passwords(settings, manifest, ScriptedPrompt())

    assert (key.password, key.keypassword) == ("envstore", "envkey")
    assert (key.path, key.alias) == ("./android.keystore", "android")


def test_update_versions():
    prompt = ScriptedPrompt(["3.0-beta"])
    manifest = TwaManifest.from_json(
        {"packageId": "a.b", "host": HOST, "name": "n", "appVersionCode": 4}
    )

    assert update_versions(manifest.updated(app_version_name="4"), None, prompt) == (
        update_versions(manifest, "5", prompt)
    )
    version = update_versions(manifest.updated(app_version_name="2.1"), None, prompt)
    assert (version.app_version_code, version.app_version_name) == (5, "3.0-beta")
    assert update_versions(manifest, "9.9", prompt).app_version_name == "9.9"


def test_manifest_checksum(tmp_path):
    manifest_file = _write_manifest(tmp_path)
    assert manifest_changed(manifest_file, tmp_path) is None

    generate_manifest_checksum_file(manifest_file, tmp_path)
    assert manifest_changed(manifest_file, tmp_path) is False

    _write_manifest(tmp_path, name="Changed")
    assert manifest_changed(manifest_file, tmp_path) is True
