"""Implementations of the ``twaforge`` subcommands.

Each command is a coroutine taking the parsed arguments, the settings and
a Prompt, and returns True on success. Errors propagate to ``main``.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from twaforge import __version__
from twaforge.cli import input_helpers as validators
from twaforge.cli.prompt import Prompt
from twaforge.cli.shared import (
    APP_NAME,
    ASSETLINKS_OUTPUT_FILE,
    TWA_MANIFEST_FILE_NAME,
    generate_manifest_checksum_file,
    generate_twa_project,
    manifest_changed,
    update_versions,
)
from twaforge.config import Settings
from twaforge.digital_asset_links import generate_asset_links
from twaforge.errors import ManifestValidationError, TwaforgeError
from twaforge.generator.project import TwaGenerator
from twaforge.tools.android_sdk import AndroidSdkTools
from twaforge.tools.gradle import GradleWrapper
from twaforge.tools.jdk import CreateKeyOptions, JarSigner, JdkHelper, KeyOptions, KeyTool
from twaforge.twa_manifest import DISPLAY_MODES, ORIENTATIONS, Fingerprint, TwaManifest
from twaforge.util import validate_package_id
from twaforge.web_manifest import fetch_web_manifest

logger = logging.getLogger(__name__)

# Build outputs, relative to the project directory.
APK_BUILD_OUTPUT_FILE_NAME = "app/build/outputs/apk/release/app-release-unsigned.apk"
APK_ALIGNED_FILE_NAME = "app-release-unsigned-aligned.apk"
APK_SIGNED_FILE_NAME = "app-release-signed.apk"
APP_BUNDLE_BUILD_OUTPUT_FILE_NAME = "app/build/outputs/bundle/release/app-release.aab"
APP_BUNDLE_SIGNED_FILE_NAME = "app-release-bundle.aab"


def _target_directory(args: argparse.Namespace) -> Path:
    return Path(getattr(args, "directory", None) or Path.cwd())


def _manifest_file(args: argparse.Namespace) -> Path:
    manifest = getattr(args, "manifest", None)
    return Path(manifest) if manifest else _target_directory(args) / TWA_MANIFEST_FILE_NAME


def _load_manifest(manifest_file: Path, prompt: Prompt) -> TwaManifest:
    prompt.print_message(f"Reading TWA Manifest from: {manifest_file}")
    if not manifest_file.exists():
        raise TwaforgeError(
            f"Could not find a TWA Manifest at {manifest_file}. "
            "Run `twaforge init` to create one."
        )
    return TwaManifest.from_file(manifest_file)


# -- init -------------------------------------------------------------------------


def confirm_twa_config(twa_manifest: TwaManifest, prompt: Prompt) -> TwaManifest:
    """Let the user review and change the values taken from the Web Manifest."""
    prompt.print_message("\nWeb app details")
    host = prompt.prompt_input(
        "Domain being opened in the TWA:", twa_manifest.host, validators.validate_host
    )
    start_url = prompt.prompt_input(
        "URL path:", twa_manifest.start_url, validators.create_validate_string(1)
    )

    prompt.print_message("\nAndroid app details")
    name = prompt.prompt_input(
        "Application name:", twa_manifest.name, validators.create_validate_string(1)
    )
    launcher_name = prompt.prompt_input(
        "Short name (shown on the Android launcher):",
        twa_manifest.launcher_name,
        validators.create_validate_string(1),
    )
    package_id = prompt.prompt_input(
        "Application ID:", twa_manifest.package_id, validators.validate_package_id
    )
    app_version_code = prompt.prompt_input(
        "Starting version code for the new app version:",
        str(twa_manifest.app_version_code),
        validators.validate_integer,
    )
    display = prompt.prompt_choice(
        "Display mode:", DISPLAY_MODES, twa_manifest.display, validators.validate_display_mode
    )
    orientation = prompt.prompt_choice(
        "Orientation:", ORIENTATIONS, twa_manifest.orientation, validators.validate_orientation
    )
    theme_color = prompt.prompt_input(
        "Status bar color:", twa_manifest.theme_color, validators.validate_color
    )

    prompt.print_message("\nLauncher icons and splash screen")
    background_color = prompt.prompt_input(
        "Splash screen color:", twa_manifest.background_color, validators.validate_color
    )
    icon_url = prompt.prompt_input(
        "Icon URL:", twa_manifest.icon_url, validators.validate_image_url
    )
    maskable_icon_url = prompt.prompt_input(
        "Maskable icon URL:", twa_manifest.maskable_icon_url, validators.validate_optional_image_url
    )
    monochrome_icon_url = prompt.prompt_input(
        "Monochrome icon URL:",
        twa_manifest.monochrome_icon_url,
        validators.validate_optional_image_url,
    )

    shortcuts = twa_manifest.shortcuts
    if shortcuts:
        names = ", ".join(shortcut.name for shortcut in shortcuts)
        if not prompt.prompt_confirm(f"Include app shortcuts ({names})?", True):
            shortcuts = []

    prompt.print_message("\nOptional features")
    fallback_type = "customtabs"
    if not prompt.prompt_confirm("Use Custom Tabs as fallback (WebView otherwise)?", True):
        fallback_type = "webview"
    play_billing = prompt.prompt_confirm("Include support for Play Billing?", False)
    location_delegation = prompt.prompt_confirm("Request geolocation permission?", False)
    enable_notifications = twa_manifest.enable_notifications or play_billing

    prompt.print_message("\nSigning key information")
    key_path = prompt.prompt_input(
        "Key store location:", twa_manifest.signing_key.path, validators.create_validate_string(1)
    )
    key_alias = prompt.prompt_input(
        "Key name:", twa_manifest.signing_key.alias, validators.create_validate_string(1)
    )

    features = twa_manifest.features.model_dump(exclude_none=True)
    features["play_billing"] = {"enabled": play_billing}
    features["location_delegation"] = {"enabled": location_delegation}
    return twa_manifest.updated(
        host=host,
        start_url=start_url,
        name=name,
        launcher_name=launcher_name,
        package_id=package_id,
        app_version_code=app_version_code,
        display=display,
        orientation=orientation,
        theme_color=theme_color,
        background_color=background_color,
        icon_url=icon_url,
        maskable_icon_url=maskable_icon_url,
        monochrome_icon_url=monochrome_icon_url,
        shortcuts=shortcuts,
        fallback_type=fallback_type,
        features=features,
        alpha_dependencies={"enabled": play_billing or twa_manifest.alpha_dependencies.enabled},
        enable_notifications=enable_notifications,
        signing_key={"path": key_path, "alias": key_alias},
        generator_app=APP_NAME,
    )


async def create_signing_key(
    twa_manifest: TwaManifest, settings: Settings, prompt: Prompt, base_dir: Path
) -> None:
    keystore = base_dir / twa_manifest.signing_key.path
    if keystore.exists():
        return
    if not settings.jdk_path:
        prompt.print_message(
            f"Signing key not found at {keystore}. Configure jdk_path to create one."
        )
        return
    if not prompt.prompt_confirm(
        f'Signing Key could not be found at "{keystore}". Do you want to create one now?', True
    ):
        return

    not_empty = validators.create_validate_string(1)
    options = CreateKeyOptions(
        path=str(keystore),
        alias=twa_manifest.signing_key.alias,
        full_name=prompt.prompt_input("First and Last names (eg: John Doe):", None, not_empty),
        organizational_unit=prompt.prompt_input(
            "Organizational Unit (eg: Engineering Dept):", None, not_empty
        ),
        organization=prompt.prompt_input("Organization (eg: Company Name):", None, not_empty),
        country=prompt.prompt_input(
            "Country (2 letter code):", None, validators.create_validate_string(2, 2)
        ),
        password=prompt.prompt_password(
            "Password for the Key Store:", validators.validate_key_password
        ),
        keypassword=prompt.prompt_password(
            "Password for the Key:", validators.validate_key_password
        ),
    )
    await KeyTool(JdkHelper(settings)).create_signing_key(options)


async def init(args: argparse.Namespace, settings: Settings, prompt: Prompt) -> bool:
    target_directory = _target_directory(args)
    prompt.print_message(f"Initializing application from Web Manifest:\n    - {args.manifest}")
    twa_manifest = await TwaManifest.from_web_manifest(args.manifest)
    twa_manifest = confirm_twa_config(twa_manifest, prompt)

    target_directory.mkdir(parents=True, exist_ok=True)
    manifest_file = target_directory / TWA_MANIFEST_FILE_NAME
    twa_manifest.save_to_file(manifest_file)

    await generate_twa_project(prompt, TwaGenerator(), target_directory, twa_manifest)
    generate_manifest_checksum_file(manifest_file, target_directory)
    await create_signing_key(twa_manifest, settings, prompt, target_directory)
    prompt.print_message(
        "\nProject generated successfully. Build it by running `twaforge build`."
    )
    return True


# -- update / merge ---------------------------------------------------------------


async def update_project(
    skip_version_upgrade: bool,
    app_version_name: str | None,
    prompt: Prompt,
    target_directory: Path,
    manifest_file: Path,
) -> bool:
    twa_manifest = _load_manifest(manifest_file, prompt).updated(generator_app=APP_NAME)

    play_billing = twa_manifest.features.play_billing
    if play_billing and play_billing.enabled:
        if not twa_manifest.enable_notifications:
            prompt.print_message("Play Billing requires enableNotifications to be true.")
            return False
        if not twa_manifest.alpha_dependencies.enabled:
            prompt.print_message("Play Billing requires alphaDependencies to be enabled.")
            return False

    if not twa_manifest.icon_url:
        raise ManifestValidationError(f"iconUrl field is missing from {manifest_file}")
    validators.validate_image_url(twa_manifest.icon_url)

    if not skip_version_upgrade:
        version = update_versions(twa_manifest, app_version_name, prompt)
        twa_manifest = twa_manifest.updated(
            app_version_code=version.app_version_code,
            app_version_name=version.app_version_name,
        )
        prompt.print_message(
            f"Upgraded app version to versionName: {version.app_version_name} "
            f"and versionCode: {version.app_version_code}"
        )

    generator = TwaGenerator()
    await generator.remove_twa_project(target_directory)
    await generate_twa_project(prompt, generator, target_directory, twa_manifest)
    if not skip_version_upgrade:
        twa_manifest.save_to_file(manifest_file)
    generate_manifest_checksum_file(manifest_file, target_directory)
    prompt.print_message("Project updated successfully.")
    return True


async def update(args: argparse.Namespace, settings: Settings, prompt: Prompt) -> bool:
    return await update_project(
        args.skip_version_upgrade,
        args.app_version_name,
        prompt,
        _target_directory(args),
        _manifest_file(args),
    )


async def merge(args: argparse.Namespace, settings: Settings, prompt: Prompt) -> bool:
    manifest_file = _manifest_file(args)
    twa_manifest = _load_manifest(manifest_file, prompt)
    if not twa_manifest.web_manifest_url:
        raise ManifestValidationError(f"webManifestUrl field is missing from {manifest_file}")

    web_manifest = await fetch_web_manifest(twa_manifest.web_manifest_url)
    merged = TwaManifest.merge(
        args.ignore or [], twa_manifest.web_manifest_url, web_manifest, twa_manifest
    )
    if not args.skip_version_upgrade:
        version = update_versions(merged, args.app_version_name, prompt)
        merged = merged.updated(
            app_version_code=version.app_version_code,
            app_version_name=version.app_version_name,
        )
    merged.save_to_file(manifest_file)
    prompt.print_message(f"Merged the Web Manifest into {manifest_file}.")
    return True


# -- validate ---------------------------------------------------------------------


async def validate(args: argparse.Namespace, settings: Settings, prompt: Prompt) -> bool:
    manifest_file = _manifest_file(args)
    twa_manifest = _load_manifest(manifest_file, prompt)
    errors = [
        error
        for error in (twa_manifest.validate(), validate_package_id(twa_manifest.package_id))
        if error is not None
    ]
    for error in errors:
        prompt.print_message(f"  - {error}")
    if errors:
        prompt.print_message(f"{manifest_file} is not valid.")
        return False
    prompt.print_message(f"{manifest_file} is valid.")
    return True


# -- build ------------------------------------------------------------------------


def get_passwords(settings: Settings, twa_manifest: TwaManifest, prompt: Prompt) -> KeyOptions:
    """Signing passwords from the environment, asking the user when they are not set."""
    signing_key = twa_manifest.signing_key
    if settings.keystore_password is not None and settings.key_password is not None:
        prompt.print_message("Using passwords set in the environment.")
        return KeyOptions(
            path=signing_key.path,
            alias=signing_key.alias,
            password=settings.keystore_password.get_secret_value(),
            keypassword=settings.key_password.get_secret_value(),
        )

    prompt.print_message(
        f"Please, enter passwords for the keystore {signing_key.path} "
        f"and alias {signing_key.alias}."
    )
    return KeyOptions(
        path=signing_key.path,
        alias=signing_key.alias,
        password=prompt.prompt_password(
            "KeyStore password:", validators.validate_key_password
        ),
        keypassword=prompt.prompt_password("Key password:", validators.validate_key_password),
    )


async def _write_build_asset_links(
    key_tool: KeyTool, twa_manifest: TwaManifest, key: KeyOptions, target: Path, prompt: Prompt
) -> None:
    try:
        key_info = await key_tool.key_info(key)
    except TwaforgeError as exc:
        logger.debug("keytool failed: %s", exc)
        prompt.print_message(f'Error generating "{ASSETLINKS_OUTPUT_FILE}"')
        return
    fingerprint = key_info.fingerprints.get("SHA256")
    if not fingerprint:
        prompt.print_message("Could not find the SHA256 fingerprint of the signing key.")
        return
    target.write_text(generate_asset_links(twa_manifest.package_id, fingerprint), encoding="utf-8")
    prompt.print_message(f"Digital Asset Links file generated at {target}")


async def build(args: argparse.Namespace, settings: Settings, prompt: Prompt) -> bool:
    target_directory = _target_directory(args)
    manifest_file = _manifest_file(args)

    changed = manifest_changed(manifest_file, target_directory)
    if changed is None:
        prompt.print_message(
            "No checksum file was found to verify the state of twa-manifest.json. "
            "Run `twaforge update` to regenerate the project if it was changed."
        )
    elif changed and prompt.prompt_confirm(
        "twa-manifest.json has changed. Regenerate the project before building?", True
    ):
        if not await update_project(True, None, prompt, target_directory, manifest_file):
            return False

    jdk_helper = JdkHelper(settings)
    android_sdk = AndroidSdkTools(settings, jdk_helper)
    gradle = GradleWrapper(android_sdk, target_directory)
    key_tool = KeyTool(jdk_helper)
    jar_signer = JarSigner(jdk_helper)

    if not await android_sdk.check_build_tools():
        prompt.print_message(
            "Installing Android Build Tools. Please, read and accept the license agreement."
        )
        await android_sdk.install_build_tools()

    twa_manifest = _load_manifest(manifest_file, prompt)
    key = get_passwords(settings, twa_manifest, prompt)
    key.path = str(target_directory / key.path)

    prompt.print_message("\nBuilding the Android App...")
    if not args.skip_apk:
        await gradle.assemble_release()
        await android_sdk.zipalign(
            target_directory / APK_BUILD_OUTPUT_FILE_NAME,
            target_directory / APK_ALIGNED_FILE_NAME,
        )
        await android_sdk.apksigner(
            key.path,
            key.password,
            key.alias,
            key.keypassword,
            target_directory / APK_ALIGNED_FILE_NAME,
            target_directory / APK_SIGNED_FILE_NAME,
        )
        prompt.print_message(f"\t- Generated Android APK at {APK_SIGNED_FILE_NAME}")

    await gradle.bundle_release()
    await jar_signer.sign(
        twa_manifest.signing_key.model_copy(update={"path": key.path}),
        key.password,
        key.keypassword,
        target_directory / APP_BUNDLE_BUILD_OUTPUT_FILE_NAME,
        target_directory / APP_BUNDLE_SIGNED_FILE_NAME,
    )
    prompt.print_message(f"\t- Generated Android App Bundle at {APP_BUNDLE_SIGNED_FILE_NAME}")

    await _write_build_asset_links(
        key_tool, twa_manifest, key, target_directory / ASSETLINKS_OUTPUT_FILE, prompt
    )
    return True


# -- install / remove -------------------------------------------------------------


async def install(args: argparse.Namespace, settings: Settings, prompt: Prompt) -> bool:
    android_sdk = AndroidSdkTools(settings, JdkHelper(settings))
    apk_file = Path(args.apk_file or _target_directory(args) / APK_SIGNED_FILE_NAME)
    await android_sdk.install(apk_file, args.adb_args)
    prompt.print_message(f"Installed {apk_file}")
    return True


async def remove(args: argparse.Namespace, settings: Settings, prompt: Prompt) -> bool:
    target_directory = _target_directory(args)
    await TwaGenerator().remove_twa_project(target_directory)
    prompt.print_message(f"Removed the Android project from {target_directory}")
    return True


# -- fingerprint ------------------------------------------------------------------


def _save_manifest(manifest_file: Path, twa_manifest: TwaManifest, prompt: Prompt) -> None:
    prompt.print_message(f"Saving TWA Manifest to: {manifest_file}")
    twa_manifest.save_to_file(manifest_file)


def _write_fingerprint_asset_links(
    args: argparse.Namespace, twa_manifest: TwaManifest, prompt: Prompt
) -> bool:
    output = Path(args.output or _target_directory(args) / ASSETLINKS_OUTPUT_FILE)
    fingerprints = [fingerprint.value for fingerprint in twa_manifest.fingerprints]
    asset_links = generate_asset_links(twa_manifest.package_id, *fingerprints)
    output.write_text(asset_links, encoding="utf-8")
    prompt.print_message(f"Digital Asset Links file generated at {output}")
    return True


async def fingerprint(args: argparse.Namespace, settings: Settings, prompt: Prompt) -> bool:
    manifest_file = _manifest_file(args)
    twa_manifest = _load_manifest(manifest_file, prompt)

    if args.fingerprint_command == "list":
        for item in twa_manifest.fingerprints:
            prompt.print_message(f"\t{item.name or '<unnamed>'}: {item.value}")
        return True

    if args.fingerprint_command == "generateAssetLinks":
        return _write_fingerprint_asset_links(args, twa_manifest, prompt)

    if args.fingerprint_command == "add":
        value = validators.validate_sha256_fingerprint(args.fingerprint)
        new = Fingerprint(name=args.name, value=value)
        twa_manifest = twa_manifest.updated(fingerprints=[*twa_manifest.fingerprints, new])
        prompt.print_message(f"Added fingerprint with value {new.value}.")
    else:
        kept = []
        for item in twa_manifest.fingerprints:
            if item.value == args.fingerprint:
                prompt.print_message(f"Removed fingerprint with value {item.value}.")
            else:
                kept.append(item)
        twa_manifest = twa_manifest.updated(fingerprints=kept)

    _save_manifest(manifest_file, twa_manifest, prompt)
    return _write_fingerprint_asset_links(args, twa_manifest, prompt)


# -- doctor / version -------------------------------------------------------------


async def doctor(args: argparse.Namespace, settings: Settings, prompt: Prompt) -> bool:
    ok = True
    if "jdk_path" in settings.missing_toolchain():
        prompt.print_message(
            "jdk_path is not set or does not exist. Set it in ~/.twaforge/config.json "
            "or with TWAFORGE_JDK_PATH."
        )
        ok = False
    else:
        java = JdkHelper(settings).java_executable("java")
        if not await asyncio.to_thread(Path(java).exists):
            prompt.print_message(f"jdk_path does not look like a JDK, {java} is missing.")
            ok = False

    if "android_sdk_path" in settings.missing_toolchain():
        prompt.print_message(
            "android_sdk_path is not set or does not exist. Set it in "
            "~/.twaforge/config.json or with TWAFORGE_ANDROID_SDK_PATH."
        )
        ok = False

    if ok:
        prompt.print_message("Your jdk_path and android_sdk_path are valid.")
    return ok


async def version(args: argparse.Namespace, settings: Settings, prompt: Prompt) -> bool:
    prompt.print_message(__version__)
    return True


COMMANDS = {
    "init": init,
    "update": update,
    "merge": merge,
    "validate": validate,
    "build": build,
    "install": install,
    "fingerprint": fingerprint,
    "remove": remove,
    "doctor": doctor,
    "version": version,
}

__all__ = ["COMMANDS", "confirm_twa_config", "get_passwords", "update_project"]
