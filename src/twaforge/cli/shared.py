"""Helpers shared by the project generating commands."""

from __future__ import annotations

import hashlib
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

from twaforge.cli.input_helpers import create_validate_string
from twaforge.cli.prompt import Prompt
from twaforge.generator.project import TwaGenerator
from twaforge.twa_manifest import TwaManifest

logger = logging.getLogger(__name__)

APP_NAME = "twaforge-cli"
TWA_MANIFEST_FILE_NAME = "twa-manifest.json"
CHECKSUM_FILE_NAME = "manifest-checksum.txt"
ASSETLINKS_OUTPUT_FILE = "assetlinks.json"

_BAR_WIDTH = 30


@dataclass(frozen=True)
class VersionInfo:
    app_version_code: int
    app_version_name: str


def update_versions(
    twa_manifest: TwaManifest, app_version_name: str | None, prompt: Prompt
) -> VersionInfo:
    """Next version of the app.

    The code always goes up by one. The name is ``app_version_name`` when
    given, follows the code when it used to match it, and is asked for
    otherwise.
    """
    previous_code = twa_manifest.app_version_code
    app_version_code = previous_code + 1

    if app_version_name:
        return VersionInfo(app_version_code, app_version_name)

    if twa_manifest.app_version_name == str(previous_code):
        return VersionInfo(app_version_code, str(app_version_code))

    new_name = prompt.prompt_input(
        "Versioning Info not found. Please enter the new app version name:",
        None,
        create_validate_string(1),
    )
    return VersionInfo(app_version_code, new_name)


def compute_checksum(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


def generate_manifest_checksum_file(manifest_file: Path, target_directory: Path) -> Path:
    checksum_file = target_directory / CHECKSUM_FILE_NAME
    checksum_file.write_text(compute_checksum(manifest_file.read_bytes()), encoding="utf-8")
    return checksum_file


def manifest_changed(manifest_file: Path, target_directory: Path) -> bool | None:
    """Whether twa-manifest.json changed since the project was generated.

    None when there is no checksum file to compare with.
    """
    checksum_file = target_directory / CHECKSUM_FILE_NAME
    if not checksum_file.exists():
        return None
    previous = checksum_file.read_text(encoding="utf-8").strip()
    return previous != compute_checksum(manifest_file.read_bytes())


def _progress_bar(current: int, total: int) -> None:
    filled = _BAR_WIDTH * current // total if total else _BAR_WIDTH
    percentage = 100 * current // total if total else 100
    sys.stdout.write(f"\r >> [{'#' * filled}{'-' * (_BAR_WIDTH - filled)}] {percentage}%")
    if current >= total:
        sys.stdout.write("\n")
    sys.stdout.flush()


async def generate_twa_project(
    prompt: Prompt,
    generator: TwaGenerator,
    target_directory: Path,
    twa_manifest: TwaManifest,
    show_progress: bool = True,
) -> None:
    prompt.print_message("Generating Android Project.")
    await generator.create_twa_project(
        target_directory, twa_manifest, _progress_bar if show_progress else None
    )


__all__ = [
    "APP_NAME",
    "ASSETLINKS_OUTPUT_FILE",
    "CHECKSUM_FILE_NAME",
    "TWA_MANIFEST_FILE_NAME",
    "VersionInfo",
    "compute_checksum",
    "generate_manifest_checksum_file",
    "generate_twa_project",
    "manifest_changed",
    "update_versions",
]
