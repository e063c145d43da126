"""twaforge command line entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from twaforge import __version__
from twaforge.cli.commands import COMMANDS
from twaforge.cli.prompt import Prompt
from twaforge.config import get_settings
from twaforge.logger import setup_logger
from twaforge.twa_manifest import MERGEABLE_FIELDS

logger = logging.getLogger("twaforge.cli")


def _add_project_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--directory", default=None, help="Android project directory (default: current directory)"
    )
    parser.add_argument(
        "--manifest",
        default=None,
        help="Path to twa-manifest.json (default: <directory>/twa-manifest.json)",
    )


def _add_version_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--skip-version-upgrade",
        action="store_true",
        help="Keep appVersionCode and appVersionName unchanged",
    )
    parser.add_argument(
        "--app-version-name", default=None, help="appVersionName to use for the new version"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="twaforge",
        description="Generate, build and sign Trusted Web Activity projects from a PWA",
    )
    parser.add_argument("--verbose", action="store_true", help="Show debug logs and tracebacks")
    parser.add_argument("--version", action="version", version=f"twaforge {__version__}")
    subparsers = parser.add_subparsers(dest="command", metavar="command")
    subparsers.required = True

    init = subparsers.add_parser("init", help="Create a project from a Web Manifest")
    init.add_argument("--manifest", required=True, help="URL of the Web Manifest")
    init.add_argument("--directory", default=None, help="Where to generate the project")

    update = subparsers.add_parser("update", help="Regenerate the project from twa-manifest.json")
    _add_project_arguments(update)
    _add_version_arguments(update)

    merge = subparsers.add_parser(
        "merge", help="Refresh twa-manifest.json from the Web Manifest it was created from"
    )
    _add_project_arguments(merge)
    _add_version_arguments(merge)
    merge.add_argument(
        "--ignore",
        action="extend",
        nargs="+",
        choices=MERGEABLE_FIELDS,
        default=None,
        help="Fields to keep as they are in twa-manifest.json",
    )

    validate = subparsers.add_parser("validate", help="Check twa-manifest.json")
    _add_project_arguments(validate)

    build = subparsers.add_parser("build", help="Build and sign the APK and App Bundle")
    _add_project_arguments(build)
    build.add_argument("--skip-apk", action="store_true", help="Only build the App Bundle")

    install = subparsers.add_parser("install", help="Install the signed APK with adb")
    install.add_argument("--directory", default=None, help="Android project directory")
    install.add_argument("--apk-file", default=None, help="APK to install")
    install.add_argument(
        "adb_args", nargs=argparse.REMAINDER, help="Extra arguments passed through to adb"
    )

    fingerprint = subparsers.add_parser(
        "fingerprint", help="Manage the signing fingerprints used by assetlinks.json"
    )
    _add_project_arguments(fingerprint)
    fingerprint.add_argument("--output", default=None, help="Where to write assetlinks.json")
    fingerprint_commands = fingerprint.add_subparsers(dest="fingerprint_command", metavar="action")
    fingerprint_commands.required = True
    add = fingerprint_commands.add_parser("add", help="Add a SHA-256 fingerprint")
    add.add_argument("fingerprint")
    add.add_argument("--name", default=None, help="Label for the fingerprint")
    fingerprint_remove = fingerprint_commands.add_parser("remove", help="Remove a fingerprint")
    fingerprint_remove.add_argument("fingerprint")
    fingerprint_commands.add_parser("list", help="List the fingerprints")
    fingerprint_commands.add_parser("generateAssetLinks", help="Write assetlinks.json")

    remove = subparsers.add_parser("remove", help="Delete the generated Android project")
    remove.add_argument("--directory", default=None, help="Android project directory")

    subparsers.add_parser("doctor", help="Check the configured JDK and Android SDK")
    subparsers.add_parser("version", help="Print the twaforge version")
    return parser


def main(argv: Sequence[str] | None = None, prompt: Prompt | None = None) -> int:
    """Run a command and return the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logger("twaforge", level=settings.log_level, verbose=args.verbose)
    prompt = prompt or Prompt()

    command = COMMANDS[args.command]
    try:
        ok = asyncio.run(command(args, settings, prompt))
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return 130
    except Exception as exc:
        if args.verbose:
            logger.exception("Command %s failed", args.command)
        else:
            logger.error("%s", exc)
        return 1
    return 0 if ok else 1


def run() -> None:
    sys.exit(main())


__all__ = ["build_parser", "main", "run"]
