"""Wrappers around the JDK tools used to create and use signing keys."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from twaforge.config import Settings
from twaforge.errors import TwaforgeError
from twaforge.tools.process import ProcessResult, execute_file
from twaforge.twa_manifest import SigningKeyInfo

logger = logging.getLogger(__name__)

JARSIGNER_CMD = "jarsigner"
SIGNATURE_ALGORITHM = "SHA256withRSA"
DIGEST_ALGORITHM = "SHA-256"

FINGERPRINT_TAGS = ("SHA1", "SHA256")


def get_java_home(jdk_path: str | Path, platform: str = sys.platform) -> Path:
    """JAVA_HOME for a JDK installed at ``jdk_path``.

    macOS JDK bundles keep the actual home under ``Contents/Home``.
    """
    jdk_path = Path(jdk_path).expanduser()
    if platform == "darwin":
        return jdk_path / "Contents" / "Home"
    if platform.startswith("linux") or platform == "win32":
        return jdk_path
    raise TwaforgeError(f"Unsupported Platform: {platform}")


class JdkHelper:
    """Builds the environment needed to run commands from the configured JDK."""

    def __init__(
        self,
        settings: Settings,
        platform: str = sys.platform,
        environ: dict[str, str] | None = None,
    ):
        if not settings.jdk_path:
            raise TwaforgeError("jdk_path is not configured. Run `twaforge doctor`.")
        self.settings = settings
        self.platform = platform
        self.environ = dict(os.environ if environ is None else environ)

    @property
    def java_home(self) -> Path:
        return get_java_home(self.settings.jdk_path, self.platform)

    @property
    def java_bin(self) -> Path:
        return self.java_home / "bin"

    def get_env(self) -> dict[str, str]:
        """A copy of the environment with JAVA_HOME set and the JDK first on PATH."""
        env = dict(self.environ)
        path_key = "Path" if self.platform == "win32" else "PATH"
        separator = ";" if self.platform == "win32" else ":"
        env["JAVA_HOME"] = str(self.java_home)
        current = env.get(path_key)
        env[path_key] = f"{self.java_bin}{separator}{current}" if current else str(self.java_bin)
        return env

    def java_executable(self, name: str) -> str:
        suffix = ".exe" if self.platform == "win32" else ""
        return str(self.java_bin / f"{name}{suffix}")

    async def run_java(self, args: list[str]) -> ProcessResult:
        return await execute_file(self.java_executable("java"), args, self.get_env())


@dataclass
class KeyOptions:
    path: str
    alias: str
    password: str
    keypassword: str


@dataclass
class CreateKeyOptions(KeyOptions):
    full_name: str = ""
    organizational_unit: str = ""
    organization: str = ""
    country: str = ""


@dataclass
class KeyInfo:
    fingerprints: dict[str, str] = field(default_factory=dict)


def _escape_dname(value: str) -> str:
    return value.replace(",", "\\,")


class KeyTool:
    """Wraps the ``keytool`` command line tool."""

    def __init__(self, jdk_helper: JdkHelper, log: logging.Logger | None = None):
        self.jdk_helper = jdk_helper
        self.log = log or logger

    async def create_signing_key(self, options: CreateKeyOptions, overwrite: bool = False) -> None:
        """Create a keystore holding a new RSA key.

        An existing keystore is kept unless ``overwrite`` is set.
        """
        keystore = Path(options.path)
        if keystore.exists():
            if not overwrite:
                self.log.info("Signing key %s already exists, keeping it", keystore)
                return
            await asyncio.to_thread(keystore.unlink)

        dname = (
            f"cn={_escape_dname(options.full_name)}, "
            f"ou={_escape_dname(options.organizational_unit)}, "
            f"o={_escape_dname(options.organization)}, "
            f"c={_escape_dname(options.country)}"
        )
        args = [
            "-genkeypair",
            "-dname", dname,
            "-alias", options.alias,
            "-keypass", options.keypassword,
            "-keystore", options.path,
            "-storepass", options.password,
            "-validity", "20000",
            "-keyalg", "RSA",
        ]  # fmt: skip
        await execute_file(
            self.jdk_helper.java_executable("keytool"),
            args,
            self.jdk_helper.get_env(),
            log=self.log,
        )
        self.log.info("Signing Key created successfully")

    async def list(self, options: KeyOptions) -> str:
        """Raw output of ``keytool -list -v`` for the key."""
        if not Path(options.path).exists():
            raise TwaforgeError(f'Couldn\'t find signing key at "{options.path}"')
        args = [
            # keytool ignores LANG; force English so the output can be parsed.
            "-J-Duser.language=en",
            "-list",
            "-v",
            "-keystore", options.path,
            "-alias", options.alias,
            "-storepass", options.password,
            "-keypass", options.keypassword,
        ]  # fmt: skip
        result = await execute_file(
            self.jdk_helper.java_executable("keytool"),
            args,
            self.jdk_helper.get_env(),
            log=self.log,
        )
        return result.stdout

    async def key_info(self, options: KeyOptions) -> KeyInfo:
        return self.parse_key_info(await self.list(options))

    @staticmethod
    def parse_key_info(raw_key_info: str) -> KeyInfo:
        """Extract the fingerprints from ``keytool -list -v`` output."""
        fingerprints: dict[str, str] = {}
        for line in raw_key_info.splitlines():
            line = line.strip()
            for tag in FINGERPRINT_TAGS:
                if line.startswith(f"{tag}:"):
                    fingerprints[tag] = line[len(tag) + 1 :].strip()
        return KeyInfo(fingerprints=fingerprints)


class JarSigner:
    """Wraps ``jarsigner``, used to sign app bundles."""

    def __init__(self, jdk_helper: JdkHelper):
        self.jdk_helper = jdk_helper

    async def sign(
        self,
        signing_key: SigningKeyInfo,
        storepass: str,
        keypass: str,
        input_file: str | Path,
        output_file: str | Path,
    ) -> None:
        args = [
            "-verbose",
            "-sigalg", SIGNATURE_ALGORITHM,
            "-digestalg", DIGEST_ALGORITHM,
            "-keystore", signing_key.path,
            str(input_file),
            signing_key.alias,
            "-storepass", storepass,
            "-keypass", keypass,
            "-signedjar", str(output_file),
        ]  # fmt: skip
        await execute_file(
            self.jdk_helper.java_executable(JARSIGNER_CMD), args, self.jdk_helper.get_env()
        )


__all__ = [
    "CreateKeyOptions",
    "JarSigner",
    "JdkHelper",
    "KeyInfo",
    "KeyOptions",
    "KeyTool",
    "get_java_home",
]
