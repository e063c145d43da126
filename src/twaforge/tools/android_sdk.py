"""Wraps the Android SDK build-tools and platform-tools."""

from __future__ import annotations

import logging
from pathlib import Path

from twaforge.config import Settings
from twaforge.errors import TwaforgeError
from twaforge.tools.jdk import JdkHelper
from twaforge.tools.process import exec_interactive, execute_file

logger = logging.getLogger(__name__)

BUILD_TOOLS_VERSION = "29.0.2"


class AndroidSdkTools:
    def __init__(
        self,
        settings: Settings,
        jdk_helper: JdkHelper,
        log: logging.Logger | None = None,
    ):
        if not settings.android_sdk_path:
            raise TwaforgeError("android_sdk_path is not configured. Run `twaforge doctor`.")
        android_home = Path(settings.android_sdk_path).expanduser()
        if not android_home.exists():
            raise TwaforgeError(f"androidSdkPath does not exist: {android_home}")
        self.android_home = android_home
        self.jdk_helper = jdk_helper
        self.platform = jdk_helper.platform
        self.log = log or logger

    @property
    def build_tools_dir(self) -> Path:
        return self.android_home / "build-tools" / BUILD_TOOLS_VERSION

    def get_env(self) -> dict[str, str]:
        env = self.jdk_helper.get_env()
        env["ANDROID_HOME"] = str(self.android_home)
        return env

    def _build_tool(self, name: str) -> str:
        suffix = ".bat" if self.platform == "win32" and name == "apksigner" else ""
        suffix = ".exe" if self.platform == "win32" and name == "zipalign" else suffix
        return str(self.build_tools_dir / f"{name}{suffix}")

    async def check_build_tools(self) -> bool:
        return self.build_tools_dir.exists()

    async def install_build_tools(self) -> None:
        """Install the build-tools with ``sdkmanager``, which may ask to accept licenses."""
        sdk_manager = self.android_home / "tools" / "bin" / "sdkmanager"
        if self.platform == "win32":
            sdk_manager = sdk_manager.with_suffix(".bat")
        if not sdk_manager.exists():
            raise TwaforgeError(f"Could not find sdkmanager at: {sdk_manager}")

        self.log.info("Installing Build Tools")
        await exec_interactive(
            str(sdk_manager),
            [
                "--install",
                f"build-tools;{BUILD_TOOLS_VERSION}",
                # Some sdkmanager releases ignore ANDROID_HOME without it.
                f"--sdk_root={self.android_home}",
            ],
            self.get_env(),
        )

    async def zipalign(self, input_file: str | Path, output_file: str | Path) -> None:
        await execute_file(
            self._build_tool("zipalign"),
            ["-v", "-f", "-p", "4", str(input_file), str(output_file)],
            self.get_env(),
            log=self.log,
        )

    async def apksigner(
        self,
        keystore: str,
        ks_pass: str,
        alias: str,
        key_pass: str,
        input_file: str | Path,
        output_file: str | Path,
    ) -> None:
        params = [
            "sign",
            "--ks", keystore,
            "--ks-key-alias", alias,
            "--ks-pass", f"pass:{ks_pass}",
            "--key-pass", f"pass:{key_pass}",
            "--out", str(output_file),
            str(input_file),
        ]  # fmt: skip

        # apksigner.bat cannot locate java on Windows, run the jar directly.
        if self.platform == "win32":
            jar = self.build_tools_dir / "lib" / "apksigner.jar"
            await self.jdk_helper.run_java(["-Xmx1024M", "-Xss1m", "-jar", str(jar), *params])
            return

        await execute_file(self._build_tool("apksigner"), params, self.get_env(), log=self.log)

    async def install(
        self, apk_file: str | Path, passthrough_args: list[str] | None = None
    ) -> None:
        """Install an APK on the connected device, replacing an existing install."""
        apk_file = Path(apk_file)
        if not apk_file.exists():
            raise TwaforgeError(f"Could not find APK file at {apk_file}")
        adb_name = "adb.exe" if self.platform == "win32" else "adb"
        adb = self.android_home / "platform-tools" / adb_name
        await execute_file(
            str(adb),
            ["install", "-r", *(passthrough_args or []), str(apk_file)],
            self.get_env(),
            log=self.log,
        )


__all__ = ["AndroidSdkTools", "BUILD_TOOLS_VERSION"]
