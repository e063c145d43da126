"""Runs Gradle tasks on a generated project through its wrapper script."""

from __future__ import annotations

import logging
from pathlib import Path

from twaforge.tools.android_sdk import AndroidSdkTools
from twaforge.tools.process import ProcessResult, execute_file

logger = logging.getLogger(__name__)


class GradleWrapper:
    def __init__(
        self,
        android_sdk_tools: AndroidSdkTools,
        project_location: str | Path | None = None,
        log: logging.Logger | None = None,
    ):
        self.android_sdk_tools = android_sdk_tools
        self.project_location = Path(project_location or Path.cwd()).resolve()
        self.log = log or logger
        if android_sdk_tools.platform == "win32":
            self.gradle_cmd = str(self.project_location / "gradlew.bat")
        else:
            self.gradle_cmd = str(self.project_location / "gradlew")

    async def bundle_release(self) -> ProcessResult:
        """``gradlew bundleRelease``: builds the unsigned app bundle."""
        return await self.execute_gradle_command(["bundleRelease", "--stacktrace"])

    async def assemble_release(self) -> ProcessResult:
        """``gradlew assembleRelease``: builds the unsigned APK."""
        return await self.execute_gradle_command(["assembleRelease", "--stacktrace"])

    async def execute_gradle_command(self, args: list[str]) -> ProcessResult:
        self.log.info("Running gradle %s", " ".join(args))
        return await execute_file(
            self.gradle_cmd,
            args,
            self.android_sdk_tools.get_env(),
            cwd=self.project_location,
            log=self.log,
        )


__all__ = ["GradleWrapper"]
