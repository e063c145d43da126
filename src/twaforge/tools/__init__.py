"""Thin async wrappers around the JDK, Android SDK and Gradle."""

from twaforge.tools.android_sdk import AndroidSdkTools
from twaforge.tools.gradle import GradleWrapper
from twaforge.tools.jdk import JarSigner, JdkHelper, KeyTool
from twaforge.tools.process import exec_interactive, execute, execute_file

__all__ = [
    "AndroidSdkTools",
    "GradleWrapper",
    "JarSigner",
    "JdkHelper",
    "KeyTool",
    "exec_interactive",
    "execute",
    "execute_file",
]
