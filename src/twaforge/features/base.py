"""Base types for optional features of the generated Android project.

A feature never edits files itself. It describes what it needs as a
``Contribution``: Gradle repositories and dependencies, manifest
permissions and components, and Java snippets for the generated
``Application``, ``LauncherActivity`` and ``DelegationService`` classes.
``FeatureManager`` folds the contributions of every enabled feature.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Metadata:
    """A ``<meta-data>`` entry of the ``<application>`` tag."""

    name: str
    value: str


@dataclass
class BuildGradle:
    repositories: list[str] = field(default_factory=list)
    # Format is 'group:name:version', e.g. 'androidx.appcompat:appcompat:1.2.0'.
    dependencies: list[str] = field(default_factory=list)
    # Lines added to defaultConfig, e.g. resValue entries.
    configs: list[str] = field(default_factory=list)


@dataclass
class AndroidManifest:
    permissions: list[str] = field(default_factory=list)
    components: list[str] = field(default_factory=list)
    application_metadata: list[Metadata] = field(default_factory=list)
    launcher_activity_entries: list[str] = field(default_factory=list)


@dataclass
class ApplicationClass:
    imports: list[str] = field(default_factory=list)
    variables: list[str] = field(default_factory=list)
    # Runs after super.onCreate().
    on_create: list[str] = field(default_factory=list)


@dataclass
class LauncherActivity:
    imports: list[str] = field(default_factory=list)
    variables: list[str] = field(default_factory=list)
    methods: list[str] = field(default_factory=list)
    # Each snippet may rebuild the local `uri` returned by super.getLaunchingUrl().
    launch_url: list[str] = field(default_factory=list)


@dataclass
class DelegationService:
    imports: list[str] = field(default_factory=list)
    on_create: list[str] = field(default_factory=list)


@dataclass
class Contribution:
    build_gradle: BuildGradle = field(default_factory=BuildGradle)
    android_manifest: AndroidManifest = field(default_factory=AndroidManifest)
    application_class: ApplicationClass = field(default_factory=ApplicationClass)
    launcher_activity: LauncherActivity = field(default_factory=LauncherActivity)
    delegation_service: DelegationService = field(default_factory=DelegationService)


class Feature(ABC):
    """Base class for a feature of the generated project."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Feature key as used in twa-manifest.json, e.g. 'appsFlyer'."""
        ...

    @abstractmethod
    def contribution(self) -> Contribution:
        """What this feature adds to the generated project."""
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


__all__ = [
    "AndroidManifest",
    "ApplicationClass",
    "BuildGradle",
    "Contribution",
    "DelegationService",
    "Feature",
    "LauncherActivity",
    "Metadata",
]
