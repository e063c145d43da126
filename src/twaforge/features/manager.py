"""Collects the enabled features of a TWA manifest into one aggregate."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from twaforge.features.apps_flyer import AppsFlyerFeature
from twaforge.features.base import (
    AndroidManifest,
    ApplicationClass,
    BuildGradle,
    DelegationService,
    Feature,
    LauncherActivity,
)
from twaforge.features.file_handling import FileHandlingFeature
from twaforge.features.first_run_flag import FirstRunFlagFeature
from twaforge.features.location_delegation import LocationDelegationFeature
from twaforge.features.play_billing import PlayBillingFeature
from twaforge.features.protocol_handlers import ProtocolHandlersFeature

if TYPE_CHECKING:
    from twaforge.twa_manifest import TwaManifest

logger = logging.getLogger(__name__)

ANDROID_BROWSER_HELPER_VERSIONS = {
    "stable": "com.google.androidbrowserhelper:androidbrowserhelper:2.6.2",
    "alpha": "com.google.androidbrowserhelper:androidbrowserhelper:2.6.2",
}


def _add_unique(target: list, items: Iterable) -> None:
    for item in items:
        if item not in target:
            target.append(item)


def enabled_features(twa_manifest: TwaManifest) -> list[Feature]:
    """Instantiate every feature the manifest turns on, in a fixed order."""
    features: list[Feature] = []
    config = twa_manifest.features
    if config.location_delegation and config.location_delegation.enabled:
        features.append(LocationDelegationFeature())
    if config.play_billing and config.play_billing.enabled:
        features.append(PlayBillingFeature())
    if config.apps_flyer and config.apps_flyer.enabled:
        features.append(AppsFlyerFeature(config.apps_flyer))
    if config.first_run_flag and config.first_run_flag.enabled:
        features.append(FirstRunFlagFeature(config.first_run_flag))
    if twa_manifest.protocol_handlers:
        features.append(ProtocolHandlersFeature(twa_manifest.protocol_handlers))
    if twa_manifest.file_handlers:
        features.append(FileHandlingFeature(twa_manifest.file_handlers))
    return features


class FeatureManager:
    """Union of the contributions of every enabled feature.

    Sets (permissions, imports, dependencies, repositories, configs,
    methods, variables of LauncherActivity) keep first-seen order and drop
    duplicates, so the generated sources are stable between runs. Code
    snippets are concatenated in feature order. Nothing is ever removed.
    """

    def __init__(self, twa_manifest: TwaManifest, log: logging.Logger | None = None):
        self.log = log or logger
        self.build_gradle = BuildGradle()
        self.android_manifest = AndroidManifest()
        self.application_class = ApplicationClass()
        self.launcher_activity = LauncherActivity()
        self.delegation_service = DelegationService()
        self.features: list[Feature] = []

        for feature in enabled_features(twa_manifest):
            self.add_feature(feature)

        # The WebView fallback needs the INTERNET permission.
        if twa_manifest.fallback_type == "webview":
            _add_unique(self.android_manifest.permissions, ["android.permission.INTERNET"])

        channel = "alpha" if twa_manifest.alpha_dependencies.enabled else "stable"
        _add_unique(self.build_gradle.dependencies, [ANDROID_BROWSER_HELPER_VERSIONS[channel]])

        # Android 13+ asks before showing notifications.
        if twa_manifest.enable_notifications:
            _add_unique(
                self.android_manifest.permissions, ["android.permission.POST_NOTIFICATIONS"]
            )

    def add_feature(self, feature: Feature) -> None:
        self.log.debug("Enabling feature %s", feature.name)
        contribution = feature.contribution()
        self.features.append(feature)

        _add_unique(self.build_gradle.repositories, contribution.build_gradle.repositories)
        _add_unique(self.build_gradle.dependencies, contribution.build_gradle.dependencies)
        _add_unique(self.build_gradle.configs, contribution.build_gradle.configs)

        manifest = contribution.android_manifest
        _add_unique(self.android_manifest.permissions, manifest.permissions)
        self.android_manifest.components.extend(manifest.components)
        self.android_manifest.application_metadata.extend(manifest.application_metadata)
        self.android_manifest.launcher_activity_entries.extend(manifest.launcher_activity_entries)

        application = contribution.application_class
        _add_unique(self.application_class.imports, application.imports)
        self.application_class.variables.extend(application.variables)
        self.application_class.on_create.extend(application.on_create)

        launcher = contribution.launcher_activity
        _add_unique(self.launcher_activity.imports, launcher.imports)
        _add_unique(self.launcher_activity.variables, launcher.variables)
        _add_unique(self.launcher_activity.methods, launcher.methods)
        self.launcher_activity.launch_url.extend(launcher.launch_url)

        delegation = contribution.delegation_service
        _add_unique(self.delegation_service.imports, delegation.imports)
        self.delegation_service.on_create.extend(delegation.on_create)


__all__ = ["ANDROID_BROWSER_HELPER_VERSIONS", "FeatureManager", "enabled_features"]
