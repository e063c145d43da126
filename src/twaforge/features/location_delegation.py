from __future__ import annotations

from twaforge.features.base import (
    AndroidManifest,
    BuildGradle,
    Contribution,
    DelegationService,
    Feature,
)


class LocationDelegationFeature(Feature):
    """Lets the web app use the Android location permission through the TWA."""

    @property
    def name(self) -> str:
        return "locationDelegation"

    def contribution(self) -> Contribution:
        return Contribution(
            build_gradle=BuildGradle(
                dependencies=["com.google.androidbrowserhelper:locationdelegation:1.0.0"],
            ),
            android_manifest=AndroidManifest(
                components=[
                    '<activity android:name="com.google.androidbrowserhelper.'
                    'locationdelegation.PermissionRequestActivity"/>'
                ],
            ),
            delegation_service=DelegationService(
                imports=[
                    "com.google.androidbrowserhelper.locationdelegation."
                    "LocationDelegationExtraCommandHandler"
                ],
                on_create=[
                    "registerExtraCommandHandler(new LocationDelegationExtraCommandHandler());"
                ],
            ),
        )
