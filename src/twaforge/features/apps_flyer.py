from __future__ import annotations

from twaforge.features.base import (
    AndroidManifest,
    ApplicationClass,
    BuildGradle,
    Contribution,
    Feature,
    LauncherActivity,
)
from twaforge.features.config import AppsFlyerConfig

_INSTALL_REFERRER_RECEIVER = """<receiver
            android:name="com.appsflyer.SingleInstallBroadcastReceiver"
            android:exported="true">
            <intent-filter>
                <action android:name="com.android.vending.INSTALL_REFERRER" />
            </intent-filter>
        </receiver>"""

_ON_CREATE = """AppsFlyerConversionListener conversionListener = new AppsFlyerConversionListener() {
            @Override
            public void onConversionDataSuccess(Map<String, Object> conversionData) {
            }

            @Override
            public void onConversionDataFail(String errorMessage) {
            }

            @Override
            public void onAppOpenAttribution(Map<String, String> attributionData) {
            }

            @Override
            public void onAttributionFailure(String errorMessage) {
            }
        };
        AppsFlyerLib.getInstance().init(AF_DEV_KEY, conversionListener, this);
        AppsFlyerLib.getInstance().startTracking(this);"""

_LAUNCH_URL = """String appsFlyerId = AppsFlyerLib.getInstance().getAppsFlyerUID(this);
        uri = uri
                .buildUpon()
                .appendQueryParameter("appsflyer_id", appsFlyerId)
                .build();"""


class AppsFlyerFeature(Feature):
    """AppsFlyer attribution SDK, initialized from the Application class."""

    def __init__(self, config: AppsFlyerConfig):
        self._config = config

    @property
    def name(self) -> str:
        return "appsFlyer"

    def contribution(self) -> Contribution:
        return Contribution(
            build_gradle=BuildGradle(
                repositories=["mavenCentral()"],
                dependencies=["com.appsflyer:af-android-sdk:5.4.0"],
            ),
            android_manifest=AndroidManifest(
                permissions=[
                    "android.permission.INTERNET",
                    "android.permission.ACCESS_NETWORK_STATE",
                    "android.permission.ACCESS_WIFI_STATE",
                    "android.permission.READ_PHONE_STATE",
                ],
                components=[_INSTALL_REFERRER_RECEIVER],
            ),
            application_class=ApplicationClass(
                imports=[
                    "java.util.Map",
                    "com.appsflyer.AppsFlyerLib",
                    "com.appsflyer.AppsFlyerConversionListener",
                ],
                variables=[
                    f'private static final String AF_DEV_KEY = "{self._config.apps_flyer_id}";'
                ],
                on_create=[_ON_CREATE],
            ),
            launcher_activity=LauncherActivity(
                imports=["com.appsflyer.AppsFlyerLib"],
                launch_url=[_LAUNCH_URL],
            ),
        )
