from __future__ import annotations

from twaforge.features.base import (
    AndroidManifest,
    BuildGradle,
    Contribution,
    DelegationService,
    Feature,
)

_PAYMENT_ACTIVITY = """<activity
            android:name="com.google.androidbrowserhelper.playbilling.provider.PaymentActivity"
            android:theme="@android:style/Theme.Translucent.NoTitleBar"
            android:configChanges="keyboardHidden|keyboard|orientation|screenLayout|screenSize"
            android:exported="true">
            <intent-filter>
                <action android:name="org.chromium.intent.action.PAY" />
            </intent-filter>
            <meta-data
                android:name="org.chromium.default_payment_method_name"
                android:value="https://play.google.com/billing" />
        </activity>"""

_PAYMENT_SERVICE = """<service
            android:name="com.google.androidbrowserhelper.playbilling.provider.PaymentService"
            android:exported="true">
            <intent-filter>
                <action android:name="org.chromium.intent.action.IS_READY_TO_PAY" />
            </intent-filter>
        </service>"""


class PlayBillingFeature(Feature):
    """Digital Goods API backed by Google Play Billing."""

    @property
    def name(self) -> str:
        return "playBilling"

    def contribution(self) -> Contribution:
        return Contribution(
            build_gradle=BuildGradle(
                dependencies=["com.google.androidbrowserhelper:billing:1.0.0-alpha11"],
            ),
            android_manifest=AndroidManifest(
                components=[_PAYMENT_ACTIVITY, _PAYMENT_SERVICE],
            ),
            delegation_service=DelegationService(
                imports=[
                    "com.google.androidbrowserhelper.playbilling.digitalgoods."
                    "DigitalGoodsRequestHandler"
                ],
                on_create=[
                    "registerExtraCommandHandler("
                    "new DigitalGoodsRequestHandler(getApplicationContext()));"
                ],
            ),
        )
