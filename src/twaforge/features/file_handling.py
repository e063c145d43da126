from __future__ import annotations

from twaforge.features.base import AndroidManifest, BuildGradle, Contribution, Feature
from twaforge.handlers import FileHandler
from twaforge.util import escape_groovy_double_quoted, escape_xml

_ACTIVITY_ALIAS = """<activity-alias
            android:name="FileHandlingActivity{index}"
            android:targetActivity="LauncherActivity"
            android:exported="true">
            <meta-data android:name="android.support.customtabs.trusted.FILE_HANDLING_ACTION_URL"
                android:value="@string/fileHandlingActionUrl{index}" />
            <intent-filter>
                <action android:name="android.intent.action.VIEW"/>
                <category android:name="android.intent.category.DEFAULT" />
                <category android:name="android.intent.category.BROWSABLE"/>
                <data android:scheme="content" />{mime_types}
            </intent-filter>
        </activity-alias>"""


class FileHandlingFeature(Feature):
    """Opens files of the declared MIME types in the web app."""

    def __init__(self, file_handlers: list[FileHandler]):
        self._handlers = list(file_handlers)

    @property
    def name(self) -> str:
        return "fileHandling"

    def contribution(self) -> Contribution:
        components = []
        configs = []
        for index, handler in enumerate(self._handlers):
            mime_types = "".join(
                f'\n                <data android:mimeType="{escape_xml(mime_type)}" />'
                for mime_type in handler.mime_types
            )
            components.append(_ACTIVITY_ALIAS.format(index=index, mime_types=mime_types))
            # The value is also read by AAPT, which needs apostrophes escaped.
            action_url = escape_groovy_double_quoted(handler.action_url.replace("'", "\\'"))
            configs.append(
                f'resValue "string", "fileHandlingActionUrl{index}", "{action_url}"'
            )
        return Contribution(
            build_gradle=BuildGradle(configs=configs),
            android_manifest=AndroidManifest(components=components),
        )
