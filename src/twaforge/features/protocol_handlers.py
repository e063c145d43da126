from __future__ import annotations

from twaforge.features.base import AndroidManifest, Contribution, Feature, LauncherActivity
from twaforge.handlers import ProtocolHandler
from twaforge.util import escape_java_string, escape_xml

_INTENT_FILTER = """<intent-filter>
                <action android:name="android.intent.action.VIEW"/>
                <category android:name="android.intent.category.DEFAULT" />
                <category android:name="android.intent.category.BROWSABLE"/>
                <data android:scheme="{protocol}" />
            </intent-filter>"""

_GET_PROTOCOL_HANDLERS = """@Override
    protected Map<String, Uri> getProtocolHandlers() {{
        Map<String, Uri> registry = new HashMap<>();
        {entries}
        return registry;
    }}"""


class ProtocolHandlersFeature(Feature):
    """Routes custom URL schemes to the web app."""

    def __init__(self, protocol_handlers: list[ProtocolHandler]):
        self._handlers = list(protocol_handlers)

    @property
    def name(self) -> str:
        return "protocolHandlers"

    def contribution(self) -> Contribution:
        if not self._handlers:
            return Contribution()

        entries = "\n        ".join(
            'registry.put("{}", Uri.parse("{}"));'.format(
                escape_java_string(handler.protocol), escape_java_string(handler.url)
            )
            for handler in self._handlers
        )
        return Contribution(
            android_manifest=AndroidManifest(
                launcher_activity_entries=[
                    _INTENT_FILTER.format(protocol=escape_xml(handler.protocol))
                    for handler in self._handlers
                ],
            ),
            launcher_activity=LauncherActivity(
                imports=["java.util.HashMap", "java.util.Map"],
                methods=[_GET_PROTOCOL_HANDLERS.format(entries=entries)],
            ),
        )
