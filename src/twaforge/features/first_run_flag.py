from __future__ import annotations

from twaforge.features.base import Contribution, Feature, LauncherActivity
from twaforge.features.config import FirstRunFlagConfig

_CHECK_AND_MARK_FIRST_OPEN = """private boolean checkAndMarkFirstOpen() {
        StrictMode.ThreadPolicy originalPolicy = StrictMode.allowThreadDiskReads();
        try {
            SharedPreferences preferences = getPreferences(MODE_PRIVATE);
            boolean isFirstRun = preferences.getBoolean(KEY_FIRST_OPEN, true);
            preferences.edit().putBoolean(KEY_FIRST_OPEN, false).apply();
            return isFirstRun;
        } finally {
            StrictMode.setThreadPolicy(originalPolicy);
        }
    }"""

_LAUNCH_URL = """uri = uri
                .buildUpon()
                .appendQueryParameter(PARAM_FIRST_OPEN, String.valueOf(checkAndMarkFirstOpen()))
                .build();"""


class FirstRunFlagFeature(Feature):
    """Appends a query parameter telling the web app whether this is the first launch."""

    def __init__(self, config: FirstRunFlagConfig):
        self._config = config

    @property
    def name(self) -> str:
        return "firstRunFlag"

    def contribution(self) -> Contribution:
        return Contribution(
            launcher_activity=LauncherActivity(
                imports=["android.content.SharedPreferences", "android.os.StrictMode"],
                variables=[
                    'private static final String KEY_FIRST_OPEN = "twaforge.first_open";',
                    "private static final String PARAM_FIRST_OPEN = "
                    f'"{self._config.query_parameter_name}";',
                ],
                methods=[_CHECK_AND_MARK_FIRST_OPEN],
                launch_url=[_LAUNCH_URL],
            ),
        )
