import json
from st.common.logger import log
from st.common.setup import PATHS
from st.util import is_hex_color, now_iso


_SCHEMA_VERSION = 1

#region === Constants ===

# Fixed rules of the live tracker, not user-configurable.
LIVE_TRACK_MIN_MS = 60 * 1000
TIMER_MIN_MINUTES = 1
TIMER_MAX_MINUTES = 240
TICK_INTERVAL_MS = 1000

DEFAULT_SUBJECT_COLOR = "#6366f1"

# Palette used for subjects that don't carry a color of their own.
FALLBACK_COLORS = [
    "#6366f1",
    "#38bdf8",
    "#f472b6",
    "#facc15",
    "#34d399",
    "#f97316",
    "#22d3ee",
    "#a855f7",
]

#endregion === Constants ===

#region === Helpers and Paths ===

SETTINGS_PATH = PATHS.settings

# Default values for every setting. Anything missing from settings.json is filled in from here.
_SETTINGS_DEFAULTS = {
    "api_base_url": "http://localhost:8080",
    "default_subject_color": DEFAULT_SUBJECT_COLOR,
    "timer_default_minutes": 25,
    "request_timeout": 10,
    "always_on_top": False,
    "theme": "Midnight",
}
# Validators for settings whose type or shape matters. A value failing its check is treated as missing.
_SETTINGS_CHECKS = {
    "api_base_url": lambda v: isinstance(v, str) and v.strip() != "",
    "default_subject_color": is_hex_color,
    "timer_default_minutes": lambda v: isinstance(v, int) and not isinstance(v, bool)
                                       and TIMER_MIN_MINUTES <= v <= TIMER_MAX_MINUTES,
    "request_timeout": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool) and v > 0,
    "always_on_top": lambda v: isinstance(v, bool),
    "theme": lambda v: isinstance(v, str),
}

# Helper to return a truly fresh, default settings dict.
def build_default_settings():
    return {
        "meta": {
            "schema_version": _SCHEMA_VERSION,
            "saved_at": now_iso(),
        },
        **dict(_SETTINGS_DEFAULTS),
    }

#endregion === Helpers and Paths ===

#region === Saving and Loading Settings ===

# Loads settings from SETTINGS_PATH, validating every known key and falling back to defaults for anything missing
# or malformed.
def load_settings():
    try:
        if not SETTINGS_PATH.exists():
            log.info("No existing settings.json found, loading fresh settings dict.")
            return build_default_settings()

        with open(SETTINGS_PATH, "r", encoding="utf-8") as f:
            settings = json.load(f)
        if not isinstance(settings, dict):
            raise TypeError(f"settings.json holds a {type(settings).__name__}, expected an object")
        defaulted_values = set()

        # Validate the meta dict
        if "meta" not in settings or not isinstance(settings["meta"], dict):
            defaulted_values.add("meta")
            settings["meta"] = {}
        if "schema_version" not in settings["meta"] or not isinstance(settings["meta"]["schema_version"], int):
            defaulted_values.add("meta.schema_version")
            settings["meta"]["schema_version"] = _SCHEMA_VERSION

        # Validate each setting, fill in any necessary defaults
        for key, default in _SETTINGS_DEFAULTS.items():
            if key not in settings or not _SETTINGS_CHECKS[key](settings[key]):
                defaulted_values.add(key)
                settings[key] = default
        settings["api_base_url"] = settings["api_base_url"].strip().rstrip("/")

        # Log results
        if defaulted_values:
            log.warning(f"Successfully loaded settings from '{SETTINGS_PATH}', but with missing values that were defaulted: {', '.join(sorted(defaulted_values))}")
        else:
            log.info(f"Successfully loaded settings from '{SETTINGS_PATH}'.")
        return settings
    # Fall back to fresh settings in case of error, but warn in log
    except (json.JSONDecodeError, OSError, TypeError):
        log.warning("Ran into an error while trying to load settings.json, falling back to default settings.",exc_info=True)
        return build_default_settings()
# Write the given settings to disk under SETTINGS_PATH
def save_settings(settings):
    settings.setdefault("meta", {"schema_version": _SCHEMA_VERSION})
    settings["meta"]["saved_at"] = now_iso()
    SETTINGS_PATH.parent.mkdir(parents=True, exist_ok=True)
    with open(SETTINGS_PATH, "w", encoding="utf-8") as f:
        json.dump(settings, f, indent=2)
    log.info(f"Successfully saved settings to '{SETTINGS_PATH}'")

#endregion === Saving and Loading Settings ===
