"""Module-level constants for the card navigator preset engine."""

from pathlib import Path

# Configuration
CONFIG_PATH = Path(__file__).parent.parent / "navigator.yaml"
DEFAULT_STORE_FILENAME = "presets.json"
STORE_FORMAT_VERSION = 1

# Default preset seeded when the store is empty or unreadable
DEFAULT_PRESET_NAME = "Default"
DEFAULT_PRESET_DESCRIPTION = "Fallback preset used when no mapping matches."

# Live configuration keys a preset switch never overwrites
LAST_ACTIVE_PRESET_KEY = "lastActivePresetId"
DEFAULT_GLOBAL_ONLY_KEYS = (
    LAST_ACTIVE_PRESET_KEY,
    "autoApplyPresets",
    "debugMode",
)

# Resolution
FOLDER_SPECIFICITY_BASE = 1_000  # any folder match outranks tag/date/property
NON_FOLDER_SPECIFICITY = 0
DEFAULT_CACHE_SIZE = 1_024

# Logging
LOG_LEVEL = "INFO"
