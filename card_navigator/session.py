"""Process-wide state: loaded configuration, the preset engine, vault lookup."""

import asyncio
from pathlib import Path
from typing import Optional

from card_navigator.config import load_navigator_configuration
from card_navigator.constants import CONFIG_PATH
from card_navigator.core.engine import PresetEngine
from card_navigator.data_models import NavigatorConfiguration, VaultMetadata

_CONFIGURATION: Optional[NavigatorConfiguration] = None
_ENGINE: Optional[PresetEngine] = None
_ENGINE_LOCK = asyncio.Lock()


def configure(config_path: Path = CONFIG_PATH) -> NavigatorConfiguration:
    """Load ``config_path`` and discard any engine built from older settings."""
    global _CONFIGURATION, _ENGINE
    _CONFIGURATION = load_navigator_configuration(config_path)
    _ENGINE = None
    return _CONFIGURATION


def get_configuration() -> NavigatorConfiguration:
    """Return the loaded configuration, reading the default file on first use."""
    if _CONFIGURATION is None:
        return configure()
    return _CONFIGURATION


async def get_engine() -> PresetEngine:
    """Return the shared preset engine, loading its store on first use."""
    global _ENGINE
    async with _ENGINE_LOCK:
        if _ENGINE is None:
            engine = PresetEngine.from_settings(get_configuration().presets)
            await engine.load()
            _ENGINE = engine
        return _ENGINE


def resolve_vault(vault: Optional[str]) -> VaultMetadata:
    """Resolve which vault metadata should be used for an operation.

    Args:
        vault: Optional friendly vault name; the configured default otherwise.

    Raises:
        ValueError: If the supplied ``vault`` name is not recognized.
    """
    vaults = get_configuration().vaults
    return vaults.get(vault or vaults.default_vault)
