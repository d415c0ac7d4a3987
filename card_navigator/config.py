"""Configuration loading: vault registry and preset engine settings."""

import logging
from pathlib import Path
from typing import Any

import yaml

from card_navigator.constants import (
    CONFIG_PATH,
    DEFAULT_CACHE_SIZE,
    DEFAULT_GLOBAL_ONLY_KEYS,
    DEFAULT_STORE_FILENAME,
)
from card_navigator.data_models import (
    NavigatorConfiguration,
    PresetSettings,
    VaultConfiguration,
    VaultMetadata,
)

logger = logging.getLogger(__name__)


def _load_vaults(raw_config: dict[str, Any]) -> VaultConfiguration:
    vaults_section = raw_config.get("vaults")
    if not isinstance(vaults_section, dict) or not vaults_section:
        raise ValueError("Configuration must include a non-empty 'vaults' mapping")

    processed: dict[str, VaultMetadata] = {}
    for name, entry in vaults_section.items():
        if not isinstance(entry, dict):
            raise ValueError(f"Vault '{name}' must map to a dictionary of settings")

        raw_path = entry.get("path")
        if not isinstance(raw_path, str) or not raw_path.strip():
            raise ValueError(f"Vault '{name}' is missing a valid 'path' string")

        resolved_path = Path(raw_path).expanduser().resolve(strict=False)
        description = str(entry.get("description") or "").strip()
        processed[name] = VaultMetadata(
            name=name,
            path=resolved_path,
            description=description,
            exists=resolved_path.is_dir(),
        )

    default_vault = raw_config.get("default")
    if not isinstance(default_vault, str) or default_vault not in processed:
        raise ValueError("Configuration must specify a 'default' vault present in the mapping")

    return VaultConfiguration(default_vault=default_vault, vaults=processed)


def _require_bool(section: dict[str, Any], key: str, default: bool) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"'presets.{key}' must be true or false")
    return value


def _load_preset_settings(raw_config: dict[str, Any], base_dir: Path) -> PresetSettings:
    section = raw_config.get("presets") or {}
    if not isinstance(section, dict):
        raise ValueError("'presets' must be a mapping of settings")

    raw_store = section.get("store_path", DEFAULT_STORE_FILENAME)
    if not isinstance(raw_store, str) or not raw_store.strip():
        raise ValueError("'presets.store_path' must be a non-empty string")
    store_path = Path(raw_store).expanduser()
    if not store_path.is_absolute():
        store_path = base_dir / store_path

    keys = section.get("global_only_keys", list(DEFAULT_GLOBAL_ONLY_KEYS))
    if not isinstance(keys, list) or not all(isinstance(k, str) and k.strip() for k in keys):
        raise ValueError("'presets.global_only_keys' must be a list of non-empty strings")

    cache_size = section.get("cache_size", DEFAULT_CACHE_SIZE)
    if isinstance(cache_size, bool) or not isinstance(cache_size, int) or cache_size < 1:
        raise ValueError("'presets.cache_size' must be a positive integer")

    live_config = section.get("live_config") or {}
    if not isinstance(live_config, dict):
        raise ValueError("'presets.live_config' must be a mapping")

    return PresetSettings(
        store_path=store_path.resolve(strict=False),
        global_only_keys=tuple(k.strip() for k in keys),
        auto_apply=_require_bool(section, "auto_apply", True),
        cache_size=cache_size,
        mapping_priority_tiebreak=_require_bool(section, "mapping_priority_tiebreak", True),
        casefold_tags=_require_bool(section, "casefold_tags", False),
        live_config=live_config,
    )


def load_navigator_configuration(config_path: Path = CONFIG_PATH) -> NavigatorConfiguration:
    """Load and validate the navigator configuration file.

    Args:
        config_path: Path to the YAML configuration file. Defaults to
            ``navigator.yaml`` at the project root.

    Returns:
        The vault registry and preset engine settings.

    Raises:
        FileNotFoundError: If the configuration file is missing.
        ValueError: If the file exists but does not provide the expected structure
            (missing default, empty vault mapping, malformed preset settings, etc.).
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Navigator configuration file not found at {config_path}")

    try:
        raw_config = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Navigator configuration is not valid YAML: {exc}") from exc
    if not isinstance(raw_config, dict):
        raise ValueError("Navigator configuration must be a YAML mapping")

    configuration = NavigatorConfiguration(
        vaults=_load_vaults(raw_config),
        presets=_load_preset_settings(raw_config, config_path.parent.resolve(strict=False)),
    )
    logger.info(
        "Loaded %s vaults; preset store at %s",
        len(configuration.vaults.vaults),
        configuration.presets.store_path,
    )
    return configuration
